from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Optional


class EncodeError(Exception):
    """Base class for everything that can abort an encode."""


class InvalidPayloadSize(EncodeError, ValueError):
    pass


class InvalidRequest(EncodeError, ValueError):
    pass


class TapeIOError(EncodeError, OSError):
    pass


@dataclass
class Checksum:
    """Running 8-bit XOR over the bytes of one block."""

    value: int = 0

    def fold(self, data: Iterable[int]) -> None:
        for b in data:
            self.value ^= b & 0xFF


class ByteSink:
    """Write bytes to a binary stream, optionally folding them into a checksum.

    The stream only needs a ``write(bytes)`` method returning the number of
    bytes written (regular files, ``io.BytesIO``, ``serial.Serial``).
    """

    def __init__(self, stream: Any) -> None:
        self._stream = stream
        self.written = 0

    def write_byte(self, value: int, checksum: Optional[Checksum] = None) -> None:
        if not 0 <= value <= 0xFF:
            raise ValueError(f"byte value out of range: {value}")
        self.write_bytes(bytes([value]), checksum)

    def write_bytes(self, buffer: bytes, checksum: Optional[Checksum] = None) -> None:
        data = bytes(buffer)
        if checksum is not None:
            checksum.fold(data)
        try:
            n = self._stream.write(data)
        except OSError as e:
            # SerialException from pyserial is an OSError too
            raise TapeIOError(f"write failed after {self.written} byte(s): {e}") from e
        if n is not None and n != len(data):
            raise TapeIOError(
                f"short write after {self.written} byte(s): {n} of {len(data)} written"
            )
        self.written += len(data)
