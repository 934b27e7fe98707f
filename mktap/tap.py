from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Tuple

from .sink import ByteSink, Checksum, InvalidPayloadSize, InvalidRequest

log = logging.getLogger(__name__)

INPUT_MAX_SIZE = 49152  # 48KiB
ADDRESS_MIN = 16384
ADDRESS_MAX = 65535
NAME_LENGTH = 10

# Header length is a format constant: flag + 17 content bytes + checksum
HEADER_BLOCK_LENGTH = 19
HEADER_FLAG = 0x00
DATA_FLAG = 0xFF

# Bytes 0, 128 in a parameter slot: no autostart line / unused
NO_AUTOSTART = 0x8000


class DataType(IntEnum):
    PROGRAM = 0
    NUMBER_ARRAY = 1
    CHARACTER_ARRAY = 2
    BYTES = 3


@dataclass(frozen=True)
class EncodingRequest:
    payload: bytes
    name: str
    load_address: int
    data_type: DataType = DataType.BYTES

    def __post_init__(self) -> None:
        try:
            dt = DataType(self.data_type)
        except ValueError:
            raise InvalidRequest(f"invalid type {self.data_type!r} (expected 0..3)") from None
        object.__setattr__(self, "data_type", dt)
        object.__setattr__(self, "payload", bytes(self.payload))

        if not self.name:
            raise InvalidRequest("name must be non-empty")
        if len(self.name) > NAME_LENGTH:
            raise InvalidRequest(f"name {self.name!r} is longer than {NAME_LENGTH} characters")
        if not self.name.isascii():
            raise InvalidRequest(f"name {self.name!r} must be ASCII")
        if not ADDRESS_MIN <= self.load_address <= ADDRESS_MAX:
            raise InvalidRequest(
                f"address {self.load_address} is out of range ([{ADDRESS_MIN}, {ADDRESS_MAX + 1}))"
            )

        size = len(self.payload)
        if not size or size > INPUT_MAX_SIZE or self.load_address + size > ADDRESS_MAX:
            raise InvalidPayloadSize(
                f"payload of {size} byte(s) at address {self.load_address} is invalid"
            )

    def name_field(self) -> bytes:
        """Name as stored on tape: space-padded to 10, upper-cased."""
        return self.name.ljust(NAME_LENGTH).upper().encode("ascii")


def params_for_type(data_type: DataType, load_address: int) -> Tuple[int, int]:
    """Return (param1, param2) of the header for ``data_type``.

    Only raw bytes carry their load address; programs and arrays get the
    no-autostart marker. The second parameter is always the marker.
    """
    if DataType(data_type) is DataType.BYTES:
        return load_address, NO_AUTOSTART
    return NO_AUTOSTART, NO_AUTOSTART


def _u16(value: int) -> bytes:
    return (value & 0xFFFF).to_bytes(2, "little")


def write_header_block(request: EncodingRequest, sink: ByteSink) -> int:
    """Write the header block and return its checksum."""
    checksum = Checksum()
    param1, param2 = params_for_type(request.data_type, request.load_address)

    sink.write_bytes(_u16(HEADER_BLOCK_LENGTH))
    sink.write_byte(HEADER_FLAG, checksum)
    sink.write_byte(int(request.data_type), checksum)
    sink.write_bytes(request.name_field(), checksum)
    sink.write_bytes(_u16(len(request.payload)), checksum)
    sink.write_bytes(_u16(param1), checksum)
    sink.write_bytes(_u16(param2), checksum)
    sink.write_byte(checksum.value)

    log.debug(
        "header block type=%s name=%r checksum=0x%02x",
        request.data_type.name,
        request.name_field().decode("ascii"),
        checksum.value,
    )
    return checksum.value


def write_data_block(request: EncodingRequest, sink: ByteSink) -> int:
    """Write the data block and return its checksum."""
    checksum = Checksum()

    sink.write_bytes(_u16(len(request.payload) + 2))
    sink.write_byte(DATA_FLAG, checksum)
    sink.write_bytes(request.payload, checksum)
    sink.write_byte(checksum.value)

    log.debug("data block size=%d checksum=0x%02x", len(request.payload), checksum.value)
    return checksum.value


def encode(request: EncodingRequest, sink: ByteSink) -> None:
    """Write the header block then the data block of ``request`` to ``sink``.

    A failing write raises TapeIOError right away; whatever was already
    written stays in the sink.
    """
    write_header_block(request, sink)
    write_data_block(request, sink)
    log.info("encoded %r: %d byte(s) of tape", request.name, sink.written)


def encode_to_bytes(request: EncodingRequest) -> bytes:
    buf = io.BytesIO()
    encode(request, ByteSink(buf))
    return buf.getvalue()
