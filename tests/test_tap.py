from __future__ import annotations

from functools import reduce

import pytest

from mktap.sink import InvalidPayloadSize, InvalidRequest
from mktap.tap import (
    INPUT_MAX_SIZE,
    NO_AUTOSTART,
    DataType,
    EncodingRequest,
    encode_to_bytes,
    params_for_type,
)


def _xor(data: bytes) -> int:
    return reduce(lambda a, b: a ^ b, data, 0)


def _split(image: bytes) -> tuple[bytes, bytes]:
    hlen = int.from_bytes(image[0:2], "little")
    header = image[: 2 + hlen]
    data = image[2 + hlen :]
    assert int.from_bytes(data[0:2], "little") == len(data) - 2
    return header, data


def _decode(image: bytes) -> tuple[int, str, bytes]:
    header, data = _split(image)
    return header[3], header[4:14].decode("ascii"), data[3:-1]


def test_scenario_bytes_foo() -> None:
    req = EncodingRequest(payload=b"\x01\x02\x03", name="foo", load_address=32768, data_type=3)
    header, data = _split(encode_to_bytes(req))
    assert header == bytes(
        [19, 0, 0, 3]
        + list(b"FOO       ")
        + [3, 0, 0x00, 0x80, 0x00, 0x80, 0x66]
    )
    assert data == bytes([0x05, 0x00, 0xFF, 0x01, 0x02, 0x03, 0xFF])


def test_data_checksum_folds_flag_and_payload() -> None:
    # 0x01 ^ 0x02 ^ 0x03 cancels out, so pick a payload that does not
    req = EncodingRequest(payload=b"\x01\x02\x04", name="foo", load_address=32768, data_type=3)
    _, data = _split(encode_to_bytes(req))
    assert data == bytes([0x05, 0x00, 0xFF, 0x01, 0x02, 0x04, 0xF8])


def test_program_ignores_load_address() -> None:
    for addr in (16384, 23755, 40000, 65000):
        req = EncodingRequest(payload=b"\x00" * 10, name="prog", load_address=addr, data_type=0)
        header, _ = _split(encode_to_bytes(req))
        assert header[16:18] == b"\x00\x80"
        assert header[18:20] == b"\x00\x80"


@pytest.mark.parametrize("size", [1, 2, 255, 256, 1000, INPUT_MAX_SIZE - 1])
def test_block_lengths_and_checksums(size: int) -> None:
    payload = bytes((i * 7 + 3) & 0xFF for i in range(size))
    req = EncodingRequest(payload=payload, name="data", load_address=16384, data_type=3)
    header, data = _split(encode_to_bytes(req))

    assert len(header) == 21
    assert header[0:2] == b"\x13\x00"
    assert int.from_bytes(header[14:16], "little") == size
    assert header[20] == _xor(header[2:20])

    assert int.from_bytes(data[0:2], "little") == size + 2
    assert data[2] == 0xFF
    assert data[-1] == _xor(b"\xff" + payload)


@pytest.mark.parametrize("dtype", list(DataType))
def test_decode_recovers_payload_type_and_name(dtype: DataType) -> None:
    payload = b"10 PRINT \"HI\"\r"
    req = EncodingRequest(payload=payload, name="Hello", load_address=30000, data_type=dtype)
    got_type, got_name, got_payload = _decode(encode_to_bytes(req))
    assert got_type == int(dtype)
    assert got_name == "HELLO     "
    assert got_payload == payload


@pytest.mark.parametrize("name", ["a", "abc", "Mixed Case", "x1-y2"])
def test_name_field_is_padded_and_upper_cased(name: str) -> None:
    req = EncodingRequest(payload=b"\x00", name=name, load_address=16384)
    field = req.name_field()
    assert len(field) == 10
    assert field == name.upper().ljust(10).encode("ascii")


def test_params_for_type() -> None:
    assert params_for_type(DataType.BYTES, 32768) == (32768, NO_AUTOSTART)
    assert params_for_type(DataType.BYTES, 16385) == (16385, NO_AUTOSTART)
    for dt in (DataType.PROGRAM, DataType.NUMBER_ARRAY, DataType.CHARACTER_ARRAY):
        assert params_for_type(dt, 32768) == (NO_AUTOSTART, NO_AUTOSTART)


def test_bytes_param1_little_endian() -> None:
    req = EncodingRequest(payload=b"\xaa", name="c", load_address=0xC350, data_type=3)
    header, _ = _split(encode_to_bytes(req))
    assert header[16:18] == b"\x50\xc3"


def test_boundary_sizes() -> None:
    EncodingRequest(payload=b"\x00" * 49151, name="max", load_address=16384)
    with pytest.raises(InvalidPayloadSize):
        EncodingRequest(payload=b"\x00" * 49152, name="max", load_address=16384)
    # fits the size limit but runs past the top of memory
    with pytest.raises(InvalidPayloadSize):
        EncodingRequest(payload=b"\x00" * 2, name="top", load_address=65534)
    with pytest.raises(InvalidPayloadSize):
        EncodingRequest(payload=b"", name="empty", load_address=32768)


def test_long_name_rejected() -> None:
    with pytest.raises(InvalidRequest):
        EncodingRequest(payload=b"\x00", name="elevenchars", load_address=32768)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"name": "", "load_address": 32768, "data_type": 3},
        {"name": "café", "load_address": 32768, "data_type": 3},
        {"name": "ok", "load_address": 16383, "data_type": 3},
        {"name": "ok", "load_address": 65536, "data_type": 3},
        {"name": "ok", "load_address": 32768, "data_type": 4},
        {"name": "ok", "load_address": 32768, "data_type": -1},
    ],
)
def test_invalid_requests(kwargs: dict) -> None:
    with pytest.raises(InvalidRequest):
        EncodingRequest(payload=b"\x00", **kwargs)


def test_request_is_immutable() -> None:
    req = EncodingRequest(payload=bytearray(b"\x01"), name="x", load_address=32768)
    assert isinstance(req.payload, bytes)
    assert req.data_type is DataType.BYTES
    with pytest.raises(AttributeError):
        req.name = "y"  # type: ignore[misc]
