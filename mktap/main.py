from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

import serial

from .config import AppConfig, load_and_validate_config
from .sink import ByteSink, EncodeError
from .tap import ADDRESS_MAX, ADDRESS_MIN, INPUT_MAX_SIZE, DataType, EncodingRequest, encode


def _int_auto(text: str) -> int:
    # Same bases as C's %i: 0x.., 0o.., 0b.. or plain decimal
    try:
        return int(text, 0)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number: {text!r}") from None


def parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="mktap", description="Convert a file into a ZX Spectrum TAP tape image"
    )
    p.add_argument("input", help="Input file")
    p.add_argument(
        "-a",
        "--address",
        type=_int_auto,
        default=None,
        help="The address at which the code should be loaded",
    )
    p.add_argument("-n", "--name", default=None, help="The name of the code file (max 10 chars)")
    p.add_argument("-o", "--output", default=None, help="The output file")
    p.add_argument(
        "-t",
        "--type",
        type=int,
        default=None,
        help=(
            "The input type (0: BASIC program, 1: number array, "
            "2: character array, 3: bytes (default))"
        ),
    )
    p.add_argument("--send", action="store_true", help="Send the image to a serial port")
    p.add_argument("--port", default=None, help="Serial port for --send (overrides config)")
    p.add_argument("--baud", type=int, default=None, help="Baud rate for --send (overrides config)")
    p.add_argument("--config", default=None, help="Path to YAML config with defaults")
    p.add_argument(
        "--verbose",
        action="store_true",
        help="Enable INFO-level logging (default is ERROR)",
    )
    return p.parse_args(argv)


def _read_input(path: str, address: int, log: logging.Logger) -> Optional[bytes]:
    p = Path(path)
    try:
        size = p.stat().st_size
    except OSError as e:
        log.error("cannot open '%s': %s", path, e.strerror or e)
        return None
    if not size or size > INPUT_MAX_SIZE or address + size > ADDRESS_MAX:
        log.error("the input file size is invalid")
        return None
    try:
        return p.read_bytes()
    except OSError as e:
        log.error("cannot read '%s': %s", path, e.strerror or e)
        return None


def _write_file(request: EncodingRequest, output: str, log: logging.Logger) -> int:
    try:
        with open(output, "wb") as fh:
            encode(request, ByteSink(fh))
    except OSError as e:
        # TapeIOError is an OSError too
        log.error("failed to write '%s': %s", output, e)
        return 1
    log.info("wrote %s", output)
    return 0


def _send_serial(request: EncodingRequest, port: str, baud: int, log: logging.Logger) -> int:
    try:
        ser = serial.Serial(port, baud, timeout=0.2, write_timeout=5.0)
    except Exception as e:
        log.error("Failed to open serial port %s: %s", port, e)
        return 3
    try:
        with ser:
            encode(request, ByteSink(ser))
            ser.flush()
    except (EncodeError, serial.SerialException) as e:
        log.error("failed to send to %s: %s", port, e)
        return 3
    log.info("sent %r to %s at %d baud", request.name, port, baud)
    return 0


def main(argv: list[str]) -> int:
    args = parse_args(argv)
    # Logging: minimal by default (ERROR). --verbose switches to INFO.
    lvl = logging.INFO if args.verbose else logging.ERROR
    logging.basicConfig(level=lvl, format="%(levelname)s:%(name)s:%(message)s", stream=sys.stderr)
    log = logging.getLogger(__name__)

    cfg = AppConfig()
    if args.config:
        try:
            cfg = load_and_validate_config(args.config)
        except Exception as e:
            log.error("Failed to load config: %s", e)
            return 2

    address = args.address if args.address is not None else cfg.defaults.address
    if address is None:
        log.error("missing -a <address>")
        return 1
    if address < ADDRESS_MIN or address > ADDRESS_MAX:
        log.error("address %d is out of range ([%d, %d))", address, ADDRESS_MIN, ADDRESS_MAX + 1)
        return 1
    if not args.name:
        log.error("missing -n <name>")
        return 1
    if not args.output and not args.send:
        log.error("missing -o <output> or --send")
        return 1
    dtype = args.type if args.type is not None else cfg.defaults.type
    if dtype not in {int(t) for t in DataType}:
        log.error("invalid type %d", dtype)
        return 1

    payload = _read_input(args.input, address, log)
    if payload is None:
        return 1

    try:
        request = EncodingRequest(
            payload=payload, name=args.name, load_address=address, data_type=DataType(dtype)
        )
    except EncodeError as e:
        log.error("%s", e)
        return 1

    if args.output:
        rc = _write_file(request, args.output, log)
        if rc:
            return rc

    if args.send:
        port = args.port or cfg.serial.port
        if not port:
            log.error("missing --port (and no serial.port in config)")
            return 1
        baud = args.baud if args.baud is not None else cfg.serial.baud
        return _send_serial(request, port, baud, log)

    return 0


def run() -> int:
    return main(sys.argv[1:])


if __name__ == "__main__":
    raise SystemExit(run())
