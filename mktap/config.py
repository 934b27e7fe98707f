from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .tap import ADDRESS_MAX, ADDRESS_MIN, DataType


@dataclass
class SerialConfig:
    port: str | None = None
    baud: int = 115200


@dataclass
class DefaultsConfig:
    type: int = int(DataType.BYTES)
    address: int | None = None


@dataclass
class AppConfig:
    defaults: DefaultsConfig = field(default_factory=DefaultsConfig)
    serial: SerialConfig = field(default_factory=SerialConfig)


def _to_int(val: Any) -> int:
    # accept 0x8000 style addresses
    return int(val, 0) if isinstance(val, str) else int(val)


def _as_int(val: Any, default: int) -> int:
    try:
        return _to_int(val)
    except Exception:
        return default


def _load_yaml(path: Path) -> dict[str, Any]:
    data = yaml.safe_load(path.read_text())
    if data is not None and not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data or {}


def load_config(path: str | Path) -> AppConfig:
    p = Path(path)
    data = _load_yaml(p)

    # defaults
    defaults_raw = data.get("defaults") or {}
    if not isinstance(defaults_raw, dict):
        defaults_raw = {}
    address: int | None = None
    address_raw = defaults_raw.get("address")
    if address_raw is not None:
        try:
            address = _to_int(address_raw)
        except (TypeError, ValueError):
            address = None
    defaults = DefaultsConfig(
        type=_as_int(defaults_raw.get("type", DefaultsConfig.type), DefaultsConfig.type),
        address=address,
    )

    # serial
    serial_raw = data.get("serial") or {}
    if not isinstance(serial_raw, dict):
        serial_raw = {}
    port_raw = serial_raw.get("port")
    port = str(port_raw).strip() if port_raw is not None else ""
    serial = SerialConfig(
        port=port or None,
        baud=_as_int(serial_raw.get("baud", SerialConfig.baud), SerialConfig.baud),
    )

    return AppConfig(defaults=defaults, serial=serial)


def validate_config(cfg: AppConfig) -> None:
    if cfg.defaults.type not in {int(t) for t in DataType}:
        raise ValueError(f"defaults.type must be one of 0..3, got {cfg.defaults.type}")
    addr = cfg.defaults.address
    if addr is not None and not ADDRESS_MIN <= addr <= ADDRESS_MAX:
        raise ValueError(f"defaults.address must be in [{ADDRESS_MIN}, {ADDRESS_MAX}], got {addr}")
    if cfg.serial.baud <= 0:
        raise ValueError("serial.baud must be > 0")


def load_and_validate_config(path: str | Path) -> AppConfig:
    cfg = load_config(path)
    validate_config(cfg)
    return cfg
