"""Service configuration loaded from YAML."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


@dataclass
class ClickHouseConfig:
    """Connection settings and the Component-to-table mapping."""

    address: str = ""
    username: str = ""
    password: str = ""
    database: str = ""
    default_table: str = ""
    protocol: str = ""
    table_map: dict[str, str] = field(default_factory=dict)


@dataclass
class Config:
    """Main service settings."""

    log_directory_map: dict[str, str] = field(default_factory=dict)
    file_pattern: str = ""
    batch_size: int = 0
    batch_interval: int = 0
    clickhouse: ClickHouseConfig = field(default_factory=ClickHouseConfig)


def _text(value: Any, key: str) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        raise ValueError(f"cannot read {key!r} as a string: {value!r}")
    return str(value)


def _int(value: Any, key: str) -> int:
    if value is None:
        return 0
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise ValueError(f"cannot read {key!r} as an integer: {value!r}")


def _mapping(value: Any, key: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"cannot read {key!r} as a mapping: {value!r}")
    return value


def _str_map(value: Any, key: str) -> dict[str, str]:
    return {_text(k, key): _text(v, key) for k, v in _mapping(value, key).items()}


def parse_config(data: str | bytes) -> Config:
    """Parse YAML configuration text; a UTF-8 BOM and tabs are tolerated."""
    if isinstance(data, bytes):
        data = data.decode("utf-8")
    text = data.removeprefix("\ufeff").replace("\t", "  ")
    try:
        root = _mapping(yaml.safe_load(text), "document")
    except yaml.YAMLError as exc:
        raise ValueError(f"invalid YAML: {exc}") from exc
    ch = _mapping(root.get("ClickHouse"), "ClickHouse")
    return Config(
        log_directory_map=_str_map(root.get("LogDirectoryMap"), "LogDirectoryMap"),
        file_pattern=_text(root.get("FilePattern"), "FilePattern"),
        batch_size=_int(root.get("BatchSize"), "BatchSize"),
        batch_interval=_int(root.get("BatchInterval"), "BatchInterval"),
        clickhouse=ClickHouseConfig(
            address=_text(ch.get("Address"), "Address"),
            username=_text(ch.get("Username"), "Username"),
            password=_text(ch.get("Password"), "Password"),
            database=_text(ch.get("Database"), "Database"),
            default_table=_text(ch.get("DefaultTable"), "DefaultTable"),
            protocol=_text(ch.get("Protocol"), "Protocol"),
            table_map=_str_map(ch.get("TableMap"), "TableMap"),
        ),
    )


def load_config(path: str | Path) -> Config:
    """Read and parse the configuration file at ``path``."""
    return parse_config(Path(path).read_bytes())