"""
Configuration Loader (``inventory_config.loader``).

Responsibility
--------------
Loads the YAML configuration file and parses it into the frozen
``inventory_config.schema`` dataclasses.  Runtime callers go through
``inventory_config.get_active_config()``; the parse functions here are
also used directly by tests.

Invariants enforced
-------------------
* Unknown top-level or section keys raise ``ValueError`` (a typo never
  silently falls back to a default).
* Every parsed object is a frozen dataclass from ``schema.py``.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the parsed
  content for configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required unit keys  -> ``KeyError`` propagates.
* Wrong value types / unknown keys  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from inventory_config.schema import (
    DatabaseConfig,
    InventoryConfig,
    LedgerConfig,
    MonitorConfig,
    UnitDef,
)

_UNIT_GROUPS = ("mass", "volume", "count")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def _check_keys(section: str, data: dict[str, Any], allowed: set[str]) -> None:
    unknown = set(data) - allowed
    if unknown:
        raise ValueError(f"Unknown keys in {section}: {', '.join(sorted(unknown))}")


def _section(cls, section: str, data: Any):
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ValueError(f"{section} must be a mapping")
    _check_keys(section, data, {f.name for f in fields(cls)})
    return cls(**data)


def parse_database(data: Any) -> DatabaseConfig:
    raw = _section(DatabaseConfig, "database", data)
    config = DatabaseConfig(
        url=str(raw.url),
        echo=bool(raw.echo),
        pool_size=int(raw.pool_size),
        lock_timeout_seconds=float(raw.lock_timeout_seconds),
    )
    if config.pool_size < 1:
        raise ValueError("database.pool_size must be >= 1")
    if config.lock_timeout_seconds <= 0:
        raise ValueError("database.lock_timeout_seconds must be > 0")
    return config


def parse_ledger(data: Any) -> LedgerConfig:
    raw = _section(LedgerConfig, "ledger", data)
    config = LedgerConfig(
        max_retries=int(raw.max_retries),
        retry_backoff_seconds=float(raw.retry_backoff_seconds),
        return_location_code=str(raw.return_location_code) if raw.return_location_code else None,
    )
    if config.max_retries < 0:
        raise ValueError("ledger.max_retries must be >= 0")
    if config.retry_backoff_seconds < 0:
        raise ValueError("ledger.retry_backoff_seconds must be >= 0")
    return config


def parse_monitor(data: Any) -> MonitorConfig:
    raw = _section(MonitorConfig, "monitor", data)
    config = MonitorConfig(expiry_window_days=int(raw.expiry_window_days))
    if config.expiry_window_days < 0:
        raise ValueError("monitor.expiry_window_days must be >= 0")
    return config


def parse_unit(data: dict[str, Any]) -> UnitDef:
    """
    Parse one unit definition.

    ``to_base`` should be quoted in YAML; it is read through ``str`` so an
    unquoted number still becomes an exact Decimal of its written form.
    """
    _check_keys("units[]", data, {f.name for f in fields(UnitDef)})
    group = str(data["group"]).lower()
    if group not in _UNIT_GROUPS:
        raise ValueError(f"Unit {data['code']!r}: group must be one of {_UNIT_GROUPS}, got {group!r}")
    try:
        to_base = Decimal(str(data["to_base"]))
    except InvalidOperation as exc:
        raise ValueError(f"Unit {data['code']!r}: to_base {data['to_base']!r} is not a number") from exc
    if to_base <= 0:
        raise ValueError(f"Unit {data['code']!r}: to_base must be positive")
    aliases = data.get("aliases") or ()
    if isinstance(aliases, str):
        aliases = (aliases,)
    return UnitDef(
        code=str(data["code"]),
        group=group,
        to_base=to_base,
        name=str(data.get("name", "")),
        aliases=tuple(str(a) for a in aliases),
        active=bool(data.get("active", True)),
    )


def parse_config(data: dict[str, Any], source: str = "<dict>") -> InventoryConfig:
    """Parse a full configuration mapping into an ``InventoryConfig``."""
    _check_keys("configuration", data, {"database", "ledger", "monitor", "units"})
    units = data.get("units") or []
    if not isinstance(units, list):
        raise ValueError("units must be a list")
    return InventoryConfig(
        database=parse_database(data.get("database")),
        ledger=parse_ledger(data.get("ledger")),
        monitor=parse_monitor(data.get("monitor")),
        units=tuple(parse_unit(u) for u in units),
        checksum=compute_checksum(data),
        source=source,
    )


def load_config_file(path: Path) -> InventoryConfig:
    return parse_config(load_yaml_file(path), source=str(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Postconditions:
        - Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
