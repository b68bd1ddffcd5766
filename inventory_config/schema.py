"""
InventoryConfig schema.

The YAML file is parsed into these frozen dataclasses by the loader; the
runtime only ever sees an ``InventoryConfig``.  Field defaults are the
values used when a key is absent from the file.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = "sqlite:///inventory.db"
    echo: bool = False
    pool_size: int = 20
    lock_timeout_seconds: float = 5.0


@dataclass(frozen=True)
class LedgerConfig:
    """Operation-layer behaviour."""

    max_retries: int = 3
    retry_backoff_seconds: float = 0.05
    # Location code RETURN entries credit when no destination is given
    return_location_code: str | None = None


@dataclass(frozen=True)
class MonitorConfig:
    expiry_window_days: int = 30


@dataclass(frozen=True)
class UnitDef:
    """An organization unit; overrides any built-in unit sharing a code or alias."""

    code: str
    group: str  # mass, volume, count
    to_base: Decimal
    name: str = ""
    aliases: tuple[str, ...] = ()
    active: bool = True


@dataclass(frozen=True)
class InventoryConfig:
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    units: tuple[UnitDef, ...] = ()

    # Identity of the loaded source
    checksum: str = ""
    source: str = "<defaults>"
