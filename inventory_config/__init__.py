"""
inventory_config -- single public entrypoint for runtime configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    or environment variables directly.

Architecture position:
    Configuration -- sits above ``inventory_kernel``.  The kernel MUST NEVER
    import from ``inventory_config``; bridges in this package translate the
    parsed configuration into kernel inputs (UnitTable, RetryPolicy, engine).

Resolution order:
    1. ``path`` argument
    2. ``INVENTORY_CONFIG`` environment variable
    3. the packaged ``sets/default.yaml``
    ``DATABASE_URL``, when set, replaces ``database.url``.

Failure modes:
    - ``FileNotFoundError`` -- the selected file does not exist.
    - ``ValueError`` / ``KeyError`` -- schema or structural errors.

Audit relevance:
    Every successful ``get_active_config()`` call emits an
    ``INVENTORY_CONFIG_TRACE`` log entry with the source and checksum, tying
    operations back to the exact configuration that governed them.
"""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from pathlib import Path

from inventory_config.loader import compute_checksum, load_config_file
from inventory_config.schema import (
    DatabaseConfig,
    InventoryConfig,
    LedgerConfig,
    MonitorConfig,
    UnitDef,
)

_logger = logging.getLogger("inventory_kernel.config")

_DEFAULT_CONFIG_FILE = Path(__file__).parent / "sets" / "default.yaml"

CONFIG_ENV_VAR = "INVENTORY_CONFIG"
DATABASE_URL_ENV_VAR = "DATABASE_URL"


def get_active_config(path: Path | str | None = None) -> InventoryConfig:
    """The ONLY public configuration entrypoint.

    Guarantees:
        - The returned ``InventoryConfig`` is frozen and has passed schema
          parsing.
        - An ``INVENTORY_CONFIG_TRACE`` log entry is emitted on every call.
    """
    selected = path or os.environ.get(CONFIG_ENV_VAR) or _DEFAULT_CONFIG_FILE
    config = load_config_file(Path(selected))

    database_url = os.environ.get(DATABASE_URL_ENV_VAR)
    if database_url:
        config = replace(config, database=replace(config.database, url=database_url))

    _logger.info(
        "INVENTORY_CONFIG_TRACE",
        extra={
            "trace_type": "INVENTORY_CONFIG_TRACE",
            "source": config.source,
            "checksum": config.checksum,
            "database_url_from_env": bool(database_url),
            "unit_count": len(config.units),
            "max_retries": config.ledger.max_retries,
            "return_location_code": config.ledger.return_location_code,
        },
    )
    return config


__all__ = [
    "CONFIG_ENV_VAR",
    "DATABASE_URL_ENV_VAR",
    "DatabaseConfig",
    "InventoryConfig",
    "LedgerConfig",
    "MonitorConfig",
    "UnitDef",
    "compute_checksum",
    "get_active_config",
]
