"""
Config -> Kernel Bridges.

Functions that convert an ``InventoryConfig`` into kernel-compatible
inputs.  These live in inventory_config (the producer) because the kernel
must NEVER import inventory_config.

Usage:
    from inventory_config import get_active_config
    from inventory_config.bridges import build_orchestrator, init_engine_from_config

    config = get_active_config()
    init_engine_from_config(config)
    with session_scope() as session:
        orchestrator = build_orchestrator(session, config)
"""

from __future__ import annotations

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from inventory_config.schema import InventoryConfig, UnitDef
from inventory_kernel.db.engine import init_engine_from_url
from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.dtos import RetryPolicy
from inventory_kernel.domain.units import UnitDefinition, UnitGroup, UnitTable
from inventory_kernel.services.inventory_orchestrator import InventoryOrchestrator
from inventory_kernel.services.unit_service import UnitService


def unit_definition(unit: UnitDef) -> UnitDefinition:
    return UnitDefinition(
        code=unit.code,
        group=UnitGroup(unit.group),
        to_base=unit.to_base,
        name=unit.name,
        aliases=unit.aliases,
        active=unit.active,
    )


def build_unit_table(config: InventoryConfig, session: Session | None = None) -> UnitTable:
    """
    Defaults overlaid with configured units, then (when a session is given)
    with the organization units stored in the database.
    """
    configured = [unit_definition(u) for u in config.units]
    if session is None:
        return UnitTable.with_overrides(configured)
    return UnitService(session).load_unit_table(configured)


def build_retry_policy(config: InventoryConfig) -> RetryPolicy:
    return RetryPolicy(
        max_retries=config.ledger.max_retries,
        backoff_seconds=config.ledger.retry_backoff_seconds,
    )


def init_engine_from_config(config: InventoryConfig) -> Engine:
    db = config.database
    return init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        lock_timeout_seconds=db.lock_timeout_seconds,
    )


def build_orchestrator(
    session: Session,
    config: InventoryConfig,
    units: UnitTable | None = None,
    clock: Clock | None = None,
    auto_commit: bool = True,
) -> InventoryOrchestrator:
    return InventoryOrchestrator(
        session,
        units or build_unit_table(config, session),
        clock=clock,
        retry_policy=build_retry_policy(config),
        return_location_code=config.ledger.return_location_code,
        auto_commit=auto_commit,
    )
