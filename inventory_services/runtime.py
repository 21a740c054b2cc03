"""
Runtime wiring for processes that host the inventory ledger.

    config = bootstrap()
    with inventory_scope(config) as inventory:
        inventory.record_movement(...)

``bootstrap`` reads the active configuration, configures logging,
initializes the engine and creates the schema.  ``inventory_scope`` hands
out an ``InventoryService`` whose work commits once, when the block exits
cleanly.
"""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from inventory_config import InventoryConfig, get_active_config
from inventory_kernel.db.engine import create_tables, init_engine_from_url, session_scope
from inventory_kernel.db.immutability import register_immutability_listeners
from inventory_kernel.domain.clock import Clock
from inventory_kernel.logging_config import configure_logging, get_logger
from inventory_services.inventory_service import InventoryService

logger = get_logger("services.runtime")


def bootstrap(
    config: InventoryConfig | None = None,
    config_path: Path | str | None = None,
    create_schema: bool = True,
) -> InventoryConfig:
    config = config or get_active_config(config_path)
    configure_logging(level=config.logging.numeric_level)
    init_engine_from_url(
        config.database.url,
        echo=config.database.echo,
        pool_size=config.database.pool_size,
        max_overflow=config.database.max_overflow,
    )
    if create_schema:
        create_tables()
    register_immutability_listeners()
    logger.info(
        "inventory_bootstrapped",
        extra={"config_source": config.source, "checksum": config.checksum},
    )
    return config


@contextmanager
def inventory_scope(
    config: InventoryConfig,
    clock: Clock | None = None,
) -> Generator[InventoryService, None, None]:
    """One unit of work: commit on clean exit, roll back on error."""
    with session_scope() as session:
        yield InventoryService.from_config(session, config, clock=clock, auto_commit=False)
