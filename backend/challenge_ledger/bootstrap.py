"""Ledger Bootstrap — process startup: logging, database, coordinator.

Invariants:
    - init_ledger() is the single place that wires settings into components
    - Schema creation here is for local development and tests; production uses alembic

Design Decisions:
    - Plays the role of an application lifespan for an in-process library:
      the embedding service calls init_ledger() once and shutdown_ledger() on exit
"""

import logging

from challenge_ledger.config import Settings, get_settings
from challenge_ledger.db.base import Base
from challenge_ledger.infrastructure import database
from challenge_ledger.infrastructure.database import DatabaseSessionManager, init_db
from challenge_ledger.infrastructure.observability import setup_logging
from challenge_ledger.services.purchase_coordinator import PurchaseCoordinator
import challenge_ledger.models  # noqa: F401  (populates Base.metadata)

logger = logging.getLogger(__name__)


def init_ledger(
    settings: Settings | None = None, *, configure_logging: bool = True,
) -> PurchaseCoordinator:
    """Initialize logging and the database, return a ready coordinator."""
    settings = settings or get_settings()
    if configure_logging:
        setup_logging(settings.log_level, settings.log_format)
    manager = init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    logger.info("Challenge ledger started")
    return PurchaseCoordinator.from_settings(manager, settings)


async def create_schema(manager: DatabaseSessionManager) -> None:
    """Create all tables directly from metadata (development/tests)."""
    async with manager.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def shutdown_ledger() -> None:
    if database.db_manager:
        await database.db_manager.dispose()
        database.db_manager = None
    logger.info("Challenge ledger shut down")
