"""Service test fixtures — file-backed SQLite ledger + coordinator.

Invariants:
    - Every test gets a fresh SQLite database file under tmp_path
    - Schema created from Base.metadata (no alembic in tests)
    - Query helpers open and close a session per call: SQLite BEGIN IMMEDIATE
      holds the write lock for the life of a transaction, so a long-lived test
      session would block the coordinator

Design Decisions:
    - File database, not :memory:: concurrent units of work need separate
      connections that see the same data
    - Generous coordinator deadline: concurrency tests queue on the SQLite writer lock
"""

import uuid

import pytest
from sqlalchemy import func, select

from challenge_ledger.bootstrap import create_schema
from challenge_ledger.infrastructure.database import DatabaseSessionManager
from challenge_ledger.models.challenge import Challenge
from challenge_ledger.models.distribution_entry import DistributionEntry
from challenge_ledger.models.participant_entry import ParticipantEntry
from challenge_ledger.models.purchase_record import PurchaseRecord
from challenge_ledger.services.purchase_coordinator import PurchaseCoordinator


@pytest.fixture
async def db_manager(tmp_path):
    manager = DatabaseSessionManager(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    await create_schema(manager)
    yield manager
    await manager.dispose()


@pytest.fixture
def coordinator(db_manager):
    return PurchaseCoordinator(db_manager, timeout_seconds=30.0)


@pytest.fixture
def make_challenge(coordinator):
    """Factory: create a challenge through the coordinator."""
    async def _make(
        tier: str = "premium",
        price: str | None = "1.00",
        creator_id: uuid.UUID | None = None,
    ) -> Challenge:
        return await coordinator.create_challenge(
            creator_id or uuid.uuid4(), tier, price, title="Cold shower week",
        )
    return _make


@pytest.fixture
def ledger_rows(db_manager):
    """Read committed rows through a short-lived session per call."""
    class _Rows:
        async def purchases(self, challenge_id) -> list[PurchaseRecord]:
            return await self._all(
                select(PurchaseRecord).where(PurchaseRecord.challenge_id == challenge_id)
            )

        async def distributions(self, challenge_id) -> list[DistributionEntry]:
            return await self._all(
                select(DistributionEntry)
                .where(DistributionEntry.challenge_id == challenge_id)
                .order_by(DistributionEntry.created_at, DistributionEntry.sequence)
            )

        async def participants(self, challenge_id) -> list[ParticipantEntry]:
            return await self._all(
                select(ParticipantEntry)
                .where(ParticipantEntry.challenge_id == challenge_id)
                .order_by(ParticipantEntry.position)
            )

        async def count(self, model) -> int:
            async with db_manager.session() as db:
                result = await db.execute(select(func.count()).select_from(model))
                return int(result.scalar_one())

        async def _all(self, query) -> list:
            async with db_manager.session() as db:
                result = await db.execute(query)
                return list(result.scalars().all())

    return _Rows()

