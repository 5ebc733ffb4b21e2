"""Ledger Store — append-only persistence for purchase records and distribution entries.

Invariants:
    - No update or delete path exists for PurchaseRecord or DistributionEntry
    - record_purchase relies on the partial unique index, not on a prior read:
      a duplicate completed purchase surfaces as ConflictError("already_purchased")
    - record_distribution writes the whole set in one flush (all rows or none);
      a malformed set is ValidationError("invalid_distribution_set"), nothing written
    - Every method flushes at most; commit/rollback belongs to PurchaseCoordinator
    - Earnings are derived by summing DistributionEntry rows, never stored

Design Decisions:
    - entries_from_plan maps the pure DistributionPlan onto ORM rows, keeping
      core/distribution.py free of SQLAlchemy
    - IntegrityError classified by constraint: duplicate purchase → ConflictError,
      anything else → PersistenceError
"""

import logging
from decimal import Decimal
from typing import Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from challenge_ledger.core.distribution import DistributionPlan
from challenge_ledger.core.domain_types import (
    ChallengeId, DistributionType, PurchaseId, PurchaseStatus, UserId,
)
from challenge_ledger.core.errors import (
    ConflictError, ErrorContext, PersistenceError, ValidationError,
)
from challenge_ledger.infrastructure.database import is_unique_violation
from challenge_ledger.models.distribution_entry import DistributionEntry
from challenge_ledger.models.purchase_record import (
    COMPLETED_PURCHASE_INDEX, PurchaseRecord,
)

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")


class LedgerStore:
    """Purchase and distribution ledger scoped to one unit of work."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Purchases ───────────────────────────────────────────────

    async def has_completed_purchase(
        self, challenge_id: ChallengeId, user_id: UserId,
    ) -> bool:
        result = await self.db.execute(
            select(PurchaseRecord.id)
            .where(PurchaseRecord.challenge_id == challenge_id)
            .where(PurchaseRecord.user_id == user_id)
            .where(PurchaseRecord.status == PurchaseStatus.COMPLETED.value)
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def record_purchase(
        self, challenge_id: ChallengeId, user_id: UserId, amount: Decimal,
    ) -> PurchaseRecord:
        """Insert a completed purchase; ConflictError if one already exists."""
        record = PurchaseRecord(
            challenge_id=challenge_id,
            user_id=user_id,
            amount=amount,
            status=PurchaseStatus.COMPLETED.value,
        )
        self.db.add(record)
        try:
            await self.db.flush()
        except IntegrityError as e:
            context = ErrorContext(
                challenge_id=str(challenge_id), user_id=str(user_id),
                operation="record_purchase",
            )
            if is_unique_violation(
                e, COMPLETED_PURCHASE_INDEX, "purchase_records",
                ("challenge_id", "user_id"),
            ):
                raise ConflictError("already_purchased", context=context) from e
            raise PersistenceError(
                "Integrity constraint violated", "record_purchase", context,
            ) from e
        return record

    # ─── Distribution ────────────────────────────────────────────

    @staticmethod
    def entries_from_plan(
        purchase: PurchaseRecord, plan: DistributionPlan,
    ) -> list[DistributionEntry]:
        """Map a pure distribution plan onto unsaved DistributionEntry rows."""
        return [
            DistributionEntry(
                purchase_id=purchase.id,
                challenge_id=purchase.challenge_id,
                user_id=share.user_id,
                amount=share.amount,
                type=share.type.value,
                position=share.position,
                sequence=sequence,
            )
            for sequence, share in enumerate(plan.shares)
        ]

    async def record_distribution(
        self, entries: Sequence[DistributionEntry],
    ) -> list[DistributionEntry]:
        """Persist a complete distribution set in a single flush."""
        _check_distribution_set(entries)
        self.db.add_all(entries)
        try:
            await self.db.flush()
        except SQLAlchemyError as e:
            raise PersistenceError(
                "Distribution write failed", "record_distribution",
                ErrorContext(
                    challenge_id=str(entries[0].challenge_id),
                    operation="record_distribution",
                ),
            ) from e
        return list(entries)

    async def list_distributions(
        self, purchase_id: PurchaseId,
    ) -> list[DistributionEntry]:
        """Audit trail for one purchase, in the order it was written."""
        result = await self.db.execute(
            select(DistributionEntry)
            .where(DistributionEntry.purchase_id == purchase_id)
            .order_by(DistributionEntry.sequence)
        )
        return list(result.scalars().all())

    # ─── Projections ─────────────────────────────────────────────

    async def total_earnings(self, user_id: UserId) -> Decimal:
        """Sum of every distribution row paid to a user."""
        result = await self.db.execute(
            select(func.coalesce(func.sum(DistributionEntry.amount), 0))
            .where(DistributionEntry.user_id == user_id)
        )
        return Decimal(str(result.scalar_one()))

    async def earnings_by_type(self, user_id: UserId) -> dict[DistributionType, Decimal]:
        """Per-type earnings for a user; types with no rows are 0."""
        result = await self.db.execute(
            select(DistributionEntry.type, func.sum(DistributionEntry.amount))
            .where(DistributionEntry.user_id == user_id)
            .group_by(DistributionEntry.type)
        )
        totals = {t: _ZERO for t in DistributionType}
        for type_, total in result.all():
            totals[DistributionType(type_)] = Decimal(str(total))
        return totals

    async def challenge_revenue(self, challenge_id: ChallengeId) -> dict:
        """Completed purchase count, gross revenue and per-type payout totals."""
        purchases = await self.db.execute(
            select(
                func.count(PurchaseRecord.id),
                func.coalesce(func.sum(PurchaseRecord.amount), 0),
            )
            .where(PurchaseRecord.challenge_id == challenge_id)
            .where(PurchaseRecord.status == PurchaseStatus.COMPLETED.value)
        )
        count, gross = purchases.one()

        by_type = await self.db.execute(
            select(DistributionEntry.type, func.sum(DistributionEntry.amount))
            .where(DistributionEntry.challenge_id == challenge_id)
            .group_by(DistributionEntry.type)
        )
        totals = {t.value: _ZERO for t in DistributionType}
        for type_, total in by_type.all():
            totals[type_] = Decimal(str(total))

        return {
            "challenge_id": str(challenge_id),
            "purchase_count": int(count),
            "gross_revenue": Decimal(str(gross)),
            "distributed": totals,
        }


def _check_distribution_set(entries: Sequence[DistributionEntry]) -> None:
    """One creator_share, one platform_fee, all rows for the same purchase."""
    types = [e.type for e in entries]
    if (
        types.count(DistributionType.CREATOR_SHARE.value) != 1
        or types.count(DistributionType.PLATFORM_FEE.value) != 1
    ):
        raise ValidationError(
            "invalid_distribution_set",
            "Distribution set needs exactly one creator_share and one platform_fee",
            ErrorContext(operation="record_distribution"),
        )
    if len({e.purchase_id for e in entries}) != 1:
        raise ValidationError(
            "invalid_distribution_set",
            "Distribution set spans more than one purchase",
            ErrorContext(operation="record_distribution"),
        )
