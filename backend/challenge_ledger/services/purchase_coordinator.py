"""Purchase Coordinator — the atomic orchestration boundary for purchases and joins.

Invariants:
    - The ONLY component that begins, commits or rolls back a unit of work
    - One unit of work = one session + one transaction + one deadline
    - purchase(): challenge row lock → eligibility → PurchaseRecord → roster snapshot
      → DistributionEngine → DistributionEntry set → commit; any failure after the
      lock rolls back everything (no PurchaseRecord without its distribution)
    - The roster snapshot is read after the lock, inside the same transaction:
      joins committed before it are included, joins committed after are excluded
    - Lost races surface as ConflictError; nothing is retried here
    - Deadline expiry rolls back the unit and raises DeadlineExceededError;
      COMMIT itself runs outside the deadline and is never abandoned mid-flight
    - A driver TimeoutError inside the unit is a PersistenceError("driver_timeout"),
      not a deadline expiry

Design Decisions:
    - Row lock per challenge (SELECT ... FOR UPDATE), never a process-wide lock:
      purchases and joins on different challenges run fully in parallel
    - Collaborators built per unit of work from the session: no component outlives
      its transaction, so no in-memory state is treated as authoritative across calls
    - Non-zero distribution drift logged as WARNING: the payout formula is kept as-is
      and the overshoot stays visible in the audit trail and logs
"""

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from challenge_ledger.config import Settings
from challenge_ledger.core.distribution import (
    DistributionPlan, ParticipantSlot, compute_distribution,
)
from challenge_ledger.core.domain_types import (
    ChallengeId, EmptyPoolPolicy, PriceTier, PurchaseId, ShareNormalization, UserId,
)
from challenge_ledger.core.enforce_access import validate_purchase_prerequisites
from challenge_ledger.core.errors import (
    ConflictError, DeadlineExceededError, ErrorCategory, ErrorContext, LedgerError,
    PersistenceError,
)
from challenge_ledger.infrastructure.database import (
    DatabaseSessionManager, apply_transaction_timeouts,
)
from challenge_ledger.models.challenge import Challenge
from challenge_ledger.models.distribution_entry import DistributionEntry
from challenge_ledger.models.participant_entry import ParticipantEntry
from challenge_ledger.models.purchase_record import PurchaseRecord
from challenge_ledger.schemas.ledger import EarningsView
from challenge_ledger.services.challenge_repository import ChallengeRepository
from challenge_ledger.services.ledger_store import LedgerStore
from challenge_ledger.services.participant_registry import ParticipantRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class PurchaseOutcome:
    """Result of a committed purchase."""
    purchase: PurchaseRecord
    distribution_entries: list[DistributionEntry]
    plan: DistributionPlan


@dataclass
class _UnitComponents:
    challenges: ChallengeRepository
    ledger: LedgerStore
    registry: ParticipantRegistry


class PurchaseCoordinator:
    """Runs purchases, joins and challenge creation as atomic units of work."""

    def __init__(
        self,
        db_manager: DatabaseSessionManager,
        *,
        timeout_seconds: float = 5.0,
        lock_timeout_ms: int = 2000,
        normalization: ShareNormalization = ShareNormalization.ACCEPT_DRIFT,
        empty_pool: EmptyPoolPolicy = EmptyPoolPolicy.OMIT,
    ):
        self.db_manager = db_manager
        self.timeout_seconds = timeout_seconds
        self.lock_timeout_ms = lock_timeout_ms
        self.normalization = normalization
        self.empty_pool = empty_pool

    @classmethod
    def from_settings(
        cls, db_manager: DatabaseSessionManager, settings: Settings,
    ) -> "PurchaseCoordinator":
        return cls(
            db_manager,
            timeout_seconds=settings.unit_of_work_timeout_seconds,
            lock_timeout_ms=settings.lock_timeout_ms,
            normalization=settings.share_normalization,
            empty_pool=settings.empty_pool_policy,
        )

    # ─── Public operations ───────────────────────────────────────

    async def purchase(
        self, challenge_id: ChallengeId, buyer_id: UserId,
    ) -> PurchaseOutcome:
        """Record a settled purchase and its distribution atomically."""
        outcome = await self._run(
            "purchase", challenge_id, buyer_id,
            lambda parts: self._purchase_unit(parts, challenge_id, buyer_id),
        )
        logger.info(
            "Purchase completed",
            extra={
                "challenge_id": str(challenge_id),
                "user_id": str(buyer_id),
                "purchase_id": str(outcome.purchase.id),
                "amount": str(outcome.purchase.amount),
                "entries": len(outcome.distribution_entries),
            },
        )
        if outcome.plan.drift != 0:
            logger.warning(
                f"Distribution drift {outcome.plan.drift} on "
                f"{len(outcome.distribution_entries) - 2} participant(s)",
                extra={
                    "challenge_id": str(challenge_id),
                    "purchase_id": str(outcome.purchase.id),
                    "drift": str(outcome.plan.drift),
                },
            )
        return outcome

    async def join(
        self, challenge_id: ChallengeId, user_id: UserId, has_access: bool,
    ) -> ParticipantEntry:
        """Append user to the challenge roster atomically."""
        entry = await self._run(
            "join", challenge_id, user_id,
            lambda parts: parts.registry.join(challenge_id, user_id, has_access),
        )
        logger.info(
            "Participant joined",
            extra={
                "challenge_id": str(challenge_id),
                "user_id": str(user_id),
                "position": entry.position,
            },
        )
        return entry

    async def create_challenge(
        self,
        creator_id: UserId,
        price_tier: PriceTier | str,
        price: Decimal | str | None = None,
        title: str | None = None,
    ) -> Challenge:
        """Create a challenge with a tier-validated price and title."""
        return await self._run(
            "create_challenge", None, creator_id,
            lambda parts: parts.challenges.create(creator_id, price_tier, price, title),
        )

    # ─── Read-side projections ───────────────────────────────────

    async def participants(self, challenge_id: ChallengeId) -> list[ParticipantEntry]:
        async with self.db_manager.session() as db:
            await ChallengeRepository(db).get(challenge_id)
            return list(await ParticipantRegistry(db).list_ordered(challenge_id))

    async def distributions(self, purchase_id: PurchaseId) -> list[DistributionEntry]:
        async with self.db_manager.session() as db:
            return await LedgerStore(db).list_distributions(purchase_id)

    async def earnings(self, user_id: UserId) -> EarningsView:
        """Earnings summed from the distribution ledger on demand."""
        async with self.db_manager.session() as db:
            ledger = LedgerStore(db)
            return EarningsView(
                user_id=user_id,
                total=await ledger.total_earnings(user_id),
                by_type=await ledger.earnings_by_type(user_id),
            )

    async def challenge_revenue(self, challenge_id: ChallengeId) -> dict:
        async with self.db_manager.session() as db:
            await ChallengeRepository(db).get(challenge_id)
            return await LedgerStore(db).challenge_revenue(challenge_id)

    # ─── Units of work ───────────────────────────────────────────

    async def _purchase_unit(
        self, parts: _UnitComponents, challenge_id: ChallengeId, buyer_id: UserId,
    ) -> PurchaseOutcome:
        challenge = await parts.challenges.get(challenge_id, for_update=True)
        already = await parts.ledger.has_completed_purchase(challenge.id, buyer_id)
        error = validate_purchase_prerequisites(challenge, buyer_id, already)
        if error is not None:
            raise error

        purchase = await parts.ledger.record_purchase(
            challenge.id, buyer_id, challenge.price,
        )
        snapshot = await parts.registry.list_ordered(challenge.id)
        plan = compute_distribution(
            purchase.amount,
            challenge.creator_id,
            [ParticipantSlot(p.user_id, p.position) for p in snapshot],
            normalization=self.normalization,
            empty_pool=self.empty_pool,
        )
        entries = await parts.ledger.record_distribution(
            parts.ledger.entries_from_plan(purchase, plan),
        )
        return PurchaseOutcome(purchase, entries, plan)

    @staticmethod
    def _components(db: AsyncSession) -> _UnitComponents:
        challenges = ChallengeRepository(db)
        ledger = LedgerStore(db)
        return _UnitComponents(
            challenges=challenges,
            ledger=ledger,
            registry=ParticipantRegistry(db, challenges, ledger),
        )

    async def _run(
        self,
        operation: str,
        challenge_id: ChallengeId | None,
        user_id: UserId,
        unit: Callable[[_UnitComponents], Awaitable[T]],
    ) -> T:
        """Run a unit in one transaction under the deadline; log and re-raise every failure.

        The deadline covers the unit's reads and writes, not COMMIT: once COMMIT is
        sent it is awaited to completion, so a deadline error always means rolled back.
        """
        extra = {
            "challenge_id": str(challenge_id) if challenge_id else None,
            "user_id": str(user_id),
        }
        context = ErrorContext(
            challenge_id=extra["challenge_id"], user_id=str(user_id),
            operation=operation,
        )
        try:
            async with self.db_manager.session() as db:
                await db.begin()
                deadline = asyncio.timeout(self.timeout_seconds)
                try:
                    async with deadline:
                        await apply_transaction_timeouts(db, self.lock_timeout_ms)
                        result = await unit(self._components(db))
                except TimeoutError as e:
                    if deadline.expired():
                        raise DeadlineExceededError(
                            operation, self.timeout_seconds, context,
                        ) from None
                    raise PersistenceError(
                        "Driver timeout", operation, context,
                        reason="driver_timeout", category=ErrorCategory.TIMEOUT,
                    ) from e
                await db.commit()
            return result
        except DeadlineExceededError:
            logger.error(
                f"{operation} exceeded {self.timeout_seconds}s deadline, rolled back",
                extra={**extra, "error_code": "DEADLINE_EXCEEDED"},
            )
            raise
        except ConflictError as e:
            logger.warning(
                f"{operation} conflict: {e.reason}",
                extra={**extra, "error_code": e.code},
            )
            raise
        except LedgerError as e:
            log = logger.error if e.http_status >= 500 else logger.info
            log(f"{operation} rejected: {e.message}", extra={**extra, "error_code": e.code})
            raise
