"""Participant Registry — access-gated, ordered, append-only challenge roster.

Invariants:
    - join() holds the challenge row lock for the whole check-then-insert:
      existence check, max(position) read and insert are one indivisible step
    - position = max(position) + 1, so positions are exactly {1..N} in commit order
    - I4 re-validated against the ledger: the caller's has_access flag is
      necessary but never sufficient for a paid challenge
    - list_ordered() re-reads committed state on every call (no cursor, no cache)

Design Decisions:
    - Position assigned in the database transaction, not from joined_at:
      concurrent joiners with identical timestamps still get distinct positions
    - Unique constraints back up the lock: a duplicate that slips through surfaces
      as ConflictError("already_joined") rather than a second roster row
"""

from typing import Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from challenge_ledger.core.domain_types import ChallengeId, PriceTier, UserId
from challenge_ledger.core.enforce_access import check_join_access, check_not_joined
from challenge_ledger.core.errors import ConflictError, ErrorContext, PersistenceError
from challenge_ledger.core.repository_protocols import ChallengeLookup, PurchaseLedger
from challenge_ledger.infrastructure.database import is_unique_violation
from challenge_ledger.models.participant_entry import ParticipantEntry
from challenge_ledger.services.challenge_repository import ChallengeRepository
from challenge_ledger.services.ledger_store import LedgerStore


class ParticipantRegistry:
    """Challenge roster scoped to one unit of work."""

    def __init__(
        self,
        db: AsyncSession,
        challenges: ChallengeLookup | None = None,
        ledger: PurchaseLedger | None = None,
    ):
        self.db = db
        self.challenges = challenges or ChallengeRepository(db)
        self.ledger = ledger or LedgerStore(db)

    async def join(
        self, challenge_id: ChallengeId, user_id: UserId, has_access: bool,
    ) -> ParticipantEntry:
        """Append user to the roster with the next position."""
        challenge = await self.challenges.get(challenge_id, for_update=True)

        error = check_join_access(challenge, user_id, has_access)
        if error is None and PriceTier(challenge.price_tier) != PriceTier.FREE:
            purchased = (
                challenge.creator_id == user_id
                or await self.ledger.has_completed_purchase(challenge.id, user_id)
            )
            error = check_join_access(challenge, user_id, purchased)
        if error is None:
            error = check_not_joined(
                challenge, user_id, await self._is_joined(challenge.id, user_id),
            )
        if error is not None:
            raise error

        entry = ParticipantEntry(
            challenge_id=challenge.id,
            user_id=user_id,
            position=await self._max_position(challenge.id) + 1,
        )
        self.db.add(entry)
        try:
            await self.db.flush()
        except IntegrityError as e:
            context = ErrorContext(
                challenge_id=str(challenge_id), user_id=str(user_id),
                operation="join",
            )
            if is_unique_violation(
                e, "uq_participants_challenge_user", "challenge_participants",
                ("challenge_id", "user_id"),
            ):
                raise ConflictError("already_joined", context=context) from e
            raise PersistenceError(
                "Integrity constraint violated", "join", context,
            ) from e
        return entry

    async def list_ordered(
        self, challenge_id: ChallengeId,
    ) -> Sequence[ParticipantEntry]:
        """Roster ascending by position."""
        result = await self.db.execute(
            select(ParticipantEntry)
            .where(ParticipantEntry.challenge_id == challenge_id)
            .order_by(ParticipantEntry.position)
        )
        return list(result.scalars().all())

    async def count(self, challenge_id: ChallengeId) -> int:
        result = await self.db.execute(
            select(func.count(ParticipantEntry.id))
            .where(ParticipantEntry.challenge_id == challenge_id)
        )
        return int(result.scalar_one())

    async def _is_joined(self, challenge_id: ChallengeId, user_id: UserId) -> bool:
        result = await self.db.execute(
            select(ParticipantEntry.id)
            .where(ParticipantEntry.challenge_id == challenge_id)
            .where(ParticipantEntry.user_id == user_id)
        )
        return result.scalar_one_or_none() is not None

    async def _max_position(self, challenge_id: ChallengeId) -> int:
        result = await self.db.execute(
            select(func.coalesce(func.max(ParticipantEntry.position), 0))
            .where(ParticipantEntry.challenge_id == challenge_id)
        )
        return int(result.scalar_one())
