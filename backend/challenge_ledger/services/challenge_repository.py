"""Challenge Repository — lookup and creation of challenges.

Invariants:
    - get() raises NotFoundError, never returns None
    - get(for_update=True) takes the per-challenge row lock (PostgreSQL FOR UPDATE);
      every join and purchase on a challenge serializes on this row
    - create() validates title and tier price bounds before insert; flushes, never commits

Design Decisions:
    - Lock the challenge row, not the roster: one lock target per challenge covers
      both position assignment and the purchase snapshot, and unrelated challenges
      never contend
"""

import logging
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from challenge_ledger.core.domain_types import ChallengeId, PriceTier, UserId
from challenge_ledger.core.errors import ErrorContext, NotFoundError
from challenge_ledger.core.pricing import parse_tier, validate_tier_price, validate_title
from challenge_ledger.models.challenge import Challenge

logger = logging.getLogger(__name__)


class ChallengeRepository:
    """Challenge persistence scoped to one unit of work."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(
        self, challenge_id: ChallengeId, *, for_update: bool = False,
    ) -> Challenge:
        query = select(Challenge).where(Challenge.id == challenge_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(query)
        challenge = result.scalar_one_or_none()
        if not challenge:
            raise NotFoundError(
                "Challenge", str(challenge_id),
                ErrorContext(challenge_id=str(challenge_id), operation="get_challenge"),
            )
        return challenge

    async def create(
        self,
        creator_id: UserId,
        price_tier: PriceTier | str,
        price: Decimal | str | None = None,
        title: str | None = None,
    ) -> Challenge:
        """Insert a challenge with a tier-validated price and a validated title."""
        tier = parse_tier(price_tier)
        challenge = Challenge(
            creator_id=creator_id,
            title=validate_title(title),
            price_tier=tier.value,
            price=validate_tier_price(tier, price),
        )
        self.db.add(challenge)
        await self.db.flush()
        logger.info(
            f"Challenge created ({tier.value})",
            extra={
                "challenge_id": str(challenge.id),
                "user_id": str(creator_id),
                "amount": str(challenge.price),
            },
        )
        return challenge
