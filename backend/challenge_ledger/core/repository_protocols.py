"""Boundary Protocols — contracts between core and shell.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - All IO operations accessed through Protocol types
    - Implementations provided by services/ via dependency injection

Design Decisions:
    - Protocol over ABC: structural subtyping, no inheritance hierarchy
    - Async in Protocol: boundary methods are async because implementations do IO,
      but core pure functions that USE these shapes are never async themselves
"""

from decimal import Decimal
from typing import Protocol, Sequence
from uuid import UUID

from challenge_ledger.core.domain_types import ChallengeId, UserId


class ChallengeLike(Protocol):
    """Structural contract for Challenge objects passed to pure rules."""
    id: UUID
    creator_id: UUID
    price_tier: str
    price: Decimal


class ChallengeLookup(Protocol):
    """Contract for challenge lookup — external collaborator."""
    async def get(
        self, challenge_id: ChallengeId, *, for_update: bool = False,
    ) -> ChallengeLike: ...


class PurchaseLedger(Protocol):
    """Contract for purchase/distribution persistence — implemented by LedgerStore."""
    async def has_completed_purchase(
        self, challenge_id: ChallengeId, user_id: UserId,
    ) -> bool: ...
    async def record_purchase(
        self, challenge_id: ChallengeId, user_id: UserId, amount: Decimal,
    ) -> object: ...
    async def record_distribution(self, entries: Sequence[object]) -> list: ...
