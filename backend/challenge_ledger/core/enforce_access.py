"""Access Enforcement — pure purchase and join eligibility rules.

Invariants:
    - All functions are PURE: no IO, no async, no DB, no side effects
    - Return a LedgerError on violation, None on success — callers decide to raise
    - validate_* functions chain checks in a fixed order — first error wins
    - Join access (I4): free tier OR completed purchase OR creator
    - Purchase (I5): creator may never buy their own challenge

Design Decisions:
    - Errors returned, not raised: keeps the rule table testable as data and
      lets the coordinator attach ErrorContext before raising
    - Purchase existence is passed in as a bool already read under the challenge
      lock; these functions never decide freshness
"""

from challenge_ledger.core.domain_types import PriceTier, UserId
from challenge_ledger.core.errors import (
    ConflictError, ErrorContext, LedgerError, ValidationError,
)
from challenge_ledger.core.repository_protocols import ChallengeLike


def _context(challenge: ChallengeLike, user_id: UserId, operation: str) -> ErrorContext:
    return ErrorContext(
        challenge_id=str(challenge.id), user_id=str(user_id), operation=operation,
    )


def check_paid_tier(challenge: ChallengeLike, user_id: UserId) -> LedgerError | None:
    """Free challenges cannot be purchased."""
    if PriceTier(challenge.price_tier) == PriceTier.FREE:
        return ValidationError(
            "free_tier", context=_context(challenge, user_id, "purchase"),
        )
    return None


def check_not_creator(challenge: ChallengeLike, user_id: UserId) -> LedgerError | None:
    """The creator never pays for their own challenge."""
    if challenge.creator_id == user_id:
        return ValidationError(
            "self_purchase", context=_context(challenge, user_id, "purchase"),
        )
    return None


def check_not_purchased(
    challenge: ChallengeLike, user_id: UserId, already_purchased: bool,
) -> LedgerError | None:
    """At most one completed purchase per (challenge, user)."""
    if already_purchased:
        return ConflictError(
            "already_purchased", context=_context(challenge, user_id, "purchase"),
        )
    return None


def validate_purchase_prerequisites(
    challenge: ChallengeLike, buyer_id: UserId, already_purchased: bool,
) -> LedgerError | None:
    """Chain all purchase checks. Returns first error or None."""
    return (
        check_paid_tier(challenge, buyer_id)
        or check_not_creator(challenge, buyer_id)
        or check_not_purchased(challenge, buyer_id, already_purchased)
    )


def has_join_access(
    challenge: ChallengeLike, user_id: UserId, has_purchase: bool,
) -> bool:
    """I4: free tier, completed purchase, or creator."""
    return (
        PriceTier(challenge.price_tier) == PriceTier.FREE
        or has_purchase
        or challenge.creator_id == user_id
    )


def check_join_access(
    challenge: ChallengeLike, user_id: UserId, has_access: bool,
) -> LedgerError | None:
    """Reject a join when the caller-supplied access flag is not enough."""
    if not has_join_access(challenge, user_id, has_access):
        return ValidationError(
            "access_required", context=_context(challenge, user_id, "join"),
        )
    return None


def check_not_joined(
    challenge: ChallengeLike, user_id: UserId, already_joined: bool,
) -> LedgerError | None:
    """A user holds at most one roster entry per challenge."""
    if already_joined:
        return ConflictError(
            "already_joined", context=_context(challenge, user_id, "join"),
        )
    return None
