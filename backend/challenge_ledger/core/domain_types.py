"""Domain Types — rich types that replace bare primitives across the ledger.

Invariants:
    - ChallengeId, UserId, PurchaseId wrap UUIDs — never use bare UUID in domain logic
    - Money is always Decimal — never float
    - All valid states encoded as Enums — no raw string matching

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: stored as-is in String columns and serialized without custom encoders
"""

from decimal import Decimal
from enum import Enum
from typing import NewType
from uuid import UUID


# ─── Identity Types ──────────────────────────────────────────────

ChallengeId = NewType("ChallengeId", UUID)
UserId = NewType("UserId", UUID)
PurchaseId = NewType("PurchaseId", UUID)


# ─── Money ───────────────────────────────────────────────────────

PRICE_QUANTUM = Decimal("0.01")          # challenge prices, purchase amounts
SHARE_QUANTUM = Decimal("0.000001")      # distribution entry amounts

CREATOR_RATE = Decimal("0.60")
PARTICIPANT_POOL_RATE = Decimal("0.25")
PLATFORM_RATE = Decimal("0.15")

MULTIPLIER_START = Decimal("1.5")
MULTIPLIER_STEP = Decimal("0.1")
MULTIPLIER_FLOOR = Decimal("0.5")


# ─── Enums ───────────────────────────────────────────────────────

class PriceTier(str, Enum):
    """Pricing class of a challenge — controls price bounds and access gating."""
    FREE = "free"
    PREMIUM = "premium"
    EXCLUSIVE = "exclusive"


class PurchaseStatus(str, Enum):
    """Purchase record outcome — only COMPLETED grants access."""
    COMPLETED = "completed"
    FAILED = "failed"


class DistributionType(str, Enum):
    """Row kind in the distribution audit trail."""
    CREATOR_SHARE = "creator_share"
    PARTICIPANT_SHARE = "participant_share"
    PLATFORM_FEE = "platform_fee"


class ShareNormalization(str, Enum):
    """How participant shares relate to the 25% pool.

    ACCEPT_DRIFT keeps the position-weighted formula untouched, so shares may
    sum to more or less than the pool.
    """
    ACCEPT_DRIFT = "accept_drift"
    RENORMALIZE = "renormalize"
    CAP_AT_POOL = "cap_at_pool"


class EmptyPoolPolicy(str, Enum):
    """What happens to the pool when a purchase finds no participants."""
    OMIT = "omit"
    TO_PLATFORM = "to_platform"


# Inclusive title length bounds; matches String(100) on challenges.title
TITLE_MIN_LENGTH = 3
TITLE_MAX_LENGTH = 100

# Inclusive (min, max) price bounds per paid tier
TIER_PRICE_BOUNDS: dict[PriceTier, tuple[Decimal, Decimal]] = {
    PriceTier.PREMIUM: (Decimal("0.99"), Decimal("2.99")),
    PriceTier.EXCLUSIVE: (Decimal("5.00"), Decimal("9.99")),
}
