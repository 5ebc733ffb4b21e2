"""Revenue Distribution — pure computation of the payout split for one purchase.

Invariants:
    - PURE: no IO, no async, no DB, no clock — same inputs, same plan
    - Exactly one CREATOR_SHARE and one PLATFORM_FEE share per plan
    - One PARTICIPANT_SHARE per participant, ordered by ascending position
    - Every share amount is quantized to SHARE_QUANTUM (ROUND_HALF_UP)
    - plan.drift == sum(shares) - amount; non-zero drift is reported, never hidden

Design Decisions:
    - Position-weighted formula kept verbatim by default (ShareNormalization.ACCEPT_DRIFT):
      with few participants the shares overshoot the 25% pool (e.g. 3 participants
      on 1.00 pay out ~0.35). Renormalizing or capping is opt-in configuration.
    - Empty participant snapshot omits the pool by default (EmptyPoolPolicy.OMIT);
      TO_PLATFORM folds it into the platform fee.
    - Returns plain dataclasses, not ORM rows: LedgerStore maps them to DistributionEntry
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Sequence

from challenge_ledger.core.domain_types import (
    CREATOR_RATE, MULTIPLIER_FLOOR, MULTIPLIER_START, MULTIPLIER_STEP,
    PARTICIPANT_POOL_RATE, PLATFORM_RATE, SHARE_QUANTUM,
    DistributionType, EmptyPoolPolicy, ShareNormalization, UserId,
)
from challenge_ledger.core.errors import ValidationError


@dataclass(frozen=True)
class ParticipantSlot:
    """One participant in a point-in-time roster snapshot."""
    user_id: UserId
    position: int


@dataclass(frozen=True)
class PlannedShare:
    """One row of a distribution plan; user_id is None for the platform."""
    type: DistributionType
    amount: Decimal
    user_id: UserId | None = None
    position: int | None = None


@dataclass(frozen=True)
class DistributionPlan:
    """Complete payout split for one purchase amount."""
    amount: Decimal
    pool: Decimal
    shares: tuple[PlannedShare, ...] = field(default_factory=tuple)

    @property
    def total_distributed(self) -> Decimal:
        return sum((s.amount for s in self.shares), Decimal("0"))

    @property
    def participant_total(self) -> Decimal:
        return sum(
            (s.amount for s in self.shares
             if s.type == DistributionType.PARTICIPANT_SHARE),
            Decimal("0"),
        )

    @property
    def drift(self) -> Decimal:
        """Distributed total minus purchase amount (positive = overpaid)."""
        return self.total_distributed - self.amount


def position_multiplier(position: int) -> Decimal:
    """Earlier participants earn more: 1.5 at position 1, -0.1 per step, floor 0.5."""
    if position < 1:
        raise ValidationError(
            "invalid_position", f"Participant position must be 1-based, got {position}",
        )
    return max(
        MULTIPLIER_FLOOR,
        MULTIPLIER_START - (position - 1) * MULTIPLIER_STEP,
    )


def _q(value: Decimal) -> Decimal:
    return value.quantize(SHARE_QUANTUM, rounding=ROUND_HALF_UP)


def compute_distribution(
    amount: Decimal,
    creator_id: UserId,
    participants: Sequence[ParticipantSlot],
    normalization: ShareNormalization = ShareNormalization.ACCEPT_DRIFT,
    empty_pool: EmptyPoolPolicy = EmptyPoolPolicy.OMIT,
) -> DistributionPlan:
    """Compute the payout split for one purchase. Pure, no IO."""
    amount = Decimal(amount)
    if not amount.is_finite() or amount <= 0:
        raise ValidationError("invalid_amount")

    pool = amount * PARTICIPANT_POOL_RATE
    platform_fee = amount * PLATFORM_RATE
    ordered = sorted(participants, key=lambda p: p.position)

    participant_shares = _participant_shares(pool, ordered, normalization)
    if not ordered and empty_pool == EmptyPoolPolicy.TO_PLATFORM:
        platform_fee += pool

    shares = (
        PlannedShare(
            DistributionType.CREATOR_SHARE, _q(amount * CREATOR_RATE), creator_id,
        ),
        *participant_shares,
        PlannedShare(DistributionType.PLATFORM_FEE, _q(platform_fee)),
    )
    return DistributionPlan(amount=amount, pool=_q(pool), shares=shares)


def _participant_shares(
    pool: Decimal,
    ordered: Sequence[ParticipantSlot],
    normalization: ShareNormalization,
) -> list[PlannedShare]:
    """Position-weighted participant shares under the chosen normalization."""
    if not ordered:
        return []

    base_share = pool / len(ordered)
    multipliers = [position_multiplier(p.position) for p in ordered]
    raw = [base_share * m for m in multipliers]
    raw_total = sum(raw, Decimal("0"))

    rescale = normalization == ShareNormalization.RENORMALIZE or (
        normalization == ShareNormalization.CAP_AT_POOL and raw_total > pool
    )
    if rescale:
        amounts = [_q(pool * m / sum(multipliers)) for m in multipliers]
        # Rounding residue goes to the earliest participant so the rows sum to the pool
        amounts[0] += _q(pool) - sum(amounts, Decimal("0"))
    else:
        amounts = [_q(r) for r in raw]

    return [
        PlannedShare(
            DistributionType.PARTICIPANT_SHARE, value, slot.user_id, slot.position,
        )
        for slot, value in zip(ordered, amounts)
    ]
