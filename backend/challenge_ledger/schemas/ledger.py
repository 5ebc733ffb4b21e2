"""Ledger Schemas — response contracts for roster, purchase and distribution data.

Invariants:
    - Built from ORM rows via from_attributes (no manual dict assembly)
    - Decimal amounts serialized as strings (no float rounding on the wire)
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_serializer

from challenge_ledger.core.domain_types import DistributionType, PurchaseStatus


class _AmountView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    amount: Decimal

    @field_serializer("amount")
    def serialize_amount(self, v: Decimal) -> str:
        return str(v)


class ParticipantView(BaseModel):
    """Roster entry."""
    model_config = ConfigDict(from_attributes=True)

    challenge_id: UUID
    user_id: UUID
    position: int
    joined_at: datetime


class PurchaseView(_AmountView):
    """Completed purchase record."""
    id: UUID
    challenge_id: UUID
    user_id: UUID
    status: PurchaseStatus
    created_at: datetime


class DistributionEntryView(_AmountView):
    """One payout row; user_id is None for the platform fee."""
    purchase_id: UUID
    challenge_id: UUID
    user_id: UUID | None = None
    type: DistributionType
    position: int | None = None


class PurchaseOutcomeView(BaseModel):
    """purchase() result as returned to the routing layer."""
    purchase: PurchaseView
    distribution_entries: list[DistributionEntryView]
    drift: str

    @classmethod
    def from_outcome(cls, outcome) -> "PurchaseOutcomeView":
        return cls(
            purchase=PurchaseView.model_validate(outcome.purchase),
            distribution_entries=[
                DistributionEntryView.model_validate(e)
                for e in outcome.distribution_entries
            ],
            drift=str(outcome.plan.drift),
        )


class EarningsView(BaseModel):
    """Earnings projection for one user, derived from the distribution ledger."""
    user_id: UUID
    total: Decimal
    by_type: dict[DistributionType, Decimal]

    @field_serializer("total")
    def serialize_total(self, v: Decimal) -> str:
        return str(v)

    @field_serializer("by_type")
    def serialize_by_type(self, v: dict[DistributionType, Decimal]) -> dict[str, str]:
        return {k.value: str(amount) for k, amount in v.items()}
