"""Challenge Schemas — Pydantic models with tier/price validation for challenge creation.

Invariants:
    - ChallengeCreate.price obeys tier bounds (premium 0.99–2.99, exclusive 5.00–9.99)
    - Free challenges are normalized to price 0.00
    - title: 3-100 chars when present, stripped

Design Decisions:
    - Delegates to core/pricing.validate_tier_price and validate_title: one rule
      table for schemas and ChallengeRepository
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from challenge_ledger.core.domain_types import PriceTier
from challenge_ledger.core.errors import ValidationError as LedgerValidationError
from challenge_ledger.core.pricing import validate_tier_price, validate_title


class ChallengeCreate(BaseModel):
    """Challenge creation input — validates title and tier-bounded price."""
    creator_id: UUID
    title: str | None = None
    price_tier: PriceTier
    price: Decimal | None = None

    @field_validator("title")
    @classmethod
    def check_title(cls, v: str | None) -> str | None:
        try:
            return validate_title(v)
        except LedgerValidationError as e:
            raise ValueError(e.message) from e

    @model_validator(mode="after")
    def check_tier_price(self) -> "ChallengeCreate":
        try:
            self.price = validate_tier_price(self.price_tier, self.price)
        except LedgerValidationError as e:
            raise ValueError(e.message) from e
        return self


class ChallengeView(BaseModel):
    """Challenge response — public-facing challenge data."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    creator_id: UUID
    title: str | None = None
    price_tier: PriceTier
    price: Decimal
    created_at: datetime
