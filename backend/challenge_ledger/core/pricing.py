"""Challenge Input — pure validation of a challenge tier price and title.

Invariants:
    - Titles are stripped; when present they are TITLE_MIN_LENGTH..TITLE_MAX_LENGTH chars
    - Free challenges always cost 0.00, whatever price was supplied
    - Paid tiers require a price inside TIER_PRICE_BOUNDS (inclusive)
    - Returned price is quantized to cents

Design Decisions:
    - Shared by ChallengeRepository.create and the ChallengeCreate schema:
      one bounds table for both entry points
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from challenge_ledger.core.domain_types import (
    PRICE_QUANTUM, TIER_PRICE_BOUNDS, TITLE_MAX_LENGTH, TITLE_MIN_LENGTH, PriceTier,
)
from challenge_ledger.core.errors import ValidationError


def parse_tier(value: PriceTier | str) -> PriceTier:
    """Coerce a tier name, raising ValidationError("invalid_tier") for unknown values."""
    try:
        return PriceTier(value)
    except ValueError:
        allowed = ", ".join(t.value for t in PriceTier)
        raise ValidationError(
            "invalid_tier", f"Invalid price tier. Must be one of: {allowed}",
        ) from None


def validate_tier_price(tier: PriceTier | str, price: Decimal | str | int | None) -> Decimal:
    """Return the normalized price for a tier or raise ValidationError."""
    tier = parse_tier(tier)
    if tier == PriceTier.FREE:
        return Decimal("0.00")

    try:
        value = Decimal(str(price)) if price is not None else None
    except InvalidOperation:
        value = None
    if value is None or not value.is_finite() or value <= 0:
        raise ValidationError(
            "invalid_price", "Valid price required for paid challenges",
        )

    low, high = TIER_PRICE_BOUNDS[tier]
    if value < low or value > high:
        raise ValidationError(
            "invalid_price",
            f"{tier.value.capitalize()} challenges must be priced "
            f"between ${low} and ${high}",
        )
    return value.quantize(PRICE_QUANTUM, rounding=ROUND_HALF_UP)


def validate_title(title: str | None) -> str | None:
    """Return the stripped title, None if absent, or raise ValidationError("invalid_title")."""
    if title is None:
        return None
    title = title.strip()
    if not TITLE_MIN_LENGTH <= len(title) <= TITLE_MAX_LENGTH:
        raise ValidationError("invalid_title")
    return title
