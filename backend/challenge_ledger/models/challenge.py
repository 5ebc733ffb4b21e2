"""Challenge ORM — the content a user pays to access.

Invariants:
    - creator_id, price_tier and price are immutable once created
    - price_tier in {free, premium, exclusive}; price respects tier bounds
      (validated by core/pricing.py before insert)
    - The row is the per-challenge lock target (SELECT ... FOR UPDATE)

Design Decisions:
    - creator_id is a bare UUID, not a FK: users live in an external service
    - Numeric(12, 2) for price: exact cents, never float
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import String, Numeric, DateTime, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from challenge_ledger.db.base import Base


class Challenge(Base):
    """Challenge aggregate root — owns its roster, purchases and payouts."""
    __tablename__ = "challenges"
    __table_args__ = (
        CheckConstraint(
            "price_tier IN ('free', 'premium', 'exclusive')",
            name="ck_challenges_price_tier",
        ),
        CheckConstraint("price >= 0", name="ck_challenges_price_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    creator_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), nullable=False, index=True,
    )
    title: Mapped[str | None] = mapped_column(String(100), nullable=True)
    price_tier: Mapped[str] = mapped_column(String(20), nullable=False)
    price: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00"),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
