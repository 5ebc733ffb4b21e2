"""DistributionEntry ORM — one row of the permanent payout audit trail.

Invariants:
    - Belongs to exactly one PurchaseRecord (purchase_id FK)
    - user_id is NULL only for platform_fee rows
    - (purchase_id, sequence) unique: rows keep the order the plan produced them
    - Append-only: never updated or deleted

Design Decisions:
    - challenge_id denormalized: revenue per challenge without a join
    - Numeric(18, 6): participant shares carry sub-cent precision
    - position copied from the roster snapshot: the audit row explains its own multiplier
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import String, Integer, Numeric, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from challenge_ledger.db.base import Base


class DistributionEntry(Base):
    """Distribution row — append-only."""
    __tablename__ = "distribution_entries"
    __table_args__ = (
        UniqueConstraint(
            "purchase_id", "sequence", name="uq_distribution_purchase_sequence",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    purchase_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("purchase_records.id"), nullable=False,
    )
    challenge_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("challenges.id"), nullable=False, index=True,
    )
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), nullable=True, index=True,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    position: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
