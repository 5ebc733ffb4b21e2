"""PurchaseRecord ORM — a settled payment for access to a challenge.

Invariants:
    - At most one status='completed' row per (challenge_id, user_id),
      enforced by a partial unique index on both PostgreSQL and SQLite
    - Never updated or deleted once written

Design Decisions:
    - Partial index instead of a plain unique constraint: failed attempts stay
      in the audit trail without blocking a later successful purchase
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import String, Numeric, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from challenge_ledger.db.base import Base

COMPLETED_PURCHASE_INDEX = "uq_purchase_records_completed"


class PurchaseRecord(Base):
    """Purchase entity — immutable."""
    __tablename__ = "purchase_records"
    __table_args__ = (
        Index(
            COMPLETED_PURCHASE_INDEX, "challenge_id", "user_id",
            unique=True,
            postgresql_where=text("status = 'completed'"),
            sqlite_where=text("status = 'completed'"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    challenge_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("challenges.id"), nullable=False,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), nullable=False, index=True,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="completed",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
