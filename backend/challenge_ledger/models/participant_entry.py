"""ParticipantEntry ORM — one user's place in a challenge roster.

Invariants:
    - Unique on (challenge_id, user_id): a user joins a challenge once
    - Unique on (challenge_id, position): positions are never shared or reused
    - position is 1-based and assigned under the challenge row lock

Design Decisions:
    - position stored, not derived from joined_at: clock ties cannot reorder payouts
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Integer, DateTime, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from challenge_ledger.db.base import Base


class ParticipantEntry(Base):
    """Roster entry — append-only."""
    __tablename__ = "challenge_participants"
    __table_args__ = (
        UniqueConstraint(
            "challenge_id", "user_id", name="uq_participants_challenge_user",
        ),
        UniqueConstraint(
            "challenge_id", "position", name="uq_participants_challenge_position",
        ),
        CheckConstraint("position >= 1", name="ck_participants_position_positive"),
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
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
