"""Initial schema — challenges, participants, purchase records, distribution entries.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

Partial unique index on purchase_records guarantees at most one completed
purchase per (challenge, user). Participant positions are unique per challenge.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "challenges",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("creator_id", UUID(as_uuid=True), nullable=False),
        sa.Column("title", sa.String(100), nullable=True),
        sa.Column("price_tier", sa.String(20), nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=False, server_default="0.00"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "price_tier IN ('free', 'premium', 'exclusive')",
            name="ck_challenges_price_tier",
        ),
        sa.CheckConstraint("price >= 0", name="ck_challenges_price_non_negative"),
    )
    op.create_index("ix_challenges_creator_id", "challenges", ["creator_id"])

    op.create_table(
        "challenge_participants",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("challenge_id", UUID(as_uuid=True), sa.ForeignKey("challenges.id"), nullable=False),
        sa.Column("user_id", UUID(as_uuid=True), nullable=False),
        sa.Column("position", sa.Integer, nullable=False),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("challenge_id", "user_id", name="uq_participants_challenge_user"),
        sa.UniqueConstraint("challenge_id", "position", name="uq_participants_challenge_position"),
        sa.CheckConstraint("position >= 1", name="ck_participants_position_positive"),
    )
    op.create_index("ix_challenge_participants_user_id", "challenge_participants", ["user_id"])

    op.create_table(
        "purchase_records",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("challenge_id", UUID(as_uuid=True), sa.ForeignKey("challenges.id"), nullable=False),
        sa.Column("user_id", UUID(as_uuid=True), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="completed"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_purchase_records_user_id", "purchase_records", ["user_id"])
    op.create_index(
        "uq_purchase_records_completed", "purchase_records",
        ["challenge_id", "user_id"],
        unique=True,
        postgresql_where=sa.text("status = 'completed'"),
        sqlite_where=sa.text("status = 'completed'"),
    )

    op.create_table(
        "distribution_entries",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("purchase_id", UUID(as_uuid=True), sa.ForeignKey("purchase_records.id"), nullable=False),
        sa.Column("challenge_id", UUID(as_uuid=True), sa.ForeignKey("challenges.id"), nullable=False),
        sa.Column("user_id", UUID(as_uuid=True), nullable=True),
        sa.Column("amount", sa.Numeric(18, 6), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("position", sa.Integer, nullable=True),
        sa.Column("sequence", sa.Integer, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("purchase_id", "sequence", name="uq_distribution_purchase_sequence"),
    )
    op.create_index("ix_distribution_entries_challenge_id", "distribution_entries", ["challenge_id"])
    op.create_index("ix_distribution_entries_user_id", "distribution_entries", ["user_id"])


def downgrade() -> None:
    op.drop_table("distribution_entries")
    op.drop_table("purchase_records")
    op.drop_table("challenge_participants")
    op.drop_table("challenges")
