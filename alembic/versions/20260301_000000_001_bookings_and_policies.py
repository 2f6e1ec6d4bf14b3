"""Bookings and cancellation policies.

Revision ID: 001
Revises:
Create Date: 2026-03-01 00:00:00.000000

Adds:
- bookings table with lifecycle status and cancellation outcome fields
- cancellation_policies table holding the policy body as JSON
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create bookings and cancellation_policies tables."""

    # ========================================================================
    # CANCELLATION POLICIES
    # ========================================================================

    op.create_table(
        "cancellation_policies",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("provider_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        # Policy body
        sa.Column("rules", sa.JSON(), nullable=False),
        sa.Column("free_cancellation_window", sa.JSON(), nullable=False),
        sa.Column("late_cancellation", sa.JSON(), nullable=False),
        sa.Column("no_show", sa.JSON(), nullable=False),
        sa.Column("reschedule", sa.JSON(), nullable=False),
        sa.Column("exceptions", sa.JSON(), nullable=False),
        sa.Column("repeat_offender", sa.JSON(), nullable=False),
        sa.Column("deposit", sa.JSON(), nullable=False),
        # Service scope: empty list means all services
        sa.Column("applies_to", sa.JSON(), nullable=False),
        sa.Column(
            "is_default",
            sa.Boolean(),
            nullable=False,
            server_default="false",
        ),
        sa.Column(
            "is_active",
            sa.Boolean(),
            nullable=False,
            server_default="true",
        ),
        sa.Column("effective_date", sa.DateTime(timezone=True), nullable=False),
        # Timestamps
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_cancellation_policies"),
    )
    op.create_index(
        "ix_cancellation_policies_provider_id",
        "cancellation_policies",
        ["provider_id"],
    )
    op.create_index(
        "ix_cancellation_policies_is_default",
        "cancellation_policies",
        ["is_default"],
    )
    op.create_index(
        "ix_cancellation_policies_is_active",
        "cancellation_policies",
        ["is_active"],
    )

    # ========================================================================
    # BOOKINGS
    # ========================================================================

    op.create_table(
        "bookings",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("client_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("provider_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("service_id", postgresql.UUID(as_uuid=False), nullable=False),
        # Status: pending, confirmed, completed, cancelled, no-show, disputed
        sa.Column(
            "status",
            sa.String(20),
            nullable=False,
            server_default="'pending'",
        ),
        sa.Column("scheduled_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("original_scheduled_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "duration_minutes",
            sa.Integer(),
            nullable=False,
            server_default="60",
        ),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column(
            "reschedule_count",
            sa.Integer(),
            nullable=False,
            server_default="0",
        ),
        # Cancellation / no-show outcome
        sa.Column(
            "cancellation_penalty",
            sa.Numeric(10, 2),
            nullable=False,
            server_default="0",
        ),
        sa.Column(
            "refund_amount",
            sa.Numeric(10, 2),
            nullable=False,
            server_default="0",
        ),
        sa.Column("refund_percentage", sa.Numeric(5, 2), nullable=True),
        sa.Column("cancellation_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_by", sa.String(20), nullable=True),
        sa.Column("cancelled_by_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("cancellation_reason", sa.String(200), nullable=True),
        sa.Column("cancellation_notes", sa.Text(), nullable=True),
        # Policy that produced the outcome
        sa.Column("policy_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("policy_hash", sa.String(64), nullable=True),
        # Timestamps
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_bookings"),
    )
    op.create_index("ix_bookings_client_id", "bookings", ["client_id"])
    op.create_index("ix_bookings_provider_id", "bookings", ["provider_id"])
    op.create_index("ix_bookings_status", "bookings", ["status"])
    op.create_index("ix_bookings_scheduled_time", "bookings", ["scheduled_time"])


def downgrade() -> None:
    """Drop bookings and cancellation_policies tables."""

    op.drop_index("ix_bookings_scheduled_time", table_name="bookings")
    op.drop_index("ix_bookings_status", table_name="bookings")
    op.drop_index("ix_bookings_provider_id", table_name="bookings")
    op.drop_index("ix_bookings_client_id", table_name="bookings")
    op.drop_table("bookings")

    op.drop_index("ix_cancellation_policies_is_active", table_name="cancellation_policies")
    op.drop_index("ix_cancellation_policies_is_default", table_name="cancellation_policies")
    op.drop_index("ix_cancellation_policies_provider_id", table_name="cancellation_policies")
    op.drop_table("cancellation_policies")
