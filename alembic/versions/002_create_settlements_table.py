"""create settlements table

Revision ID: 002
Revises: 001
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "settlements",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("tenant_id", UUID(as_uuid=True), nullable=False, index=True),
        sa.Column(
            "outgoing_id", UUID(as_uuid=True),
            sa.ForeignKey("outgoing_remittances.id"), nullable=False, index=True,
        ),
        sa.Column(
            "incoming_id", UUID(as_uuid=True),
            sa.ForeignKey("incoming_remittances.id"), nullable=False, index=True,
        ),
        sa.Column("settled_amount", sa.Numeric(20, 2), nullable=False),
        sa.Column("acquisition_rate", sa.Numeric(20, 6), nullable=False),
        sa.Column("payout_rate", sa.Numeric(20, 6), nullable=False),
        sa.Column("profit", sa.Numeric(20, 4), nullable=False),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("created_by", UUID(as_uuid=True), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True),
            server_default=sa.func.now(), nullable=False, index=True,
        ),
        sa.CheckConstraint("settled_amount > 0", name="ck_settlements_amount_positive"),
    )


def downgrade() -> None:
    op.drop_table("settlements")
