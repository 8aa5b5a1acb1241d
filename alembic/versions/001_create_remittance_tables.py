"""create outgoing and incoming remittance tables

Revision ID: 001
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ENUM, UUID

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    outgoingstatus = ENUM(
        "pending", "partial", "completed", "cancelled",
        name="outgoingstatus",
        create_type=False,
    )
    outgoingstatus.create(op.get_bind(), checkfirst=True)

    incomingstatus = ENUM(
        "pending", "partial", "completed", "paid", "cancelled",
        name="incomingstatus",
        create_type=False,
    )
    incomingstatus.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "outgoing_remittances",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("tenant_id", UUID(as_uuid=True), nullable=False, index=True),
        sa.Column("branch_id", UUID(as_uuid=True), nullable=False),
        sa.Column("code", sa.String(16), unique=True, index=True, nullable=False),
        sa.Column("sender_name", sa.String(200), nullable=False),
        sa.Column("sender_phone", sa.String(32), nullable=True),
        sa.Column("recipient_name", sa.String(200), nullable=False),
        sa.Column("recipient_phone", sa.String(32), nullable=True),
        sa.Column("recipient_bank", sa.String(100), nullable=True),
        sa.Column("recipient_iban", sa.String(256), nullable=True),
        sa.Column("amount", sa.Numeric(20, 2), nullable=False),
        sa.Column("acquisition_rate", sa.Numeric(20, 6), nullable=False),
        sa.Column("equivalent_amount", sa.Numeric(20, 2), nullable=False),
        sa.Column("received_amount", sa.Numeric(20, 2), server_default="0", nullable=False),
        sa.Column("fee_amount", sa.Numeric(20, 2), server_default="0", nullable=False),
        sa.Column("settled_amount", sa.Numeric(20, 2), server_default="0", nullable=False),
        sa.Column("remaining_amount", sa.Numeric(20, 2), nullable=False),
        sa.Column("total_profit", sa.Numeric(20, 4), server_default="0", nullable=False),
        sa.Column("status", outgoingstatus, server_default="pending", nullable=False, index=True),
        sa.Column("version", sa.Integer, server_default="1", nullable=False),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("created_by", UUID(as_uuid=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_by", UUID(as_uuid=True), nullable=True),
        sa.Column("cancellation_reason", sa.Text, nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True),
            server_default=sa.func.now(), nullable=False,
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True),
            server_default=sa.func.now(), nullable=False,
        ),
        sa.CheckConstraint("amount > 0", name="ck_outgoing_amount_positive"),
        sa.CheckConstraint("acquisition_rate > 0", name="ck_outgoing_rate_positive"),
        sa.CheckConstraint("remaining_amount >= 0", name="ck_outgoing_remaining_non_negative"),
        sa.CheckConstraint("settled_amount >= 0", name="ck_outgoing_settled_non_negative"),
        sa.CheckConstraint(
            "settled_amount + remaining_amount = amount", name="ck_outgoing_balance",
        ),
    )

    op.create_table(
        "incoming_remittances",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("tenant_id", UUID(as_uuid=True), nullable=False, index=True),
        sa.Column("branch_id", UUID(as_uuid=True), nullable=False),
        sa.Column("code", sa.String(16), unique=True, index=True, nullable=False),
        sa.Column("sender_name", sa.String(200), nullable=False),
        sa.Column("sender_phone", sa.String(32), nullable=True),
        sa.Column("sender_bank", sa.String(100), nullable=True),
        sa.Column("sender_iban", sa.String(256), nullable=True),
        sa.Column("recipient_name", sa.String(200), nullable=False),
        sa.Column("recipient_phone", sa.String(32), nullable=True),
        sa.Column("amount", sa.Numeric(20, 2), nullable=False),
        sa.Column("payout_rate", sa.Numeric(20, 6), nullable=False),
        sa.Column("equivalent_amount", sa.Numeric(20, 2), nullable=False),
        sa.Column("allocated_amount", sa.Numeric(20, 2), server_default="0", nullable=False),
        sa.Column("remaining_amount", sa.Numeric(20, 2), nullable=False),
        sa.Column("status", incomingstatus, server_default="pending", nullable=False, index=True),
        sa.Column("version", sa.Integer, server_default="1", nullable=False),
        sa.Column("paid_amount", sa.Numeric(20, 2), server_default="0", nullable=False),
        sa.Column("payment_method", sa.String(50), nullable=True),
        sa.Column("payment_reference", sa.String(100), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("paid_by", UUID(as_uuid=True), nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("created_by", UUID(as_uuid=True), nullable=False),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_by", UUID(as_uuid=True), nullable=True),
        sa.Column("cancellation_reason", sa.Text, nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True),
            server_default=sa.func.now(), nullable=False,
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True),
            server_default=sa.func.now(), nullable=False,
        ),
        sa.CheckConstraint("amount > 0", name="ck_incoming_amount_positive"),
        sa.CheckConstraint("payout_rate > 0", name="ck_incoming_rate_positive"),
        sa.CheckConstraint("remaining_amount >= 0", name="ck_incoming_remaining_non_negative"),
        sa.CheckConstraint("allocated_amount >= 0", name="ck_incoming_allocated_non_negative"),
        sa.CheckConstraint(
            "allocated_amount + remaining_amount = amount", name="ck_incoming_balance",
        ),
        sa.CheckConstraint(
            "paid_amount >= 0 AND paid_amount <= equivalent_amount",
            name="ck_incoming_paid_bounds",
        ),
    )


def downgrade() -> None:
    op.drop_table("incoming_remittances")
    op.drop_table("outgoing_remittances")
    sa.Enum(name="incomingstatus").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="outgoingstatus").drop(op.get_bind(), checkfirst=True)
