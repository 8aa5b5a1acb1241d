"""create ledger_entries and cash_balances tables

Revision ID: 003
Revises: 002
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ENUM, UUID

revision = "003"
down_revision = "002"
branch_labels = None
depends_on = None


def upgrade() -> None:
    ledgerentrytype = ENUM(
        "outgoing_receipt", "outgoing_refund", "settlement_debit",
        "settlement_credit", "payout", "manual_adjustment",
        name="ledgerentrytype",
        create_type=False,
    )
    ledgerentrytype.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "ledger_entries",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("tenant_id", UUID(as_uuid=True), nullable=False),
        sa.Column("branch_id", UUID(as_uuid=True), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("amount", sa.Numeric(20, 2), nullable=False),
        sa.Column("entry_type", ledgerentrytype, nullable=False),
        sa.Column("settlement_id", UUID(as_uuid=True), nullable=True, index=True),
        sa.Column("remittance_id", UUID(as_uuid=True), nullable=True, index=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("created_by", UUID(as_uuid=True), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True),
            server_default=sa.func.now(), nullable=False,
        ),
    )
    op.create_index(
        "ix_ledger_entries_account", "ledger_entries",
        ["tenant_id", "branch_id", "currency"],
    )

    op.create_table(
        "cash_balances",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("tenant_id", UUID(as_uuid=True), nullable=False),
        sa.Column("branch_id", UUID(as_uuid=True), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("balance", sa.Numeric(20, 2), server_default="0", nullable=False),
        sa.Column("last_refreshed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True),
            server_default=sa.func.now(), nullable=False,
        ),
        sa.UniqueConstraint(
            "tenant_id", "branch_id", "currency", name="uq_cash_balances_account",
        ),
    )


def downgrade() -> None:
    op.drop_table("cash_balances")
    op.drop_index("ix_ledger_entries_account", table_name="ledger_entries")
    op.drop_table("ledger_entries")
    sa.Enum(name="ledgerentrytype").drop(op.get_bind(), checkfirst=True)
