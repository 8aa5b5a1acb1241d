"""
Cash ledger models.

``LedgerEntry`` rows are the source of truth for cash movements, keyed by
(tenant, branch, currency).  ``CashBalance`` is a running total kept in
step with the entries and recomputable from them at any time.
"""

import enum
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    DateTime,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    Enum as SAEnum,
    Index,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column

from hawala.core.exceptions import InvalidStateError
from hawala.database import Base


class LedgerEntryType(str, enum.Enum):
    OUTGOING_RECEIPT = "outgoing_receipt"
    OUTGOING_REFUND = "outgoing_refund"
    SETTLEMENT_DEBIT = "settlement_debit"
    SETTLEMENT_CREDIT = "settlement_credit"
    PAYOUT = "payout"
    MANUAL_ADJUSTMENT = "manual_adjustment"


class LedgerEntry(Base):
    __tablename__ = "ledger_entries"
    __table_args__ = (
        Index("ix_ledger_entries_account", "tenant_id", "branch_id", "currency"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    branch_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=2), nullable=False)  # signed
    entry_type: Mapped[LedgerEntryType] = mapped_column(
        SAEnum(
            LedgerEntryType,
            name="ledgerentrytype",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
    )
    settlement_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), index=True)
    remittance_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), index=True)
    description: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return (
            f"<LedgerEntry {self.entry_type.value if self.entry_type else 'N/A'} "
            f"{self.currency} {self.amount}>"
        )


class CashBalance(Base):
    __tablename__ = "cash_balances"
    __table_args__ = (
        UniqueConstraint("tenant_id", "branch_id", "currency", name="uq_cash_balances_account"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    branch_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    balance: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=2), nullable=False)
    last_refreshed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<CashBalance {self.branch_id} {self.currency} {self.balance}>"


@event.listens_for(LedgerEntry, "init")
def _set_entry_defaults(target, args, kwargs):
    if "id" not in kwargs:
        target.id = uuid.uuid4()
    if "created_at" not in kwargs:
        target.created_at = datetime.now(timezone.utc)


@event.listens_for(CashBalance, "init")
def _set_balance_defaults(target, args, kwargs):
    if "id" not in kwargs:
        target.id = uuid.uuid4()
    if "balance" not in kwargs:
        target.balance = Decimal("0.00")
    if "updated_at" not in kwargs:
        target.updated_at = datetime.now(timezone.utc)


@event.listens_for(LedgerEntry, "before_update")
def _reject_entry_update(mapper, connection, target):
    raise InvalidStateError(f"Ledger entry {target.id} is immutable")


@event.listens_for(LedgerEntry, "before_delete")
def _reject_entry_delete(mapper, connection, target):
    raise InvalidStateError(f"Ledger entry {target.id} cannot be deleted")
