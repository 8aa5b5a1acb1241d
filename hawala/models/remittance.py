"""
Remittance registers: outgoing debts and incoming funds.

- OUT-XXXXXXXX / IN-XXXXXXXX codes
- Balance invariant ``settled + remaining == amount`` checked in the DB
- Status derived from balances, CANCELLED set only by cancellation
- ``version`` column drives SQLAlchemy optimistic concurrency
- Fernet-encrypted IBANs
"""

import enum
import random
import string
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
    Enum as SAEnum,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column

from hawala.core.security import decrypt_value, encrypt_value
from hawala.database import Base

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class OutgoingStatus(str, enum.Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class IncomingStatus(str, enum.Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    COMPLETED = "completed"
    PAID = "paid"
    CANCELLED = "cancelled"


OUTGOING_OPEN = (OutgoingStatus.PENDING, OutgoingStatus.PARTIAL)
INCOMING_OPEN = (IncomingStatus.PENDING, IncomingStatus.PARTIAL)


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


def _generate_code(prefix: str) -> str:
    chars = string.ascii_uppercase + string.digits
    suffix = "".join(random.choices(chars, k=8))
    return f"{prefix}-{suffix}"


# ---------------------------------------------------------------------------
# Outgoing
# ---------------------------------------------------------------------------


class OutgoingRemittance(Base):
    """Debt created when a customer pays the home branch to send money abroad."""

    __tablename__ = "outgoing_remittances"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_outgoing_amount_positive"),
        CheckConstraint("acquisition_rate > 0", name="ck_outgoing_rate_positive"),
        CheckConstraint("remaining_amount >= 0", name="ck_outgoing_remaining_non_negative"),
        CheckConstraint("settled_amount >= 0", name="ck_outgoing_settled_non_negative"),
        # exact decimal arithmetic is only available on PostgreSQL
        CheckConstraint(
            "settled_amount + remaining_amount = amount",
            name="ck_outgoing_balance",
        ).ddl_if(dialect="postgresql"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), index=True, nullable=False)
    branch_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    code: Mapped[str] = mapped_column(String(16), unique=True, index=True, nullable=False)

    # Parties
    sender_name: Mapped[str] = mapped_column(String(200), nullable=False)
    sender_phone: Mapped[str | None] = mapped_column(String(32))
    recipient_name: Mapped[str] = mapped_column(String(200), nullable=False)
    recipient_phone: Mapped[str | None] = mapped_column(String(32))
    recipient_bank: Mapped[str | None] = mapped_column(String(100))
    recipient_iban: Mapped[str | None] = mapped_column(String(256))  # encrypted

    # Amounts
    amount: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=2), nullable=False)
    acquisition_rate: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=6), nullable=False)
    equivalent_amount: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=2), nullable=False)
    received_amount: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=2), nullable=False)
    fee_amount: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=2), nullable=False)

    # Settlement tracking
    settled_amount: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=2), nullable=False)
    remaining_amount: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=2), nullable=False)
    total_profit: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=4), nullable=False)
    status: Mapped[OutgoingStatus] = mapped_column(
        SAEnum(OutgoingStatus, name="outgoingstatus", values_callable=_enum_values),
        nullable=False,
        index=True,
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # Audit
    notes: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_by: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True))
    cancellation_reason: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __mapper_args__ = {"version_id_col": version}

    @staticmethod
    def generate_code() -> str:
        """Generate an OUT-XXXXXXXX code (8 uppercase alphanumeric chars)."""
        return _generate_code("OUT")

    # ------------------------------------------------------------------
    # Encrypted recipient IBAN
    # ------------------------------------------------------------------

    def set_recipient_iban(self, plaintext: str) -> None:
        self.recipient_iban = encrypt_value(plaintext)

    def get_recipient_iban(self) -> str | None:
        if self.recipient_iban is None:
            return None
        return decrypt_value(self.recipient_iban)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        return self.status in (OutgoingStatus.COMPLETED, OutgoingStatus.CANCELLED)

    def apply_settlement(self, amount: Decimal, profit: Decimal) -> None:
        """Move *amount* from remaining to settled and re-derive status."""
        self.settled_amount += amount
        self.remaining_amount -= amount
        self.total_profit += profit
        self.refresh_status()

    def refresh_status(self) -> None:
        if self.status == OutgoingStatus.CANCELLED:
            return
        if self.remaining_amount == 0:
            self.status = OutgoingStatus.COMPLETED
            if self.completed_at is None:
                self.completed_at = datetime.now(timezone.utc)
        elif self.settled_amount > 0:
            self.status = OutgoingStatus.PARTIAL
        else:
            self.status = OutgoingStatus.PENDING

    def __repr__(self) -> str:
        return (
            f"<OutgoingRemittance {self.code} {self.amount} "
            f"remaining={self.remaining_amount} "
            f"status={self.status.value if self.status else 'N/A'}>"
        )


# ---------------------------------------------------------------------------
# Incoming
# ---------------------------------------------------------------------------


class IncomingRemittance(Base):
    """Funds collected abroad that are owed to a local recipient."""

    __tablename__ = "incoming_remittances"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_incoming_amount_positive"),
        CheckConstraint("payout_rate > 0", name="ck_incoming_rate_positive"),
        CheckConstraint("remaining_amount >= 0", name="ck_incoming_remaining_non_negative"),
        CheckConstraint("allocated_amount >= 0", name="ck_incoming_allocated_non_negative"),
        CheckConstraint(
            "allocated_amount + remaining_amount = amount",
            name="ck_incoming_balance",
        ).ddl_if(dialect="postgresql"),
        CheckConstraint(
            "paid_amount >= 0 AND paid_amount <= equivalent_amount",
            name="ck_incoming_paid_bounds",
        ).ddl_if(dialect="postgresql"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), index=True, nullable=False)
    branch_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    code: Mapped[str] = mapped_column(String(16), unique=True, index=True, nullable=False)

    # Parties
    sender_name: Mapped[str] = mapped_column(String(200), nullable=False)
    sender_phone: Mapped[str | None] = mapped_column(String(32))
    sender_bank: Mapped[str | None] = mapped_column(String(100))
    sender_iban: Mapped[str | None] = mapped_column(String(256))  # encrypted
    recipient_name: Mapped[str] = mapped_column(String(200), nullable=False)
    recipient_phone: Mapped[str | None] = mapped_column(String(32))

    # Amounts
    amount: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=2), nullable=False)
    payout_rate: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=6), nullable=False)
    equivalent_amount: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=2), nullable=False)

    # Allocation tracking
    allocated_amount: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=2), nullable=False)
    remaining_amount: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=2), nullable=False)
    status: Mapped[IncomingStatus] = mapped_column(
        SAEnum(IncomingStatus, name="incomingstatus", values_callable=_enum_values),
        nullable=False,
        index=True,
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # Payout
    paid_amount: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=2), nullable=False)
    payment_method: Mapped[str | None] = mapped_column(String(50))
    payment_reference: Mapped[str | None] = mapped_column(String(100))
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    paid_by: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True))

    # Audit
    notes: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_by: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True))
    cancellation_reason: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __mapper_args__ = {"version_id_col": version}

    @staticmethod
    def generate_code() -> str:
        """Generate an IN-XXXXXXXX code (8 uppercase alphanumeric chars)."""
        return _generate_code("IN")

    # ------------------------------------------------------------------
    # Encrypted sender IBAN
    # ------------------------------------------------------------------

    def set_sender_iban(self, plaintext: str) -> None:
        self.sender_iban = encrypt_value(plaintext)

    def get_sender_iban(self) -> str | None:
        if self.sender_iban is None:
            return None
        return decrypt_value(self.sender_iban)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    @property
    def unpaid_amount(self) -> Decimal:
        return self.equivalent_amount - self.paid_amount

    @property
    def is_terminal(self) -> bool:
        return self.status in (
            IncomingStatus.COMPLETED,
            IncomingStatus.PAID,
            IncomingStatus.CANCELLED,
        )

    def apply_allocation(self, amount: Decimal) -> None:
        """Move *amount* from remaining to allocated and re-derive status."""
        self.allocated_amount += amount
        self.remaining_amount -= amount
        self.refresh_status()

    def apply_payment(self, amount: Decimal, paid_by: uuid.UUID) -> None:
        self.paid_amount += amount
        self.paid_by = paid_by
        self.paid_at = datetime.now(timezone.utc)
        self.refresh_status()

    def refresh_status(self) -> None:
        if self.status == IncomingStatus.CANCELLED:
            return
        if self.remaining_amount == 0:
            if self.paid_amount >= self.equivalent_amount:
                self.status = IncomingStatus.PAID
            else:
                self.status = IncomingStatus.COMPLETED
        elif self.allocated_amount > 0:
            self.status = IncomingStatus.PARTIAL
        else:
            self.status = IncomingStatus.PENDING

    def __repr__(self) -> str:
        return (
            f"<IncomingRemittance {self.code} {self.amount} "
            f"remaining={self.remaining_amount} "
            f"status={self.status.value if self.status else 'N/A'}>"
        )


# ---------------------------------------------------------------------------
# Auto-set Python-side defaults on construction
# ---------------------------------------------------------------------------


def _set_common_defaults(target, kwargs) -> None:
    now = datetime.now(timezone.utc)
    if "id" not in kwargs:
        target.id = uuid.uuid4()
    if "created_at" not in kwargs:
        target.created_at = now
    if "updated_at" not in kwargs:
        target.updated_at = now


@event.listens_for(OutgoingRemittance, "init")
def _set_outgoing_defaults(target, args, kwargs):
    _set_common_defaults(target, kwargs)
    if "code" not in kwargs:
        target.code = OutgoingRemittance.generate_code()
    if "status" not in kwargs:
        target.status = OutgoingStatus.PENDING
    if "settled_amount" not in kwargs:
        target.settled_amount = Decimal("0.00")
    if "remaining_amount" not in kwargs and "amount" in kwargs:
        target.remaining_amount = kwargs["amount"]
    if "total_profit" not in kwargs:
        target.total_profit = Decimal("0")
    if "received_amount" not in kwargs:
        target.received_amount = Decimal("0.00")
    if "fee_amount" not in kwargs:
        target.fee_amount = Decimal("0.00")


@event.listens_for(IncomingRemittance, "init")
def _set_incoming_defaults(target, args, kwargs):
    _set_common_defaults(target, kwargs)
    if "code" not in kwargs:
        target.code = IncomingRemittance.generate_code()
    if "status" not in kwargs:
        target.status = IncomingStatus.PENDING
    if "allocated_amount" not in kwargs:
        target.allocated_amount = Decimal("0.00")
    if "remaining_amount" not in kwargs and "amount" in kwargs:
        target.remaining_amount = kwargs["amount"]
    if "paid_amount" not in kwargs:
        target.paid_amount = Decimal("0.00")
