"""
Settlement model: one netting of an outgoing debt against incoming funds.

Rows are append-only.  Rates are snapshotted at creation so profit can
always be recomputed from the row itself.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Numeric, Text, Uuid, event
from sqlalchemy.orm import Mapped, mapped_column

from hawala.core.exceptions import InvalidStateError
from hawala.database import Base


class Settlement(Base):
    __tablename__ = "settlements"
    __table_args__ = (
        CheckConstraint("settled_amount > 0", name="ck_settlements_amount_positive"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), index=True, nullable=False)
    outgoing_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("outgoing_remittances.id"), index=True, nullable=False,
    )
    incoming_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("incoming_remittances.id"), index=True, nullable=False,
    )

    settled_amount: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=2), nullable=False)
    acquisition_rate: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=6), nullable=False)
    payout_rate: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=6), nullable=False)
    profit: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=4), nullable=False)

    notes: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )

    def __repr__(self) -> str:
        return (
            f"<Settlement {self.id} out={self.outgoing_id} in={self.incoming_id} "
            f"amount={self.settled_amount} profit={self.profit}>"
        )


@event.listens_for(Settlement, "init")
def _set_settlement_defaults(target, args, kwargs):
    if "id" not in kwargs:
        target.id = uuid.uuid4()
    if "created_at" not in kwargs:
        target.created_at = datetime.now(timezone.utc)


@event.listens_for(Settlement, "before_update")
def _reject_settlement_update(mapper, connection, target):
    raise InvalidStateError(f"Settlement {target.id} is immutable")


@event.listens_for(Settlement, "before_delete")
def _reject_settlement_delete(mapper, connection, target):
    raise InvalidStateError(f"Settlement {target.id} cannot be deleted")
