"""
Pydantic schemas for the outgoing and incoming remittance registers.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


class OutgoingCreateRequest(BaseModel):
    """Debt registered when a customer pays to send money abroad."""
    branch_id: UUID
    sender_name: str = Field(..., min_length=1, max_length=200, examples=["Reza Karimi"])
    sender_phone: str | None = Field(None, max_length=32)
    recipient_name: str = Field(..., min_length=1, max_length=200, examples=["Maryam Karimi"])
    recipient_phone: str | None = Field(None, max_length=32)
    recipient_bank: str | None = Field(None, max_length=100, examples=["Bank Melli"])
    recipient_iban: str | None = Field(None, max_length=34)
    amount: Decimal = Field(..., gt=0, examples=[1000000])
    acquisition_rate: Decimal = Field(..., gt=0, examples=[85000])
    received_amount: Decimal | None = Field(None, ge=0)
    fee_amount: Decimal = Field(Decimal("0"), ge=0)
    notes: str | None = None


class IncomingCreateRequest(BaseModel):
    """Funds collected abroad for a local recipient."""
    branch_id: UUID
    sender_name: str = Field(..., min_length=1, max_length=200)
    sender_phone: str | None = Field(None, max_length=32)
    sender_bank: str | None = Field(None, max_length=100)
    sender_iban: str | None = Field(None, max_length=34)
    recipient_name: str = Field(..., min_length=1, max_length=200)
    recipient_phone: str | None = Field(None, max_length=32)
    amount: Decimal = Field(..., gt=0, examples=[400000])
    payout_rate: Decimal = Field(..., gt=0, examples=[84000])
    notes: str | None = None


class CancelRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)


class PayIncomingRequest(BaseModel):
    payment_method: str = Field(..., min_length=1, max_length=50, examples=["cash"])
    payment_reference: str | None = Field(None, max_length=100)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class OutgoingResponse(BaseModel):
    id: UUID
    code: str
    branch_id: UUID
    sender_name: str
    recipient_name: str
    recipient_bank: str | None
    recipient_iban_last4: str | None
    amount: Decimal
    acquisition_rate: Decimal
    equivalent_amount: Decimal
    received_amount: Decimal
    fee_amount: Decimal
    settled_amount: Decimal
    remaining_amount: Decimal
    total_profit: Decimal
    status: str
    version: int
    created_at: datetime
    completed_at: datetime | None
    cancelled_at: datetime | None
    cancellation_reason: str | None


class IncomingResponse(BaseModel):
    id: UUID
    code: str
    branch_id: UUID
    sender_name: str
    recipient_name: str
    amount: Decimal
    payout_rate: Decimal
    equivalent_amount: Decimal
    allocated_amount: Decimal
    remaining_amount: Decimal
    paid_amount: Decimal
    payment_method: str | None
    payment_reference: str | None
    status: str
    version: int
    created_at: datetime
    paid_at: datetime | None
    cancelled_at: datetime | None
    cancellation_reason: str | None


class OutgoingListResponse(BaseModel):
    items: list[OutgoingResponse]
    count: int


class IncomingListResponse(BaseModel):
    items: list[IncomingResponse]
    count: int
