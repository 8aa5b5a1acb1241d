"""
Pydantic schemas for cash balances, ledger entries, payouts and audit logs.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from hawala.settlement_engine.strategy import SettlementStrategy


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


class ManualEntryRequest(BaseModel):
    branch_id: UUID
    currency: str = Field(..., min_length=3, max_length=3, examples=["CAD"])
    amount: Decimal = Field(..., examples=[-250])
    description: str = Field(..., min_length=1, max_length=500)


class RefreshBalanceRequest(BaseModel):
    branch_id: UUID
    currency: str = Field(..., min_length=3, max_length=3)


class LedgerEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    branch_id: UUID
    currency: str
    amount: Decimal
    entry_type: str
    settlement_id: UUID | None
    remittance_id: UUID | None
    description: str | None
    created_by: UUID
    created_at: datetime


class CashBalanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    branch_id: UUID
    currency: str
    balance: Decimal
    last_refreshed_at: datetime | None
    updated_at: datetime


class BalanceRefreshResponse(BaseModel):
    branch_id: UUID
    currency: str
    previous: Decimal
    recomputed: Decimal
    drift: Decimal


class BalanceDriftResponse(BaseModel):
    branch_id: UUID
    currency: str
    stored: Decimal
    expected: Decimal
    drift: Decimal


class ConsistencyResponse(BaseModel):
    consistent: bool
    drifts: list[BalanceDriftResponse]


# ---------------------------------------------------------------------------
# Payouts
# ---------------------------------------------------------------------------


class BatchPayoutRequest(BaseModel):
    incoming_ids: list[UUID] = Field(..., min_length=1)
    total_amount: Decimal = Field(..., gt=0)
    strategy: SettlementStrategy = SettlementStrategy.FIFO
    payment_method: str = Field("cash", min_length=1, max_length=50)
    payment_reference: str | None = Field(None, max_length=100)


class PayoutAllocationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    incoming_id: UUID
    incoming_code: str
    amount: Decimal
    unpaid_before: Decimal


class PayoutPlanResponse(BaseModel):
    allocations: list[PayoutAllocationResponse]
    total_amount: Decimal
    total_allocated: Decimal
    unallocated: Decimal


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------


class AuditLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    actor_id: UUID
    action: str
    entity_type: str
    entity_id: UUID
    description: str | None
    details: dict | None
    created_at: datetime
