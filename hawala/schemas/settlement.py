"""
Pydantic schemas for settlements, suggestions and auto-settlement.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from hawala.settlement_engine.strategy import SettlementStrategy


class SettleRequest(BaseModel):
    outgoing_id: UUID
    incoming_id: UUID
    amount: Decimal = Field(..., gt=0)
    notes: str | None = None


class AutoSettleRequest(BaseModel):
    strategy: SettlementStrategy = SettlementStrategy.FIFO


class SettlementResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    outgoing_id: UUID
    incoming_id: UUID
    settled_amount: Decimal
    acquisition_rate: Decimal
    payout_rate: Decimal
    profit: Decimal
    notes: str | None
    created_by: UUID
    created_at: datetime


class SuggestionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    incoming_id: UUID
    incoming_code: str
    suggested_amount: Decimal
    expected_profit: Decimal
    payout_rate: Decimal
    incoming_remaining: Decimal


class SuggestionListResponse(BaseModel):
    outgoing_id: UUID
    strategy: SettlementStrategy
    items: list[SuggestionResponse]
    total_suggested: Decimal


class SkippedCandidateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    incoming_id: UUID
    reason: str


class AutoSettleResponse(BaseModel):
    outgoing_id: UUID
    strategy: SettlementStrategy
    outcome: str
    status: str
    total_settled: Decimal
    total_profit: Decimal
    remaining_amount: Decimal
    settlements: list[SettlementResponse]
    skipped: list[SkippedCandidateResponse]


class SummaryBucket(BaseModel):
    count: int
    total_amount: Decimal
    remaining_amount: Decimal


class UnsettledSummaryResponse(BaseModel):
    generated_at: datetime
    total_count: int
    total_remaining: Decimal
    by_status: dict[str, SummaryBucket]
    by_age: dict[str, SummaryBucket]


class ProfitSummaryResponse(BaseModel):
    total_profit: Decimal
    settlement_count: int
    average_profit: Decimal
    total_settled: Decimal
    start: datetime | None
    end: datetime | None
