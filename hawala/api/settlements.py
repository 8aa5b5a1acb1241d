"""
Settlement endpoints: settle one pair, suggest, auto-settle, and reports.
"""

import logging
from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from hawala.api.deps import Identity, get_engine, get_identity
from hawala.core.money import ZERO
from hawala.schemas.settlement import (
    AutoSettleRequest,
    AutoSettleResponse,
    ProfitSummaryResponse,
    SettleRequest,
    SettlementResponse,
    SkippedCandidateResponse,
    SuggestionListResponse,
    SuggestionResponse,
    UnsettledSummaryResponse,
)
from hawala.settlement_engine.engine import SettlementEngine
from hawala.settlement_engine.strategy import SettlementStrategy

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/", response_model=SettlementResponse, status_code=status.HTTP_201_CREATED)
async def create_settlement(
    payload: SettleRequest,
    identity: Identity = Depends(get_identity),
    engine: SettlementEngine = Depends(get_engine),
):
    settlement = await engine.settle(
        identity.tenant_id,
        payload.outgoing_id,
        payload.incoming_id,
        payload.amount,
        identity.actor_id,
        notes=payload.notes,
    )
    return SettlementResponse.model_validate(settlement)


@router.get("/suggestions/{outgoing_id}", response_model=SuggestionListResponse)
async def suggest_settlements(
    outgoing_id: UUID,
    strategy: SettlementStrategy = Query(SettlementStrategy.FIFO),
    limit: int = Query(0, ge=0, description="0 means no limit"),
    identity: Identity = Depends(get_identity),
    engine: SettlementEngine = Depends(get_engine),
):
    suggestions = await engine.suggest_settlements(
        identity.tenant_id, outgoing_id, strategy=strategy, limit=limit,
    )
    return SuggestionListResponse(
        outgoing_id=outgoing_id,
        strategy=strategy,
        items=[SuggestionResponse.model_validate(s) for s in suggestions],
        total_suggested=sum((s.suggested_amount for s in suggestions), ZERO),
    )


@router.post("/auto/{outgoing_id}", response_model=AutoSettleResponse)
async def auto_settle(
    outgoing_id: UUID,
    payload: AutoSettleRequest,
    identity: Identity = Depends(get_identity),
    engine: SettlementEngine = Depends(get_engine),
):
    result = await engine.auto_settle(
        identity.tenant_id, outgoing_id, identity.actor_id, strategy=payload.strategy,
    )
    return AutoSettleResponse(
        outgoing_id=result.outgoing_id,
        strategy=result.strategy,
        outcome=result.outcome.value,
        status=result.status.value,
        total_settled=result.total_settled,
        total_profit=result.total_profit,
        remaining_amount=result.remaining_amount,
        settlements=[SettlementResponse.model_validate(s) for s in result.settlements],
        skipped=[SkippedCandidateResponse.model_validate(s) for s in result.skipped],
    )


@router.get("/history/{remittance_id}", response_model=list[SettlementResponse])
async def settlement_history(
    remittance_id: UUID,
    identity: Identity = Depends(get_identity),
    engine: SettlementEngine = Depends(get_engine),
):
    rows = await engine.settlement_history(identity.tenant_id, remittance_id)
    return [SettlementResponse.model_validate(r) for r in rows]


@router.get("/unsettled-summary", response_model=UnsettledSummaryResponse)
async def unsettled_summary(
    identity: Identity = Depends(get_identity),
    engine: SettlementEngine = Depends(get_engine),
):
    return await engine.unsettled_summary(identity.tenant_id)


@router.get("/profit-summary", response_model=ProfitSummaryResponse)
async def profit_summary(
    start: datetime | None = Query(None),
    end: datetime | None = Query(None),
    identity: Identity = Depends(get_identity),
    engine: SettlementEngine = Depends(get_engine),
):
    return await engine.profit_summary(identity.tenant_id, start=start, end=end)
