"""
Cash balance endpoints: list balances and entries, manual entries,
on-demand refresh, and the consistency check.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from hawala.api.deps import Identity, get_identity, get_ledger_service
from hawala.models.ledger import LedgerEntry
from hawala.schemas.ledger import (
    BalanceDriftResponse,
    BalanceRefreshResponse,
    CashBalanceResponse,
    ConsistencyResponse,
    LedgerEntryResponse,
    ManualEntryRequest,
    RefreshBalanceRequest,
)
from hawala.services.ledger_service import LedgerService

logger = logging.getLogger(__name__)

router = APIRouter()


def build_entry_response(entry: LedgerEntry) -> LedgerEntryResponse:
    return LedgerEntryResponse(
        id=entry.id,
        branch_id=entry.branch_id,
        currency=entry.currency,
        amount=entry.amount,
        entry_type=entry.entry_type.value,
        settlement_id=entry.settlement_id,
        remittance_id=entry.remittance_id,
        description=entry.description,
        created_by=entry.created_by,
        created_at=entry.created_at,
    )


@router.get("/", response_model=list[CashBalanceResponse])
async def list_cash_balances(
    branch_id: UUID | None = Query(None),
    identity: Identity = Depends(get_identity),
    ledger: LedgerService = Depends(get_ledger_service),
):
    rows = await ledger.list_cash_balances(identity.tenant_id, branch_id=branch_id)
    return [CashBalanceResponse.model_validate(r) for r in rows]


@router.get("/entries", response_model=list[LedgerEntryResponse])
async def list_entries(
    branch_id: UUID = Query(...),
    currency: str = Query(..., min_length=3, max_length=3),
    limit: int = Query(100, ge=1, le=500),
    identity: Identity = Depends(get_identity),
    ledger: LedgerService = Depends(get_ledger_service),
):
    rows = await ledger.list_entries(identity.tenant_id, branch_id, currency, limit=limit)
    return [build_entry_response(r) for r in rows]


@router.post("/entries", response_model=LedgerEntryResponse, status_code=status.HTTP_201_CREATED)
async def record_manual_entry(
    payload: ManualEntryRequest,
    identity: Identity = Depends(get_identity),
    ledger: LedgerService = Depends(get_ledger_service),
):
    entry = await ledger.record_manual_entry(
        identity.tenant_id,
        identity.actor_id,
        branch_id=payload.branch_id,
        currency=payload.currency,
        amount=payload.amount,
        description=payload.description,
    )
    return build_entry_response(entry)


@router.post("/refresh", response_model=BalanceRefreshResponse)
async def refresh_cash_balance(
    payload: RefreshBalanceRequest,
    identity: Identity = Depends(get_identity),
    ledger: LedgerService = Depends(get_ledger_service),
):
    refresh = await ledger.refresh_cash_balance(
        identity.tenant_id, payload.branch_id, payload.currency,
    )
    return BalanceRefreshResponse(
        branch_id=refresh.branch_id,
        currency=refresh.currency,
        previous=refresh.previous,
        recomputed=refresh.recomputed,
        drift=refresh.drift,
    )


@router.get("/consistency", response_model=ConsistencyResponse)
async def check_consistency(
    identity: Identity = Depends(get_identity),
    ledger: LedgerService = Depends(get_ledger_service),
):
    drifts = await ledger.check_consistency(identity.tenant_id)
    return ConsistencyResponse(
        consistent=not drifts,
        drifts=[
            BalanceDriftResponse(
                branch_id=d.branch_id,
                currency=d.currency,
                stored=d.stored,
                expected=d.expected,
                drift=d.drift,
            )
            for d in drifts
        ],
    )
