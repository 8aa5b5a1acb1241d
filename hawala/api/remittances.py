"""
Remittance register endpoints: create, list, get, cancel, and pay out.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from hawala.api.deps import Identity, get_engine, get_identity, get_payout_service
from hawala.models.remittance import (
    IncomingRemittance,
    IncomingStatus,
    OutgoingRemittance,
    OutgoingStatus,
)
from hawala.schemas.remittance import (
    CancelRequest,
    IncomingCreateRequest,
    IncomingListResponse,
    IncomingResponse,
    OutgoingCreateRequest,
    OutgoingListResponse,
    OutgoingResponse,
    PayIncomingRequest,
)
from hawala.services.payout_service import PayoutService
from hawala.settlement_engine.engine import SettlementEngine

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def build_outgoing_response(outgoing: OutgoingRemittance) -> OutgoingResponse:
    iban = outgoing.get_recipient_iban()
    return OutgoingResponse(
        id=outgoing.id,
        code=outgoing.code,
        branch_id=outgoing.branch_id,
        sender_name=outgoing.sender_name,
        recipient_name=outgoing.recipient_name,
        recipient_bank=outgoing.recipient_bank,
        recipient_iban_last4=iban[-4:] if iban else None,
        amount=outgoing.amount,
        acquisition_rate=outgoing.acquisition_rate,
        equivalent_amount=outgoing.equivalent_amount,
        received_amount=outgoing.received_amount,
        fee_amount=outgoing.fee_amount,
        settled_amount=outgoing.settled_amount,
        remaining_amount=outgoing.remaining_amount,
        total_profit=outgoing.total_profit,
        status=outgoing.status.value,
        version=outgoing.version,
        created_at=outgoing.created_at,
        completed_at=outgoing.completed_at,
        cancelled_at=outgoing.cancelled_at,
        cancellation_reason=outgoing.cancellation_reason,
    )


def build_incoming_response(incoming: IncomingRemittance) -> IncomingResponse:
    return IncomingResponse(
        id=incoming.id,
        code=incoming.code,
        branch_id=incoming.branch_id,
        sender_name=incoming.sender_name,
        recipient_name=incoming.recipient_name,
        amount=incoming.amount,
        payout_rate=incoming.payout_rate,
        equivalent_amount=incoming.equivalent_amount,
        allocated_amount=incoming.allocated_amount,
        remaining_amount=incoming.remaining_amount,
        paid_amount=incoming.paid_amount,
        payment_method=incoming.payment_method,
        payment_reference=incoming.payment_reference,
        status=incoming.status.value,
        version=incoming.version,
        created_at=incoming.created_at,
        paid_at=incoming.paid_at,
        cancelled_at=incoming.cancelled_at,
        cancellation_reason=incoming.cancellation_reason,
    )


# ---------------------------------------------------------------------------
# Outgoing
# ---------------------------------------------------------------------------


@router.post("/outgoing", response_model=OutgoingResponse, status_code=status.HTTP_201_CREATED)
async def create_outgoing(
    payload: OutgoingCreateRequest,
    identity: Identity = Depends(get_identity),
    engine: SettlementEngine = Depends(get_engine),
):
    outgoing = await engine.create_outgoing(
        identity.tenant_id, identity.actor_id, **payload.model_dump(),
    )
    return build_outgoing_response(outgoing)


@router.get("/outgoing", response_model=OutgoingListResponse)
async def list_outgoing(
    status_filter: OutgoingStatus | None = Query(None, alias="status"),
    branch_id: UUID | None = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    identity: Identity = Depends(get_identity),
    engine: SettlementEngine = Depends(get_engine),
):
    rows = await engine.list_outgoing(
        identity.tenant_id, status=status_filter, branch_id=branch_id, limit=limit, offset=offset,
    )
    items = [build_outgoing_response(r) for r in rows]
    return OutgoingListResponse(items=items, count=len(items))


@router.get("/outgoing/{outgoing_id}", response_model=OutgoingResponse)
async def get_outgoing(
    outgoing_id: UUID,
    identity: Identity = Depends(get_identity),
    engine: SettlementEngine = Depends(get_engine),
):
    return build_outgoing_response(await engine.get_outgoing(identity.tenant_id, outgoing_id))


@router.post("/outgoing/{outgoing_id}/cancel", response_model=OutgoingResponse)
async def cancel_outgoing(
    outgoing_id: UUID,
    payload: CancelRequest,
    identity: Identity = Depends(get_identity),
    engine: SettlementEngine = Depends(get_engine),
):
    outgoing = await engine.cancel_outgoing(
        identity.tenant_id, outgoing_id, identity.actor_id, payload.reason,
    )
    return build_outgoing_response(outgoing)


# ---------------------------------------------------------------------------
# Incoming
# ---------------------------------------------------------------------------


@router.post("/incoming", response_model=IncomingResponse, status_code=status.HTTP_201_CREATED)
async def create_incoming(
    payload: IncomingCreateRequest,
    identity: Identity = Depends(get_identity),
    engine: SettlementEngine = Depends(get_engine),
):
    incoming = await engine.create_incoming(
        identity.tenant_id, identity.actor_id, **payload.model_dump(),
    )
    return build_incoming_response(incoming)


@router.get("/incoming", response_model=IncomingListResponse)
async def list_incoming(
    status_filter: IncomingStatus | None = Query(None, alias="status"),
    branch_id: UUID | None = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    identity: Identity = Depends(get_identity),
    engine: SettlementEngine = Depends(get_engine),
):
    rows = await engine.list_incoming(
        identity.tenant_id, status=status_filter, branch_id=branch_id, limit=limit, offset=offset,
    )
    items = [build_incoming_response(r) for r in rows]
    return IncomingListResponse(items=items, count=len(items))


@router.get("/incoming/{incoming_id}", response_model=IncomingResponse)
async def get_incoming(
    incoming_id: UUID,
    identity: Identity = Depends(get_identity),
    engine: SettlementEngine = Depends(get_engine),
):
    return build_incoming_response(await engine.get_incoming(identity.tenant_id, incoming_id))


@router.post("/incoming/{incoming_id}/cancel", response_model=IncomingResponse)
async def cancel_incoming(
    incoming_id: UUID,
    payload: CancelRequest,
    identity: Identity = Depends(get_identity),
    engine: SettlementEngine = Depends(get_engine),
):
    incoming = await engine.cancel_incoming(
        identity.tenant_id, incoming_id, identity.actor_id, payload.reason,
    )
    return build_incoming_response(incoming)


@router.post("/incoming/{incoming_id}/pay", response_model=IncomingResponse)
async def pay_incoming(
    incoming_id: UUID,
    payload: PayIncomingRequest,
    identity: Identity = Depends(get_identity),
    payouts: PayoutService = Depends(get_payout_service),
):
    incoming = await payouts.mark_incoming_paid(
        identity.tenant_id,
        incoming_id,
        identity.actor_id,
        payload.payment_method,
        payload.payment_reference,
    )
    return build_incoming_response(incoming)
