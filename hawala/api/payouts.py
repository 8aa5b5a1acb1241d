"""
Batch payout endpoints: preview an allocation, then apply it.
"""

from fastapi import APIRouter, Depends

from hawala.api.deps import Identity, get_identity, get_payout_service
from hawala.schemas.ledger import (
    BatchPayoutRequest,
    PayoutAllocationResponse,
    PayoutPlanResponse,
)
from hawala.services.payout_service import PayoutService
from hawala.settlement_engine.strategy import PayoutPlan

router = APIRouter()


def build_plan_response(plan: PayoutPlan) -> PayoutPlanResponse:
    return PayoutPlanResponse(
        allocations=[PayoutAllocationResponse.model_validate(a) for a in plan.allocations],
        total_amount=plan.total_amount,
        total_allocated=plan.total_allocated,
        unallocated=plan.unallocated,
    )


@router.post("/batch/preview", response_model=PayoutPlanResponse)
async def preview_batch_payout(
    payload: BatchPayoutRequest,
    identity: Identity = Depends(get_identity),
    payouts: PayoutService = Depends(get_payout_service),
):
    plan = await payouts.preview_batch_payout(
        identity.tenant_id, payload.incoming_ids, payload.total_amount, payload.strategy,
    )
    return build_plan_response(plan)


@router.post("/batch", response_model=PayoutPlanResponse)
async def process_batch_payout(
    payload: BatchPayoutRequest,
    identity: Identity = Depends(get_identity),
    payouts: PayoutService = Depends(get_payout_service),
):
    plan = await payouts.process_batch_payout(
        identity.tenant_id,
        identity.actor_id,
        payload.incoming_ids,
        payload.total_amount,
        strategy=payload.strategy,
        payment_method=payload.payment_method,
        payment_reference=payload.payment_reference,
    )
    return build_plan_response(plan)
