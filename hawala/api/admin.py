"""
Admin endpoints: audit trail and manual reconciliation trigger.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hawala.api.deps import Identity, get_identity, get_reconciliation_service
from hawala.database import get_db
from hawala.schemas.ledger import AuditLogResponse
from hawala.services.audit_service import list_audit_logs
from hawala.services.reconciliation_service import ReconciliationService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/audit-logs", response_model=list[AuditLogResponse])
async def get_audit_logs(
    entity_id: UUID | None = Query(None),
    limit: int = Query(100, ge=1, le=500),
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
):
    rows = await list_audit_logs(db, identity.tenant_id, entity_id=entity_id, limit=limit)
    return [AuditLogResponse.model_validate(r) for r in rows]


@router.post("/reconciliation/trigger")
async def trigger_reconciliation(
    identity: Identity = Depends(get_identity),
    reconciliation: ReconciliationService = Depends(get_reconciliation_service),
):
    """Run a reconciliation sweep for the caller's tenant now."""
    logger.info("Manual reconciliation triggered by %s", identity.actor_id)
    return await reconciliation.run_sweep(tenant_id=identity.tenant_id)
