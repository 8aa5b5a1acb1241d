"""
Reusable FastAPI dependencies.

Authentication happens upstream; the gateway forwards the resolved
tenant and actor as headers.  Service getters exist so tests can point
routes at a throwaway database through ``app.dependency_overrides``.
"""

from dataclasses import dataclass
from uuid import UUID

from fastapi import Header

from hawala.services.ledger_service import LedgerService, ledger_service
from hawala.services.payout_service import PayoutService, payout_service
from hawala.services.reconciliation_service import (
    ReconciliationService,
    reconciliation_service,
)
from hawala.settlement_engine.engine import SettlementEngine, settlement_engine


@dataclass(frozen=True)
class Identity:
    tenant_id: UUID
    actor_id: UUID


async def get_identity(
    x_tenant_id: UUID = Header(..., description="Tenant resolved by the gateway"),
    x_actor_id: UUID = Header(..., description="Acting user resolved by the gateway"),
) -> Identity:
    """Tenant and actor for the current request; 422 if either header is missing or malformed."""
    return Identity(tenant_id=x_tenant_id, actor_id=x_actor_id)


def get_engine() -> SettlementEngine:
    return settlement_engine


def get_ledger_service() -> LedgerService:
    return ledger_service


def get_payout_service() -> PayoutService:
    return payout_service


def get_reconciliation_service() -> ReconciliationService:
    return reconciliation_service
