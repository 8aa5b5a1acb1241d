"""
Payouts to local recipients of incoming remittances.

- mark a fully allocated incoming record as PAID
- spread one batch payment across several payouts in strategy order
  (preview is pure, processing re-plans under row locks)

Every payout posts a negative home-currency ledger entry at the
incoming record's branch.
"""

import logging
import uuid
from decimal import Decimal

from sqlalchemy import select

from hawala.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from hawala.core.money import require_amount
from hawala.models.ledger import LedgerEntryType
from hawala.models.remittance import IncomingRemittance, IncomingStatus
from hawala.services.audit_service import record_audit
from hawala.settlement_engine.config import HOME_CURRENCY
from hawala.settlement_engine.ledger import Posting, post_entries
from hawala.settlement_engine.retry import run_in_transaction
from hawala.settlement_engine.settler import lock_incoming, lock_incoming_many
from hawala.settlement_engine.strategy import (
    PayoutPlan,
    SettlementStrategy,
    allocate_payment,
)

logger = logging.getLogger(__name__)


def _payable(rows: list[IncomingRemittance]) -> list[IncomingRemittance]:
    return [
        row for row in rows
        if row.status != IncomingStatus.CANCELLED and row.unpaid_amount > 0
    ]


def _validate_batch(incoming_ids: list[uuid.UUID], total_amount) -> Decimal:
    if not incoming_ids:
        raise ValidationError("incoming_ids must not be empty", field="incoming_ids")
    return require_amount(total_amount, "total_amount")


class PayoutService:
    """Records cash handed to local recipients."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory

    @property
    def session_factory(self):
        if self._session_factory is not None:
            return self._session_factory
        from hawala.database import async_session
        return async_session

    async def mark_incoming_paid(
        self,
        tenant_id: uuid.UUID,
        incoming_id: uuid.UUID,
        actor_id: uuid.UUID,
        payment_method: str,
        payment_reference: str | None = None,
    ) -> IncomingRemittance:
        """
        Pay out the rest of a fully allocated incoming record.

        Only COMPLETED records (remaining == 0) qualify.
        """
        if not payment_method or not payment_method.strip():
            raise ValidationError("payment_method is required", field="payment_method")

        async def work(session):
            incoming = await lock_incoming(session, tenant_id, incoming_id)
            if incoming.status != IncomingStatus.COMPLETED or incoming.remaining_amount != 0:
                raise InvalidStateError(
                    f"Incoming remittance {incoming.code} must be fully allocated "
                    f"before payout (status {incoming.status.value})",
                    entity_type="IncomingRemittance",
                    status=incoming.status.value,
                )
            amount = incoming.unpaid_amount
            incoming.payment_method = payment_method.strip()
            incoming.payment_reference = payment_reference
            incoming.apply_payment(amount, actor_id)
            await session.flush()

            if amount > 0:
                await post_entries(
                    session,
                    tenant_id,
                    actor_id,
                    [
                        Posting(
                            branch_id=incoming.branch_id,
                            currency=HOME_CURRENCY,
                            amount=-amount,
                            entry_type=LedgerEntryType.PAYOUT,
                            remittance_id=incoming.id,
                            description=f"Payout for {incoming.code}",
                        )
                    ],
                )
            await record_audit(
                session,
                tenant_id=tenant_id,
                actor_id=actor_id,
                action="incoming.paid",
                entity_type="IncomingRemittance",
                entity_id=incoming.id,
                description=f"Paid {amount} {HOME_CURRENCY} via {incoming.payment_method}",
                details={"amount": amount, "payment_reference": payment_reference},
            )
            return incoming

        incoming = await run_in_transaction(self.session_factory, work, "mark_incoming_paid")
        logger.info("Incoming %s marked paid", incoming.code)
        return incoming

    async def preview_batch_payout(
        self,
        tenant_id: uuid.UUID,
        incoming_ids: list[uuid.UUID],
        total_amount,
        strategy: SettlementStrategy = SettlementStrategy.FIFO,
    ) -> PayoutPlan:
        """Show how *total_amount* would be split; nothing is written."""
        total_amount = _validate_batch(incoming_ids, total_amount)
        wanted = set(incoming_ids)

        async with self.session_factory() as session:
            result = await session.execute(
                select(IncomingRemittance).where(
                    IncomingRemittance.id.in_(wanted),
                    IncomingRemittance.tenant_id == tenant_id,
                )
            )
            rows = list(result.scalars().all())

        missing = wanted - {row.id for row in rows}
        if missing:
            raise NotFoundError("IncomingRemittance", sorted(missing)[0])
        return allocate_payment(total_amount, _payable(rows), SettlementStrategy(strategy))

    async def process_batch_payout(
        self,
        tenant_id: uuid.UUID,
        actor_id: uuid.UUID,
        incoming_ids: list[uuid.UUID],
        total_amount,
        strategy: SettlementStrategy = SettlementStrategy.FIFO,
        payment_method: str = "cash",
        payment_reference: str | None = None,
    ) -> PayoutPlan:
        """Apply a batch payment under row locks; returns the plan actually applied."""
        total_amount = _validate_batch(incoming_ids, total_amount)
        strategy = SettlementStrategy(strategy)

        async def work(session):
            rows = await lock_incoming_many(session, tenant_id, incoming_ids)
            plan = allocate_payment(total_amount, _payable(rows), strategy)
            by_id = {row.id: row for row in rows}

            postings = []
            for allocation in plan.allocations:
                incoming = by_id[allocation.incoming_id]
                incoming.payment_method = payment_method
                incoming.payment_reference = payment_reference
                incoming.apply_payment(allocation.amount, actor_id)
                postings.append(
                    Posting(
                        branch_id=incoming.branch_id,
                        currency=HOME_CURRENCY,
                        amount=-allocation.amount,
                        entry_type=LedgerEntryType.PAYOUT,
                        remittance_id=incoming.id,
                        description=f"Batch payout for {incoming.code}",
                    )
                )
            await session.flush()
            await post_entries(session, tenant_id, actor_id, postings)

            for allocation in plan.allocations:
                await record_audit(
                    session,
                    tenant_id=tenant_id,
                    actor_id=actor_id,
                    action="incoming.batch_payout",
                    entity_type="IncomingRemittance",
                    entity_id=allocation.incoming_id,
                    details={
                        "amount": allocation.amount,
                        "strategy": strategy,
                        "payment_reference": payment_reference,
                    },
                )
            return plan

        plan = await run_in_transaction(self.session_factory, work, "process_batch_payout")
        logger.info(
            "Batch payout of %s across %d records (%s unallocated)",
            plan.total_allocated, len(plan.allocations), plan.unallocated,
        )
        return plan


payout_service = PayoutService()
