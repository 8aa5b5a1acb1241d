"""Tests for single and batch payouts of incoming remittances."""

import uuid
from decimal import Decimal

import pytest
from sqlalchemy import select

from hawala.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from hawala.models.ledger import LedgerEntry, LedgerEntryType
from hawala.models.remittance import IncomingStatus
from hawala.settlement_engine.strategy import SettlementStrategy


class TestMarkPaid:
    @pytest.mark.asyncio
    async def test_completed_incoming_paid(
        self, engine, payouts, make_outgoing, make_incoming, tenant_id, actor_id,
        other_branch_id, session_factory,
    ):
        outgoing = await make_outgoing(amount="1000000")
        incoming = await make_incoming(amount="400000", rate="84000")
        await engine.settle(tenant_id, outgoing.id, incoming.id, Decimal("400000"), actor_id)

        paid = await payouts.mark_incoming_paid(
            tenant_id, incoming.id, actor_id, "bank_transfer", payment_reference="TRX-1",
        )

        assert paid.status == IncomingStatus.PAID
        assert paid.paid_amount == Decimal("4.76")
        assert paid.paid_by == actor_id
        assert paid.payment_reference == "TRX-1"

        async with session_factory() as session:
            entry = await session.scalar(
                select(LedgerEntry).where(
                    LedgerEntry.remittance_id == incoming.id,
                    LedgerEntry.entry_type == LedgerEntryType.PAYOUT,
                )
            )
        assert entry.amount == Decimal("-4.76")
        assert entry.branch_id == other_branch_id
        assert entry.currency == "CAD"

    @pytest.mark.asyncio
    async def test_partial_incoming_rejected(
        self, engine, payouts, make_outgoing, make_incoming, tenant_id, actor_id,
    ):
        outgoing = await make_outgoing(amount="1000000")
        incoming = await make_incoming(amount="400000")
        await engine.settle(tenant_id, outgoing.id, incoming.id, Decimal("100000"), actor_id)

        with pytest.raises(InvalidStateError):
            await payouts.mark_incoming_paid(tenant_id, incoming.id, actor_id, "cash")

    @pytest.mark.asyncio
    async def test_paid_twice_rejected(
        self, engine, payouts, make_outgoing, make_incoming, tenant_id, actor_id,
    ):
        outgoing = await make_outgoing(amount="1000000")
        incoming = await make_incoming(amount="400000")
        await engine.settle(tenant_id, outgoing.id, incoming.id, Decimal("400000"), actor_id)
        await payouts.mark_incoming_paid(tenant_id, incoming.id, actor_id, "cash")

        with pytest.raises(InvalidStateError):
            await payouts.mark_incoming_paid(tenant_id, incoming.id, actor_id, "cash")

    @pytest.mark.asyncio
    async def test_payment_method_required(self, payouts, make_incoming, tenant_id, actor_id):
        incoming = await make_incoming()
        with pytest.raises(ValidationError):
            await payouts.mark_incoming_paid(tenant_id, incoming.id, actor_id, " ")


class TestBatchPayout:
    @pytest.mark.asyncio
    async def test_preview_fifo(self, payouts, make_incoming, tenant_id):
        first = await make_incoming(amount="400000", rate="84000")   # owes 4.76
        second = await make_incoming(amount="700000", rate="86000")  # owes 8.14

        plan = await payouts.preview_batch_payout(tenant_id, [second.id, first.id], "5.00")

        assert [(a.incoming_id, a.amount) for a in plan.allocations] == [
            (first.id, Decimal("4.76")),
            (second.id, Decimal("0.24")),
        ]
        assert plan.unallocated == Decimal("0")

    @pytest.mark.asyncio
    async def test_preview_writes_nothing(self, engine, payouts, make_incoming, tenant_id):
        incoming = await make_incoming()
        await payouts.preview_batch_payout(tenant_id, [incoming.id], "1.00")
        assert (await engine.get_incoming(tenant_id, incoming.id)).paid_amount == Decimal("0")

    @pytest.mark.asyncio
    async def test_process_best_rate_with_overpayment(
        self, engine, ledger, payouts, make_incoming, tenant_id, actor_id, other_branch_id,
    ):
        low = await make_incoming(amount="400000", rate="84000")
        high = await make_incoming(amount="700000", rate="86000")

        plan = await payouts.process_batch_payout(
            tenant_id, actor_id, [low.id, high.id], "20.00",
            strategy=SettlementStrategy.BEST_RATE,
        )

        assert [a.incoming_id for a in plan.allocations] == [high.id, low.id]
        assert plan.total_allocated == Decimal("12.90")
        assert plan.unallocated == Decimal("7.10")

        high = await engine.get_incoming(tenant_id, high.id)
        assert high.paid_amount == Decimal("8.14")
        assert high.status == IncomingStatus.PENDING

        balances = await ledger.list_cash_balances(tenant_id, branch_id=other_branch_id)
        assert [(b.currency, b.balance) for b in balances] == [("CAD", Decimal("-12.90"))]

    @pytest.mark.asyncio
    async def test_cancelled_records_excluded(self, engine, payouts, make_incoming, tenant_id, actor_id):
        cancelled = await make_incoming()
        open_one = await make_incoming()
        await engine.cancel_incoming(tenant_id, cancelled.id, actor_id, "duplicate")

        plan = await payouts.process_batch_payout(tenant_id, actor_id, [cancelled.id, open_one.id], "1.00")
        assert [a.incoming_id for a in plan.allocations] == [open_one.id]

    @pytest.mark.asyncio
    async def test_unknown_ids(self, payouts, make_incoming, tenant_id, actor_id):
        incoming = await make_incoming()
        with pytest.raises(NotFoundError):
            await payouts.preview_batch_payout(tenant_id, [incoming.id, uuid.uuid4()], "1.00")
        with pytest.raises(NotFoundError):
            await payouts.process_batch_payout(tenant_id, actor_id, [uuid.uuid4()], "1.00")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("ids,total", [([], "1.00"), (None, "0"), (None, "1.001")])
    async def test_batch_validation(self, payouts, make_incoming, tenant_id, ids, total):
        incoming = await make_incoming()
        with pytest.raises(ValidationError):
            await payouts.preview_batch_payout(
                tenant_id, [incoming.id] if ids is None else ids, total,
            )
