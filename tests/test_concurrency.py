"""
Concurrent settlements against shared records.

SQLite serializes writers with BEGIN IMMEDIATE, so these exercise the
lock/retry path end to end; the PostgreSQL variants live in
tests/integration.
"""

import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from hawala.core.exceptions import InsufficientFundsError, InvalidStateError
from hawala.models.ledger import LedgerEntry
from hawala.models.remittance import OutgoingStatus
from hawala.models.settlement import Settlement


class TestConcurrentSettlement:
    @pytest.mark.asyncio
    async def test_never_over_settles_outgoing(
        self, engine, make_outgoing, make_incoming, tenant_id, actor_id, session_factory,
    ):
        outgoing = await make_outgoing(amount="1000000")
        incomings = [await make_incoming(amount="300000") for _ in range(10)]

        results = await asyncio.gather(
            *(
                engine.settle(tenant_id, outgoing.id, incoming.id, Decimal("300000"), actor_id)
                for incoming in incomings
            ),
            return_exceptions=True,
        )

        succeeded = [r for r in results if not isinstance(r, Exception)]
        failed = [r for r in results if isinstance(r, Exception)]
        assert len(succeeded) == 3
        assert all(isinstance(e, (InsufficientFundsError, InvalidStateError)) for e in failed)

        outgoing = await engine.get_outgoing(tenant_id, outgoing.id)
        assert outgoing.settled_amount == Decimal("900000")
        assert outgoing.remaining_amount == Decimal("100000")
        assert outgoing.status == OutgoingStatus.PARTIAL

        async with session_factory() as session:
            total = await session.scalar(
                select(func.coalesce(func.sum(Settlement.settled_amount), 0))
            )
            entries = await session.scalar(
                select(func.count(LedgerEntry.id)).where(LedgerEntry.settlement_id.is_not(None))
            )
        assert Decimal(str(total)) == Decimal("900000")
        assert entries == 2 * len(succeeded)

    @pytest.mark.asyncio
    async def test_never_over_allocates_incoming(
        self, engine, make_outgoing, make_incoming, tenant_id, actor_id,
    ):
        incoming = await make_incoming(amount="500000")
        outgoings = [await make_outgoing(amount="200000") for _ in range(5)]

        results = await asyncio.gather(
            *(
                engine.settle(tenant_id, outgoing.id, incoming.id, Decimal("200000"), actor_id)
                for outgoing in outgoings
            ),
            return_exceptions=True,
        )

        succeeded = [r for r in results if not isinstance(r, Exception)]
        assert len(succeeded) == 2
        assert all(
            isinstance(r, (InsufficientFundsError, InvalidStateError))
            for r in results if isinstance(r, Exception)
        )

        incoming = await engine.get_incoming(tenant_id, incoming.id)
        assert incoming.allocated_amount == Decimal("400000")
        assert incoming.remaining_amount == Decimal("100000")

    @pytest.mark.asyncio
    async def test_settle_races_cancel(self, engine, make_outgoing, make_incoming, tenant_id, actor_id):
        outgoing = await make_outgoing(amount="1000000")
        incoming = await make_incoming(amount="400000")

        settled, cancelled = await asyncio.gather(
            engine.settle(tenant_id, outgoing.id, incoming.id, Decimal("1000"), actor_id),
            engine.cancel_outgoing(tenant_id, outgoing.id, actor_id, "customer refund"),
            return_exceptions=True,
        )

        # exactly one side wins
        assert isinstance(settled, InvalidStateError) != isinstance(cancelled, InvalidStateError)
        outgoing = await engine.get_outgoing(tenant_id, outgoing.id)
        if isinstance(cancelled, InvalidStateError):
            assert outgoing.status == OutgoingStatus.PARTIAL
        else:
            assert outgoing.status == OutgoingStatus.CANCELLED
            assert outgoing.settled_amount == Decimal("0")
