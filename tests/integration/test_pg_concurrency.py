"""
Concurrency tests against real PostgreSQL row locks and a real Redis lock.

Prerequisites: PostgreSQL on PGPORT (default 5433) and Redis on
REDIS_PORT (default 6380).  Skipped otherwise.
"""

import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from hawala.core.exceptions import InsufficientFundsError, InvalidStateError
from hawala.models.remittance import OutgoingStatus
from hawala.models.settlement import Settlement


class TestRowLocks:
    @pytest.mark.asyncio
    async def test_parallel_settles_never_over_settle(
        self, pg_settlement_engine, pg_session_factory, make_pair, tenant_id, actor_id,
    ):
        outgoing, incomings = await make_pair("1000000", "300000", 10)

        results = await asyncio.gather(
            *(
                pg_settlement_engine.settle(
                    tenant_id, outgoing.id, incoming.id, Decimal("300000"), actor_id,
                )
                for incoming in incomings
            ),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, Exception)]
        assert len(results) - len(failures) == 3
        assert all(isinstance(f, (InsufficientFundsError, InvalidStateError)) for f in failures)

        fresh = await pg_settlement_engine.get_outgoing(tenant_id, outgoing.id)
        assert fresh.settled_amount == Decimal("900000.00")
        assert fresh.remaining_amount == Decimal("100000.00")
        assert fresh.status == OutgoingStatus.PARTIAL

        async with pg_session_factory() as session:
            total = await session.scalar(
                select(func.sum(Settlement.settled_amount)).where(
                    Settlement.outgoing_id == outgoing.id
                )
            )
        assert total == fresh.settled_amount

    @pytest.mark.asyncio
    async def test_parallel_auto_settle_runs(
        self, pg_settlement_engine, make_pair, tenant_id, actor_id,
    ):
        outgoing, _ = await make_pair("500000", "100000", 8)

        await asyncio.gather(
            *(pg_settlement_engine.auto_settle(tenant_id, outgoing.id, actor_id) for _ in range(3)),
            return_exceptions=True,
        )

        fresh = await pg_settlement_engine.get_outgoing(tenant_id, outgoing.id)
        assert fresh.status == OutgoingStatus.COMPLETED
        assert fresh.settled_amount == Decimal("500000.00")
        assert fresh.remaining_amount == Decimal("0.00")


class TestReconciliationLock:
    @pytest.mark.asyncio
    async def test_overlapping_sweeps(self, pg_reconciliation, make_pair):
        await make_pair("100000", "100000", 1)

        first, second = await asyncio.gather(
            pg_reconciliation.run_sweep(), pg_reconciliation.run_sweep(),
        )

        reports = [r for r in (first, second) if not r.get("skipped")]
        assert len(reports) >= 1
        assert all(r["drift_count"] == 0 for r in reports)
