"""
Cash balance reconciliation sweep.

Recomputes every cash balance from its ledger entries, one account per
transaction, and reports the drift it corrected.  A distributed Redis
lock keeps two sweeps (Celery beat, manual script) from overlapping;
the loser returns ``{"skipped": True}``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from hawala.settlement_engine.config import (
    RECONCILIATION_LOCK_KEY,
    RECONCILIATION_LOCK_TIMEOUT_SECONDS,
)
from hawala.settlement_engine.ledger import list_accounts, refresh_balance
from hawala.settlement_engine.retry import run_in_transaction

if TYPE_CHECKING:
    import redis.asyncio as aioredis

logger = logging.getLogger(__name__)


class ReconciliationService:
    """Periodic recomputation of all cash balances."""

    def __init__(self, redis=None, session_factory=None):
        """
        Args:
            redis: Async Redis client (defaults to ``hawala.redis_client.redis``).
            session_factory: Async session factory for DB access
                             (defaults to ``hawala.database.async_session``).
        """
        self._redis = redis
        self._session_factory = session_factory

    @property
    def redis(self):
        if self._redis is not None:
            return self._redis
        from hawala.redis_client import redis
        return redis

    @property
    def session_factory(self):
        if self._session_factory is not None:
            return self._session_factory
        from hawala.database import async_session
        return async_session

    # ── distributed lock ────────────────────────────────────────────────

    async def acquire_lock(self) -> "aioredis.lock.Lock | None":
        """Non-blocking lock; ``None`` when another sweep holds it."""
        lock = self.redis.lock(
            RECONCILIATION_LOCK_KEY,
            timeout=RECONCILIATION_LOCK_TIMEOUT_SECONDS,
            blocking=False,
        )
        acquired = await lock.acquire()
        if acquired:
            return lock
        return None

    async def release_lock(self, lock: "aioredis.lock.Lock") -> None:
        try:
            await lock.release()
        except Exception:
            # Lock may have already expired; the sweep result still stands
            logger.warning("Reconciliation lock release failed (may have auto-expired)")

    # ── sweep ───────────────────────────────────────────────────────────

    async def run_sweep(self, tenant_id=None) -> dict:
        """
        Refresh every cash balance (optionally for one tenant).

        Returns ``{"skipped": True}`` if the lock is already held.
        """
        lock = await self.acquire_lock()
        if lock is None:
            logger.warning("Reconciliation sweep skipped, lock held by another process")
            return {"skipped": True}

        try:
            return await self._execute_sweep(tenant_id)
        finally:
            await self.release_lock(lock)

    async def _execute_sweep(self, tenant_id) -> dict:
        started_at = datetime.now(timezone.utc)
        sweep_id = f"RC-{started_at:%Y%m%d-%H%M%S}"

        async with self.session_factory() as session:
            accounts = await list_accounts(session, tenant_id)

        drifted: list[dict] = []
        for account_tenant, branch_id, currency in accounts:

            async def work(session, t=account_tenant, b=branch_id, c=currency):
                return await refresh_balance(session, t, b, c)

            refresh = await run_in_transaction(self.session_factory, work, "reconcile_balance")
            if refresh.drift != 0:
                drifted.append(
                    {
                        "tenant_id": str(refresh.tenant_id),
                        "branch_id": str(refresh.branch_id),
                        "currency": refresh.currency,
                        "previous": str(refresh.previous),
                        "recomputed": str(refresh.recomputed),
                        "drift": str(refresh.drift),
                    }
                )

        completed_at = datetime.now(timezone.utc)
        report = {
            "sweep_id": sweep_id,
            "started_at": started_at.isoformat(),
            "completed_at": completed_at.isoformat(),
            "duration_seconds": (completed_at - started_at).total_seconds(),
            "accounts_checked": len(accounts),
            "drift_count": len(drifted),
            "drifted": drifted,
        }
        logger.info(
            "Reconciliation sweep %s checked %d accounts, %d drifted",
            sweep_id, len(accounts), len(drifted),
        )
        return report


reconciliation_service = ReconciliationService()
