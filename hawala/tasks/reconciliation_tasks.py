"""
Reconciliation Celery tasks.

Recomputes every cash balance from the ledger on the schedule defined
by RECONCILIATION_INTERVAL_SECONDS.
"""

import asyncio
import logging

from hawala.tasks.celery_app import celery_app
from hawala.services.reconciliation_service import reconciliation_service

logger = logging.getLogger(__name__)


@celery_app.task(name="hawala.tasks.reconciliation_tasks.reconcile_cash_balances")
def reconcile_cash_balances():
    """
    Execute a reconciliation sweep.

    Celery tasks are synchronous, so we run the async sweep
    in an event loop.
    """
    logger.info("Starting scheduled reconciliation sweep")
    loop = asyncio.new_event_loop()
    try:
        result = loop.run_until_complete(reconciliation_service.run_sweep())
        if result.get("skipped"):
            return result
        if result["drift_count"]:
            logger.warning(
                "Reconciliation sweep %s corrected %d drifted balances",
                result["sweep_id"],
                result["drift_count"],
            )
        return result
    except Exception:
        logger.exception("Reconciliation sweep failed")
        raise
    finally:
        loop.close()
