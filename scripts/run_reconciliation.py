"""
Manual reconciliation trigger: runs a single cash balance sweep from the command line.

Usage:
    python scripts/run_reconciliation.py [TENANT_ID]

Useful for checking ledger consistency without waiting for the Celery beat schedule.
"""

import asyncio
import json
import sys
import uuid

from hawala.services.reconciliation_service import reconciliation_service


async def main(tenant_id: uuid.UUID | None = None):
    """Run a single reconciliation sweep and print the report."""
    print("Starting manual reconciliation sweep...")
    result = await reconciliation_service.run_sweep(tenant_id=tenant_id)

    if result.get("skipped"):
        print("Sweep skipped: another sweep holds the lock.")
        return

    print("\n=== Reconciliation Report ===")
    print(json.dumps(result, indent=2, default=str))
    print(f"\nAccounts checked: {result['accounts_checked']}")
    print(f"Balances corrected: {result['drift_count']}")


if __name__ == "__main__":
    tenant = uuid.UUID(sys.argv[1]) if len(sys.argv) > 1 else None
    asyncio.run(main(tenant))
