"""
Settlement engine configuration constants.

Retry budget, lock keys, and reporting buckets used across the engine,
payout and reconciliation code.
"""

from hawala.config import settings

# Currencies for ledger postings
HOME_CURRENCY = settings.HOME_CURRENCY
DEBT_CURRENCY = settings.DEBT_CURRENCY

# Conflict retries for a single settlement/cancellation/payout transaction
MAX_RETRIES = settings.SETTLEMENT_MAX_RETRIES
RETRY_BACKOFF_MS = settings.SETTLEMENT_RETRY_BACKOFF_MS

# PostgreSQL serialization_failure / deadlock_detected
RETRYABLE_SQLSTATES = frozenset({"40001", "40P01"})

# Redis lock guarding the reconciliation sweep
RECONCILIATION_LOCK_KEY = "reconciliation:lock"
RECONCILIATION_LOCK_TIMEOUT_SECONDS = settings.RECONCILIATION_LOCK_TIMEOUT_SECONDS

# Aging buckets for unsettled outgoing debts: (label, min_days, max_days)
AGING_BUCKETS: tuple[tuple[str, int, int | None], ...] = (
    ("0-7 days", 0, 7),
    ("8-14 days", 8, 14),
    ("15-30 days", 15, 30),
    ("30+ days", 31, None),
)

# Upper bound on list endpoints
MAX_PAGE_SIZE = 500
