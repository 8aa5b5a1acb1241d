"""SQLAlchemy ORM models for the hawala ledger."""

from hawala.models.remittance import (
    IncomingRemittance,
    IncomingStatus,
    OutgoingRemittance,
    OutgoingStatus,
)
from hawala.models.settlement import Settlement
from hawala.models.ledger import CashBalance, LedgerEntry, LedgerEntryType
from hawala.models.audit_log import AuditLog

__all__ = [
    "OutgoingRemittance", "OutgoingStatus",
    "IncomingRemittance", "IncomingStatus",
    "Settlement",
    "LedgerEntry", "LedgerEntryType", "CashBalance",
    "AuditLog",
]
