"""
Typed exceptions raised by the settlement engine.

Every class carries a machine-readable ``code`` and the structured data
callers need, so the HTTP layer and auto-settle loop can branch on type
instead of parsing messages.

    SettlementError
    +-- NotFoundError
    +-- InvalidStateError
    +-- InsufficientFundsError
    +-- ValidationError
    +-- ConflictError
    +-- InternalError
"""

from decimal import Decimal


class SettlementError(Exception):
    """Base exception for all settlement engine errors."""

    code: str = "SETTLEMENT_ERROR"


class NotFoundError(SettlementError):
    """Entity missing, or owned by another tenant."""

    code: str = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} not found")


class InvalidStateError(SettlementError):
    """Operation not allowed in the entity's current status."""

    code: str = "INVALID_STATE"

    def __init__(self, message: str, entity_type: str | None = None, status: str | None = None):
        self.entity_type = entity_type
        self.status = status
        super().__init__(message)


class InsufficientFundsError(SettlementError):
    """Requested amount exceeds what is available."""

    code: str = "INSUFFICIENT_FUNDS"

    def __init__(self, requested: Decimal, available: Decimal):
        self.requested = requested
        self.available = available
        super().__init__(
            f"Requested {requested} exceeds available {available}"
        )


class ValidationError(SettlementError):
    """Input rejected before any state was touched."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class ConflictError(SettlementError):
    """Concurrent modification could not be resolved within the retry budget."""

    code: str = "CONFLICT"

    def __init__(self, operation: str, attempts: int):
        self.operation = operation
        self.attempts = attempts
        super().__init__(
            f"{operation} failed after {attempts} attempts due to concurrent updates"
        )


class InternalError(SettlementError):
    """Unexpected persistence failure; the transaction was rolled back."""

    code: str = "INTERNAL"
