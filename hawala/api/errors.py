"""
Translate settlement engine exceptions into HTTP responses.

Body shape: ``{"detail": <message>, "code": <machine code>}`` plus any
structured fields the exception carries.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from hawala.core.exceptions import (
    ConflictError,
    InsufficientFundsError,
    InternalError,
    InvalidStateError,
    NotFoundError,
    SettlementError,
    ValidationError,
)

logger = logging.getLogger(__name__)

STATUS_BY_ERROR: dict[type[SettlementError], int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidStateError: status.HTTP_409_CONFLICT,
    ConflictError: status.HTTP_409_CONFLICT,
    InsufficientFundsError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InternalError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _status_for(exc: SettlementError) -> int:
    for error_cls in type(exc).__mro__:
        if error_cls in STATUS_BY_ERROR:
            return STATUS_BY_ERROR[error_cls]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def settlement_error_handler(request: Request, exc: SettlementError) -> JSONResponse:
    body: dict = {"detail": str(exc), "code": exc.code}
    if isinstance(exc, InsufficientFundsError):
        body["requested"] = str(exc.requested)
        body["available"] = str(exc.available)
    elif isinstance(exc, ValidationError) and exc.field:
        body["field"] = exc.field
    elif isinstance(exc, ConflictError):
        body["attempts"] = exc.attempts

    status_code = _status_for(exc)
    if status_code >= 500:
        logger.error("Internal error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content=body)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SettlementError, settlement_error_handler)
