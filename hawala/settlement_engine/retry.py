"""
Transaction runner with bounded conflict retries.

Each attempt opens a fresh session and transaction.  Row-lock deadlocks,
serialization failures, SQLite busy errors and stale ``version`` checks
roll back and retry with exponential backoff; once the budget is spent
the caller gets a ``ConflictError``.  Domain errors propagate untouched
and any other database failure becomes an ``InternalError``.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from hawala.core.exceptions import ConflictError, InternalError, SettlementError
from hawala.settlement_engine.config import (
    MAX_RETRIES,
    RETRY_BACKOFF_MS,
    RETRYABLE_SQLSTATES,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = exc.orig
    for attr in ("sqlstate", "pgcode"):
        code = getattr(orig, attr, None)
        if code:
            return code
    cause = getattr(orig, "__cause__", None)
    return getattr(cause, "sqlstate", None)


def is_retryable(exc: Exception) -> bool:
    """True for errors caused by a concurrent writer rather than bad input."""
    if isinstance(exc, StaleDataError):
        return True
    if isinstance(exc, DBAPIError):
        if _sqlstate(exc) in RETRYABLE_SQLSTATES:
            return True
        return "database is locked" in str(exc.orig).lower()
    return False


async def run_in_transaction(
    session_factory,
    work: Callable[[AsyncSession], Awaitable[T]],
    operation: str,
    max_retries: int | None = None,
    backoff_ms: int | None = None,
) -> T:
    """
    Run ``work(session)`` inside ``session.begin()``, retrying on conflicts.

    *max_retries* counts retries after the first attempt.
    """
    retries = MAX_RETRIES if max_retries is None else max_retries
    backoff = RETRY_BACKOFF_MS if backoff_ms is None else backoff_ms
    attempt = 0

    while True:
        attempt += 1
        try:
            async with session_factory() as session:
                async with session.begin():
                    return await work(session)
        except SettlementError:
            raise
        except (DBAPIError, StaleDataError) as exc:
            if not is_retryable(exc):
                raise InternalError(f"{operation} failed: {exc}") from exc
            if attempt > retries:
                logger.error("%s gave up after %d attempts", operation, attempt)
                raise ConflictError(operation, attempt) from exc
            delay = backoff * (2 ** (attempt - 1)) / 1000
            delay += random.uniform(0, delay)
            logger.warning(
                "%s conflicted (attempt %d/%d), retrying in %.3fs: %s",
                operation, attempt, retries + 1, delay, exc.__class__.__name__,
            )
            await asyncio.sleep(delay)
        except SQLAlchemyError as exc:
            raise InternalError(f"{operation} failed: {exc}") from exc
