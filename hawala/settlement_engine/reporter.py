"""
Read-only reports over the registers and settlements.

Builds the unsettled-debt summary (by status and age), per-remittance
settlement history, and profit totals.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from hawala.core.exceptions import NotFoundError
from hawala.core.money import PROFIT_QUANTUM, ZERO, to_decimal
from hawala.models.remittance import (
    OUTGOING_OPEN,
    IncomingRemittance,
    OutgoingRemittance,
)
from hawala.models.settlement import Settlement
from hawala.settlement_engine.config import AGING_BUCKETS


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything stored is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def age_bucket(created_at: datetime, now: datetime) -> str:
    days = (now - as_utc(created_at)).days
    for label, low, high in AGING_BUCKETS:
        if days >= low and (high is None or days <= high):
            return label
    return AGING_BUCKETS[0][0]


async def build_unsettled_summary(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    now: datetime | None = None,
) -> dict:
    """
    Summarize open outgoing debts.

    Groups PENDING/PARTIAL records with money still owed by status and by
    age bucket, each with count, face amount and remaining amount.
    """
    now = now or datetime.now(timezone.utc)
    result = await session.execute(
        select(OutgoingRemittance).where(
            OutgoingRemittance.tenant_id == tenant_id,
            OutgoingRemittance.status.in_(OUTGOING_OPEN),
            OutgoingRemittance.remaining_amount > 0,
        )
    )
    records = list(result.scalars().all())

    def _empty() -> dict:
        return {"count": 0, "total_amount": ZERO, "remaining_amount": ZERO}

    by_status = {status.value: _empty() for status in OUTGOING_OPEN}
    by_age = {label: _empty() for label, _, _ in AGING_BUCKETS}

    for record in records:
        for bucket in (by_status[record.status.value], by_age[age_bucket(record.created_at, now)]):
            bucket["count"] += 1
            bucket["total_amount"] += record.amount
            bucket["remaining_amount"] += record.remaining_amount

    return {
        "generated_at": now.isoformat(),
        "total_count": len(records),
        "total_remaining": sum((r.remaining_amount for r in records), ZERO),
        "by_status": by_status,
        "by_age": by_age,
    }


async def fetch_settlement_history(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    remittance_id: uuid.UUID,
) -> list[Settlement]:
    """Settlements touching *remittance_id* on either side, newest first."""
    exists = await session.scalar(
        select(OutgoingRemittance.id).where(
            OutgoingRemittance.id == remittance_id,
            OutgoingRemittance.tenant_id == tenant_id,
        )
    )
    if exists is None:
        exists = await session.scalar(
            select(IncomingRemittance.id).where(
                IncomingRemittance.id == remittance_id,
                IncomingRemittance.tenant_id == tenant_id,
            )
        )
    if exists is None:
        raise NotFoundError("Remittance", remittance_id)

    result = await session.execute(
        select(Settlement)
        .where(
            Settlement.tenant_id == tenant_id,
            or_(
                Settlement.outgoing_id == remittance_id,
                Settlement.incoming_id == remittance_id,
            ),
        )
        .order_by(Settlement.created_at.desc(), Settlement.id)
    )
    return list(result.scalars().all())


async def build_profit_summary(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    start: datetime | None = None,
    end: datetime | None = None,
) -> dict:
    """Total, count and average profit of settlements in ``[start, end)``."""
    stmt = select(
        func.coalesce(func.sum(Settlement.profit), 0),
        func.count(Settlement.id),
        func.coalesce(func.sum(Settlement.settled_amount), 0),
    ).where(Settlement.tenant_id == tenant_id)
    if start is not None:
        stmt = stmt.where(Settlement.created_at >= start)
    if end is not None:
        stmt = stmt.where(Settlement.created_at < end)

    total, count, volume = (await session.execute(stmt)).one()
    total = to_decimal(total or 0).quantize(PROFIT_QUANTUM, rounding=ROUND_HALF_UP)
    volume = to_decimal(volume or 0).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    average = (total / count).quantize(PROFIT_QUANTUM, rounding=ROUND_HALF_UP) if count else ZERO

    return {
        "total_profit": total,
        "settlement_count": count,
        "average_profit": average,
        "total_settled": volume,
        "start": start.isoformat() if start else None,
        "end": end.isoformat() if end else None,
    }
