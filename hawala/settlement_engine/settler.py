"""
Settlement primitive and the row-locking helpers it shares with
cancellation and payouts.

All functions here run inside a transaction owned by the caller
(see ``retry.run_in_transaction``).  Lock order is always outgoing
before incoming, and several incoming rows are locked in id order.
"""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hawala.core.exceptions import (
    InsufficientFundsError,
    InvalidStateError,
    NotFoundError,
)
from hawala.core.money import require_amount, settlement_profit
from hawala.models.ledger import LedgerEntryType
from hawala.models.remittance import (
    IncomingRemittance,
    IncomingStatus,
    OutgoingRemittance,
    OutgoingStatus,
)
from hawala.models.settlement import Settlement
from hawala.services.audit_service import record_audit
from hawala.settlement_engine.config import DEBT_CURRENCY
from hawala.settlement_engine.ledger import Posting, post_entries

logger = logging.getLogger(__name__)


# ── Row locks ────────────────────────────────────────────────────────────


async def lock_outgoing(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    outgoing_id: uuid.UUID,
) -> OutgoingRemittance:
    """SELECT ... FOR UPDATE one outgoing record scoped to *tenant_id*."""
    result = await session.execute(
        select(OutgoingRemittance)
        .where(
            OutgoingRemittance.id == outgoing_id,
            OutgoingRemittance.tenant_id == tenant_id,
        )
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    outgoing = result.scalar_one_or_none()
    if outgoing is None:
        raise NotFoundError("OutgoingRemittance", outgoing_id)
    return outgoing


async def lock_incoming(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    incoming_id: uuid.UUID,
) -> IncomingRemittance:
    """SELECT ... FOR UPDATE one incoming record scoped to *tenant_id*."""
    result = await session.execute(
        select(IncomingRemittance)
        .where(
            IncomingRemittance.id == incoming_id,
            IncomingRemittance.tenant_id == tenant_id,
        )
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    incoming = result.scalar_one_or_none()
    if incoming is None:
        raise NotFoundError("IncomingRemittance", incoming_id)
    return incoming


async def lock_incoming_many(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    incoming_ids: list[uuid.UUID],
) -> list[IncomingRemittance]:
    """Lock several incoming records in id order; every id must exist."""
    wanted = sorted(set(incoming_ids))
    result = await session.execute(
        select(IncomingRemittance)
        .where(
            IncomingRemittance.id.in_(wanted),
            IncomingRemittance.tenant_id == tenant_id,
        )
        .order_by(IncomingRemittance.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    rows = list(result.scalars().all())
    found = {row.id for row in rows}
    for incoming_id in wanted:
        if incoming_id not in found:
            raise NotFoundError("IncomingRemittance", incoming_id)
    return rows


# ── State guards ─────────────────────────────────────────────────────────


def ensure_outgoing_open(outgoing: OutgoingRemittance) -> None:
    if outgoing.status == OutgoingStatus.CANCELLED:
        raise InvalidStateError(
            f"Outgoing remittance {outgoing.code} is cancelled",
            entity_type="OutgoingRemittance",
            status=outgoing.status.value,
        )
    if outgoing.is_terminal or outgoing.remaining_amount <= 0:
        raise InvalidStateError(
            f"Outgoing remittance {outgoing.code} is already fully settled",
            entity_type="OutgoingRemittance",
            status=outgoing.status.value,
        )


def ensure_incoming_open(incoming: IncomingRemittance) -> None:
    if incoming.status == IncomingStatus.CANCELLED:
        raise InvalidStateError(
            f"Incoming remittance {incoming.code} is cancelled",
            entity_type="IncomingRemittance",
            status=incoming.status.value,
        )
    if incoming.is_terminal or incoming.remaining_amount <= 0:
        raise InvalidStateError(
            f"Incoming remittance {incoming.code} has no funds left to allocate",
            entity_type="IncomingRemittance",
            status=incoming.status.value,
        )


# ── Primitive ────────────────────────────────────────────────────────────


async def settle_pair(
    session: AsyncSession,
    *,
    tenant_id: uuid.UUID,
    outgoing_id: uuid.UUID,
    incoming_id: uuid.UUID,
    amount: Decimal,
    actor_id: uuid.UUID,
    notes: str | None = None,
) -> Settlement:
    """
    Net *amount* of the outgoing debt against the incoming funds.

    Never clamps: asking for more than ``min(outgoing.remaining,
    incoming.remaining)`` raises ``InsufficientFundsError`` and nothing
    changes.
    """
    amount = require_amount(amount, "settle_amount")

    outgoing = await lock_outgoing(session, tenant_id, outgoing_id)
    incoming = await lock_incoming(session, tenant_id, incoming_id)
    ensure_outgoing_open(outgoing)
    ensure_incoming_open(incoming)

    available = min(outgoing.remaining_amount, incoming.remaining_amount)
    if amount > available:
        raise InsufficientFundsError(requested=amount, available=available)

    profit = settlement_profit(amount, outgoing.acquisition_rate, incoming.payout_rate)

    outgoing.apply_settlement(amount, profit)
    incoming.apply_allocation(amount)

    settlement = Settlement(
        tenant_id=tenant_id,
        outgoing_id=outgoing.id,
        incoming_id=incoming.id,
        settled_amount=amount,
        acquisition_rate=outgoing.acquisition_rate,
        payout_rate=incoming.payout_rate,
        profit=profit,
        notes=notes,
        created_by=actor_id,
    )
    session.add(settlement)
    # version checks on both remittances fire here
    await session.flush()

    description = f"Settlement {outgoing.code} <- {incoming.code}"
    await post_entries(
        session,
        tenant_id,
        actor_id,
        [
            Posting(
                branch_id=incoming.branch_id,
                currency=DEBT_CURRENCY,
                amount=-amount,
                entry_type=LedgerEntryType.SETTLEMENT_DEBIT,
                settlement_id=settlement.id,
                remittance_id=incoming.id,
                description=description,
            ),
            Posting(
                branch_id=outgoing.branch_id,
                currency=DEBT_CURRENCY,
                amount=amount,
                entry_type=LedgerEntryType.SETTLEMENT_CREDIT,
                settlement_id=settlement.id,
                remittance_id=outgoing.id,
                description=description,
            ),
        ],
    )

    await record_audit(
        session,
        tenant_id=tenant_id,
        actor_id=actor_id,
        action="settlement.created",
        entity_type="Settlement",
        entity_id=settlement.id,
        description=description,
        details={
            "outgoing_id": outgoing.id,
            "incoming_id": incoming.id,
            "amount": amount,
            "profit": profit,
            "outgoing_status": outgoing.status,
            "incoming_status": incoming.status,
        },
    )

    logger.info(
        "Settled %s of %s against %s (profit %s, outgoing now %s)",
        amount, outgoing.code, incoming.code, profit, outgoing.status.value,
    )
    return settlement
