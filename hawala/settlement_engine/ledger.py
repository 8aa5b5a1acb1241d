"""
Cash ledger posting and balance reconciliation.

Every cash movement is appended as a signed ``LedgerEntry`` and the same
delta is applied to the matching ``CashBalance`` row with a single
``UPDATE ... SET balance = balance + :delta``, so concurrent postings
never lose updates.  Balances are always recomputable from entries.

Postings touching several accounts are applied in (branch, currency)
order so concurrent transactions take balance-row locks in the same
sequence.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hawala.core.money import ZERO, money
from hawala.models.ledger import CashBalance, LedgerEntry, LedgerEntryType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Posting:
    """A ledger entry that has not been written yet."""

    branch_id: uuid.UUID
    currency: str
    amount: Decimal
    entry_type: LedgerEntryType
    settlement_id: uuid.UUID | None = None
    remittance_id: uuid.UUID | None = None
    description: str | None = None


@dataclass(frozen=True)
class BalanceRefresh:
    tenant_id: uuid.UUID
    branch_id: uuid.UUID
    currency: str
    previous: Decimal
    recomputed: Decimal

    @property
    def drift(self) -> Decimal:
        return self.recomputed - self.previous


@dataclass(frozen=True)
class BalanceDrift:
    tenant_id: uuid.UUID
    branch_id: uuid.UUID
    currency: str
    stored: Decimal
    expected: Decimal

    @property
    def drift(self) -> Decimal:
        return self.expected - self.stored


def _account_filter(model, tenant_id, branch_id, currency):
    return (
        model.tenant_id == tenant_id,
        model.branch_id == branch_id,
        model.currency == currency,
    )


# ── Posting ──────────────────────────────────────────────────────────────


async def _apply_delta(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    branch_id: uuid.UUID,
    currency: str,
    delta: Decimal,
) -> None:
    stmt = (
        update(CashBalance)
        .where(*_account_filter(CashBalance, tenant_id, branch_id, currency))
        .values(
            balance=CashBalance.balance + delta,
            updated_at=datetime.now(timezone.utc),
        )
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    if result.rowcount:
        return

    # First movement for this account: create the row inside a savepoint
    # so losing the creation race to another transaction is recoverable.
    try:
        async with session.begin_nested():
            session.add(
                CashBalance(
                    tenant_id=tenant_id,
                    branch_id=branch_id,
                    currency=currency,
                    balance=delta,
                )
            )
    except IntegrityError:
        logger.info(
            "Cash balance %s/%s created concurrently, applying delta to it",
            branch_id, currency,
        )
        await session.execute(stmt)


async def post_entries(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    actor_id: uuid.UUID,
    postings: list[Posting],
) -> list[LedgerEntry]:
    """Append *postings* and move the affected cash balances by the same amounts."""
    entries: list[LedgerEntry] = []
    for posting in sorted(postings, key=lambda p: (str(p.branch_id), p.currency)):
        entry = LedgerEntry(
            tenant_id=tenant_id,
            branch_id=posting.branch_id,
            currency=posting.currency,
            amount=posting.amount,
            entry_type=posting.entry_type,
            settlement_id=posting.settlement_id,
            remittance_id=posting.remittance_id,
            description=posting.description,
            created_by=actor_id,
        )
        session.add(entry)
        await _apply_delta(session, tenant_id, posting.branch_id, posting.currency, posting.amount)
        entries.append(entry)
    return entries


# ── Reconciliation ───────────────────────────────────────────────────────


async def entry_sum(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    branch_id: uuid.UUID,
    currency: str,
) -> Decimal:
    total = await session.scalar(
        select(func.coalesce(func.sum(LedgerEntry.amount), 0)).where(
            *_account_filter(LedgerEntry, tenant_id, branch_id, currency)
        )
    )
    return money(total or ZERO)


async def refresh_balance(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    branch_id: uuid.UUID,
    currency: str,
) -> BalanceRefresh:
    """
    Recompute one cash balance from its entries and store the result.

    Idempotent: a second refresh with no new entries reports zero drift.
    """
    result = await session.execute(
        select(CashBalance)
        .where(*_account_filter(CashBalance, tenant_id, branch_id, currency))
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    row = result.scalar_one_or_none()
    recomputed = await entry_sum(session, tenant_id, branch_id, currency)

    if row is None:
        row = CashBalance(
            tenant_id=tenant_id,
            branch_id=branch_id,
            currency=currency,
            balance=recomputed,
        )
        session.add(row)
        previous = ZERO
    else:
        previous = money(row.balance)
        row.balance = recomputed

    row.last_refreshed_at = datetime.now(timezone.utc)
    refresh = BalanceRefresh(
        tenant_id=tenant_id,
        branch_id=branch_id,
        currency=currency,
        previous=previous,
        recomputed=recomputed,
    )
    if refresh.drift != 0:
        logger.warning(
            "Cash balance drift for tenant %s branch %s %s: stored=%s expected=%s",
            tenant_id, branch_id, currency, previous, recomputed,
        )
    return refresh


async def find_drift(
    session: AsyncSession,
    tenant_id: uuid.UUID | None = None,
) -> list[BalanceDrift]:
    """Read-only comparison of every stored balance against its entry sum."""
    sums_stmt = select(
        LedgerEntry.tenant_id,
        LedgerEntry.branch_id,
        LedgerEntry.currency,
        func.sum(LedgerEntry.amount),
    ).group_by(LedgerEntry.tenant_id, LedgerEntry.branch_id, LedgerEntry.currency)
    balances_stmt = select(CashBalance)
    if tenant_id is not None:
        sums_stmt = sums_stmt.where(LedgerEntry.tenant_id == tenant_id)
        balances_stmt = balances_stmt.where(CashBalance.tenant_id == tenant_id)

    expected = {
        (t, b, c): money(total or ZERO)
        for t, b, c, total in (await session.execute(sums_stmt)).all()
    }
    stored = {
        (row.tenant_id, row.branch_id, row.currency): money(row.balance)
        for row in (await session.execute(balances_stmt)).scalars().all()
    }

    drifts: list[BalanceDrift] = []
    for key in sorted(set(expected) | set(stored), key=lambda k: (str(k[0]), str(k[1]), k[2])):
        want = expected.get(key, ZERO)
        have = stored.get(key, ZERO)
        if want != have:
            drifts.append(
                BalanceDrift(
                    tenant_id=key[0],
                    branch_id=key[1],
                    currency=key[2],
                    stored=have,
                    expected=want,
                )
            )
    return drifts


async def list_accounts(
    session: AsyncSession,
    tenant_id: uuid.UUID | None = None,
) -> list[tuple[uuid.UUID, uuid.UUID, str]]:
    """Every (tenant, branch, currency) that has a balance row or any entry."""
    entry_stmt = select(LedgerEntry.tenant_id, LedgerEntry.branch_id, LedgerEntry.currency).distinct()
    balance_stmt = select(CashBalance.tenant_id, CashBalance.branch_id, CashBalance.currency)
    if tenant_id is not None:
        entry_stmt = entry_stmt.where(LedgerEntry.tenant_id == tenant_id)
        balance_stmt = balance_stmt.where(CashBalance.tenant_id == tenant_id)
    accounts = {tuple(r) for r in (await session.execute(entry_stmt)).all()}
    accounts |= {tuple(r) for r in (await session.execute(balance_stmt)).all()}
    return sorted(accounts, key=lambda k: (str(k[0]), str(k[1]), k[2]))
