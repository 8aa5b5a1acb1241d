"""
Cash balance service.

Manual ledger entries, balance listing, on-demand recomputation and the
read-only consistency check.  Posting mechanics live in
``hawala.settlement_engine.ledger``.
"""

import logging
import uuid

from sqlalchemy import select

from hawala.core.exceptions import ValidationError
from hawala.core.money import CENT, MAX_AMOUNT, to_decimal
from hawala.models.ledger import CashBalance, LedgerEntry, LedgerEntryType
from hawala.services.audit_service import record_audit
from hawala.settlement_engine.config import MAX_PAGE_SIZE
from hawala.settlement_engine.ledger import (
    BalanceDrift,
    BalanceRefresh,
    Posting,
    find_drift,
    post_entries,
    refresh_balance,
)
from hawala.settlement_engine.retry import run_in_transaction

logger = logging.getLogger(__name__)


def _normalize_currency(currency: str) -> str:
    code = (currency or "").strip().upper()
    if len(code) != 3 or not code.isalpha():
        raise ValidationError(f"Invalid currency code: {currency!r}", field="currency")
    return code


class LedgerService:
    """Branch cash balances backed by the append-only ledger."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory

    @property
    def session_factory(self):
        if self._session_factory is not None:
            return self._session_factory
        from hawala.database import async_session
        return async_session

    async def record_manual_entry(
        self,
        tenant_id: uuid.UUID,
        actor_id: uuid.UUID,
        *,
        branch_id: uuid.UUID,
        currency: str,
        amount,
        description: str,
    ) -> LedgerEntry:
        """Post a signed manual adjustment (cash count correction, deposit, withdrawal)."""
        currency = _normalize_currency(currency)
        amount = to_decimal(amount)
        if amount == 0:
            raise ValidationError("amount must be non-zero", field="amount")
        if abs(amount) > MAX_AMOUNT:
            raise ValidationError(f"amount exceeds {MAX_AMOUNT}", field="amount")
        if amount != amount.quantize(CENT):
            raise ValidationError("amount has more than 2 decimal places", field="amount")
        if not description or not description.strip():
            raise ValidationError("description is required", field="description")

        async def work(session):
            entries = await post_entries(
                session,
                tenant_id,
                actor_id,
                [
                    Posting(
                        branch_id=branch_id,
                        currency=currency,
                        amount=amount,
                        entry_type=LedgerEntryType.MANUAL_ADJUSTMENT,
                        description=description.strip(),
                    )
                ],
            )
            entry = entries[0]
            await session.flush()
            await record_audit(
                session,
                tenant_id=tenant_id,
                actor_id=actor_id,
                action="ledger.manual_entry",
                entity_type="LedgerEntry",
                entity_id=entry.id,
                description=description.strip(),
                details={"branch_id": branch_id, "currency": currency, "amount": amount},
            )
            return entry

        entry = await run_in_transaction(self.session_factory, work, "record_manual_entry")
        logger.info("Manual ledger entry %s %s at branch %s", amount, currency, branch_id)
        return entry

    async def refresh_cash_balance(
        self,
        tenant_id: uuid.UUID,
        branch_id: uuid.UUID,
        currency: str,
    ) -> BalanceRefresh:
        """Recompute one balance from its entries; reports the drift it corrected."""
        currency = _normalize_currency(currency)

        async def work(session):
            return await refresh_balance(session, tenant_id, branch_id, currency)

        return await run_in_transaction(self.session_factory, work, "refresh_cash_balance")

    async def check_consistency(self, tenant_id: uuid.UUID) -> list[BalanceDrift]:
        async with self.session_factory() as session:
            return await find_drift(session, tenant_id)

    async def list_cash_balances(
        self,
        tenant_id: uuid.UUID,
        branch_id: uuid.UUID | None = None,
    ) -> list[CashBalance]:
        stmt = select(CashBalance).where(CashBalance.tenant_id == tenant_id)
        if branch_id is not None:
            stmt = stmt.where(CashBalance.branch_id == branch_id)
        stmt = stmt.order_by(CashBalance.branch_id, CashBalance.currency)
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def list_entries(
        self,
        tenant_id: uuid.UUID,
        branch_id: uuid.UUID,
        currency: str,
        limit: int = 100,
    ) -> list[LedgerEntry]:
        currency = _normalize_currency(currency)
        stmt = (
            select(LedgerEntry)
            .where(
                LedgerEntry.tenant_id == tenant_id,
                LedgerEntry.branch_id == branch_id,
                LedgerEntry.currency == currency,
            )
            .order_by(LedgerEntry.created_at.desc(), LedgerEntry.id)
            .limit(min(limit, MAX_PAGE_SIZE))
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())


ledger_service = LedgerService()
