"""
Settlement engine orchestrator.

Owns the remittance registers and everything that moves money between
them: creating outgoing/incoming records, settling one pair, suggesting
and auto-applying settlements under a strategy, cancellation, and the
read-side reports.  Every mutation runs in its own transaction through
``run_in_transaction`` so conflicts are retried and surfaced uniformly.
"""

from __future__ import annotations

import enum
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select

from hawala.core.exceptions import (
    InsufficientFundsError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from hawala.core.money import ZERO, money, require_amount, require_rate
from hawala.models.ledger import LedgerEntryType
from hawala.models.remittance import (
    INCOMING_OPEN,
    IncomingRemittance,
    IncomingStatus,
    OutgoingRemittance,
    OutgoingStatus,
)
from hawala.models.settlement import Settlement
from hawala.services.audit_service import record_audit
from hawala.settlement_engine.config import HOME_CURRENCY, MAX_PAGE_SIZE
from hawala.settlement_engine.ledger import Posting, post_entries
from hawala.settlement_engine.reporter import (
    build_profit_summary,
    build_unsettled_summary,
    fetch_settlement_history,
)
from hawala.settlement_engine.retry import run_in_transaction
from hawala.settlement_engine.settler import (
    ensure_outgoing_open,
    lock_incoming,
    lock_outgoing,
    settle_pair,
)
from hawala.settlement_engine.strategy import (
    SettlementStrategy,
    Suggestion,
    build_suggestions,
)

logger = logging.getLogger(__name__)


class AutoSettleOutcome(str, enum.Enum):
    ALL_SETTLED = "all_settled"
    PARTIALLY_SETTLED = "partially_settled"
    NO_FUNDS_AVAILABLE = "no_funds_available"


@dataclass(frozen=True)
class SkippedCandidate:
    incoming_id: uuid.UUID
    reason: str


@dataclass
class AutoSettleResult:
    outgoing_id: uuid.UUID
    strategy: SettlementStrategy
    outcome: AutoSettleOutcome
    status: OutgoingStatus
    remaining_amount: Decimal
    settlements: list[Settlement] = field(default_factory=list)
    skipped: list[SkippedCandidate] = field(default_factory=list)

    @property
    def total_settled(self) -> Decimal:
        return sum((s.settled_amount for s in self.settlements), ZERO)

    @property
    def total_profit(self) -> Decimal:
        return sum((s.profit for s in self.settlements), ZERO)


def _require_text(value: str | None, field_name: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{field_name} is required", field=field_name)
    return value.strip()


class SettlementEngine:
    """Registers, settlement primitive, strategies and auto-settlement."""

    def __init__(self, session_factory=None, max_retries: int | None = None):
        """
        Args:
            session_factory: Async session factory for DB access
                             (defaults to ``hawala.database.async_session``).
            max_retries: Conflict retries per transaction
                         (defaults to ``SETTLEMENT_MAX_RETRIES``).
        """
        self._session_factory = session_factory
        self.max_retries = max_retries

    @property
    def session_factory(self):
        if self._session_factory is not None:
            return self._session_factory
        from hawala.database import async_session
        return async_session

    async def _transaction(self, work, operation: str):
        return await run_in_transaction(
            self.session_factory, work, operation, max_retries=self.max_retries,
        )

    # ── Registers ────────────────────────────────────────────────────────

    async def create_outgoing(
        self,
        tenant_id: uuid.UUID,
        actor_id: uuid.UUID,
        *,
        branch_id: uuid.UUID,
        sender_name: str,
        recipient_name: str,
        amount,
        acquisition_rate,
        received_amount=None,
        fee_amount=0,
        sender_phone: str | None = None,
        recipient_phone: str | None = None,
        recipient_bank: str | None = None,
        recipient_iban: str | None = None,
        notes: str | None = None,
    ) -> OutgoingRemittance:
        """
        Register a debt owed abroad.

        The customer's home-currency payment (``received_amount``, which
        defaults to the equivalent plus fee) is posted to the branch cash
        balance in the same transaction.
        """
        amount = require_amount(amount)
        acquisition_rate = require_rate(acquisition_rate, "acquisition_rate")
        fee_amount = require_amount(fee_amount, "fee_amount", allow_zero=True)
        equivalent = money(amount / acquisition_rate)
        if received_amount is None:
            received_amount = equivalent + fee_amount
        received_amount = require_amount(received_amount, "received_amount", allow_zero=True)
        sender_name = _require_text(sender_name, "sender_name")
        recipient_name = _require_text(recipient_name, "recipient_name")

        async def work(session):
            outgoing = OutgoingRemittance(
                tenant_id=tenant_id,
                branch_id=branch_id,
                sender_name=sender_name,
                sender_phone=sender_phone,
                recipient_name=recipient_name,
                recipient_phone=recipient_phone,
                recipient_bank=recipient_bank,
                amount=amount,
                acquisition_rate=acquisition_rate,
                equivalent_amount=equivalent,
                received_amount=received_amount,
                fee_amount=fee_amount,
                notes=notes,
                created_by=actor_id,
            )
            if recipient_iban:
                outgoing.set_recipient_iban(recipient_iban)
            session.add(outgoing)
            await session.flush()

            if received_amount > 0:
                await post_entries(
                    session,
                    tenant_id,
                    actor_id,
                    [
                        Posting(
                            branch_id=branch_id,
                            currency=HOME_CURRENCY,
                            amount=received_amount,
                            entry_type=LedgerEntryType.OUTGOING_RECEIPT,
                            remittance_id=outgoing.id,
                            description=f"Payment received for {outgoing.code}",
                        )
                    ],
                )
            await record_audit(
                session,
                tenant_id=tenant_id,
                actor_id=actor_id,
                action="outgoing.created",
                entity_type="OutgoingRemittance",
                entity_id=outgoing.id,
                description=f"Created {outgoing.code}",
                details={"amount": amount, "acquisition_rate": acquisition_rate},
            )
            return outgoing

        outgoing = await self._transaction(work, "create_outgoing")
        logger.info("Created outgoing %s for %s", outgoing.code, outgoing.amount)
        return outgoing

    async def create_incoming(
        self,
        tenant_id: uuid.UUID,
        actor_id: uuid.UUID,
        *,
        branch_id: uuid.UUID,
        sender_name: str,
        recipient_name: str,
        amount,
        payout_rate,
        sender_phone: str | None = None,
        sender_bank: str | None = None,
        sender_iban: str | None = None,
        recipient_phone: str | None = None,
        notes: str | None = None,
    ) -> IncomingRemittance:
        """Register funds collected abroad for a local recipient."""
        amount = require_amount(amount)
        payout_rate = require_rate(payout_rate, "payout_rate")
        sender_name = _require_text(sender_name, "sender_name")
        recipient_name = _require_text(recipient_name, "recipient_name")

        async def work(session):
            incoming = IncomingRemittance(
                tenant_id=tenant_id,
                branch_id=branch_id,
                sender_name=sender_name,
                sender_phone=sender_phone,
                sender_bank=sender_bank,
                recipient_name=recipient_name,
                recipient_phone=recipient_phone,
                amount=amount,
                payout_rate=payout_rate,
                equivalent_amount=money(amount / payout_rate),
                notes=notes,
                created_by=actor_id,
            )
            if sender_iban:
                incoming.set_sender_iban(sender_iban)
            session.add(incoming)
            await session.flush()
            await record_audit(
                session,
                tenant_id=tenant_id,
                actor_id=actor_id,
                action="incoming.created",
                entity_type="IncomingRemittance",
                entity_id=incoming.id,
                description=f"Created {incoming.code}",
                details={"amount": amount, "payout_rate": payout_rate},
            )
            return incoming

        incoming = await self._transaction(work, "create_incoming")
        logger.info("Created incoming %s for %s", incoming.code, incoming.amount)
        return incoming

    async def get_outgoing(self, tenant_id: uuid.UUID, outgoing_id: uuid.UUID) -> OutgoingRemittance:
        async with self.session_factory() as session:
            outgoing = await session.scalar(
                select(OutgoingRemittance).where(
                    OutgoingRemittance.id == outgoing_id,
                    OutgoingRemittance.tenant_id == tenant_id,
                )
            )
        if outgoing is None:
            raise NotFoundError("OutgoingRemittance", outgoing_id)
        return outgoing

    async def get_incoming(self, tenant_id: uuid.UUID, incoming_id: uuid.UUID) -> IncomingRemittance:
        async with self.session_factory() as session:
            incoming = await session.scalar(
                select(IncomingRemittance).where(
                    IncomingRemittance.id == incoming_id,
                    IncomingRemittance.tenant_id == tenant_id,
                )
            )
        if incoming is None:
            raise NotFoundError("IncomingRemittance", incoming_id)
        return incoming

    async def list_outgoing(
        self,
        tenant_id: uuid.UUID,
        status: OutgoingStatus | None = None,
        branch_id: uuid.UUID | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[OutgoingRemittance]:
        stmt = select(OutgoingRemittance).where(OutgoingRemittance.tenant_id == tenant_id)
        if status is not None:
            stmt = stmt.where(OutgoingRemittance.status == status)
        if branch_id is not None:
            stmt = stmt.where(OutgoingRemittance.branch_id == branch_id)
        stmt = (
            stmt.order_by(OutgoingRemittance.created_at.desc(), OutgoingRemittance.id)
            .offset(offset)
            .limit(min(limit, MAX_PAGE_SIZE))
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def list_incoming(
        self,
        tenant_id: uuid.UUID,
        status: IncomingStatus | None = None,
        branch_id: uuid.UUID | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[IncomingRemittance]:
        stmt = select(IncomingRemittance).where(IncomingRemittance.tenant_id == tenant_id)
        if status is not None:
            stmt = stmt.where(IncomingRemittance.status == status)
        if branch_id is not None:
            stmt = stmt.where(IncomingRemittance.branch_id == branch_id)
        stmt = (
            stmt.order_by(IncomingRemittance.created_at.desc(), IncomingRemittance.id)
            .offset(offset)
            .limit(min(limit, MAX_PAGE_SIZE))
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    # ── Settlement ───────────────────────────────────────────────────────

    async def settle(
        self,
        tenant_id: uuid.UUID,
        outgoing_id: uuid.UUID,
        incoming_id: uuid.UUID,
        amount,
        actor_id: uuid.UUID,
        notes: str | None = None,
    ) -> Settlement:
        """Atomically net *amount* of one outgoing debt against one incoming record."""
        amount = require_amount(amount, "settle_amount")

        async def work(session):
            return await settle_pair(
                session,
                tenant_id=tenant_id,
                outgoing_id=outgoing_id,
                incoming_id=incoming_id,
                amount=amount,
                actor_id=actor_id,
                notes=notes,
            )

        return await self._transaction(work, "settle")

    async def suggest_settlements(
        self,
        tenant_id: uuid.UUID,
        outgoing_id: uuid.UUID,
        strategy: SettlementStrategy = SettlementStrategy.FIFO,
        limit: int = 0,
    ) -> list[Suggestion]:
        """
        Ordered, read-only settlement plan for one outgoing debt.

        Takes no locks; the plan may be stale by the time it is applied.
        """
        if limit < 0:
            raise ValidationError("limit must be zero or positive", field="limit")
        strategy = SettlementStrategy(strategy)

        async with self.session_factory() as session:
            outgoing = await session.scalar(
                select(OutgoingRemittance).where(
                    OutgoingRemittance.id == outgoing_id,
                    OutgoingRemittance.tenant_id == tenant_id,
                )
            )
            if outgoing is None:
                raise NotFoundError("OutgoingRemittance", outgoing_id)
            ensure_outgoing_open(outgoing)

            result = await session.execute(
                select(IncomingRemittance).where(
                    IncomingRemittance.tenant_id == tenant_id,
                    IncomingRemittance.status.in_(INCOMING_OPEN),
                    IncomingRemittance.remaining_amount > 0,
                )
            )
            candidates = list(result.scalars().all())

        return build_suggestions(
            outgoing.remaining_amount,
            outgoing.acquisition_rate,
            candidates,
            strategy,
            limit=limit,
        )

    async def auto_settle(
        self,
        tenant_id: uuid.UUID,
        outgoing_id: uuid.UUID,
        actor_id: uuid.UUID,
        strategy: SettlementStrategy = SettlementStrategy.FIFO,
    ) -> AutoSettleResult:
        """
        Apply suggestions one settlement at a time until the debt is covered.

        Each settlement is its own transaction, so a crash part-way leaves
        a valid state that a second run simply continues.  Candidates that
        lost a race are skipped; partial coverage and empty candidate
        lists are outcomes, not errors.
        """
        strategy = SettlementStrategy(strategy)
        suggestions = await self.suggest_settlements(tenant_id, outgoing_id, strategy)

        outgoing = await self.get_outgoing(tenant_id, outgoing_id)
        uncovered = outgoing.remaining_amount
        settlements: list[Settlement] = []
        skipped: list[SkippedCandidate] = []

        for suggestion in suggestions:
            if uncovered <= 0:
                break
            amount = min(suggestion.suggested_amount, uncovered)
            try:
                settlement = await self.settle(
                    tenant_id,
                    outgoing_id,
                    suggestion.incoming_id,
                    amount,
                    actor_id,
                    notes=f"Auto-settled ({strategy.value})",
                )
            except InsufficientFundsError as exc:
                logger.warning(
                    "Auto-settle %s skipped %s: requested %s, available %s",
                    outgoing.code, suggestion.incoming_code, exc.requested, exc.available,
                )
                skipped.append(SkippedCandidate(suggestion.incoming_id, exc.code))
                continue
            except InvalidStateError as exc:
                if exc.entity_type == "OutgoingRemittance":
                    # settled or cancelled elsewhere while we were working
                    logger.warning("Auto-settle %s stopped: %s", outgoing.code, exc)
                    break
                logger.warning(
                    "Auto-settle %s skipped %s: %s", outgoing.code, suggestion.incoming_code, exc,
                )
                skipped.append(SkippedCandidate(suggestion.incoming_id, exc.code))
                continue

            settlements.append(settlement)
            uncovered -= settlement.settled_amount

        outgoing = await self.get_outgoing(tenant_id, outgoing_id)
        if not settlements:
            outcome = AutoSettleOutcome.NO_FUNDS_AVAILABLE
        elif outgoing.remaining_amount == 0:
            outcome = AutoSettleOutcome.ALL_SETTLED
        else:
            outcome = AutoSettleOutcome.PARTIALLY_SETTLED

        result = AutoSettleResult(
            outgoing_id=outgoing_id,
            strategy=strategy,
            outcome=outcome,
            status=outgoing.status,
            remaining_amount=outgoing.remaining_amount,
            settlements=settlements,
            skipped=skipped,
        )
        logger.info(
            "Auto-settle %s (%s): %s, settled %s in %d settlements, %d skipped",
            outgoing.code, strategy.value, outcome.value,
            result.total_settled, len(settlements), len(skipped),
        )
        return result

    # ── Cancellation ─────────────────────────────────────────────────────

    async def cancel_outgoing(
        self,
        tenant_id: uuid.UUID,
        outgoing_id: uuid.UUID,
        actor_id: uuid.UUID,
        reason: str,
    ) -> OutgoingRemittance:
        """
        Cancel an untouched outgoing debt and refund the customer's payment.

        Anything already settled cannot be cancelled.
        """
        reason = _require_text(reason, "reason")

        async def work(session):
            outgoing = await lock_outgoing(session, tenant_id, outgoing_id)
            if outgoing.status == OutgoingStatus.CANCELLED:
                raise InvalidStateError(
                    f"Outgoing remittance {outgoing.code} is already cancelled",
                    entity_type="OutgoingRemittance",
                    status=outgoing.status.value,
                )
            if outgoing.settled_amount > 0 or outgoing.status != OutgoingStatus.PENDING:
                raise InvalidStateError(
                    f"Outgoing remittance {outgoing.code} has settled amount "
                    f"{outgoing.settled_amount} and cannot be cancelled",
                    entity_type="OutgoingRemittance",
                    status=outgoing.status.value,
                )

            outgoing.status = OutgoingStatus.CANCELLED
            outgoing.cancelled_at = datetime.now(timezone.utc)
            outgoing.cancelled_by = actor_id
            outgoing.cancellation_reason = reason
            await session.flush()

            if outgoing.received_amount > 0:
                await post_entries(
                    session,
                    tenant_id,
                    actor_id,
                    [
                        Posting(
                            branch_id=outgoing.branch_id,
                            currency=HOME_CURRENCY,
                            amount=-outgoing.received_amount,
                            entry_type=LedgerEntryType.OUTGOING_REFUND,
                            remittance_id=outgoing.id,
                            description=f"Refund for cancelled {outgoing.code}",
                        )
                    ],
                )
            await record_audit(
                session,
                tenant_id=tenant_id,
                actor_id=actor_id,
                action="outgoing.cancelled",
                entity_type="OutgoingRemittance",
                entity_id=outgoing.id,
                description=reason,
            )
            return outgoing

        outgoing = await self._transaction(work, "cancel_outgoing")
        logger.info("Cancelled outgoing %s", outgoing.code)
        return outgoing

    async def cancel_incoming(
        self,
        tenant_id: uuid.UUID,
        incoming_id: uuid.UUID,
        actor_id: uuid.UUID,
        reason: str,
    ) -> IncomingRemittance:
        """Cancel an incoming record that has never been allocated or paid."""
        reason = _require_text(reason, "reason")

        async def work(session):
            incoming = await lock_incoming(session, tenant_id, incoming_id)
            if incoming.status == IncomingStatus.CANCELLED:
                raise InvalidStateError(
                    f"Incoming remittance {incoming.code} is already cancelled",
                    entity_type="IncomingRemittance",
                    status=incoming.status.value,
                )
            if (
                incoming.allocated_amount > 0
                or incoming.paid_amount > 0
                or incoming.status != IncomingStatus.PENDING
            ):
                raise InvalidStateError(
                    f"Incoming remittance {incoming.code} has allocated amount "
                    f"{incoming.allocated_amount} and paid amount {incoming.paid_amount} "
                    "and cannot be cancelled",
                    entity_type="IncomingRemittance",
                    status=incoming.status.value,
                )

            incoming.status = IncomingStatus.CANCELLED
            incoming.cancelled_at = datetime.now(timezone.utc)
            incoming.cancelled_by = actor_id
            incoming.cancellation_reason = reason
            await session.flush()
            await record_audit(
                session,
                tenant_id=tenant_id,
                actor_id=actor_id,
                action="incoming.cancelled",
                entity_type="IncomingRemittance",
                entity_id=incoming.id,
                description=reason,
            )
            return incoming

        incoming = await self._transaction(work, "cancel_incoming")
        logger.info("Cancelled incoming %s", incoming.code)
        return incoming

    # ── Reports ──────────────────────────────────────────────────────────

    async def unsettled_summary(self, tenant_id: uuid.UUID, now: datetime | None = None) -> dict:
        async with self.session_factory() as session:
            return await build_unsettled_summary(session, tenant_id, now=now)

    async def settlement_history(
        self,
        tenant_id: uuid.UUID,
        remittance_id: uuid.UUID,
    ) -> list[Settlement]:
        async with self.session_factory() as session:
            return await fetch_settlement_history(session, tenant_id, remittance_id)

    async def profit_summary(
        self,
        tenant_id: uuid.UUID,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> dict:
        if start is not None and end is not None and start >= end:
            raise ValidationError("start must be before end", field="start")
        async with self.session_factory() as session:
            return await build_profit_summary(session, tenant_id, start=start, end=end)


# Module-level singleton
settlement_engine = SettlementEngine()
