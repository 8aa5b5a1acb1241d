"""
Candidate ordering and greedy allocation.

Everything here is pure: it takes already-loaded rows (anything exposing
``id``, ``created_at``, ``payout_rate`` and the relevant remaining
amount) and returns plans.  No sessions, no locks.

Ordering:
  FIFO       oldest first, tie-break by id
  LIFO       newest first, tie-break by id
  BEST_RATE  highest per-unit profit first, tie-break FIFO
"""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Iterable

from hawala.core.money import ZERO, settlement_profit, unit_profit


class SettlementStrategy(str, enum.Enum):
    FIFO = "fifo"
    LIFO = "lifo"
    BEST_RATE = "best_rate"


@dataclass(frozen=True)
class Suggestion:
    incoming_id: uuid.UUID
    incoming_code: str
    suggested_amount: Decimal
    expected_profit: Decimal
    payout_rate: Decimal
    incoming_remaining: Decimal


@dataclass(frozen=True)
class PayoutAllocation:
    incoming_id: uuid.UUID
    incoming_code: str
    amount: Decimal
    unpaid_before: Decimal


@dataclass
class PayoutPlan:
    allocations: list[PayoutAllocation] = field(default_factory=list)
    total_amount: Decimal = ZERO
    unallocated: Decimal = ZERO

    @property
    def total_allocated(self) -> Decimal:
        return sum((a.amount for a in self.allocations), ZERO)


# ── Ordering ─────────────────────────────────────────────────────────────


def _order_fifo(candidates: Iterable, acquisition_rate: Decimal | None) -> list:
    return sorted(candidates, key=lambda c: (c.created_at, c.id))


def _order_lifo(candidates: Iterable, acquisition_rate: Decimal | None) -> list:
    # two stable passes: id ascending survives as the tie-break
    by_id = sorted(candidates, key=lambda c: c.id)
    return sorted(by_id, key=lambda c: c.created_at, reverse=True)


def _order_best_rate(candidates: Iterable, acquisition_rate: Decimal | None) -> list:
    fifo = _order_fifo(candidates, acquisition_rate)
    if acquisition_rate is None:
        # payouts: profitability is monotonic in the payout rate
        return sorted(fifo, key=lambda c: c.payout_rate, reverse=True)
    return sorted(
        fifo,
        key=lambda c: unit_profit(acquisition_rate, c.payout_rate),
        reverse=True,
    )


_ORDERINGS: dict[SettlementStrategy, Callable[[Iterable, Decimal | None], list]] = {
    SettlementStrategy.FIFO: _order_fifo,
    SettlementStrategy.LIFO: _order_lifo,
    SettlementStrategy.BEST_RATE: _order_best_rate,
}


def order_candidates(
    candidates: Iterable,
    strategy: SettlementStrategy,
    acquisition_rate: Decimal | None = None,
) -> list:
    """Return *candidates* in the order *strategy* would consume them."""
    return _ORDERINGS[SettlementStrategy(strategy)](candidates, acquisition_rate)


# ── Greedy plans ─────────────────────────────────────────────────────────


def build_suggestions(
    outgoing_remaining: Decimal,
    acquisition_rate: Decimal,
    candidates: Iterable,
    strategy: SettlementStrategy,
    limit: int = 0,
) -> list[Suggestion]:
    """
    Walk ordered incoming candidates, clamping each to the smaller of the
    debt still uncovered and the candidate's remaining funds.

    Stops when the debt is covered, candidates run out, or *limit*
    suggestions exist (``limit <= 0`` means no limit).
    """
    suggestions: list[Suggestion] = []
    uncovered = outgoing_remaining

    for candidate in order_candidates(candidates, strategy, acquisition_rate):
        if uncovered <= 0:
            break
        if limit > 0 and len(suggestions) >= limit:
            break
        amount = min(uncovered, candidate.remaining_amount)
        if amount <= 0:
            continue
        suggestions.append(
            Suggestion(
                incoming_id=candidate.id,
                incoming_code=candidate.code,
                suggested_amount=amount,
                expected_profit=settlement_profit(amount, acquisition_rate, candidate.payout_rate),
                payout_rate=candidate.payout_rate,
                incoming_remaining=candidate.remaining_amount,
            )
        )
        uncovered -= amount

    return suggestions


def allocate_payment(
    total_amount: Decimal,
    candidates: Iterable,
    strategy: SettlementStrategy,
) -> PayoutPlan:
    """
    Spread one home-currency payment across unpaid payout balances.

    Each candidate receives ``min(payment left, unpaid)`` in strategy
    order; whatever cannot be placed is reported as ``unallocated``.
    """
    plan = PayoutPlan(total_amount=total_amount)
    left = total_amount

    for candidate in order_candidates(candidates, strategy):
        if left <= 0:
            break
        unpaid = candidate.unpaid_amount
        if unpaid <= 0:
            continue
        amount = min(left, unpaid)
        plan.allocations.append(
            PayoutAllocation(
                incoming_id=candidate.id,
                incoming_code=candidate.code,
                amount=amount,
                unpaid_before=unpaid,
            )
        )
        left -= amount

    plan.unallocated = left
    return plan
