"""Tests for candidate ordering, greedy suggestions and batch payment allocation.

All pure: candidates are plain objects, no database.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from hawala.core.money import unit_profit
from hawala.settlement_engine.strategy import (
    SettlementStrategy,
    allocate_payment,
    build_suggestions,
    order_candidates,
)

BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)
ACQ = Decimal("85000")


# ── Helpers ──────────────────────────────────────────────────────────────


@dataclass
class _Candidate:
    id: uuid.UUID
    code: str
    created_at: datetime
    payout_rate: Decimal
    remaining_amount: Decimal
    equivalent_amount: Decimal = Decimal("0")
    paid_amount: Decimal = Decimal("0")

    @property
    def unpaid_amount(self) -> Decimal:
        return self.equivalent_amount - self.paid_amount


def _c(minutes: int, rate, remaining, code=None, cid=None, equivalent="0", paid="0") -> _Candidate:
    return _Candidate(
        id=cid or uuid.uuid4(),
        code=code or f"IN-{minutes:08d}",
        created_at=BASE_TIME + timedelta(minutes=minutes),
        payout_rate=Decimal(str(rate)),
        remaining_amount=Decimal(str(remaining)),
        equivalent_amount=Decimal(str(equivalent)),
        paid_amount=Decimal(str(paid)),
    )


@pytest.fixture
def candidates():
    return [
        _c(30, "84500", "100000", code="C"),
        _c(10, "86000", "200000", code="A"),
        _c(20, "84000", "300000", code="B"),
        _c(40, "85500", "400000", code="D"),
    ]


# ── Ordering ─────────────────────────────────────────────────────────────


class TestOrdering:
    def test_fifo_strictly_increasing_created_at(self, candidates):
        ordered = order_candidates(candidates, SettlementStrategy.FIFO, ACQ)
        times = [c.created_at for c in ordered]
        assert all(a < b for a, b in zip(times, times[1:]))
        assert [c.code for c in ordered] == ["A", "B", "C", "D"]

    def test_lifo_strictly_decreasing_created_at(self, candidates):
        ordered = order_candidates(candidates, SettlementStrategy.LIFO, ACQ)
        times = [c.created_at for c in ordered]
        assert all(a > b for a, b in zip(times, times[1:]))
        assert [c.code for c in ordered] == ["D", "C", "B", "A"]

    def test_best_rate_strictly_decreasing_profitability(self, candidates):
        ordered = order_candidates(candidates, SettlementStrategy.BEST_RATE, ACQ)
        profits = [unit_profit(ACQ, c.payout_rate) for c in ordered]
        assert all(a > b for a, b in zip(profits, profits[1:]))
        assert [c.code for c in ordered] == ["A", "D", "C", "B"]

    def test_fifo_ties_break_by_id(self):
        low, high = sorted([uuid.uuid4(), uuid.uuid4()])
        same = [_c(0, "85000", "1", cid=high), _c(0, "85000", "1", cid=low)]
        ordered = order_candidates(same, SettlementStrategy.FIFO, ACQ)
        assert [c.id for c in ordered] == [low, high]

    def test_lifo_ties_break_by_id_ascending(self):
        low, high = sorted([uuid.uuid4(), uuid.uuid4()])
        same = [_c(0, "85000", "1", cid=high), _c(0, "85000", "1", cid=low), _c(5, "85000", "1")]
        ordered = order_candidates(same, SettlementStrategy.LIFO, ACQ)
        assert [c.id for c in ordered][1:] == [low, high]

    def test_best_rate_ties_fall_back_to_fifo(self):
        later = _c(10, "86000", "1", code="later")
        earlier = _c(5, "86000", "1", code="earlier")
        ordered = order_candidates([later, earlier], SettlementStrategy.BEST_RATE, ACQ)
        assert [c.code for c in ordered] == ["earlier", "later"]

    def test_accepts_string_strategy(self, candidates):
        ordered = order_candidates(candidates, "lifo", ACQ)
        assert ordered[0].code == "D"

    def test_ordering_does_not_mutate_input(self, candidates):
        before = [c.code for c in candidates]
        order_candidates(candidates, SettlementStrategy.BEST_RATE, ACQ)
        assert [c.code for c in candidates] == before


# ── Suggestions ──────────────────────────────────────────────────────────


class TestBuildSuggestions:
    def test_greedy_clamps_to_uncovered_debt(self, candidates):
        suggestions = build_suggestions(
            Decimal("550000"), ACQ, candidates, SettlementStrategy.FIFO,
        )
        assert [s.incoming_code for s in suggestions] == ["A", "B", "C"]
        assert [s.suggested_amount for s in suggestions] == [
            Decimal("200000"), Decimal("300000"), Decimal("50000"),
        ]
        assert sum(s.suggested_amount for s in suggestions) == Decimal("550000")

    def test_each_suggestion_within_both_remainders(self, candidates):
        debt = Decimal("700000")
        for s in build_suggestions(debt, ACQ, candidates, SettlementStrategy.BEST_RATE):
            assert s.suggested_amount <= s.incoming_remaining
            assert s.suggested_amount <= debt

    def test_limit_caps_count(self, candidates):
        suggestions = build_suggestions(
            Decimal("10000000"), ACQ, candidates, SettlementStrategy.FIFO, limit=2,
        )
        assert len(suggestions) == 2

    def test_zero_limit_is_unlimited(self, candidates):
        suggestions = build_suggestions(
            Decimal("10000000"), ACQ, candidates, SettlementStrategy.FIFO, limit=0,
        )
        assert len(suggestions) == 4

    def test_no_candidates(self):
        assert build_suggestions(Decimal("100"), ACQ, [], SettlementStrategy.FIFO) == []

    def test_expected_profit_uses_snapshot_rates(self):
        suggestions = build_suggestions(
            Decimal("700000"), ACQ, [_c(0, "86000", "700000")], SettlementStrategy.BEST_RATE,
        )
        assert suggestions[0].expected_profit == Decimal("0.0958")

    def test_skips_empty_candidates(self):
        suggestions = build_suggestions(
            Decimal("100"), ACQ, [_c(0, "85000", "0"), _c(1, "85000", "50")], SettlementStrategy.FIFO,
        )
        assert [s.suggested_amount for s in suggestions] == [Decimal("50")]


# ── Batch payment allocation ─────────────────────────────────────────────


class TestAllocatePayment:
    @pytest.fixture
    def payouts(self):
        return [
            _c(0, "84000", "0", code="old-low", equivalent="100.00"),
            _c(5, "86000", "0", code="mid-high", equivalent="80.00", paid="30.00"),
            _c(10, "85000", "0", code="new-mid", equivalent="60.00"),
        ]

    def test_fifo_min_clamp_with_decrement(self, payouts):
        plan = allocate_payment(Decimal("170.00"), payouts, SettlementStrategy.FIFO)
        assert [(a.incoming_code, a.amount) for a in plan.allocations] == [
            ("old-low", Decimal("100.00")),
            ("mid-high", Decimal("50.00")),
            ("new-mid", Decimal("20.00")),
        ]
        assert plan.unallocated == Decimal("0")
        assert plan.total_allocated == Decimal("170.00")

    def test_best_rate_pays_highest_payout_rate_first(self, payouts):
        plan = allocate_payment(Decimal("60.00"), payouts, SettlementStrategy.BEST_RATE)
        assert [a.incoming_code for a in plan.allocations] == ["mid-high", "new-mid"]
        assert plan.allocations[0].amount == Decimal("50.00")
        assert plan.allocations[0].unpaid_before == Decimal("50.00")

    def test_lifo(self, payouts):
        plan = allocate_payment(Decimal("10.00"), payouts, SettlementStrategy.LIFO)
        assert [a.incoming_code for a in plan.allocations] == ["new-mid"]

    def test_overpayment_reports_unallocated(self, payouts):
        plan = allocate_payment(Decimal("500.00"), payouts, SettlementStrategy.FIFO)
        assert plan.total_allocated == Decimal("210.00")
        assert plan.unallocated == Decimal("290.00")
