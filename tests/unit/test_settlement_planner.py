"""
Tests for the settlement planner.

Covers:
- The three-member example (one debtor, two creditors)
- Greedy round order and tie-breaking by member order
- Determinism of the output for identical input
- At most n - 1 transfers
- Conservation: applying the plan zeroes the vector
- Threshold: small transfers are applied but not emitted
"""

from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from ledger_engines.settlement_planner import (
    SettlementPlanner,
    SuggestedTransfer,
    apply_transfers,
)


def _ids(n: int) -> list[UUID]:
    return [uuid4() for _ in range(n)]


class TestGreedyPlan:
    """Largest debtor pays largest creditor, round after round."""

    def setup_method(self):
        self.planner = SettlementPlanner()

    def test_one_debtor_two_creditors(self):
        """{A: +300, B: -200, C: -100} -> A pays B 200, then C 100."""
        a, b, c = _ids(3)
        transfers = self.planner.suggest(
            balances={a: Decimal("300"), b: Decimal("-200"), c: Decimal("-100")},
            member_order=[a, b, c],
        )

        assert transfers == (
            SuggestedTransfer(from_user=a, to_user=b, amount=Decimal("200")),
            SuggestedTransfer(from_user=a, to_user=c, amount=Decimal("100")),
        )

    def test_two_debtors_one_creditor(self):
        a, b, c = _ids(3)
        transfers = self.planner.suggest(
            balances={a: Decimal("-90"), b: Decimal("30"), c: Decimal("60")},
            member_order=[a, b, c],
        )

        assert [(t.from_user, t.to_user, t.amount) for t in transfers] == [
            (c, a, Decimal("60")),
            (b, a, Decimal("30")),
        ]

    def test_equal_magnitudes_follow_member_order(self):
        """Ties go to the member listed first."""
        a, b, c, d = _ids(4)
        balances = {a: Decimal("50"), b: Decimal("50"), c: Decimal("-50"), d: Decimal("-50")}

        forward = self.planner.suggest(balances=balances, member_order=[a, b, c, d])
        reverse = self.planner.suggest(balances=balances, member_order=[b, a, d, c])

        assert [(t.from_user, t.to_user) for t in forward] == [(a, c), (b, d)]
        assert [(t.from_user, t.to_user) for t in reverse] == [(b, d), (a, c)]

    def test_unlisted_ids_come_after_members(self):
        a, b, former = _ids(3)
        transfers = self.planner.suggest(
            balances={a: Decimal("10"), former: Decimal("10"), b: Decimal("-20")},
            member_order=[b, a],
        )

        assert transfers[0].from_user == a
        assert transfers[1].from_user == former

    def test_zero_balances_yield_no_transfers(self):
        a, b = _ids(2)
        assert self.planner.suggest(balances={a: Decimal("0"), b: Decimal("0")}) == ()

    def test_empty_vector(self):
        assert self.planner.suggest(balances={}) == ()

    def test_no_self_transfers(self):
        ids = _ids(5)
        amounts = ["40", "-15", "25", "-30", "-20"]
        balances = {u: Decimal(v) for u, v in zip(ids, amounts)}

        transfers = self.planner.suggest(balances=balances, member_order=ids)

        assert all(t.from_user != t.to_user for t in transfers)


class TestPlannerProperties:
    """Determinism, bounds and conservation."""

    def setup_method(self):
        self.planner = SettlementPlanner()
        self.ids = _ids(6)
        self.balances = {
            u: Decimal(v)
            for u, v in zip(self.ids, ["120.50", "-40.25", "-80.25", "33.10", "-20.00", "-13.10"])
        }

    def test_identical_input_identical_output(self):
        first = self.planner.suggest(balances=self.balances, member_order=self.ids)
        second = self.planner.suggest(
            balances=dict(reversed(list(self.balances.items()))),
            member_order=list(self.ids),
        )

        assert first == second

    def test_at_most_n_minus_one_transfers(self):
        transfers = self.planner.suggest(balances=self.balances, member_order=self.ids)

        nonzero = [u for u, b in self.balances.items() if b != 0]
        assert len(transfers) <= len(nonzero) - 1

    def test_applying_plan_zeroes_vector(self):
        transfers = self.planner.suggest(balances=self.balances, member_order=self.ids)

        result = apply_transfers(self.balances, transfers)

        assert all(v == Decimal("0") for v in result.values())

    def test_input_not_mutated(self):
        snapshot = dict(self.balances)
        self.planner.suggest(balances=self.balances, member_order=self.ids)
        assert self.balances == snapshot


class TestThreshold:
    """Transfers below the threshold are dropped from the output only."""

    def setup_method(self):
        self.planner = SettlementPlanner()

    def test_small_transfer_dropped(self):
        a, b, c = _ids(3)
        transfers = self.planner.suggest(
            balances={a: Decimal("10.05"), b: Decimal("-10.00"), c: Decimal("-0.05")},
            member_order=[a, b, c],
            threshold=Decimal("0.10"),
        )

        assert transfers == (SuggestedTransfer(a, b, Decimal("10.00")),)

    def test_transfer_equal_to_threshold_kept(self):
        a, b = _ids(2)
        transfers = self.planner.suggest(
            balances={a: Decimal("0.10"), b: Decimal("-0.10")},
            member_order=[a, b],
            threshold=Decimal("0.10"),
        )

        assert transfers == (SuggestedTransfer(a, b, Decimal("0.10")),)

    @pytest.mark.parametrize("threshold", [Decimal("0"), Decimal("0.01")])
    def test_low_threshold_keeps_everything(self, threshold):
        a, b, c = _ids(3)
        transfers = self.planner.suggest(
            balances={a: Decimal("10.05"), b: Decimal("-10.00"), c: Decimal("-0.05")},
            member_order=[a, b, c],
            threshold=threshold,
        )

        assert len(transfers) == 2


class TestEngineTrace:
    def test_emits_trace(self, captured_logs):
        a, b = _ids(2)
        SettlementPlanner().suggest(balances={a: Decimal("5"), b: Decimal("-5")})

        traces = [r for r in captured_logs() if r["message"] == "LEDGER_ENGINE_TRACE"]
        assert traces
        assert traces[-1]["engine_name"] == "settlement_planner"
        assert len(traces[-1]["input_fingerprint"]) == 16
