"""
Hypothesis-based property tests for the pure engines.

Properties checked:
- Planner: with no threshold, applying every suggested transfer zeroes a
  balance vector that sums to zero
- Planner: at most n - 1 transfers, never to oneself, deterministic
- Planner: every emitted transfer meets the threshold
- Equal split: lines sum to the total and differ by at most one minor unit
- Percentage split: lines sum to the total
"""

from decimal import Decimal
from uuid import UUID

from hypothesis import given, settings
from hypothesis import strategies as st

from ledger_engines.settlement_planner import SettlementPlanner, apply_transfers
from ledger_engines.split_allocation import SplitAllocationEngine, SplitMethod, SplitShare

CENT = Decimal("0.01")


def _user(i: int) -> UUID:
    return UUID(int=i + 1)


@st.composite
def zero_sum_balances(draw):
    """A balance vector in cents over 2-8 users that sums to zero."""
    cents = draw(st.lists(st.integers(-1_000_000, 1_000_000), min_size=1, max_size=7))
    cents.append(-sum(cents))
    return {_user(i): Decimal(c) * CENT for i, c in enumerate(cents)}


@st.composite
def percentages(draw):
    """2-6 integer percentages summing to 100."""
    n = draw(st.integers(2, 6))
    cuts = sorted(draw(st.lists(st.integers(0, 100), min_size=n - 1, max_size=n - 1)))
    bounds = [0, *cuts, 100]
    return [Decimal(bounds[i + 1] - bounds[i]) for i in range(n)]


amounts = st.integers(1, 10_000_000).map(lambda c: Decimal(c) * CENT)


class TestPlannerProperties:
    @settings(max_examples=200, deadline=None)
    @given(balances=zero_sum_balances())
    def test_transfers_zero_the_vector(self, balances):
        transfers = SettlementPlanner().suggest(balances=balances)

        after = apply_transfers(balances, transfers)
        assert all(v == 0 for v in after.values())

    @settings(max_examples=200, deadline=None)
    @given(balances=zero_sum_balances())
    def test_bounded_and_well_formed(self, balances):
        transfers = SettlementPlanner().suggest(balances=balances)

        non_zero = sum(1 for v in balances.values() if v != 0)
        assert len(transfers) <= max(non_zero - 1, 0)
        assert all(t.from_user != t.to_user for t in transfers)
        assert all(t.amount > 0 for t in transfers)

    @settings(max_examples=100, deadline=None)
    @given(balances=zero_sum_balances())
    def test_deterministic(self, balances):
        order = sorted(balances, key=str)
        planner = SettlementPlanner()
        first = planner.suggest(balances=balances, member_order=order)
        second = planner.suggest(balances=dict(reversed(list(balances.items()))), member_order=order)
        assert first == second

    @settings(max_examples=100, deadline=None)
    @given(balances=zero_sum_balances(), threshold_cents=st.integers(0, 5_000))
    def test_threshold_respected(self, balances, threshold_cents):
        threshold = Decimal(threshold_cents) * CENT
        transfers = SettlementPlanner().suggest(balances=balances, threshold=threshold)
        assert all(t.amount >= threshold for t in transfers)


class TestSplitProperties:
    @settings(max_examples=200, deadline=None)
    @given(total=amounts, n=st.integers(1, 12))
    def test_equal_split_sums_and_is_even(self, total, n):
        shares = [SplitShare(_user(i)) for i in range(n)]

        allocation = SplitAllocationEngine().allocate(total, shares, SplitMethod.EQUAL)

        line_amounts = [line.amount for line in allocation.lines]
        assert sum(line_amounts) == total
        assert max(line_amounts) - min(line_amounts) <= CENT * n

    @settings(max_examples=200, deadline=None)
    @given(total=amounts, pcts=percentages())
    def test_percentage_split_sums(self, total, pcts):
        shares = [SplitShare(_user(i), pct) for i, pct in enumerate(pcts)]

        allocation = SplitAllocationEngine().allocate(total, shares, SplitMethod.PERCENTAGE)

        assert sum(line.amount for line in allocation.lines) == total
        assert all(line.amount >= 0 for line in allocation.lines)
