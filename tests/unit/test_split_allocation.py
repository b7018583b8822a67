"""
Tests for the split allocation engine.

Covers:
- Equal splits, with the rounding residual on the last participant
- Exact splits, including the one-minor-unit tolerance
- Percentage splits
- Input validation (amount, participants, share values)
- to_money coercion
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_engines.split_allocation import (
    SplitAllocationEngine,
    SplitMethod,
    SplitShare,
    to_money,
)
from ledger_kernel.exceptions import (
    InvalidAmountError,
    InvalidSplitError,
    SplitMismatchError,
)


def _amounts(result) -> list[Decimal]:
    return [line.amount for line in result.lines]


class TestEqualSplit:
    """Tests for equal allocation."""

    def setup_method(self):
        self.engine = SplitAllocationEngine()
        self.users = [uuid4(), uuid4(), uuid4()]

    def test_divides_evenly(self):
        result = self.engine.allocate(
            amount=Decimal("90.00"),
            shares=[SplitShare(u) for u in self.users],
            method=SplitMethod.EQUAL,
        )

        assert _amounts(result) == [Decimal("30.00")] * 3
        assert result.rounding_adjustment == Decimal("0.00")

    def test_last_participant_absorbs_residual(self):
        result = self.engine.allocate(
            amount=Decimal("10.00"),
            shares=[SplitShare(u) for u in self.users],
            method=SplitMethod.EQUAL,
        )

        assert _amounts(result) == [Decimal("3.33"), Decimal("3.33"), Decimal("3.34")]
        assert result.rounding_adjustment == Decimal("0.01")

    def test_lines_sum_to_total(self):
        result = self.engine.allocate(
            amount=Decimal("100.01"),
            shares=[SplitShare(uuid4()) for _ in range(7)],
            method=SplitMethod.EQUAL,
        )

        assert sum(_amounts(result)) == Decimal("100.01")
        assert all(a >= 0 for a in _amounts(result))

    def test_preserves_participant_order(self):
        result = self.engine.allocate(
            amount=Decimal("9.00"),
            shares=[SplitShare(u) for u in self.users],
            method=SplitMethod.EQUAL,
        )

        assert [line.user_id for line in result.lines] == self.users

    def test_amount_is_quantized(self):
        result = self.engine.allocate(
            amount=Decimal("10.005"),
            shares=[SplitShare(self.users[0])],
            method=SplitMethod.EQUAL,
        )

        assert result.amount == Decimal("10.01")


class TestExactSplit:
    """Tests for caller-supplied amounts."""

    def setup_method(self):
        self.engine = SplitAllocationEngine()
        self.a, self.b = uuid4(), uuid4()

    def test_amounts_used_as_given(self):
        result = self.engine.allocate(
            amount=Decimal("50.00"),
            shares=[SplitShare(self.a, Decimal("20.00")), SplitShare(self.b, Decimal("30.00"))],
            method=SplitMethod.EXACT,
        )

        assert _amounts(result) == [Decimal("20.00"), Decimal("30.00")]

    def test_one_minor_unit_off_is_absorbed(self):
        result = self.engine.allocate(
            amount=Decimal("10.00"),
            shares=[SplitShare(self.a, "3.33"), SplitShare(self.b, "6.66")],
            method=SplitMethod.EXACT,
        )

        assert _amounts(result) == [Decimal("3.33"), Decimal("6.67")]
        assert result.rounding_adjustment == Decimal("0.01")

    def test_mismatch_rejected(self):
        with pytest.raises(SplitMismatchError) as exc_info:
            self.engine.allocate(
                amount=Decimal("50.00"),
                shares=[SplitShare(self.a, "20.00"), SplitShare(self.b, "20.00")],
                method=SplitMethod.EXACT,
            )

        assert exc_info.value.code == "SPLIT_MISMATCH"

    def test_missing_value_rejected(self):
        with pytest.raises(InvalidSplitError):
            self.engine.allocate(
                amount=Decimal("50.00"),
                shares=[SplitShare(self.a, "50.00"), SplitShare(self.b)],
                method=SplitMethod.EXACT,
            )

    def test_negative_value_rejected(self):
        with pytest.raises(InvalidSplitError):
            self.engine.allocate(
                amount=Decimal("10.00"),
                shares=[SplitShare(self.a, "15.00"), SplitShare(self.b, "-5.00")],
                method=SplitMethod.EXACT,
            )

    def test_residual_cannot_make_last_line_negative(self):
        with pytest.raises(SplitMismatchError):
            self.engine.allocate(
                amount=Decimal("10.00"),
                shares=[SplitShare(self.a, "10.01"), SplitShare(self.b, "0.00")],
                method=SplitMethod.EXACT,
            )


class TestPercentageSplit:
    """Tests for percentage allocation."""

    def setup_method(self):
        self.engine = SplitAllocationEngine()
        self.users = [uuid4(), uuid4(), uuid4()]

    def test_split_by_percent(self):
        result = self.engine.allocate(
            amount=Decimal("200.00"),
            shares=[
                SplitShare(self.users[0], Decimal("50")),
                SplitShare(self.users[1], Decimal("30")),
                SplitShare(self.users[2], Decimal("20")),
            ],
            method=SplitMethod.PERCENTAGE,
        )

        assert _amounts(result) == [Decimal("100.00"), Decimal("60.00"), Decimal("40.00")]

    def test_thirds(self):
        result = self.engine.allocate(
            amount=Decimal("100.00"),
            shares=[
                SplitShare(self.users[0], "33.33"),
                SplitShare(self.users[1], "33.33"),
                SplitShare(self.users[2], "33.34"),
            ],
            method=SplitMethod.PERCENTAGE,
        )

        assert sum(_amounts(result)) == Decimal("100.00")
        assert _amounts(result)[-1] == Decimal("33.34")

    def test_percentages_must_total_100(self):
        with pytest.raises(SplitMismatchError):
            self.engine.allocate(
                amount=Decimal("100.00"),
                shares=[SplitShare(self.users[0], "50"), SplitShare(self.users[1], "40")],
                method=SplitMethod.PERCENTAGE,
            )

    def test_invalid_percentage_rejected(self):
        with pytest.raises(InvalidSplitError):
            self.engine.allocate(
                amount=Decimal("100.00"),
                shares=[SplitShare(self.users[0], "abc"), SplitShare(self.users[1], "100")],
                method=SplitMethod.PERCENTAGE,
            )


class TestValidation:
    """Input validation shared by every method."""

    def setup_method(self):
        self.engine = SplitAllocationEngine()

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5.00")])
    def test_non_positive_amount(self, amount):
        with pytest.raises(InvalidAmountError):
            self.engine.allocate(
                amount=amount, shares=[SplitShare(uuid4())], method=SplitMethod.EQUAL
            )

    def test_no_participants(self):
        with pytest.raises(InvalidSplitError):
            self.engine.allocate(amount=Decimal("5.00"), shares=[], method=SplitMethod.EQUAL)

    def test_duplicate_participant(self):
        user = uuid4()
        with pytest.raises(InvalidSplitError):
            self.engine.allocate(
                amount=Decimal("5.00"),
                shares=[SplitShare(user), SplitShare(user)],
                method=SplitMethod.EQUAL,
            )

    def test_method_accepts_string_value(self):
        result = self.engine.allocate(
            amount=Decimal("4.00"), shares=[SplitShare(uuid4())], method="equal"
        )
        assert result.method is SplitMethod.EQUAL


class TestToMoney:
    def test_rounds_half_up(self):
        assert to_money("2.345") == Decimal("2.35")

    def test_accepts_int(self):
        assert to_money(7) == Decimal("7.00")

    @pytest.mark.parametrize("value", ["NaN", "Infinity", "not-a-number", None])
    def test_rejects_non_finite(self, value):
        with pytest.raises(InvalidAmountError):
            to_money(value)

    @pytest.mark.parametrize("value", [Decimal("1e30"), "-1e30", Decimal("10000000000.00")])
    def test_rejects_beyond_column_range(self, value):
        with pytest.raises(InvalidAmountError):
            to_money(value)

    def test_accepts_column_maximum(self):
        assert to_money("9999999999.99") == Decimal("9999999999.99")

    def test_quantize_overflow_is_invalid_amount(self):
        """A minor unit finer than the decimal context can hold is rejected, not leaked."""
        with pytest.raises(InvalidAmountError):
            to_money(Decimal("9999999999.99"), Decimal("1e-30"))
