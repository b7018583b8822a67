"""
Module: ledger_engines.split_allocation
Responsibility:
    Turn an expense total plus a split definition (equal, exact amounts,
    or percentages) into one non-negative amount per participant, in the
    currency's minor unit.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Called by ExpenseService before any row is written.

Invariants enforced:
    - Conservation: the returned lines sum to exactly ``amount``.  The
      rounding residual goes to the last participant.
    - Every line is >= 0 and quantized to ``minor_unit``.
    - A participant appears at most once.

Failure modes:
    - InvalidAmountError: total is not a positive finite decimal.
    - InvalidSplitError: no participants, duplicate participant, negative
      or missing share value.
    - SplitMismatchError: exact amounts or percentages do not reconcile
      with the total within one minor unit.

Usage:
    engine = SplitAllocationEngine()
    result = engine.allocate(
        amount=Decimal("10.00"),
        shares=[SplitShare(a), SplitShare(b), SplitShare(c)],
        method=SplitMethod.EQUAL,
    )
    # -> 3.33, 3.33, 3.34
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from uuid import UUID

from ledger_engines.tracer import traced_engine
from ledger_kernel.exceptions import (
    InvalidAmountError,
    InvalidSplitError,
    SplitMismatchError,
)
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.split_allocation")

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")
DEFAULT_MINOR_UNIT = Decimal("0.01")
# Largest magnitude a Numeric(12, 2) money column holds.
MAX_AMOUNT = Decimal("9999999999.99")


class SplitMethod(str, Enum):
    """How an expense total is divided among participants."""

    EQUAL = "equal"  # Split evenly
    EXACT = "exact"  # Caller gives each amount
    PERCENTAGE = "percentage"  # Caller gives each percentage


@dataclass(frozen=True)
class SplitShare:
    """
    One participant of a split.

    ``value`` is ignored for EQUAL, is an amount for EXACT and a percentage
    (0-100) for PERCENTAGE.
    """

    user_id: UUID
    value: Decimal | None = None


@dataclass(frozen=True)
class SplitLine:
    user_id: UUID
    amount: Decimal


@dataclass(frozen=True)
class SplitAllocation:
    """
    Result of one split computation.

    Guarantees:
        - ``sum(line.amount for line in lines) == amount``.
        - ``rounding_adjustment`` is what the last line absorbed.
    """

    amount: Decimal
    method: SplitMethod
    lines: tuple[SplitLine, ...]
    rounding_adjustment: Decimal


def to_money(value, minor_unit: Decimal = DEFAULT_MINOR_UNIT) -> Decimal:
    """
    Coerce ``value`` to a finite Decimal quantized to ``minor_unit``.

    Raises:
        InvalidAmountError: value is not a finite decimal, or its magnitude
            exceeds MAX_AMOUNT.
    """
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
        if not amount.is_finite() or abs(amount) > MAX_AMOUNT:
            raise InvalidAmountError(str(value))
        return amount.quantize(minor_unit, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidAmountError(str(value)) from None


class SplitAllocationEngine:
    """
    Divide an expense among participants.

    Contract:
        Pure function with deterministic rounding.  Non-last shares are
        rounded DOWN to the minor unit so the residual absorbed by the last
        participant is never negative.
    Non-goals:
        - Does not check group membership; ExpenseService does.
    """

    @traced_engine("split_allocation", "1.0", fingerprint_fields=("amount", "method"))
    def allocate(
        self,
        amount: Decimal,
        shares: Sequence[SplitShare],
        method: SplitMethod,
        minor_unit: Decimal = DEFAULT_MINOR_UNIT,
    ) -> SplitAllocation:
        total = to_money(amount, minor_unit)
        if total <= _ZERO:
            raise InvalidAmountError(str(amount))
        if not shares:
            raise InvalidSplitError("at least one participant is required")

        seen: set[UUID] = set()
        for share in shares:
            if share.user_id in seen:
                raise InvalidSplitError(f"participant {share.user_id} appears twice")
            seen.add(share.user_id)

        method = SplitMethod(method)
        match method:
            case SplitMethod.EQUAL:
                result = self._allocate_equal(total, shares, minor_unit)
            case SplitMethod.EXACT:
                result = self._allocate_exact(total, shares, minor_unit)
            case SplitMethod.PERCENTAGE:
                result = self._allocate_percentage(total, shares, minor_unit)

        logger.debug(
            "split_allocated",
            extra={
                "amount": str(total),
                "method": method.value,
                "participant_count": len(shares),
                "rounding_adjustment": str(result.rounding_adjustment),
            },
        )
        return result

    def _allocate_equal(self, total, shares, minor_unit) -> SplitAllocation:
        each = (total / Decimal(len(shares))).quantize(minor_unit, rounding=ROUND_DOWN)
        amounts = [each] * len(shares)
        return self._close(total, SplitMethod.EQUAL, shares, amounts, each)

    def _allocate_exact(self, total, shares, minor_unit) -> SplitAllocation:
        amounts = []
        for share in shares:
            if share.value is None:
                raise InvalidSplitError(f"participant {share.user_id} has no amount")
            value = to_money(share.value, minor_unit)
            if value < _ZERO:
                raise InvalidSplitError(f"participant {share.user_id} has a negative amount")
            amounts.append(value)

        actual = sum(amounts, _ZERO)
        if abs(actual - total) > minor_unit:
            raise SplitMismatchError(str(total), str(actual))
        return self._close(total, SplitMethod.EXACT, shares, amounts, amounts[-1])

    def _allocate_percentage(self, total, shares, minor_unit) -> SplitAllocation:
        percents = []
        for share in shares:
            if share.value is None:
                raise InvalidSplitError(f"participant {share.user_id} has no percentage")
            try:
                pct = Decimal(str(share.value))
            except (InvalidOperation, ValueError):
                raise InvalidSplitError(
                    f"participant {share.user_id} has an invalid percentage"
                ) from None
            if not pct.is_finite() or pct < _ZERO:
                raise InvalidSplitError(
                    f"participant {share.user_id} has an invalid percentage"
                )
            percents.append(pct)

        pct_total = sum(percents, _ZERO)
        if abs(pct_total - _HUNDRED) > minor_unit:
            raise SplitMismatchError("100%", f"{pct_total}%")

        amounts = [
            (total * pct / _HUNDRED).quantize(minor_unit, rounding=ROUND_DOWN)
            for pct in percents
        ]
        last_nominal = (total * percents[-1] / _HUNDRED).quantize(
            minor_unit, rounding=ROUND_HALF_UP
        )
        return self._close(total, SplitMethod.PERCENTAGE, shares, amounts, last_nominal)

    def _close(self, total, method, shares, amounts, last_nominal) -> SplitAllocation:
        """Give the residual to the last participant."""
        allocated = sum(amounts[:-1], _ZERO)
        last = total - allocated
        if last < _ZERO:
            raise SplitMismatchError(str(total), str(allocated))
        amounts = [*amounts[:-1], last]
        lines = tuple(
            SplitLine(user_id=share.user_id, amount=value)
            for share, value in zip(shares, amounts)
        )
        return SplitAllocation(
            amount=total,
            method=method,
            lines=lines,
            rounding_adjustment=last - last_nominal,
        )
