"""
Module: ledger_engines.settlement_planner
Responsibility:
    Propose peer-to-peer transfers that would bring every balance in a
    group to zero, using greedy debt simplification.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The planner only reads a
    balance vector; it never mutates state.  A suggestion takes effect only
    if a caller later runs the settlement executor.

Invariants enforced:
    - Determinism: identical (balances, member_order, threshold) always
      produce an identical tuple of transfers.
    - At most n - 1 transfers for n non-zero balances: every round retires
      at least one debtor or creditor.
    - Conservation: applying every round (emitted or not) zeroes the vector.
      Only rounds below ``threshold`` are left out of the output.

Failure modes:
    - None for well-formed input.  Balances that do not sum to zero leave a
      residual on one side once the other is exhausted.

Algorithm:
    Each round picks the largest outstanding debtor (balance > 0) and the
    largest outstanding creditor (balance < 0, by magnitude) and transfers
    ``min(debt, credit)``.  Equal magnitudes are ordered by position in
    ``member_order``; ids absent from it come after, ordered by ``str(id)``.

Usage:
    planner = SettlementPlanner()
    transfers = planner.suggest(
        balances={a: Decimal("300"), b: Decimal("-200"), c: Decimal("-100")},
        member_order=[a, b, c],
        threshold=Decimal("0.10"),
    )
    # -> (a -> b 200, a -> c 100)
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from ledger_engines.tracer import traced_engine
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.settlement_planner")

_ZERO = Decimal("0")


@dataclass(frozen=True)
class SuggestedTransfer:
    """``from_user`` should pay ``to_user`` the given amount."""

    from_user: UUID
    to_user: UUID
    amount: Decimal


def apply_transfers(
    balances: Mapping[UUID, Decimal],
    transfers: Sequence[SuggestedTransfer],
) -> dict[UUID, Decimal]:
    """Return the balance vector after every transfer has been paid."""
    result = dict(balances)
    for transfer in transfers:
        result[transfer.from_user] = result.get(transfer.from_user, _ZERO) - transfer.amount
        result[transfer.to_user] = result.get(transfer.to_user, _ZERO) + transfer.amount
    return result


class SettlementPlanner:
    """
    Greedy debt simplification.

    Contract:
        Pure function over a balance vector.  Positive balance means the
        user owes; negative means the user is owed.
    Guarantees:
        - Output order is the order in which rounds ran.
        - No transfer has from_user == to_user.
    Non-goals:
        - Not a minimum-transfer-count solver; the greedy is bounded at
          n - 1 transfers but not optimal.
    """

    @traced_engine(
        "settlement_planner",
        "1.0",
        fingerprint_fields=("balances", "member_order", "threshold"),
    )
    def suggest(
        self,
        balances: Mapping[UUID, Decimal],
        member_order: Sequence[UUID] = (),
        threshold: Decimal = _ZERO,
    ) -> tuple[SuggestedTransfer, ...]:
        """
        Propose transfers that zero ``balances``.

        Args:
            balances: user id -> signed balance.
            member_order: group-members list order, used to break ties.
            threshold: transfers strictly below this amount are applied to
                the working vector but not returned.

        Returns:
            Tuple of SuggestedTransfer in round order.
        """
        rank = {user_id: i for i, user_id in enumerate(member_order)}
        unranked = len(rank)

        def order_key(user_id: UUID) -> tuple[int, str]:
            return (rank.get(user_id, unranked), str(user_id))

        debts = {u: b for u, b in balances.items() if b > _ZERO}
        credits = {u: -b for u, b in balances.items() if b < _ZERO}

        transfers: list[SuggestedTransfer] = []
        dropped = 0
        while debts and credits:
            debtor = min(debts, key=lambda u: (-debts[u], order_key(u)))
            creditor = min(credits, key=lambda u: (-credits[u], order_key(u)))
            amount = min(debts[debtor], credits[creditor])

            debts[debtor] -= amount
            credits[creditor] -= amount
            if debts[debtor] <= _ZERO:
                del debts[debtor]
            if credits[creditor] <= _ZERO:
                del credits[creditor]

            if amount < threshold:
                dropped += 1
                continue
            transfers.append(
                SuggestedTransfer(from_user=debtor, to_user=creditor, amount=amount)
            )

        logger.debug(
            "settlement_plan_computed",
            extra={
                "participants": len(balances),
                "transfer_count": len(transfers),
                "dropped_below_threshold": dropped,
                "threshold": str(threshold),
            },
        )
        return tuple(transfers)
