"""
Module: ledger_kernel.selectors.balance_selector
Responsibility: Derives net balances from unsettled expense splits.  There
    are no stored balances; every number returned here is recomputed from
    the split rows visible to the caller's transaction.
Architecture position: Kernel > Selectors.  Read-only.

Formula:
    balance(group, user) =
        SUM(unsettled splits the user owes in the group)
      - SUM(unsettled splits on expenses the user paid in the group)

    Positive means the user owes; negative means the user is owed.  A
    payer's own split appears on both sides and nets to zero.

Invariants enforced:
    - Conservation: the balances of every participant in a group sum to
      zero, because each unsettled split is counted once as owed (by its
      user) and once as paid (by its expense's payer).
    - Batch equivalence: get_balances(ids, user)[g] == get_balance(g, user)
      for every g.  The batch form only groups the same two aggregates.
    - Snapshot: each aggregate is a single statement, so a read never sees
      half of a concurrent settlement at READ COMMITTED.

Failure modes:
    - Driver faults propagate; session_scope turns them into
      StoreUnavailableError / LockTimeoutError.
"""

from collections.abc import Iterable
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from ledger_kernel.domain.dtos import GroupSummary, MemberBalance, PairwiseBalance
from ledger_kernel.models.expense import Expense, ExpenseSplit
from ledger_kernel.models.group import GroupMember
from ledger_kernel.selectors.base import BaseSelector
from ledger_kernel.selectors.group_selector import GroupSelector

_ZERO = Decimal("0")
_CENT = Decimal("0.01")


def _money(value) -> Decimal:
    if value is None:
        return _ZERO.quantize(_CENT)
    return Decimal(str(value)).quantize(_CENT)


class BalanceSelector(BaseSelector):
    """
    Balance read model.

    Guarantees:
        - A user with no splits has balance 0.
        - Returned amounts are quantized to 0.01.
    """

    def _unsettled(self, *columns):
        return (
            select(*columns)
            .select_from(ExpenseSplit)
            .join(Expense, ExpenseSplit.expense_id == Expense.id)
            .where(ExpenseSplit.is_settled.is_(False))
        )

    def get_balance(self, group_id: UUID, user_id: UUID) -> Decimal:
        """Net balance of ``user_id`` in ``group_id``."""
        owed = self.session.execute(
            self._unsettled(func.sum(ExpenseSplit.amount))
            .where(Expense.group_id == group_id, ExpenseSplit.user_id == user_id)
        ).scalar()
        paid = self.session.execute(
            self._unsettled(func.sum(ExpenseSplit.amount))
            .where(Expense.group_id == group_id, Expense.payer_id == user_id)
        ).scalar()
        return _money(owed) - _money(paid)

    def get_balances(self, group_ids: Iterable[UUID], user_id: UUID) -> dict[UUID, Decimal]:
        """
        Net balance of ``user_id`` in each of ``group_ids``.

        Ids with no activity map to 0; duplicate ids collapse.
        """
        ids = list(dict.fromkeys(group_ids))
        result = {gid: _money(None) for gid in ids}
        if not ids:
            return result

        owed_rows = self.session.execute(
            self._unsettled(Expense.group_id, func.sum(ExpenseSplit.amount))
            .where(Expense.group_id.in_(ids), ExpenseSplit.user_id == user_id)
            .group_by(Expense.group_id)
        ).all()
        paid_rows = self.session.execute(
            self._unsettled(Expense.group_id, func.sum(ExpenseSplit.amount))
            .where(Expense.group_id.in_(ids), Expense.payer_id == user_id)
            .group_by(Expense.group_id)
        ).all()

        for gid, total in owed_rows:
            result[gid] += _money(total)
        for gid, total in paid_rows:
            result[gid] -= _money(total)
        return result

    def get_group_balances(self, group_id: UUID) -> list[MemberBalance]:
        """
        Balance vector of a group.

        Current members come first in members-list order; former
        participants with unsettled splits follow, ordered by id.
        """
        owed_rows = self.session.execute(
            self._unsettled(ExpenseSplit.user_id, func.sum(ExpenseSplit.amount))
            .where(Expense.group_id == group_id)
            .group_by(ExpenseSplit.user_id)
        ).all()
        paid_rows = self.session.execute(
            self._unsettled(Expense.payer_id, func.sum(ExpenseSplit.amount))
            .where(Expense.group_id == group_id)
            .group_by(Expense.payer_id)
        ).all()

        totals: dict[UUID, Decimal] = {}
        for user_id, total in owed_rows:
            totals[user_id] = totals.get(user_id, _ZERO) + _money(total)
        for user_id, total in paid_rows:
            totals[user_id] = totals.get(user_id, _ZERO) - _money(total)

        member_order = GroupSelector(self.session).member_order(group_id)
        members = set(member_order)
        vector = [
            MemberBalance(user_id=uid, balance=_money(totals.get(uid)), is_member=True)
            for uid in member_order
        ]
        former = sorted((uid for uid in totals if uid not in members), key=str)
        vector.extend(
            MemberBalance(user_id=uid, balance=_money(totals[uid]), is_member=False)
            for uid in former
        )
        return vector

    def get_pairwise_balances(self, group_id: UUID, user_id: UUID) -> list[PairwiseBalance]:
        """
        Per-counterparty view of what ``user_id`` owes and is owed.

        Only unsettled splits between two different users count.
        Counterparties are ordered by id.
        """
        owes_rows = self.session.execute(
            self._unsettled(Expense.payer_id, func.sum(ExpenseSplit.amount))
            .where(
                Expense.group_id == group_id,
                ExpenseSplit.user_id == user_id,
                Expense.payer_id != user_id,
            )
            .group_by(Expense.payer_id)
        ).all()
        owed_rows = self.session.execute(
            self._unsettled(ExpenseSplit.user_id, func.sum(ExpenseSplit.amount))
            .where(
                Expense.group_id == group_id,
                Expense.payer_id == user_id,
                ExpenseSplit.user_id != user_id,
            )
            .group_by(ExpenseSplit.user_id)
        ).all()

        owes = {uid: _money(total) for uid, total in owes_rows}
        owed = {uid: _money(total) for uid, total in owed_rows}
        counterparties = sorted(set(owes) | set(owed), key=str)
        return [
            PairwiseBalance(
                counterparty_id=uid,
                amount_owed=owed.get(uid, _money(None)),
                amount_owes=owes.get(uid, _money(None)),
            )
            for uid in counterparties
        ]

    def get_group_summary(self, group_id: UUID) -> GroupSummary:
        """
        Expense, member and open-split totals of a group.

        Each figure is its own aggregate; joining expenses, members and
        splits in one statement would multiply the sums.
        """
        expense_total, expense_count = self.session.execute(
            select(func.sum(Expense.amount), func.count(Expense.id))
            .where(Expense.group_id == group_id)
        ).one()
        member_count = self.session.execute(
            select(func.count(GroupMember.id)).where(GroupMember.group_id == group_id)
        ).scalar()
        unsettled_total, unsettled_count = self.session.execute(
            self._unsettled(func.sum(ExpenseSplit.amount), func.count(ExpenseSplit.id))
            .where(Expense.group_id == group_id)
        ).one()
        return GroupSummary(
            group_id=group_id,
            total_expenses=_money(expense_total),
            expense_count=expense_count or 0,
            member_count=member_count or 0,
            unsettled_split_count=unsettled_count or 0,
            total_unsettled_amount=_money(unsettled_total),
        )
