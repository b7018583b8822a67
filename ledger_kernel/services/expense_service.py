"""
ExpenseService -- records expenses and their splits.

Responsibility:
    Validates an expense against the group's membership, divides it with
    the split allocation engine, and inserts the expense together with one
    split per participant.

Architecture position:
    Kernel > Services.  Flushes within the caller's transaction.
    Delegates all arithmetic to ``ledger_engines.split_allocation``.

Invariants enforced:
    - Split amounts sum to the expense amount (conservation).  With the
      payer's own split on both sides of the balance formula, this keeps
      the group's balances summing to zero.
    - The payer and every participant are current members.
    - Expense and split rows are never updated afterwards (see
      db/immutability.py); only the settlement executor flips is_settled.

Failure modes:
    - NotAMemberError: actor, payer or a participant is not a member.
    - InvalidAmountError / InvalidSplitError / SplitMismatchError from the
      allocation engine.
"""

from collections.abc import Sequence
from decimal import Decimal
from uuid import UUID, uuid4

from ledger_engines.split_allocation import (
    DEFAULT_MINOR_UNIT,
    SplitAllocationEngine,
    SplitMethod,
    SplitShare,
)
from ledger_kernel.domain.dtos import ExpenseInfo, SplitInfo
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.expense import Expense, ExpenseSplit
from ledger_kernel.services.access_service import AccessService
from ledger_kernel.services.base import BaseService

logger = get_logger("services.expense")


class ExpenseService(BaseService):
    """
    Write side for expenses.

    Contract:
        ``record_expense`` either inserts the expense and all of its splits
        or raises before anything is flushed.
    """

    def __init__(
        self,
        session,
        clock=None,
        access: AccessService | None = None,
        allocator: SplitAllocationEngine | None = None,
        minor_unit: Decimal = DEFAULT_MINOR_UNIT,
    ):
        super().__init__(session, clock)
        self._access = access or AccessService(session, self.clock)
        self._allocator = allocator or SplitAllocationEngine()
        self._minor_unit = minor_unit

    def record_expense(
        self,
        actor_id: UUID,
        group_id: UUID,
        payer_id: UUID,
        amount: Decimal,
        description: str,
        shares: Sequence[SplitShare | UUID],
        method: SplitMethod = SplitMethod.EQUAL,
        category: str | None = None,
    ) -> ExpenseInfo:
        """
        Record an expense paid by ``payer_id`` and split among ``shares``.

        ``shares`` may be plain user ids for an equal split.
        """
        shares = [s if isinstance(s, SplitShare) else SplitShare(user_id=s) for s in shares]

        ctx = self._access.load_context(group_id)
        self._access.require_member(ctx, actor_id)
        self._access.require_members(ctx, [payer_id, *(s.user_id for s in shares)])

        allocation = self._allocator.allocate(
            amount=amount,
            shares=shares,
            method=method,
            minor_unit=self._minor_unit,
        )

        now = self.clock.now()
        expense = Expense(
            id=uuid4(),
            group_id=group_id,
            payer_id=payer_id,
            amount=allocation.amount,
            description=description,
            category=category,
            created_at=now,
        )
        self.session.add(expense)
        splits = [
            ExpenseSplit(
                id=uuid4(),
                expense=expense,
                user_id=line.user_id,
                amount=line.amount,
                is_settled=False,
                created_at=now,
            )
            for line in allocation.lines
        ]
        self.session.add_all(splits)
        self.session.flush()

        logger.info(
            "expense_recorded",
            extra={
                "expense_id": str(expense.id),
                "payer_id": str(payer_id),
                "amount": str(allocation.amount),
                "method": allocation.method.value,
                "split_count": len(splits),
            },
        )
        return ExpenseInfo(
            id=expense.id,
            group_id=group_id,
            payer_id=payer_id,
            amount=allocation.amount,
            description=description,
            category=category,
            created_at=now,
            splits=tuple(
                SplitInfo(
                    id=s.id,
                    user_id=s.user_id,
                    amount=s.amount,
                    is_settled=False,
                    settled_at=None,
                )
                for s in splits
            ),
        )
