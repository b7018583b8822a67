"""
Module: ledger_kernel.models.expense
Responsibility: ORM persistence for expenses and the per-participant splits
    that are the single source of truth for balances.
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - Expense amount is strictly positive (ck_expense_amount_positive).
    - Split amount is non-negative (ck_split_amount_non_negative).
    - One split per (expense, user) (uq_expense_split_user).
    - Expenses are append-only and settled splits are terminal; both are
      enforced by the ORM listeners in db/immutability.py.

Failure modes:
    - IntegrityError on a CHECK or UNIQUE violation.
    - ImmutabilityViolationError on UPDATE/DELETE of an expense, or on
      reopening, re-pricing or deleting a settled split.

Audit relevance:
    There are NO stored balances.  Every balance is derived from the
    unsettled splits below, so settling a split is the only way a debt
    disappears.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import Base, UUIDString


class Expense(Base):
    """
    A payment made by one member on behalf of the group.

    Contract:
        Created together with its splits in one flush.  The sum of split
        amounts equals ``amount`` within the minor unit.  Never updated
        or deleted afterwards.
    """

    __tablename__ = "expenses"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_expense_amount_positive"),
        Index("idx_expense_group_payer", "group_id", "payer_id"),
    )

    group_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("groups.id"),
        nullable=False,
    )

    payer_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    description: Mapped[str] = mapped_column(String(500), nullable=False)

    category: Mapped[str | None] = mapped_column(String(50), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        nullable=False,
    )

    splits: Mapped[list["ExpenseSplit"]] = relationship(
        back_populates="expense",
        passive_deletes="all",
        order_by=lambda: (ExpenseSplit.created_at, ExpenseSplit.id),
    )

    def __repr__(self) -> str:
        return f"<Expense {self.id}: {self.amount} paid by {self.payer_id}>"


class ExpenseSplit(Base):
    """
    The share of one expense owed by one participant.

    Contract:
        ``is_settled`` moves from False to True exactly once, by the
        settlement executor, and never back.  ``amount`` never changes.

    Guarantees:
        - A split whose user is the expense payer contributes zero net
          balance: it appears on both sides of the balance formula.
    """

    __tablename__ = "expense_splits"

    __table_args__ = (
        UniqueConstraint("expense_id", "user_id", name="uq_expense_split_user"),
        CheckConstraint("amount >= 0", name="ck_split_amount_non_negative"),
        Index("idx_split_user_unsettled", "user_id", "is_settled"),
    )

    expense_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("expenses.id"),
        nullable=False,
    )

    user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    is_settled: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    settled_at: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        nullable=False,
    )

    expense: Mapped["Expense"] = relationship(back_populates="splits")

    def __repr__(self) -> str:
        state = "settled" if self.is_settled else "open"
        return f"<ExpenseSplit {self.user_id} owes {self.amount} ({state})>"
