"""
Module: ledger_kernel.models.settlement
Responsibility: ORM persistence for settlement audit records.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - amount > 0 (ck_settlement_amount_positive).
    - payer_id <> receiver_id (ck_settlement_distinct_parties).
    - Append-only: UPDATE and DELETE are blocked by db/immutability.py.

Failure modes:
    - IntegrityError on CHECK or FK violation.  The settlement executor
      inserts inside a SAVEPOINT so that this failure never undoes the
      split mutations (unless strict audit mode is on).

Audit relevance:
    A Settlement row records who paid whom and how much.  It is a record
    only; balances are derived from splits and never from this table.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base, UUIDString


class Settlement(Base):
    """A recorded payment from one member to another."""

    __tablename__ = "settlements"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_settlement_amount_positive"),
        CheckConstraint(
            "payer_id <> receiver_id", name="ck_settlement_distinct_parties"
        ),
        Index("idx_settlement_group", "group_id"),
    )

    group_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("groups.id"),
        nullable=False,
    )

    payer_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    receiver_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Settlement {self.payer_id} -> {self.receiver_id}: {self.amount}>"
