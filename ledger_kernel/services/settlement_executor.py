"""
SettlementExecutor -- retires whole expense splits, oldest first.

Responsibility:
    Applies a payment of ``amount`` from ``from_user`` to ``to_user`` inside
    a group against the unsettled splits that ``from_user`` owes on
    expenses ``to_user`` paid.  Splits are settled whole, oldest first,
    until the next one no longer fits.  One Settlement audit row records
    the amount actually applied.

Architecture position:
    Kernel > Services.  Runs inside the caller's transaction; the facade
    commits.

Invariants enforced:
    - No double settlement: candidate splits are locked with
      ``SELECT ... FOR UPDATE OF expense_splits`` and re-read
      (``populate_existing``).  A concurrent settlement blocks on the lock,
      then sees the rows already settled and skips them.
    - Split atomicity: a split is either fully settled or untouched.
    - The audit row's amount is the settled total, never the requested
      amount.
    - Remaining amount >= 0 is a normal outcome, not an error.

Failure modes:
    - InvalidAmountError, SamePartyError, UnauthorizedError, NotAMemberError
      (checked in that order, before any row is locked).
    - Audit insert failing with a unique, foreign-key or check violation:
      only the SAVEPOINT is rolled back; the failure is logged as
      ``settlement_audit_insert_failed`` and ``settlement_id`` is None.  In
      strict audit mode SettlementAuditError is raised instead and the
      caller's transaction rolls back.
    - Any other error propagates and the caller rolls back everything.

Audit relevance:
    Split state is the source of truth for balances.  The Settlement row is
    a best-effort record of the payment; losing it never changes a balance.
"""

from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ledger_engines.split_allocation import DEFAULT_MINOR_UNIT, to_money
from ledger_kernel.domain.access_policy import check_settlement_party
from ledger_kernel.domain.dtos import SettlementResult
from ledger_kernel.exceptions import (
    InvalidAmountError,
    SamePartyError,
    SettlementAuditError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.expense import Expense, ExpenseSplit
from ledger_kernel.models.settlement import Settlement
from ledger_kernel.services.access_service import AccessService
from ledger_kernel.services.base import BaseService

logger = get_logger("services.settlement")

_ZERO = Decimal("0")

SETTLEMENT_DESCRIPTION = "Settle up"

# unique_violation, foreign_key_violation, check_violation
_TOLERATED_AUDIT_PGCODES = frozenset({"23505", "23503", "23514"})
_TOLERATED_AUDIT_MESSAGES = (
    "UNIQUE constraint failed",
    "FOREIGN KEY constraint failed",
    "CHECK constraint failed",
)


def is_tolerated_audit_violation(exc: IntegrityError) -> bool:
    """True for unique, foreign-key and check violations."""
    pgcode = getattr(exc.orig, "pgcode", None)
    if pgcode is not None:
        return pgcode in _TOLERATED_AUDIT_PGCODES
    message = str(exc.orig)
    return any(marker in message for marker in _TOLERATED_AUDIT_MESSAGES)


class SettlementExecutor(BaseService):
    """
    Atomic, partially-fillable settlement.

    Contract:
        ``settle`` validates, locks, walks and records within the session's
        current transaction.  It flushes but never commits.

    Guarantees:
        - Walk order is ``split.created_at ASC, split.id ASC``.
        - The walk stops at the first split larger than what remains.

    Non-goals:
        - Partial settlement of a split.
        - Settling debts in the reverse direction (to_user owing from_user).
    """

    def __init__(
        self,
        session,
        clock=None,
        access: AccessService | None = None,
        strict_audit: bool = False,
        minor_unit: Decimal = DEFAULT_MINOR_UNIT,
    ):
        super().__init__(session, clock)
        self._access = access or AccessService(session, self.clock)
        self._strict_audit = strict_audit
        self._minor_unit = minor_unit

    def settle(
        self,
        actor_id: UUID,
        group_id: UUID,
        from_user: UUID,
        to_user: UUID,
        amount: Decimal,
    ) -> SettlementResult:
        """
        Settle up to ``amount`` of what ``from_user`` owes ``to_user``.

        Returns:
            SettlementResult with the settled split ids, the amount applied
            and the amount that could not be applied.
        """
        requested = self._validate_amount(amount)
        if from_user == to_user:
            raise SamePartyError(str(from_user))
        self._access.enforce(
            check_settlement_party(actor_id, from_user, to_user), actor_id, "settle"
        )
        ctx = self._access.load_context(group_id)
        self._access.require_members(ctx, [from_user, to_user])

        splits = self._lock_open_splits(group_id, from_user, to_user)

        now = self.clock.now()
        remaining = requested
        settled_total = _ZERO
        settled_ids: list[UUID] = []
        for split in splits:
            if remaining <= _ZERO:
                break
            if split.amount > remaining:
                break
            split.is_settled = True
            split.settled_at = now
            settled_total += split.amount
            remaining -= split.amount
            settled_ids.append(split.id)
        self.session.flush()

        settlement_id = None
        if settled_total > _ZERO:
            settlement_id = self._record_settlement(
                group_id, from_user, to_user, settled_total
            )

        logger.info(
            "settlement_completed",
            extra={
                "from_user": str(from_user),
                "to_user": str(to_user),
                "requested_amount": str(requested),
                "settled_amount": str(settled_total),
                "remaining_amount": str(remaining),
                "settled_split_count": len(settled_ids),
                "candidate_split_count": len(splits),
                "settlement_id": str(settlement_id) if settlement_id else None,
            },
        )
        return SettlementResult(
            settled_split_ids=tuple(settled_ids),
            settled_amount=settled_total,
            remaining_amount=remaining,
            settlement_id=settlement_id,
        )

    def _validate_amount(self, amount) -> Decimal:
        value = to_money(amount, self._minor_unit)
        if value <= _ZERO:
            raise InvalidAmountError(str(amount))
        return value

    def _lock_open_splits(
        self, group_id: UUID, from_user: UUID, to_user: UUID
    ) -> list[ExpenseSplit]:
        stmt = (
            select(ExpenseSplit)
            .join(Expense, ExpenseSplit.expense_id == Expense.id)
            .where(
                ExpenseSplit.user_id == from_user,
                Expense.payer_id == to_user,
                Expense.group_id == group_id,
                ExpenseSplit.is_settled.is_(False),
            )
            .order_by(ExpenseSplit.created_at.asc(), ExpenseSplit.id.asc())
            .with_for_update(of=ExpenseSplit)
            .execution_options(populate_existing=True)
        )
        return list(self.session.execute(stmt).scalars())

    def _build_settlement(
        self, group_id: UUID, from_user: UUID, to_user: UUID, amount: Decimal
    ) -> Settlement:
        return Settlement(
            id=uuid4(),
            group_id=group_id,
            payer_id=from_user,
            receiver_id=to_user,
            amount=amount,
            description=SETTLEMENT_DESCRIPTION,
            created_at=self.clock.now(),
        )

    def _record_settlement(
        self, group_id: UUID, from_user: UUID, to_user: UUID, amount: Decimal
    ) -> UUID | None:
        """Insert the audit row inside a SAVEPOINT."""
        record = self._build_settlement(group_id, from_user, to_user, amount)
        savepoint = self.session.begin_nested()
        try:
            self.session.add(record)
            self.session.flush()
            savepoint.commit()
        except IntegrityError as exc:
            savepoint.rollback()
            if not is_tolerated_audit_violation(exc):
                raise
            if self._strict_audit:
                logger.error(
                    "settlement_audit_insert_failed",
                    extra={"amount": str(amount), "strict": True},
                    exc_info=True,
                )
                raise SettlementAuditError(str(group_id), str(amount), str(exc.orig)) from exc
            logger.error(
                "settlement_audit_insert_failed",
                extra={
                    "from_user": str(from_user),
                    "to_user": str(to_user),
                    "amount": str(amount),
                    "strict": False,
                },
                exc_info=True,
            )
            return None
        return record.id
