"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

Balances are derived, never stored.  The only inputs are expense splits and
their settled flag, so anything that rewrites history silently changes what
somebody owes.  This module blocks such rewrites for code that goes through
the ORM:

    session.flush()
         |
         v
    [before_update event] --> _check_*_immutability() --> ImmutabilityViolationError
         |                                                        ^
         v                                                        |
    [before_delete event] --> _check_*_delete() -----------------+
         |
         v
    SQL sent to database (only if checks pass)

If a check fails, ImmutabilityViolationError is raised and the transaction
is aborted.  The database is never modified.

The CHECK and UNIQUE constraints on the tables still apply to raw SQL.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity        | When Immutable                | Why
--------------|-------------------------------|--------------------------------------
Expense       | ALWAYS (from creation)        | Splits were reconciled against amount
ExpenseSplit  | amount always; every field    | Settled = debt retired; reopening
              | once is_settled = True        | would resurrect it
Settlement    | ALWAYS (from creation)        | Audit record of a payment
Invitation    | After status = accepted       | Membership was granted from it

===============================================================================
DESIGN DECISIONS
===============================================================================

1. WHY CHECK "WAS SETTLED" NOT "IS SETTLED"?
   The settlement executor itself flips is_settled False -> True and stamps
   settled_at.  That transition is allowed; everything after it is blocked.
   Attribute history tells the two apart.

2. WHY INLINE IMPORTS?
   Models import from db, db imports from models.  Inline imports defer
   resolution until the function runs.

3. Core UPDATE statements bypass these listeners.  Invitation acceptance
   uses a conditional Core UPDATE on a pending row, which is a permitted
   transition.

===============================================================================
USAGE
===============================================================================

Registered by create_tables(), or explicitly:

    from ledger_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()

To temporarily disable (TESTS ONLY):

    from ledger_kernel.db.immutability import unregister_immutability_listeners
    unregister_immutability_listeners()

===============================================================================
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from ledger_kernel.exceptions import ImmutabilityViolationError
from ledger_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _changed_fields(target) -> list[str]:
    """Names of mapped attributes with pending changes on target."""
    insp = inspect(target)
    return [attr.key for attr in insp.attrs if attr.history.has_changes()]


def _block(entity_type: str, target, operation: str, reason: str, field: str | None = None):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
            "field": field,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


# Expense


def _check_expense_immutability(mapper, connection, target):
    """Expenses are append-only."""
    changed = _changed_fields(target)
    if changed:
        _block(
            "Expense",
            target,
            "UPDATE",
            f"Cannot modify field '{changed[0]}' on an expense",
            field=changed[0],
        )


def _check_expense_delete(mapper, connection, target):
    _block("Expense", target, "DELETE", "Expenses cannot be deleted")


# ExpenseSplit


def _was_settled(target) -> bool:
    history = get_history(target, "is_settled")
    if history.deleted:
        return bool(history.deleted[0])
    if history.added:
        return False
    return bool(target.is_settled)


def _check_split_immutability(mapper, connection, target):
    """
    Allow exactly one transition: is_settled False -> True (with settled_at).

    Logic:
        1. amount changing: block (splits were reconciled against the expense)
        2. was settled and anything changes: block (includes reopening)
    """
    amount_history = get_history(target, "amount")
    if amount_history.has_changes():
        _block(
            "ExpenseSplit",
            target,
            "UPDATE",
            "Cannot change the amount of an expense split",
            field="amount",
        )

    if _was_settled(target):
        changed = _changed_fields(target)
        if changed:
            reason = (
                "Cannot reopen a settled expense split"
                if "is_settled" in changed
                else f"Cannot modify field '{changed[0]}' on a settled expense split"
            )
            _block("ExpenseSplit", target, "UPDATE", reason, field=changed[0])


def _check_split_delete(mapper, connection, target):
    if _was_settled(target):
        _block("ExpenseSplit", target, "DELETE", "Settled expense splits cannot be deleted")


# Settlement


def _check_settlement_immutability(mapper, connection, target):
    changed = _changed_fields(target)
    if changed:
        _block(
            "Settlement",
            target,
            "UPDATE",
            f"Cannot modify field '{changed[0]}' on a settlement record",
            field=changed[0],
        )


def _check_settlement_delete(mapper, connection, target):
    _block("Settlement", target, "DELETE", "Settlement records cannot be deleted")


# Invitation


def _was_accepted(target) -> bool:
    history = get_history(target, "status")
    if history.deleted:
        return history.deleted[0] == "accepted"
    if history.added:
        return False
    return target.status == "accepted"


def _check_invitation_immutability(mapper, connection, target):
    if not _was_accepted(target):
        return
    changed = _changed_fields(target)
    if changed:
        _block(
            "Invitation",
            target,
            "UPDATE",
            f"Cannot modify field '{changed[0]}' on an accepted invitation",
            field=changed[0],
        )


def _check_invitation_delete(mapper, connection, target):
    if _was_accepted(target):
        _block("Invitation", target, "DELETE", "Accepted invitations cannot be deleted")


def _listeners():
    from ledger_kernel.models.expense import Expense, ExpenseSplit
    from ledger_kernel.models.invitation import Invitation
    from ledger_kernel.models.settlement import Settlement

    return (
        (Expense, "before_update", _check_expense_immutability),
        (Expense, "before_delete", _check_expense_delete),
        (ExpenseSplit, "before_update", _check_split_immutability),
        (ExpenseSplit, "before_delete", _check_split_delete),
        (Settlement, "before_update", _check_settlement_immutability),
        (Settlement, "before_delete", _check_settlement_delete),
        (Invitation, "before_update", _check_invitation_immutability),
        (Invitation, "before_delete", _check_invitation_delete),
    )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Safe to call more than once; already-registered listeners are skipped.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests where you need to intentionally
    violate immutability rules to verify detection.
    """
    for target, event_name, listener_fn in _listeners():
        _safe_remove_listener(target, event_name, listener_fn)
