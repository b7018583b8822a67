"""
Typed Exception Hierarchy for the Ledger Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (the UI layer, an HTTP adapter, a retry loop) must branch on the
CAUSE of a failure, not on its wording. Every error therefore has:
  1. A TYPED exception class (catch by type, not message)
  2. A CODE class attribute (machine-readable, stable, API-safe)
  3. A CATEGORY and RETRYABLE flag (drive propagation policy)
  4. Structured DATA attributes (not just a message string)

Example - WRONG way to handle errors:
    try:
        ledger.settle(...)
    except Exception as e:
        if "member" in str(e):  # FRAGILE - message might change
            show_membership_error()

Example - RIGHT way (what this module enables):
    try:
        ledger.settle(...)
    except NotAMemberError as e:
        api_response(code=e.code, user=e.user_id)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerKernelError (base)
    |
    +-- ValidationError                  category=validation
    |   +-- InvalidAmountError
    |   +-- SamePartyError
    |   +-- InvalidEmailError
    |   +-- InvalidRoleError
    |   +-- InvalidSplitError
    |   +-- SplitMismatchError
    |
    +-- AuthorizationError               category=authorization
    |   +-- UnauthorizedError
    |   +-- NotAMemberError
    |   +-- OwnerRemovalError
    |
    +-- StateError                       category=state
    |   +-- InvalidOrExpiredTokenError
    |   +-- InvitationNotFoundError
    |   +-- GroupNotFoundError
    |
    +-- TransientError                   category=transient, retryable
    |   +-- StoreUnavailableError
    |   +-- LockTimeoutError
    |
    +-- AuditError                       category=internal
    |   +-- SettlementAuditError
    |
    +-- ImmutabilityError                category=internal
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category       | Code                      | When Raised
---------------|---------------------------|------------------------------------------
Validation     | INVALID_AMOUNT            | Amount <= 0 or not a finite decimal
               | SAME_PARTY                | Settlement payer == receiver
               | INVALID_EMAIL             | Invitee email is not plausible
               | INVALID_ROLE              | Role is not admin or member
               | INVALID_SPLIT             | Split definition is malformed
               | SPLIT_MISMATCH            | Splits do not reconcile with the total
---------------|---------------------------|------------------------------------------
Authorization  | UNAUTHORIZED              | Actor may not perform this mutation
               | NOT_A_MEMBER              | A referenced user is not a group member
               | OWNER_REMOVAL_FORBIDDEN   | Attempt to remove the group owner
---------------|---------------------------|------------------------------------------
State          | INVALID_OR_EXPIRED_TOKEN  | Token wrong/used/expired/other email
               | INVITATION_NOT_FOUND      | No pending invitation with that id
               | GROUP_NOT_FOUND           | Group id does not exist
---------------|---------------------------|------------------------------------------
Transient      | STORE_UNAVAILABLE         | Database unreachable / connection lost
               | LOCK_TIMEOUT              | Lock wait or statement timeout
---------------|---------------------------|------------------------------------------
Audit          | SETTLEMENT_AUDIT_FAILED   | Audit insert failed in strict mode
---------------|---------------------------|------------------------------------------
Immutability   | IMMUTABILITY_VIOLATION    | Modifying an append-only record

===============================================================================
PROPAGATION POLICY
===============================================================================

- validation / authorization / state: returned to the caller for display,
  never retried automatically.
- transient: safe to retry with backoff (see
  ``ledger_services.retry.call_with_retry``), never silently swallowed.
- audit: best-effort audit failures are LOGGED by the settlement executor
  and never raised; SettlementAuditError only exists for strict mode.

===============================================================================
"""


class LedgerKernelError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses must have a ``code`` class attribute for
    machine-readable error identification.
    """

    code: str = "LEDGER_KERNEL_ERROR"
    category: str = "internal"
    retryable: bool = False


# Validation errors


class ValidationError(LedgerKernelError):
    """Caller supplied structurally invalid input."""

    code: str = "VALIDATION_ERROR"
    category: str = "validation"


class InvalidAmountError(ValidationError):
    """Amount must be a positive, finite decimal."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: str):
        self.amount = amount
        super().__init__(f"Amount must be greater than zero, got {amount}")


class SamePartyError(ValidationError):
    """Settlement payer and receiver are the same user."""

    code: str = "SAME_PARTY"

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"Cannot settle with yourself: {user_id}")


class InvalidEmailError(ValidationError):
    """Invitee email address is not usable."""

    code: str = "INVALID_EMAIL"

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Invalid email address: {email!r}")


class InvalidRoleError(ValidationError):
    """Membership role is not one of admin / member."""

    code: str = "INVALID_ROLE"

    def __init__(self, role: str):
        self.role = role
        super().__init__(f"Invalid member role: {role!r}")


class InvalidSplitError(ValidationError):
    """Split definition is malformed (empty, negative, duplicated)."""

    code: str = "INVALID_SPLIT"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid split: {reason}")


class SplitMismatchError(ValidationError):
    """Split amounts do not reconcile with the expense total."""

    code: str = "SPLIT_MISMATCH"

    def __init__(self, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Split amounts must equal expense amount. "
            f"Expected: {expected}, Got: {actual}"
        )


# Authorization errors


class AuthorizationError(LedgerKernelError):
    """Actor lacks permission for the requested operation."""

    code: str = "AUTHORIZATION_ERROR"
    category: str = "authorization"


class UnauthorizedError(AuthorizationError):
    """Actor is not allowed to perform this action."""

    code: str = "UNAUTHORIZED"

    def __init__(self, actor_id: str | None, action: str, reason: str = ""):
        self.actor_id = actor_id
        self.action = action
        self.reason = reason
        message = f"Actor {actor_id} is not authorized to {action}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class NotAMemberError(AuthorizationError):
    """User is not a current member of the group."""

    code: str = "NOT_A_MEMBER"

    def __init__(self, group_id: str, user_id: str):
        self.group_id = group_id
        self.user_id = user_id
        super().__init__(f"User {user_id} is not a member of group {group_id}")


class OwnerRemovalError(AuthorizationError):
    """The group owner cannot leave or be removed."""

    code: str = "OWNER_REMOVAL_FORBIDDEN"

    def __init__(self, group_id: str, user_id: str):
        self.group_id = group_id
        self.user_id = user_id
        super().__init__(f"Owner {user_id} cannot be removed from group {group_id}")


# State errors


class StateError(LedgerKernelError):
    """Referenced entity does not exist in the expected state."""

    code: str = "STATE_ERROR"
    category: str = "state"


class InvalidOrExpiredTokenError(StateError):
    """
    Invitation token cannot be accepted.

    Deliberately generic: the same error (and message) covers an unknown
    token, an invitation already used, an expired invitation and an email
    mismatch. No attribute reveals which case applied.
    """

    code: str = "INVALID_OR_EXPIRED_TOKEN"

    def __init__(self):
        super().__init__("Invalid or expired invitation token")


class InvitationNotFoundError(StateError):
    """No pending invitation with the given id."""

    code: str = "INVITATION_NOT_FOUND"

    def __init__(self, invitation_id: str):
        self.invitation_id = invitation_id
        super().__init__(f"Pending invitation not found: {invitation_id}")


class GroupNotFoundError(StateError):
    """Group with given id was not found."""

    code: str = "GROUP_NOT_FOUND"

    def __init__(self, group_id: str):
        self.group_id = group_id
        super().__init__(f"Group not found: {group_id}")


# Transient infrastructure errors


class TransientError(LedgerKernelError):
    """Infrastructure fault; safe to retry with backoff."""

    code: str = "TRANSIENT_ERROR"
    category: str = "transient"
    retryable: bool = True


class StoreUnavailableError(TransientError):
    """The backing store could not be reached or dropped the connection."""

    code: str = "STORE_UNAVAILABLE"

    def __init__(self, operation: str, detail: str = ""):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Store unavailable during {operation}: {detail}")


class LockTimeoutError(TransientError):
    """A lock wait or statement timeout expired; the transaction was rolled back."""

    code: str = "LOCK_TIMEOUT"

    def __init__(self, operation: str, detail: str = ""):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Lock timeout during {operation}: {detail}")


# Audit errors


class AuditError(LedgerKernelError):
    """Base exception for audit-trail errors."""

    code: str = "AUDIT_ERROR"


class SettlementAuditError(AuditError):
    """
    Settlement audit record could not be written.

    Only raised when ``strict_settlement_audit`` is enabled; otherwise the
    executor logs the failure and keeps the settled splits.
    """

    code: str = "SETTLEMENT_AUDIT_FAILED"

    def __init__(self, group_id: str, amount: str, reason: str):
        self.group_id = group_id
        self.amount = amount
        self.reason = reason
        super().__init__(
            f"Settlement audit record for group {group_id} "
            f"(amount {amount}) could not be written: {reason}"
        )


# Immutability errors


class ImmutabilityError(LedgerKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Expenses and settlements are append-only; settled splits and
    accepted invitations are terminal.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
