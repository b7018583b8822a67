"""
ledger_services.error_codes -- stable, machine-readable error mapping.

An adapter (HTTP, RPC, UI) calls ``describe_error`` and branches on
``code``, never on the message text.  Every LedgerKernelError carries its
own code, category and retryable flag; anything else is reported as an
opaque internal error so no driver detail leaks to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass

from ledger_kernel.exceptions import InvalidOrExpiredTokenError, LedgerKernelError

INTERNAL_ERROR_CODE = "INTERNAL_ERROR"

CATEGORIES = ("validation", "authorization", "state", "transient", "internal")


@dataclass(frozen=True)
class ErrorDescriptor:
    code: str
    category: str
    retryable: bool
    message: str


def describe_error(exc: BaseException) -> ErrorDescriptor:
    """Map an exception raised by GroupLedgerService to a descriptor."""
    if isinstance(exc, InvalidOrExpiredTokenError):
        # One message for every cause.
        return ErrorDescriptor(
            code=exc.code,
            category=exc.category,
            retryable=False,
            message="Invalid or expired invitation token",
        )
    if isinstance(exc, LedgerKernelError):
        return ErrorDescriptor(
            code=exc.code,
            category=exc.category,
            retryable=exc.retryable,
            message=str(exc),
        )
    return ErrorDescriptor(
        code=INTERNAL_ERROR_CODE,
        category="internal",
        retryable=False,
        message="Internal error",
    )
