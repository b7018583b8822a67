"""
ledger_services.retry -- bounded retry for transient faults.

Retries only errors flagged ``retryable`` (StoreUnavailableError,
LockTimeoutError).  Validation, authorization and state errors pass
through on the first attempt.  The last transient error is re-raised
once attempts are exhausted; nothing is swallowed.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import TypeVar

from ledger_kernel.exceptions import TransientError
from ledger_kernel.logging_config import get_logger

logger = get_logger("services.retry")

T = TypeVar("T")


def call_with_retry(
    fn: Callable[[], T],
    attempts: int = 3,
    backoff_seconds: float = 0.5,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call ``fn`` up to ``attempts`` times.

    Sleeps ``backoff_seconds * attempt`` between tries (linear backoff).
    ``fn`` must open its own transaction so each try starts clean.
    """
    if attempts < 1:
        raise ValueError(f"attempts must be >= 1, got {attempts}")

    for attempt in range(attempts):
        try:
            return fn()
        except TransientError as exc:
            if attempt >= attempts - 1:
                logger.error(
                    "transient_retry_exhausted",
                    extra={"attempts": attempts, "error_code": exc.code},
                )
                raise
            logger.warning(
                "transient_retry",
                extra={
                    "attempt": attempt + 1,
                    "max_attempts": attempts,
                    "error_code": exc.code,
                },
            )
            sleep(backoff_seconds * (attempt + 1))
    raise AssertionError("unreachable")
