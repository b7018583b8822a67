"""
ledger_services -- orchestration over the ledger kernel and engines.

GroupLedgerService is the public surface.  describe_error maps its errors
to stable codes; call_with_retry retries transient faults.
"""

from ledger_services.error_codes import ErrorDescriptor, describe_error
from ledger_services.ledger_service import GroupLedgerService, KernelServices
from ledger_services.retry import call_with_retry

__all__ = [
    "ErrorDescriptor",
    "GroupLedgerService",
    "KernelServices",
    "call_with_retry",
    "describe_error",
]
