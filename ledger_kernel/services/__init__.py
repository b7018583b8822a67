"""Write-side kernel services.  Services flush; callers commit."""

from ledger_kernel.services.access_service import AccessService
from ledger_kernel.services.expense_service import ExpenseService
from ledger_kernel.services.invitation_service import InvitationService
from ledger_kernel.services.membership_service import MembershipService
from ledger_kernel.services.settlement_executor import SettlementExecutor

__all__ = [
    "AccessService",
    "ExpenseService",
    "InvitationService",
    "MembershipService",
    "SettlementExecutor",
]
