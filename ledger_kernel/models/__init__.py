"""ORM models for the group ledger."""

from ledger_kernel.models.expense import Expense, ExpenseSplit
from ledger_kernel.models.group import Group, GroupMember, MemberRole
from ledger_kernel.models.invitation import Invitation, StoredInvitationStatus
from ledger_kernel.models.settlement import Settlement

__all__ = [
    "Group",
    "GroupMember",
    "MemberRole",
    "Expense",
    "ExpenseSplit",
    "Settlement",
    "Invitation",
    "StoredInvitationStatus",
]
