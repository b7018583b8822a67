"""Read-only selectors.  Selectors return DTOs, never ORM instances."""

from ledger_kernel.selectors.balance_selector import BalanceSelector
from ledger_kernel.selectors.group_selector import GroupSelector
from ledger_kernel.selectors.invitation_selector import InvitationSelector

__all__ = ["BalanceSelector", "GroupSelector", "InvitationSelector"]
