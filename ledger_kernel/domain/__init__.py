"""Pure domain layer: DTOs, clock, access predicates, derived invitation state."""

from ledger_kernel.domain.access_policy import GroupAccessContext
from ledger_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from ledger_kernel.domain.dtos import (
    AcceptanceOutcome,
    AcceptanceResult,
    ActorIdentity,
    ExpenseInfo,
    GroupInfo,
    GroupSummary,
    InvitationInfo,
    MemberBalance,
    MemberInfo,
    PairwiseBalance,
    SettlementResult,
    SplitInfo,
)
from ledger_kernel.domain.invitation_state import InvitationStatus, invitation_state

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "GroupAccessContext",
    "ActorIdentity",
    "GroupInfo",
    "GroupSummary",
    "MemberInfo",
    "ExpenseInfo",
    "SplitInfo",
    "MemberBalance",
    "PairwiseBalance",
    "SettlementResult",
    "InvitationInfo",
    "InvitationStatus",
    "AcceptanceOutcome",
    "AcceptanceResult",
    "invitation_state",
]
