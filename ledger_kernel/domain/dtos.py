"""
DTOs -- immutable data crossing the kernel boundary.

Responsibility:
    Frozen dataclasses returned by kernel services and selectors and
    accepted by the facade.  Callers never receive ORM instances.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    from_model() class methods are boundary converters invoked only from
    the service and selector layers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from ledger_kernel.domain.invitation_state import InvitationStatus, invitation_state

if TYPE_CHECKING:
    from ledger_kernel.models.expense import Expense as ExpenseModel
    from ledger_kernel.models.group import Group as GroupModel
    from ledger_kernel.models.group import GroupMember as GroupMemberModel
    from ledger_kernel.models.invitation import Invitation as InvitationModel


@dataclass(frozen=True)
class ActorIdentity:
    """
    Caller identity supplied by the external identity provider.

    ``email`` is the provider-verified address, or None when the provider
    has not verified one.
    """

    user_id: UUID
    email: str | None = None


@dataclass(frozen=True)
class GroupInfo:
    id: UUID
    name: str
    currency: str
    owner_id: UUID
    created_at: datetime

    @classmethod
    def from_model(cls, group: GroupModel) -> GroupInfo:
        return cls(
            id=group.id,
            name=group.name,
            currency=group.currency,
            owner_id=group.created_by,
            created_at=group.created_at,
        )


@dataclass(frozen=True)
class MemberInfo:
    group_id: UUID
    user_id: UUID
    role: str
    joined_at: datetime

    @classmethod
    def from_model(cls, member: GroupMemberModel) -> MemberInfo:
        return cls(
            group_id=member.group_id,
            user_id=member.user_id,
            role=member.role,
            joined_at=member.joined_at,
        )


@dataclass(frozen=True)
class SplitInfo:
    id: UUID
    user_id: UUID
    amount: Decimal
    is_settled: bool
    settled_at: datetime | None


@dataclass(frozen=True)
class ExpenseInfo:
    id: UUID
    group_id: UUID
    payer_id: UUID
    amount: Decimal
    description: str
    category: str | None
    created_at: datetime
    splits: tuple[SplitInfo, ...] = field(default_factory=tuple)

    @classmethod
    def from_model(cls, expense: ExpenseModel) -> ExpenseInfo:
        return cls(
            id=expense.id,
            group_id=expense.group_id,
            payer_id=expense.payer_id,
            amount=expense.amount,
            description=expense.description,
            category=expense.category,
            created_at=expense.created_at,
            splits=tuple(
                SplitInfo(
                    id=s.id,
                    user_id=s.user_id,
                    amount=s.amount,
                    is_settled=s.is_settled,
                    settled_at=s.settled_at,
                )
                for s in expense.splits
            ),
        )


@dataclass(frozen=True)
class MemberBalance:
    """
    One entry of a group's balance vector.

    Positive ``balance`` means the user owes money; negative means the
    user is owed.  ``is_member`` is False for a former participant who
    still has unsettled splits.
    """

    user_id: UUID
    balance: Decimal
    is_member: bool = True


@dataclass(frozen=True)
class PairwiseBalance:
    """What one user and one counterparty owe each other inside a group."""

    counterparty_id: UUID
    amount_owed: Decimal  # counterparty owes the user
    amount_owes: Decimal  # user owes the counterparty

    @property
    def net(self) -> Decimal:
        """Positive when the user owes the counterparty on balance."""
        return self.amount_owes - self.amount_owed


@dataclass(frozen=True)
class GroupSummary:
    """Headline totals of one group.  Unsettled figures count open splits only."""

    group_id: UUID
    total_expenses: Decimal
    expense_count: int
    member_count: int
    unsettled_split_count: int
    total_unsettled_amount: Decimal


@dataclass(frozen=True)
class SettlementResult:
    """
    Outcome of one settlement call.

    A non-zero ``remaining_amount`` is a normal result: less debt was
    available than requested.  ``settlement_id`` is None when nothing was
    settled or when the best-effort audit record could not be written.
    """

    settled_split_ids: tuple[UUID, ...]
    settled_amount: Decimal
    remaining_amount: Decimal
    settlement_id: UUID | None = None


@dataclass(frozen=True)
class InvitationInfo:
    id: UUID
    group_id: UUID
    inviter_id: UUID
    invitee_email: str
    invited_role: str
    token: str
    status: InvitationStatus
    created_at: datetime
    expires_at: datetime
    accepted_at: datetime | None

    @classmethod
    def from_model(cls, invitation: InvitationModel, now: datetime) -> InvitationInfo:
        return cls(
            id=invitation.id,
            group_id=invitation.group_id,
            inviter_id=invitation.inviter_id,
            invitee_email=invitation.invitee_email,
            invited_role=invitation.invited_role,
            token=invitation.token,
            status=invitation_state(invitation, now),
            created_at=invitation.created_at,
            expires_at=invitation.expires_at,
            accepted_at=invitation.accepted_at,
        )


class AcceptanceOutcome(str, Enum):
    """How an acceptance call resolved.  All three are successes."""

    JOINED = "joined"
    ALREADY_MEMBER = "already_member"
    ALREADY_ACCEPTED = "already_accepted"


@dataclass(frozen=True)
class AcceptanceResult:
    group_id: UUID
    outcome: AcceptanceOutcome
