"""
GroupSelector -- read access to groups and membership lists.

Responsibility:
    Returns group metadata and the members list in its canonical order,
    ``joined_at ASC, user_id ASC``.  That order is what the settlement
    planner uses to break ties, so every consumer reads it from here.

Architecture position:
    Kernel > Selectors -- read-only.
"""

from uuid import UUID

from sqlalchemy import select

from ledger_kernel.domain.dtos import GroupInfo, MemberInfo
from ledger_kernel.exceptions import GroupNotFoundError
from ledger_kernel.models.group import Group, GroupMember
from ledger_kernel.selectors.base import BaseSelector


class GroupSelector(BaseSelector):
    """Groups and their members."""

    def get_group(self, group_id: UUID) -> GroupInfo:
        group = self.session.get(Group, group_id)
        if group is None:
            raise GroupNotFoundError(str(group_id))
        return GroupInfo.from_model(group)

    def list_members(self, group_id: UUID) -> list[MemberInfo]:
        """Current members in list order."""
        rows = self.session.execute(
            select(GroupMember)
            .where(GroupMember.group_id == group_id)
            .order_by(GroupMember.joined_at.asc(), GroupMember.user_id.asc())
        ).scalars()
        return [MemberInfo.from_model(m) for m in rows]

    def member_order(self, group_id: UUID) -> list[UUID]:
        return [m.user_id for m in self.list_members(group_id)]

    def groups_for_user(self, user_id: UUID) -> list[GroupInfo]:
        rows = self.session.execute(
            select(Group)
            .join(GroupMember, GroupMember.group_id == Group.id)
            .where(GroupMember.user_id == user_id)
            .order_by(Group.created_at.asc(), Group.id.asc())
        ).scalars()
        return [GroupInfo.from_model(g) for g in rows]
