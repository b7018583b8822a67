"""
Module: ledger_kernel.models.group
Responsibility: ORM persistence for expense-sharing groups and their
    membership rows.
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - A user holds at most one membership per group
      (uq_group_member constraint).  Concurrent invitation acceptance relies
      on this index together with INSERT ... ON CONFLICT DO NOTHING.
    - Role is one of MemberRole.

Failure modes:
    - IntegrityError on duplicate (group_id, user_id) when inserted without
      the conflict clause.

Audit relevance:
    Membership gates every mutation: only members settle, only admins and
    the owner invite.  Members are listed in joined_at order, which also
    breaks ties in the settlement planner.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import Base, UUIDString


class MemberRole(str, Enum):
    """Role of a user inside one group."""

    ADMIN = "admin"
    MEMBER = "member"


class Group(Base):
    """
    An expense-sharing group.

    Contract:
        created_by is the owner.  The owner is inserted as an ADMIN member
        when the group is created and can never be removed.
    """

    __tablename__ = "groups"

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        default="USD",
    )

    created_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        nullable=False,
    )

    members: Mapped[list["GroupMember"]] = relationship(
        back_populates="group",
        order_by=lambda: (GroupMember.joined_at, GroupMember.user_id),
    )

    def __repr__(self) -> str:
        return f"<Group {self.id}: {self.name}>"


class GroupMember(Base):
    """
    Membership of one user in one group.

    Guarantees:
        - (group_id, user_id) is unique.
    """

    __tablename__ = "group_members"

    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_group_member"),
        Index("idx_group_member_user", "user_id"),
    )

    group_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
    )

    user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=MemberRole.MEMBER.value,
    )

    joined_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        nullable=False,
    )

    group: Mapped["Group"] = relationship(back_populates="members")

    @property
    def is_admin(self) -> bool:
        return self.role == MemberRole.ADMIN.value

    def __repr__(self) -> str:
        return f"<GroupMember {self.user_id} in {self.group_id} ({self.role})>"
