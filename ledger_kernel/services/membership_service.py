"""
MembershipService -- groups and group membership (write side).

Responsibility:
    Creates groups, adds members directly, and removes members (leave or
    kick).  Also owns the idempotent membership insert used by invitation
    acceptance.

Architecture position:
    Kernel > Services.  Flushes within the caller's transaction.

Invariants enforced:
    - One membership row per (group, user).  ``insert_if_absent`` relies
      on the unique index and INSERT ... ON CONFLICT DO NOTHING, so two
      concurrent inserts for the same pair produce exactly one row and
      neither raises.
    - The creator is inserted as an admin and can never be removed.

Failure modes:
    - GroupNotFoundError, NotAMemberError, UnauthorizedError,
      OwnerRemovalError, InvalidRoleError.

Audit relevance:
    Logs ``group_created``, ``member_added`` and ``member_removed``.
    Removing a member does NOT touch their splits; a former member with
    unsettled splits still shows up in the group's balance vector.
"""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError

from ledger_kernel.domain.access_policy import (
    VALID_ROLES,
    check_can_add_member,
    check_can_remove_member,
    is_owner,
)
from ledger_kernel.domain.dtos import GroupInfo, MemberInfo
from ledger_kernel.exceptions import InvalidRoleError, OwnerRemovalError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.group import Group, GroupMember, MemberRole
from ledger_kernel.services.access_service import AccessService
from ledger_kernel.services.base import BaseService

logger = get_logger("services.membership")


def _dialect_insert(dialect_name: str):
    """Dialect-specific INSERT supporting ON CONFLICT, or None."""
    if dialect_name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert

        return insert
    if dialect_name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert

        return insert
    return None


class MembershipService(BaseService):
    """
    Group and membership mutations.

    Guarantees:
        - create_group inserts the group and the owner's admin membership in
          one flush.
        - add_member is idempotent: adding an existing member returns the
          existing row unchanged.
    """

    def __init__(self, session, clock=None, access: AccessService | None = None):
        super().__init__(session, clock)
        self._access = access or AccessService(session, self.clock)

    def create_group(self, actor_id: UUID, name: str, currency: str = "USD") -> GroupInfo:
        now = self.clock.now()
        group = Group(
            id=uuid4(),
            name=name,
            currency=currency.upper(),
            created_by=actor_id,
            created_at=now,
        )
        self.session.add(group)
        self.session.flush()
        self.session.add(
            GroupMember(
                group_id=group.id,
                user_id=actor_id,
                role=MemberRole.ADMIN.value,
                joined_at=now,
            )
        )
        self.session.flush()

        logger.info(
            "group_created",
            extra={"group_id": str(group.id), "owner_id": str(actor_id)},
        )
        return GroupInfo.from_model(group)

    def insert_if_absent(
        self,
        group_id: UUID,
        user_id: UUID,
        role: str,
        joined_at: datetime,
    ) -> bool:
        """
        Insert a membership unless (group_id, user_id) already exists.

        Returns:
            True if this call inserted the row, False if it already existed.
        """
        self.session.flush()
        values = {
            "id": uuid4(),
            "group_id": group_id,
            "user_id": user_id,
            "role": role,
            "joined_at": joined_at,
        }
        insert = _dialect_insert(self.session.get_bind().dialect.name)
        if insert is not None:
            stmt = (
                insert(GroupMember.__table__)
                .values(**values)
                .on_conflict_do_nothing(index_elements=["group_id", "user_id"])
            )
            result = self.session.execute(stmt)
            return result.rowcount == 1

        # Other backends: insert in a savepoint and treat a unique
        # violation as "already a member".
        savepoint = self.session.begin_nested()
        try:
            self.session.add(GroupMember(**values))
            self.session.flush()
            savepoint.commit()
            return True
        except IntegrityError:
            savepoint.rollback()
            logger.debug(
                "membership_insert_race",
                extra={"group_id": str(group_id), "user_id": str(user_id)},
            )
            return False

    def add_member(
        self,
        actor_id: UUID,
        group_id: UUID,
        user_id: UUID,
        role: str = MemberRole.MEMBER.value,
    ) -> MemberInfo:
        """Add ``user_id`` directly.  Only the owner or an admin may do this."""
        if role not in VALID_ROLES:
            raise InvalidRoleError(role)

        ctx = self._access.load_context(group_id)
        self._access.enforce(check_can_add_member(ctx, actor_id), actor_id, "add_member")

        inserted = self.insert_if_absent(group_id, user_id, role, self.clock.now())
        member = self.session.execute(
            select(GroupMember).where(
                GroupMember.group_id == group_id,
                GroupMember.user_id == user_id,
            )
        ).scalar_one()

        logger.info(
            "member_added" if inserted else "member_already_present",
            extra={
                "group_id": str(group_id),
                "user_id": str(user_id),
                "role": member.role,
            },
        )
        return MemberInfo.from_model(member)

    def remove_member(self, actor_id: UUID, group_id: UUID, user_id: UUID) -> None:
        """
        Remove ``user_id`` from the group.

        A member may remove themself (leave); the owner or an admin may
        remove anyone except the owner.
        """
        ctx = self._access.load_context(group_id)
        if is_owner(ctx, user_id):
            raise OwnerRemovalError(str(group_id), str(user_id))
        self._access.require_member(ctx, user_id)
        self._access.enforce(
            check_can_remove_member(ctx, actor_id, user_id), actor_id, "remove_member"
        )

        self.session.execute(
            delete(GroupMember).where(
                GroupMember.group_id == group_id,
                GroupMember.user_id == user_id,
            )
        )
        self.session.flush()

        logger.info(
            "member_removed",
            extra={
                "group_id": str(group_id),
                "user_id": str(user_id),
                "removed_by": str(actor_id),
            },
        )
