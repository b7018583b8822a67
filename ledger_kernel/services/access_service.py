"""
AccessService -- loads access snapshots and enforces the access policy.

Responsibility:
    Bridges the pure predicates in ``ledger_kernel.domain.access_policy``
    and the database: loads a ``GroupAccessContext`` for a group, evaluates
    a predicate, and raises the typed authorization error on denial.

Architecture position:
    Kernel > Services.  Called at the top of every mutating operation,
    before any row is written or locked.

Failure modes:
    - GroupNotFoundError: the group id does not exist.
    - NotAMemberError: a referenced user is not a current member.
    - UnauthorizedError: the actor fails a policy predicate.
"""

from typing import Iterable
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.domain.access_policy import (
    GroupAccessContext,
    is_member,
    non_members,
)
from ledger_kernel.exceptions import (
    GroupNotFoundError,
    NotAMemberError,
    UnauthorizedError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.group import Group, GroupMember
from ledger_kernel.services.base import BaseService

logger = get_logger("services.access")


class AccessService(BaseService):
    """
    Policy enforcement point for group-scoped operations.

    Guarantees:
        - Every denial is logged as ``access_denied`` with the action name.
        - The context is re-read on every call; it is never cached across
          transactions.
    """

    def load_context(self, group_id: UUID) -> GroupAccessContext:
        owner_id = self.session.execute(
            select(Group.created_by).where(Group.id == group_id)
        ).scalar_one_or_none()
        if owner_id is None:
            raise GroupNotFoundError(str(group_id))

        rows = self.session.execute(
            select(GroupMember.user_id, GroupMember.role).where(
                GroupMember.group_id == group_id
            )
        ).all()
        return GroupAccessContext(
            group_id=group_id,
            owner_id=owner_id,
            roles={row.user_id: row.role for row in rows},
        )

    def enforce(
        self,
        decision: tuple[bool, str],
        actor_id: UUID | None,
        action: str,
    ) -> None:
        """Raise UnauthorizedError when a policy check denied the action."""
        allowed, reason = decision
        if allowed:
            return
        logger.warning(
            "access_denied",
            extra={"action": action, "denied_actor": str(actor_id), "reason": reason},
        )
        raise UnauthorizedError(
            str(actor_id) if actor_id is not None else None, action, reason
        )

    def require_member(self, ctx: GroupAccessContext, user_id: UUID) -> None:
        if not is_member(ctx, user_id):
            logger.warning(
                "access_denied",
                extra={"action": "membership", "denied_actor": str(user_id)},
            )
            raise NotAMemberError(str(ctx.group_id), str(user_id))

    def require_members(self, ctx: GroupAccessContext, user_ids: Iterable[UUID]) -> None:
        """Raise NotAMemberError for the first non-member, in input order."""
        missing = non_members(ctx, user_ids)
        if missing:
            self.require_member(ctx, missing[0])
