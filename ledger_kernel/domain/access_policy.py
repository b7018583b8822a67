"""
Access policy -- who may act on a group.

Responsibility:
    Centralizes every authorization predicate as a pure function over a
    ``GroupAccessContext`` snapshot, so the rules are unit-testable without
    a database.  Loading the snapshot and raising typed errors is the job of
    ``ledger_kernel.services.access_service``.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - The group creator (owner) is always treated as an admin, even if the
      stored role says otherwise.
    - A settlement is recordable only by one of its two parties.
    - The owner can never be removed from the group.

Check functions return ``(allowed, reason)``; reason is empty when allowed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping
from uuid import UUID

ADMIN = "admin"
MEMBER = "member"
VALID_ROLES = frozenset({ADMIN, MEMBER})


@dataclass(frozen=True)
class GroupAccessContext:
    """Snapshot of a group's owner and membership roles."""

    group_id: UUID
    owner_id: UUID
    roles: Mapping[UUID, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "roles", MappingProxyType(dict(self.roles)))


def is_member(ctx: GroupAccessContext, user_id: UUID) -> bool:
    return user_id in ctx.roles


def is_owner(ctx: GroupAccessContext, user_id: UUID) -> bool:
    return user_id == ctx.owner_id


def is_admin_or_owner(ctx: GroupAccessContext, user_id: UUID) -> bool:
    if is_owner(ctx, user_id):
        return True
    return ctx.roles.get(user_id) == ADMIN


def non_members(ctx: GroupAccessContext, user_ids: Iterable[UUID]) -> list[UUID]:
    """Ids from user_ids that are not current members, in input order."""
    seen: set[UUID] = set()
    missing = []
    for user_id in user_ids:
        if user_id in seen:
            continue
        seen.add(user_id)
        if not is_member(ctx, user_id):
            missing.append(user_id)
    return missing


def check_settlement_party(
    actor_id: UUID, from_user: UUID, to_user: UUID
) -> tuple[bool, str]:
    """A settlement is only recordable by its payer or its receiver."""
    if actor_id in (from_user, to_user):
        return (True, "")
    return (False, "only the payer or the receiver may record a settlement")


def check_can_invite(ctx: GroupAccessContext, actor_id: UUID) -> tuple[bool, str]:
    if is_admin_or_owner(ctx, actor_id):
        return (True, "")
    return (False, "only the group owner or an admin may invite")


def check_can_add_member(ctx: GroupAccessContext, actor_id: UUID) -> tuple[bool, str]:
    if is_admin_or_owner(ctx, actor_id):
        return (True, "")
    return (False, "only the group owner or an admin may add members")


def check_can_cancel_invitation(
    ctx: GroupAccessContext, actor_id: UUID, inviter_id: UUID
) -> tuple[bool, str]:
    if actor_id == inviter_id or is_admin_or_owner(ctx, actor_id):
        return (True, "")
    return (False, "only the inviter, the group owner or an admin may cancel")


def check_can_remove_member(
    ctx: GroupAccessContext, actor_id: UUID, target_id: UUID
) -> tuple[bool, str]:
    """
    Members may leave; the owner and admins may remove others.

    Removal of the owner is a separate, unconditional rule (see
    ``is_owner``) and is checked by the caller first.
    """
    if actor_id == target_id and is_member(ctx, actor_id):
        return (True, "")
    if is_admin_or_owner(ctx, actor_id):
        return (True, "")
    return (False, "only the member themself, the group owner or an admin may remove a member")
