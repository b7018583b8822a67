"""
InvitationService -- the invitation state machine (write side).

Responsibility:
    Creates email-addressed invitations, accepts them idempotently, and
    lets the inviter or a group admin cancel a pending one.

Architecture position:
    Kernel > Services.  Flushes within the caller's transaction.
    Uses MembershipService.insert_if_absent for the membership upsert.

States:
    pending --accept--> accepted   (stored, terminal)
    pending --time----> expired    (derived from expires_at, never stored)
    pending --cancel--> (row deleted)

Invariants enforced:
    - Acceptance is idempotent.  Two requests for the same token may both
      pass the pending lookup; the membership upsert leaves exactly one
      row, and the conditional UPDATE ... WHERE status = 'pending' marks the
      invitation accepted exactly once.
    - Any failed lookup raises the same InvalidOrExpiredTokenError: wrong
      token, used token, expired token and wrong email are
      indistinguishable to the caller.
    - Re-inviting an email while an earlier invitation is pending creates
      a second, independent token.  Accepting one leaves the other valid.

Failure modes:
    - UnauthorizedError: inviter is not owner/admin; acceptor has no
      verified email; canceller is not inviter/owner/admin.
    - InvalidEmailError, InvalidRoleError: malformed input.
    - InvalidOrExpiredTokenError: no acceptable invitation for the caller.
    - InvitationNotFoundError: cancel of a missing or already-accepted row.
"""

import re
import secrets
from datetime import timedelta
from uuid import UUID, uuid4

from sqlalchemy import func, select, update

from ledger_kernel.domain.access_policy import (
    VALID_ROLES,
    check_can_cancel_invitation,
    check_can_invite,
    is_member,
)
from ledger_kernel.domain.dtos import (
    AcceptanceOutcome,
    AcceptanceResult,
    ActorIdentity,
    InvitationInfo,
)
from ledger_kernel.exceptions import (
    InvalidEmailError,
    InvalidOrExpiredTokenError,
    InvalidRoleError,
    InvitationNotFoundError,
    UnauthorizedError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.invitation import Invitation, StoredInvitationStatus
from ledger_kernel.services.access_service import AccessService
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.membership_service import MembershipService

logger = get_logger("services.invitation")

DEFAULT_INVITATION_TTL_HOURS = 168

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_email(email: str | None) -> str:
    """Lower-case and strip ``email``; raise InvalidEmailError if implausible."""
    if email is None:
        raise InvalidEmailError("")
    normalized = email.strip().lower()
    if len(normalized) > 320 or not _EMAIL_PATTERN.match(normalized):
        raise InvalidEmailError(email)
    return normalized


def generate_token() -> str:
    """32 bytes from the OS CSPRNG, URL-safe base64."""
    return secrets.token_urlsafe(32)


class InvitationService(BaseService):
    """Invitation lifecycle."""

    def __init__(
        self,
        session,
        clock=None,
        access: AccessService | None = None,
        membership: MembershipService | None = None,
        ttl_hours: int = DEFAULT_INVITATION_TTL_HOURS,
    ):
        super().__init__(session, clock)
        self._access = access or AccessService(session, self.clock)
        self._membership = membership or MembershipService(
            session, self.clock, access=self._access
        )
        self._ttl = timedelta(hours=ttl_hours)

    def create_invitation(
        self,
        actor_id: UUID,
        group_id: UUID,
        invitee_email: str,
        role: str = "member",
    ) -> InvitationInfo:
        """
        Invite ``invitee_email`` to ``group_id``.

        Only the group owner or an admin may invite.  The returned DTO
        carries the token; delivering it is the caller's business.
        """
        if role not in VALID_ROLES:
            raise InvalidRoleError(role)
        email = normalize_email(invitee_email)

        ctx = self._access.load_context(group_id)
        self._access.enforce(check_can_invite(ctx, actor_id), actor_id, "create_invitation")

        now = self.clock.now()
        invitation = Invitation(
            id=uuid4(),
            group_id=group_id,
            inviter_id=actor_id,
            invitee_email=email,
            invited_role=role,
            token=generate_token(),
            status=StoredInvitationStatus.PENDING.value,
            created_at=now,
            expires_at=now + self._ttl,
        )
        self.session.add(invitation)
        self.session.flush()

        logger.info(
            "invitation_created",
            extra={
                "invitation_id": str(invitation.id),
                "inviter_id": str(actor_id),
                "invited_role": role,
                "expires_at": invitation.expires_at,
            },
        )
        return InvitationInfo.from_model(invitation, now)

    def accept_invitation(self, identity: ActorIdentity, token: str) -> AcceptanceResult:
        """
        Accept the invitation identified by ``token`` for ``identity``.

        Returns:
            AcceptanceResult.  outcome is JOINED when this call created the
            membership, ALREADY_MEMBER when the caller was already a member,
            and ALREADY_ACCEPTED when the same caller repeats an acceptance
            that already went through.
        """
        if not identity.email or not identity.email.strip():
            raise UnauthorizedError(
                str(identity.user_id), "accept_invitation", "verified email required"
            )
        email = identity.email.strip().lower()
        now = self.clock.now()

        invitation = self.session.execute(
            select(Invitation).where(
                Invitation.token == token,
                Invitation.status == StoredInvitationStatus.PENDING.value,
                Invitation.expires_at > now,
                func.lower(Invitation.invitee_email) == email,
            )
        ).scalar_one_or_none()

        if invitation is None:
            return self._resolve_repeat_acceptance(identity, email, token)

        inserted = self._membership.insert_if_absent(
            invitation.group_id, identity.user_id, invitation.invited_role, now
        )
        marked = self.session.execute(
            update(Invitation.__table__)
            .where(
                Invitation.__table__.c.id == invitation.id,
                Invitation.__table__.c.status == StoredInvitationStatus.PENDING.value,
            )
            .values(status=StoredInvitationStatus.ACCEPTED.value, accepted_at=now)
        ).rowcount
        self.session.expire(invitation, ["status", "accepted_at"])

        outcome = AcceptanceOutcome.JOINED if inserted else AcceptanceOutcome.ALREADY_MEMBER
        logger.info(
            "invitation_accepted",
            extra={
                "invitation_id": str(invitation.id),
                "user_id": str(identity.user_id),
                "outcome": outcome.value,
                "marked_accepted": marked == 1,
            },
        )
        return AcceptanceResult(group_id=invitation.group_id, outcome=outcome)

    def _resolve_repeat_acceptance(
        self, identity: ActorIdentity, email: str, token: str
    ) -> AcceptanceResult:
        """
        The pending lookup missed.  A repeat by the same caller whose first
        acceptance already committed is benign; anything else is the
        generic token error.
        """
        accepted = self.session.execute(
            select(Invitation).where(
                Invitation.token == token,
                Invitation.status == StoredInvitationStatus.ACCEPTED.value,
                func.lower(Invitation.invitee_email) == email,
            )
        ).scalar_one_or_none()
        if accepted is not None:
            ctx = self._access.load_context(accepted.group_id)
            if is_member(ctx, identity.user_id):
                logger.info(
                    "invitation_already_accepted",
                    extra={
                        "invitation_id": str(accepted.id),
                        "user_id": str(identity.user_id),
                    },
                )
                return AcceptanceResult(
                    group_id=accepted.group_id,
                    outcome=AcceptanceOutcome.ALREADY_ACCEPTED,
                )

        logger.warning(
            "invitation_acceptance_rejected",
            extra={"user_id": str(identity.user_id)},
        )
        raise InvalidOrExpiredTokenError()

    def cancel_invitation(self, actor_id: UUID, invitation_id: UUID) -> None:
        """Hard-delete a pending invitation (inviter, owner or admin)."""
        invitation = self.session.get(Invitation, invitation_id)
        if (
            invitation is None
            or invitation.status != StoredInvitationStatus.PENDING.value
        ):
            raise InvitationNotFoundError(str(invitation_id))

        ctx = self._access.load_context(invitation.group_id)
        self._access.enforce(
            check_can_cancel_invitation(ctx, actor_id, invitation.inviter_id),
            actor_id,
            "cancel_invitation",
        )

        self.session.delete(invitation)
        self.session.flush()
        logger.info(
            "invitation_cancelled",
            extra={"invitation_id": str(invitation_id), "cancelled_by": str(actor_id)},
        )
