"""
InvitationSelector -- read access to invitations with derived status.

Responsibility:
    Lists invitations for an invitee email or for a group.  Status on the
    returned DTOs is the derived one (pending / accepted / expired), so a
    pending row past ``expires_at`` reads as expired without any sweep.

Architecture position:
    Kernel > Selectors -- read-only.  ``now`` is passed in by the caller,
    which owns the clock.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select

from ledger_kernel.domain.dtos import InvitationInfo
from ledger_kernel.models.invitation import Invitation, StoredInvitationStatus
from ledger_kernel.selectors.base import BaseSelector


class InvitationSelector(BaseSelector):
    """Invitation read model."""

    def pending_for_email(self, email: str, now: datetime) -> list[InvitationInfo]:
        """Pending, unexpired invitations addressed to ``email``, newest first."""
        rows = self.session.execute(
            select(Invitation)
            .where(
                func.lower(Invitation.invitee_email) == email.strip().lower(),
                Invitation.status == StoredInvitationStatus.PENDING.value,
                Invitation.expires_at > now,
            )
            .order_by(Invitation.created_at.desc(), Invitation.id.asc())
        ).scalars()
        return [InvitationInfo.from_model(inv, now) for inv in rows]

    def for_group(self, group_id: UUID, now: datetime) -> list[InvitationInfo]:
        """Every invitation of a group, newest first."""
        rows = self.session.execute(
            select(Invitation)
            .where(Invitation.group_id == group_id)
            .order_by(Invitation.created_at.desc(), Invitation.id.asc())
        ).scalars()
        return [InvitationInfo.from_model(inv, now) for inv in rows]

    def get(self, invitation_id: UUID, now: datetime) -> InvitationInfo | None:
        invitation = self.session.get(Invitation, invitation_id)
        if invitation is None:
            return None
        return InvitationInfo.from_model(invitation, now)
