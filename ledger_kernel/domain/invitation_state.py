"""
Invitation state -- derived, never swept.

Responsibility:
    Computes the effective status of an invitation from its stored status
    and expiry timestamp.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - ``expired`` is never written to storage.  A pending row becomes
      expired purely by the passage of time: ``now >= expires_at``.
    - ``accepted`` is terminal and wins over expiry.
"""

from datetime import datetime
from enum import Enum
from typing import Protocol


class InvitationStatus(str, Enum):
    """Effective lifecycle state of an invitation."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"


class _InvitationLike(Protocol):
    status: str
    expires_at: datetime


def is_expired(expires_at: datetime, now: datetime) -> bool:
    return now >= expires_at


def invitation_state(invitation: _InvitationLike, now: datetime) -> InvitationStatus:
    """Return the effective status of ``invitation`` at ``now``."""
    if invitation.status == InvitationStatus.ACCEPTED.value:
        return InvitationStatus.ACCEPTED
    if is_expired(invitation.expires_at, now):
        return InvitationStatus.EXPIRED
    return InvitationStatus.PENDING


def is_acceptable(invitation: _InvitationLike, now: datetime) -> bool:
    return invitation_state(invitation, now) is InvitationStatus.PENDING
