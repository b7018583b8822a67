"""Tests for derived invitation status."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from ledger_kernel.domain.invitation_state import (
    InvitationStatus,
    invitation_state,
    is_acceptable,
    is_expired,
)

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@dataclass
class _Invitation:
    status: str
    expires_at: datetime


class TestInvitationState:
    def test_pending_before_expiry(self):
        inv = _Invitation("pending", NOW + timedelta(hours=1))
        assert invitation_state(inv, NOW) is InvitationStatus.PENDING
        assert is_acceptable(inv, NOW)

    def test_expired_at_boundary(self):
        """An invitation is expired from the instant expires_at is reached."""
        inv = _Invitation("pending", NOW)
        assert is_expired(inv.expires_at, NOW)
        assert invitation_state(inv, NOW) is InvitationStatus.EXPIRED
        assert not is_acceptable(inv, NOW)

    def test_accepted_wins_over_expiry(self):
        inv = _Invitation("accepted", NOW - timedelta(days=30))
        assert invitation_state(inv, NOW) is InvitationStatus.ACCEPTED
        assert not is_acceptable(inv, NOW)

    def test_expiry_is_not_stored(self):
        inv = _Invitation("pending", NOW - timedelta(seconds=1))
        invitation_state(inv, NOW)
        assert inv.status == "pending"
