"""
Module: ledger_kernel.models.invitation
Responsibility: ORM persistence for group invitations.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - token is globally unique (uq_invitation_token).
    - invitee_email is stored lower-case.
    - Stored status is PENDING or ACCEPTED only.  EXPIRED is derived from
      expires_at at read time (see domain/invitation_state.py).
    - An accepted invitation is terminal: db/immutability.py blocks
      changes and deletion.

Failure modes:
    - IntegrityError on a token collision (astronomically unlikely with
      32 bytes of entropy).

Audit relevance:
    accepted_at records when a membership was granted through an
    invitation.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base, UUIDString


class StoredInvitationStatus(str, Enum):
    """Statuses that are ever written to the invitations table."""

    PENDING = "pending"
    ACCEPTED = "accepted"


class Invitation(Base):
    """An invitation for an email address to join a group."""

    __tablename__ = "invitations"

    __table_args__ = (
        UniqueConstraint("token", name="uq_invitation_token"),
        Index("idx_invitation_email_status", "invitee_email", "status"),
        Index("idx_invitation_group", "group_id"),
    )

    group_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
    )

    inviter_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    invitee_email: Mapped[str] = mapped_column(String(320), nullable=False)

    invited_role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="member",
    )

    token: Mapped[str] = mapped_column(String(128), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=StoredInvitationStatus.PENDING.value,
    )

    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        nullable=False,
    )

    expires_at: Mapped[datetime] = mapped_column(nullable=False)

    accepted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<Invitation {self.invitee_email} to {self.group_id} ({self.status})>"
