"""
ledger_services.ledger_service -- GroupLedgerService, the public facade.

Responsibility:
    The one surface a UI or API adapter calls.  Each method is a single
    unit of work: it opens a session through ``session_scope``, wires the
    kernel services for that session, runs, and commits.  Any error rolls
    the whole call back and propagates unchanged.

Architecture position:
    Services -- orchestration over ``ledger_kernel`` and ``ledger_engines``.
    This is the only place where kernel services are constructed and
    composed, and the only place where ``LedgerConfig`` values are handed
    down to the kernel.

Invariants enforced:
    - One transaction per call.  Nothing is shared across calls except the
      session factory, the clock and the stateless engines.
    - Every call binds LogContext (correlation_id, actor_id, group_id,
      operation) so every log line of the call can be joined.
    - Read-only calls are retried on TransientError; writes are not.  A
      caller that wants to retry a write wraps it in ``call_with_retry``
      itself.

Failure modes:
    - Every LedgerKernelError subclass propagates; adapters map it with
      ``ledger_services.error_codes.describe_error``.

Usage:
    from ledger_services import GroupLedgerService

    ledger = GroupLedgerService(get_session_factory(), config=get_active_config())
    result = ledger.settle(actor, group_id, actor.user_id, payee_id, Decimal("25.00"))
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from decimal import Decimal
from typing import TypeVar
from uuid import UUID, uuid4

from sqlalchemy.orm import Session, sessionmaker

from ledger_config.schema import LedgerConfig
from ledger_engines.settlement_planner import SettlementPlanner, SuggestedTransfer
from ledger_engines.split_allocation import (
    SplitAllocationEngine,
    SplitMethod,
    SplitShare,
)
from ledger_kernel.db.engine import session_scope
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import (
    AcceptanceResult,
    ActorIdentity,
    ExpenseInfo,
    GroupInfo,
    GroupSummary,
    InvitationInfo,
    MemberBalance,
    MemberInfo,
    PairwiseBalance,
    SettlementResult,
)
from ledger_kernel.exceptions import UnauthorizedError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.selectors.balance_selector import BalanceSelector
from ledger_kernel.selectors.group_selector import GroupSelector
from ledger_kernel.selectors.invitation_selector import InvitationSelector
from ledger_kernel.services.access_service import AccessService
from ledger_kernel.services.expense_service import ExpenseService
from ledger_kernel.services.invitation_service import InvitationService
from ledger_kernel.services.membership_service import MembershipService
from ledger_kernel.services.settlement_executor import SettlementExecutor
from ledger_services.retry import call_with_retry

logger = get_logger("services.ledger")

T = TypeVar("T")


class KernelServices:
    """
    Per-session wiring of the kernel services.

    Every service is created exactly once and shares one AccessService, so
    a call that touches several services sees a single access snapshot
    path.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock,
        config: LedgerConfig,
        allocator: SplitAllocationEngine,
    ):
        self.session = session
        self.access = AccessService(session, clock)
        self.membership = MembershipService(session, clock, access=self.access)
        self.expenses = ExpenseService(
            session,
            clock,
            access=self.access,
            allocator=allocator,
            minor_unit=config.currency_minor_unit,
        )
        self.settlements = SettlementExecutor(
            session,
            clock,
            access=self.access,
            strict_audit=config.strict_settlement_audit,
            minor_unit=config.currency_minor_unit,
        )
        self.invitations = InvitationService(
            session,
            clock,
            access=self.access,
            membership=self.membership,
            ttl_hours=config.invitation_ttl_hours,
        )
        self.balances = BalanceSelector(session)
        self.groups = GroupSelector(session)
        self.invitation_reads = InvitationSelector(session)


def _require_member(s: KernelServices, group_id: UUID, actor: ActorIdentity) -> None:
    """GroupNotFoundError for an unknown group, NotAMemberError for an outsider."""
    ctx = s.access.load_context(group_id)
    s.access.require_member(ctx, actor.user_id)


class GroupLedgerService:
    """
    Facade over balances, settlement and invitations.

    Args:
        session_factory: sessionmaker bound to an initialized engine.
        clock: time source; SystemClock when omitted.
        config: runtime settings; package defaults when omitted.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        config: LedgerConfig | None = None,
        planner: SettlementPlanner | None = None,
        allocator: SplitAllocationEngine | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        # database_url is only consumed by engine bootstrap, never here.
        self._config = config or LedgerConfig(database_url="")
        self._planner = planner or SettlementPlanner()
        self._allocator = allocator or SplitAllocationEngine()

    @property
    def config(self) -> LedgerConfig:
        return self._config

    @property
    def clock(self) -> Clock:
        return self._clock

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    def _run(
        self,
        operation: str,
        work: Callable[[KernelServices], T],
        *,
        actor_id: UUID | None = None,
        group_id: UUID | None = None,
        read_only: bool = False,
    ) -> T:
        def attempt() -> T:
            with session_scope(self._session_factory, operation) as session:
                services = KernelServices(
                    session, self._clock, self._config, self._allocator
                )
                return work(services)

        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor_id=str(actor_id) if actor_id is not None else None,
            group_id=str(group_id) if group_id is not None else None,
            operation=operation,
        ):
            if read_only:
                result = call_with_retry(
                    attempt,
                    attempts=self._config.transient_retry_attempts,
                    backoff_seconds=self._config.transient_retry_backoff_seconds,
                )
            else:
                result = attempt()
            logger.debug("ledger_call_completed", extra={"read_only": read_only})
            return result

    # ------------------------------------------------------------------
    # Balances and suggestions
    # ------------------------------------------------------------------

    def get_balance(self, actor: ActorIdentity, group_id: UUID) -> Decimal:
        """The caller's net balance in ``group_id`` (positive = owes)."""
        return self._run(
            "get_balance",
            lambda s: s.balances.get_balance(group_id, actor.user_id),
            actor_id=actor.user_id,
            group_id=group_id,
            read_only=True,
        )

    def get_balances(
        self, actor: ActorIdentity, group_ids: Iterable[UUID]
    ) -> dict[UUID, Decimal]:
        """The caller's net balance in each of ``group_ids``."""
        ids = list(group_ids)
        return self._run(
            "get_balances",
            lambda s: s.balances.get_balances(ids, actor.user_id),
            actor_id=actor.user_id,
            read_only=True,
        )

    def get_group_balances(
        self, actor: ActorIdentity, group_id: UUID
    ) -> list[MemberBalance]:
        """The group's balance vector.  Members only."""

        def work(s: KernelServices) -> list[MemberBalance]:
            _require_member(s, group_id, actor)
            return s.balances.get_group_balances(group_id)

        return self._run(
            "get_group_balances",
            work,
            actor_id=actor.user_id,
            group_id=group_id,
            read_only=True,
        )

    def get_pairwise_balances(
        self, actor: ActorIdentity, group_id: UUID
    ) -> list[PairwiseBalance]:
        """What the caller owes and is owed, per counterparty.  Members only."""

        def work(s: KernelServices) -> list[PairwiseBalance]:
            _require_member(s, group_id, actor)
            return s.balances.get_pairwise_balances(group_id, actor.user_id)

        return self._run(
            "get_pairwise_balances",
            work,
            actor_id=actor.user_id,
            group_id=group_id,
            read_only=True,
        )

    def get_group_summary(self, actor: ActorIdentity, group_id: UUID) -> GroupSummary:
        """Expense, member and open-split totals.  Members only."""

        def work(s: KernelServices) -> GroupSummary:
            _require_member(s, group_id, actor)
            return s.balances.get_group_summary(group_id)

        return self._run(
            "get_group_summary",
            work,
            actor_id=actor.user_id,
            group_id=group_id,
            read_only=True,
        )

    def suggest_settlements(
        self, actor: ActorIdentity, group_id: UUID
    ) -> tuple[SuggestedTransfer, ...]:
        """
        Suggested transfers that would zero the group's balances.

        The caller must be a member.  Transfers below the configured
        threshold are not returned.
        """

        def work(s: KernelServices) -> tuple[SuggestedTransfer, ...]:
            _require_member(s, group_id, actor)
            vector = s.balances.get_group_balances(group_id)
            return self._planner.suggest(
                balances={mb.user_id: mb.balance for mb in vector},
                member_order=tuple(mb.user_id for mb in vector if mb.is_member),
                threshold=self._config.suggestion_threshold,
            )

        return self._run(
            "suggest_settlements",
            work,
            actor_id=actor.user_id,
            group_id=group_id,
            read_only=True,
        )

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    def settle(
        self,
        actor: ActorIdentity,
        group_id: UUID,
        from_user: UUID,
        to_user: UUID,
        amount: Decimal,
    ) -> SettlementResult:
        """Settle up to ``amount`` of what ``from_user`` owes ``to_user``."""
        return self._run(
            "settle",
            lambda s: s.settlements.settle(
                actor.user_id, group_id, from_user, to_user, amount
            ),
            actor_id=actor.user_id,
            group_id=group_id,
        )

    # ------------------------------------------------------------------
    # Invitations
    # ------------------------------------------------------------------

    def create_invitation(
        self,
        actor: ActorIdentity,
        group_id: UUID,
        invitee_email: str,
        role: str = "member",
    ) -> InvitationInfo:
        return self._run(
            "create_invitation",
            lambda s: s.invitations.create_invitation(
                actor.user_id, group_id, invitee_email, role
            ),
            actor_id=actor.user_id,
            group_id=group_id,
        )

    def accept_invitation(self, identity: ActorIdentity, token: str) -> AcceptanceResult:
        return self._run(
            "accept_invitation",
            lambda s: s.invitations.accept_invitation(identity, token),
            actor_id=identity.user_id,
        )

    def cancel_invitation(self, actor: ActorIdentity, invitation_id: UUID) -> None:
        self._run(
            "cancel_invitation",
            lambda s: s.invitations.cancel_invitation(actor.user_id, invitation_id),
            actor_id=actor.user_id,
        )

    def list_pending_invitations(self, identity: ActorIdentity) -> list[InvitationInfo]:
        """Pending, unexpired invitations for the caller's email, newest first."""
        if not identity.email or not identity.email.strip():
            raise UnauthorizedError(
                str(identity.user_id), "list_pending_invitations", "verified email required"
            )
        return self._run(
            "list_pending_invitations",
            lambda s: s.invitation_reads.pending_for_email(
                identity.email, self._clock.now()
            ),
            actor_id=identity.user_id,
            read_only=True,
        )

    def list_group_invitations(
        self, actor: ActorIdentity, group_id: UUID
    ) -> list[InvitationInfo]:
        """Every invitation of a group with its derived status.  Members only."""

        def work(s: KernelServices) -> list[InvitationInfo]:
            _require_member(s, group_id, actor)
            return s.invitation_reads.for_group(group_id, self._clock.now())

        return self._run(
            "list_group_invitations",
            work,
            actor_id=actor.user_id,
            group_id=group_id,
            read_only=True,
        )

    # ------------------------------------------------------------------
    # Groups, members and expenses
    # ------------------------------------------------------------------

    def create_group(
        self, actor: ActorIdentity, name: str, currency: str = "USD"
    ) -> GroupInfo:
        return self._run(
            "create_group",
            lambda s: s.membership.create_group(actor.user_id, name, currency),
            actor_id=actor.user_id,
        )

    def add_member(
        self,
        actor: ActorIdentity,
        group_id: UUID,
        user_id: UUID,
        role: str = "member",
    ) -> MemberInfo:
        return self._run(
            "add_member",
            lambda s: s.membership.add_member(actor.user_id, group_id, user_id, role),
            actor_id=actor.user_id,
            group_id=group_id,
        )

    def remove_member(self, actor: ActorIdentity, group_id: UUID, user_id: UUID) -> None:
        """Leave (``user_id`` is the caller) or kick (owner or admin)."""
        self._run(
            "remove_member",
            lambda s: s.membership.remove_member(actor.user_id, group_id, user_id),
            actor_id=actor.user_id,
            group_id=group_id,
        )

    def get_group(self, actor: ActorIdentity, group_id: UUID) -> GroupInfo:
        def work(s: KernelServices) -> GroupInfo:
            _require_member(s, group_id, actor)
            return s.groups.get_group(group_id)

        return self._run(
            "get_group",
            work,
            actor_id=actor.user_id,
            group_id=group_id,
            read_only=True,
        )

    def list_members(self, actor: ActorIdentity, group_id: UUID) -> list[MemberInfo]:
        """Members in list order.  Members only."""

        def work(s: KernelServices) -> list[MemberInfo]:
            _require_member(s, group_id, actor)
            return s.groups.list_members(group_id)

        return self._run(
            "list_members",
            work,
            actor_id=actor.user_id,
            group_id=group_id,
            read_only=True,
        )

    def list_groups(self, actor: ActorIdentity) -> list[GroupInfo]:
        """Groups the caller belongs to, oldest first."""
        return self._run(
            "list_groups",
            lambda s: s.groups.groups_for_user(actor.user_id),
            actor_id=actor.user_id,
            read_only=True,
        )

    def record_expense(
        self,
        actor: ActorIdentity,
        group_id: UUID,
        payer_id: UUID,
        amount: Decimal,
        description: str,
        shares: Sequence[SplitShare | UUID],
        method: SplitMethod = SplitMethod.EQUAL,
        category: str | None = None,
    ) -> ExpenseInfo:
        return self._run(
            "record_expense",
            lambda s: s.expenses.record_expense(
                actor.user_id,
                group_id,
                payer_id,
                amount,
                description,
                shares,
                method=method,
                category=category,
            ),
            actor_id=actor.user_id,
            group_id=group_id,
        )
