"""
Tests for the access policy predicates.

Pure functions over a GroupAccessContext; no database involved.
"""

from uuid import uuid4

import pytest

from ledger_kernel.domain.access_policy import (
    ADMIN,
    MEMBER,
    GroupAccessContext,
    check_can_add_member,
    check_can_cancel_invitation,
    check_can_invite,
    check_can_remove_member,
    check_settlement_party,
    is_admin_or_owner,
    is_member,
    is_owner,
    non_members,
)


@pytest.fixture
def people():
    return {"owner": uuid4(), "admin": uuid4(), "member": uuid4(), "outsider": uuid4()}


@pytest.fixture
def ctx(people):
    return GroupAccessContext(
        group_id=uuid4(),
        owner_id=people["owner"],
        roles={
            # Owner stored as a plain member: still treated as admin.
            people["owner"]: MEMBER,
            people["admin"]: ADMIN,
            people["member"]: MEMBER,
        },
    )


class TestPredicates:
    def test_membership(self, ctx, people):
        assert is_member(ctx, people["member"])
        assert not is_member(ctx, people["outsider"])

    def test_owner(self, ctx, people):
        assert is_owner(ctx, people["owner"])
        assert not is_owner(ctx, people["admin"])

    def test_owner_always_counts_as_admin(self, ctx, people):
        assert is_admin_or_owner(ctx, people["owner"])
        assert is_admin_or_owner(ctx, people["admin"])
        assert not is_admin_or_owner(ctx, people["member"])

    def test_non_members_in_input_order_without_duplicates(self, ctx, people):
        x, y = uuid4(), uuid4()
        ids = [y, people["member"], x, y]
        assert non_members(ctx, ids) == [y, x]

    def test_roles_snapshot_is_read_only(self, ctx, people):
        with pytest.raises(TypeError):
            ctx.roles[people["outsider"]] = MEMBER


class TestSettlementParty:
    """Only the payer or the receiver may record a settlement."""

    def test_payer_allowed(self):
        a, b = uuid4(), uuid4()
        assert check_settlement_party(a, a, b) == (True, "")

    def test_receiver_allowed(self):
        a, b = uuid4(), uuid4()
        assert check_settlement_party(b, a, b)[0]

    def test_third_party_denied(self):
        allowed, reason = check_settlement_party(uuid4(), uuid4(), uuid4())
        assert not allowed
        assert reason


class TestGroupChecks:
    @pytest.mark.parametrize(
        "who, expected",
        [("owner", True), ("admin", True), ("member", False), ("outsider", False)],
    )
    def test_invite_and_add(self, ctx, people, who, expected):
        assert check_can_invite(ctx, people[who])[0] is expected
        assert check_can_add_member(ctx, people[who])[0] is expected

    def test_inviter_may_cancel_own_invitation(self, ctx, people):
        assert check_can_cancel_invitation(ctx, people["member"], people["member"])[0]

    def test_admin_may_cancel_any_invitation(self, ctx, people):
        assert check_can_cancel_invitation(ctx, people["admin"], people["member"])[0]

    def test_other_member_may_not_cancel(self, ctx, people):
        assert not check_can_cancel_invitation(ctx, people["member"], people["admin"])[0]

    def test_member_may_leave(self, ctx, people):
        assert check_can_remove_member(ctx, people["member"], people["member"])[0]

    def test_member_may_not_kick(self, ctx, people):
        assert not check_can_remove_member(ctx, people["member"], people["admin"])[0]

    def test_admin_may_kick(self, ctx, people):
        assert check_can_remove_member(ctx, people["admin"], people["member"])[0]
