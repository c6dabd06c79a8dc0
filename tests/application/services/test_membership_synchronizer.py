"""Tests for MembershipSynchronizer."""

import pytest

from lmsbridge.application.services import MembershipSynchronizer
from lmsbridge.domain.entities import (
    DesiredMember,
    IdentityMapping,
    SyncScope,
    UserProfile,
)
from lmsbridge.domain.exceptions import BindingNotFoundError

ADMIN_ROLE = 3
MEMBER_ROLE = 5


@pytest.fixture
def binding(make_binding):
    return make_binding("c1")


class TestReconcile:
    """Full reconciliation pass over one channel."""

    async def test_enrolls_everyone_into_empty_channel(
        self, synchronizer: MembershipSynchronizer, remote, lms, binding
    ) -> None:
        lms.add_user(1, "admin@x.org")
        lms.add_user(2, "user@x.org")
        lms.enrol(2, 1, ADMIN_ROLE)
        lms.enrol(2, 2, MEMBER_ROLE)

        result = await synchronizer.synchronize_binding(binding)

        assert result.enrolled == 2
        assert result.removed == 0
        assert result.updated == 0
        assert sorted(remote.mutations) == [
            ("enroll", "c1", "admin@x.org", True),
            ("enroll", "c1", "user@x.org", False),
        ]

    async def test_promotes_member_to_admin(
        self, synchronizer: MembershipSynchronizer, remote, lms, identities, binding
    ) -> None:
        lms.add_user(1, "admin@x.org")
        lms.enrol(2, 1, ADMIN_ROLE)
        remote.add_member("c1", "admin@x.org", "r-admin", is_admin=False)

        result = await synchronizer.synchronize_binding(binding)

        assert remote.mutations == [("update", "c1", 1, True)]
        assert result.updated == 1
        # the existing remote account is remembered for later updates
        assert identities.remote_ids[1] == "r-admin"

    async def test_removes_orphan_by_remote_record(
        self, synchronizer: MembershipSynchronizer, remote, binding
    ) -> None:
        remote.add_member("c1", "stale@x.org", "r-stale")

        result = await synchronizer.synchronize_binding(binding)

        assert remote.mutations == [("remove", "c1", "stale@x.org")]
        assert result.removed == 1

    async def test_second_pass_is_a_no_op(
        self, synchronizer: MembershipSynchronizer, remote, lms, binding
    ) -> None:
        lms.add_user(1, "admin@x.org")
        lms.add_user(2, "user@x.org")
        lms.enrol(2, 1, ADMIN_ROLE)
        lms.enrol(2, 2, MEMBER_ROLE)
        remote.add_member("c1", "user@x.org", "r2", is_admin=True)
        remote.add_member("c1", "stale@x.org", "r-stale")

        await synchronizer.synchronize_binding(binding)
        calls_after_first = len(remote.mutations)
        result = await synchronizer.synchronize_binding(binding)

        assert len(remote.mutations) == calls_after_first
        assert result.mutations == 0
        assert result.unchanged == 2

    async def test_converges_from_any_starting_membership(
        self, synchronizer: MembershipSynchronizer, remote, lms, binding
    ) -> None:
        for user_id, email in [(1, "a@x.org"), (2, "b@x.org"), (3, "c@x.org")]:
            lms.add_user(user_id, email)
        lms.enrol(2, 1, ADMIN_ROLE)
        lms.enrol(2, 2, MEMBER_ROLE)
        lms.enrol(2, 3, MEMBER_ROLE)
        remote.add_member("c1", "a@x.org", "r1", is_admin=False)
        remote.add_member("c1", "b@x.org", "r2", is_admin=True)
        remote.add_member("c1", "d@x.org", "r4", is_admin=True)

        await synchronizer.synchronize_binding(binding)

        assert remote.membership("c1") == {
            "a@x.org": True,
            "b@x.org": False,
            "c@x.org": False,
        }

    async def test_admin_role_wins_over_member_role(
        self, synchronizer: MembershipSynchronizer, remote, lms, binding
    ) -> None:
        lms.add_user(1, "both@x.org")
        lms.enrol(2, 1, MEMBER_ROLE, ADMIN_ROLE)

        await synchronizer.synchronize_binding(binding)

        assert remote.membership("c1") == {"both@x.org": True}

    async def test_email_match_ignores_case(
        self, synchronizer: MembershipSynchronizer, remote, lms, binding
    ) -> None:
        lms.add_user(1, "Ann.Lee@X.org")
        lms.enrol(2, 1, MEMBER_ROLE)
        remote.add_member("c1", "ann.lee@x.org", "r1")

        result = await synchronizer.synchronize_binding(binding)

        assert remote.mutations == []
        assert result.unchanged == 1

    async def test_failure_on_one_member_does_not_stop_the_pass(
        self, synchronizer: MembershipSynchronizer, remote, lms, binding
    ) -> None:
        lms.add_user(1, "broken@x.org")
        lms.add_user(2, "fine@x.org")
        lms.enrol(2, 1, MEMBER_ROLE)
        lms.enrol(2, 2, MEMBER_ROLE)
        remote.add_member("c1", "stale@x.org", "r-stale")
        remote.failing_emails.add("broken@x.org")

        result = await synchronizer.synchronize_binding(binding)

        assert result.failed == 1
        assert result.enrolled == 1
        assert result.removed == 1
        assert remote.membership("c1") == {"fine@x.org": False}
        assert result.errors[0].startswith("broken@x.org")

    async def test_inactive_users_are_not_wanted(
        self, synchronizer: MembershipSynchronizer, remote, lms, binding
    ) -> None:
        lms.add_user(1, "gone@x.org", suspended=True)
        lms.enrol(2, 1, MEMBER_ROLE)
        remote.add_member("c1", "gone@x.org", "r1")

        await synchronizer.synchronize_binding(binding)

        assert remote.membership("c1") == {}

    async def test_duplicate_desired_members_merge_to_admin(
        self, synchronizer: MembershipSynchronizer, remote
    ) -> None:
        profile = UserProfile(email="a@x.org", username="a")
        scope = SyncScope(
            channel_id="c1",
            desired_members=(
                DesiredMember(1, "a@x.org", False, profile),
                DesiredMember(1, "A@x.org", True, profile),
            ),
            course_id=2,
        )

        result = await synchronizer.reconcile(scope)

        assert result.enrolled == 1
        assert remote.membership("c1") == {"a@x.org": True}


    async def test_changed_email_keeps_mapped_member(
        self, synchronizer: MembershipSynchronizer, remote, lms, identities, binding
    ) -> None:
        """A member whose LMS email changed is matched by their mapped account."""
        await identities.save(IdentityMapping(7, "u1"))
        lms.add_user(7, "new@x.org")
        lms.enrol(2, 7, MEMBER_ROLE)
        remote.add_member("c1", "old@x.org", "u1")

        first = await synchronizer.synchronize_binding(binding)
        second = await synchronizer.synchronize_binding(binding)

        assert remote.mutations == []
        assert first.unchanged == 1
        assert second.mutations == 0
        assert remote.membership("c1") == {"old@x.org": False}

    async def test_changed_email_role_change_updates_mapped_member(
        self, synchronizer: MembershipSynchronizer, remote, lms, identities, binding
    ) -> None:
        await identities.save(IdentityMapping(7, "u1"))
        lms.add_user(7, "new@x.org")
        lms.enrol(2, 7, ADMIN_ROLE)
        remote.add_member("c1", "old@x.org", "u1")

        result = await synchronizer.synchronize_binding(binding)

        assert remote.mutations == [("update", "c1", 7, True)]
        assert result.updated == 1


class TestScopes:
    """Channel, course, and full synchronization."""

    async def test_group_channel_wants_enrolled_group_members_only(
        self, synchronizer: MembershipSynchronizer, lms, make_binding
    ) -> None:
        lms.add_user(1, "in@x.org")
        lms.add_user(2, "left@x.org")
        lms.add_user(3, "nogroup@x.org")
        lms.enrol(2, 1, MEMBER_ROLE)
        lms.enrol(2, 3, MEMBER_ROLE)
        lms.add_group(9, 2, "Team A", 1, 2)

        scope = await synchronizer.build_scope(make_binding("g1", group_id=9))

        assert [m.email for m in scope.desired_members] == ["in@x.org"]
        assert scope.group_id == 9

    async def test_recycled_binding_is_skipped(
        self, synchronizer: MembershipSynchronizer, remote, make_binding
    ) -> None:
        remote.add_member("c1", "stale@x.org", "r-stale")

        result = await synchronizer.synchronize_binding(
            make_binding("c1", recycle_bin_id=4)
        )

        assert result.mutations == 0
        assert remote.mutations == []

    async def test_synchronize_unbound_channel(
        self, synchronizer: MembershipSynchronizer
    ) -> None:
        with pytest.raises(BindingNotFoundError):
            await synchronizer.synchronize_channel("nope")

    async def test_synchronize_course_covers_group_channels(
        self, synchronizer: MembershipSynchronizer, remote, lms, bindings, make_binding
    ) -> None:
        lms.add_user(1, "a@x.org")
        lms.enrol(2, 1, MEMBER_ROLE)
        lms.add_group(9, 2, "Team A", 1)
        await bindings.save(make_binding("c1"))
        await bindings.save(make_binding("g1", group_id=9))

        result = await synchronizer.synchronize_course(2)

        assert result.enrolled == 2
        assert remote.membership("g1") == {"a@x.org": False}

    async def test_failing_channel_does_not_stop_full_resync(
        self, synchronizer: MembershipSynchronizer, remote, lms, bindings, make_binding
    ) -> None:
        lms.add_user(1, "a@x.org")
        lms.enrol(2, 1, MEMBER_ROLE)
        await bindings.save(make_binding("down"))
        await bindings.save(make_binding("c2", instance_id=11))
        remote.failing_channels.add("down")

        result = await synchronizer.synchronize_all()

        assert result.failed == 1
        assert remote.membership("c2") == {"a@x.org": False}


class TestSingleUser:
    """Per-user reconciliation."""

    @pytest.fixture
    async def course_channel(self, bindings, make_binding):
        binding = make_binding("c1")
        await bindings.save(binding)
        return binding

    async def test_only_the_user_is_touched(
        self, synchronizer: MembershipSynchronizer, remote, lms, course_channel
    ) -> None:
        lms.add_user(1, "a@x.org")
        lms.enrol(2, 1, ADMIN_ROLE)
        remote.add_member("c1", "stale@x.org", "r-stale")

        result = await synchronizer.synchronize_user(1)

        assert result.enrolled == 1
        assert remote.membership("c1") == {"a@x.org": True, "stale@x.org": False}

    async def test_changed_email_is_not_enrolled_twice(
        self,
        synchronizer: MembershipSynchronizer,
        remote,
        lms,
        identities,
        course_channel,
    ) -> None:
        await identities.save(IdentityMapping(1, "u1"))
        lms.add_user(1, "new@x.org")
        lms.enrol(2, 1, MEMBER_ROLE)
        remote.add_member("c1", "old@x.org", "u1")

        result = await synchronizer.synchronize_user(1, course_id=2)

        assert remote.mutations == []
        assert result.unchanged == 1

    async def test_user_losing_roles_is_removed(
        self, synchronizer: MembershipSynchronizer, remote, lms, course_channel
    ) -> None:
        lms.add_user(1, "a@x.org")
        lms.enrol(2, 1, 99)
        remote.add_member("c1", "a@x.org", "r1")

        result = await synchronizer.synchronize_user(1, course_id=2)

        assert result.removed == 1
        assert remote.membership("c1") == {}

    async def test_suspended_user_is_removed_everywhere(
        self,
        synchronizer: MembershipSynchronizer,
        remote,
        lms,
        bindings,
        make_binding,
        course_channel,
    ) -> None:
        await bindings.save(make_binding("other", instance_id=20, course_id=3))
        lms.add_user(1, "a@x.org", suspended=True)
        remote.add_member("c1", "a@x.org", "r1")
        remote.add_member("other", "a@x.org", "r1")

        result = await synchronizer.synchronize_user(1)

        assert result.removed == 2
        assert remote.membership("c1") == {}
        assert remote.membership("other") == {}

    async def test_unknown_user_is_found_by_mapping(
        self, synchronizer: MembershipSynchronizer, remote, identities, course_channel
    ) -> None:
        identities.remote_ids[1] = "r1"
        remote.add_member("c1", "old-address@x.org", "r1")
        remote.add_member("c1", "keep@x.org", "r2")

        result = await synchronizer.unenroll_user_everywhere(1)

        assert result.removed == 1
        assert remote.membership("c1") == {"keep@x.org": False}

    async def test_unenroll_without_identity_is_a_no_op(
        self, synchronizer: MembershipSynchronizer, remote, course_channel
    ) -> None:
        result = await synchronizer.unenroll_user_everywhere(1)

        assert result.mutations == 0
        assert remote.calls == []
