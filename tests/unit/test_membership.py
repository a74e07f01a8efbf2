"""Unit tests for event classification and membership side effects."""

from __future__ import annotations

import pytest
from usergroup_adder.config import MemberCleanup, Settings, WelcomeLanguage
from usergroup_adder.membership import (
    TEAM_JOIN,
    USER_REACTIVATED,
    MembershipUpdater,
    classify_event,
    clean_members,
    render_welcome,
    with_member,
)
from usergroup_adder.models import InboundEvent
from usergroup_adder.slack_api import WorkspaceApiError


def _event(event_type: str, **user) -> InboundEvent:
    return InboundEvent.from_payload({"type": event_type, "user": {"id": "U1", **user}})


class TestClassifyEvent:
    def test_team_join(self):
        assert classify_event(_event("team_join")) == TEAM_JOIN

    def test_user_change_reactivated(self):
        event = _event("user_change", deleted=False, is_restricted=False)
        assert classify_event(event) == USER_REACTIVATED

    def test_user_change_restricted_is_skipped(self):
        assert classify_event(_event("user_change", is_restricted=True)) is None

    def test_user_change_without_restricted_flag_is_skipped(self):
        assert classify_event(_event("user_change", deleted=False)) is None

    def test_user_change_deleted_is_skipped(self):
        event = _event("user_change", deleted=True, is_restricted=False)
        assert classify_event(event) is None

    def test_other_event_types_are_skipped(self):
        assert classify_event(_event("message")) is None
        assert classify_event(InboundEvent.from_payload({"type": "user_change"})) is None

    def test_string_user_is_tolerated(self):
        event = InboundEvent.from_payload({"type": "member_joined_channel", "user": "U9"})
        assert event.user_id == "U9"
        assert classify_event(event) is None


class TestCleanMembers:
    MEMBERS = ["U01ABCDEF12", "UBOT0000001", "", None, "B0123456789", "U123", "W0ABCDEFGH"]

    def test_none_keeps_everything_but_empties(self):
        assert clean_members(self.MEMBERS, MemberCleanup.NONE, "UBOT0000001") == [
            "U01ABCDEF12",
            "UBOT0000001",
            "B0123456789",
            "U123",
            "W0ABCDEFGH",
        ]

    def test_bot_only_drops_bot_and_empties(self):
        assert clean_members(self.MEMBERS, MemberCleanup.BOT_ONLY, "UBOT0000001") == [
            "U01ABCDEF12",
            "B0123456789",
            "U123",
            "W0ABCDEFGH",
        ]

    def test_bot_only_without_bot_id(self):
        assert clean_members(["U1", "U2"], MemberCleanup.BOT_ONLY) == ["U1", "U2"]

    def test_non_human_keeps_only_well_formed_user_ids(self):
        assert clean_members(self.MEMBERS, MemberCleanup.NON_HUMAN, "UBOT0000001") == [
            "U01ABCDEF12",
            "W0ABCDEFGH",
        ]

    def test_classic_nine_character_ids_survive_non_human(self):
        assert clean_members(["U024BE7LH"], MemberCleanup.NON_HUMAN) == ["U024BE7LH"]


def test_with_member_appends_and_dedupes():
    assert with_member(["U1", "U2", "U1"], "U3") == ["U1", "U2", "U3"]
    assert with_member(["U1", "U2"], "U1") == ["U1", "U2"]


class TestRenderWelcome:
    def test_english_default_lists_groups(self):
        text = render_welcome("U1", ["S1", "S2"], descriptions={"S1": "Engineering"})
        assert text.startswith("Welcome, <@U1>!")
        assert "<!subteam^S1>: Engineering" in text
        assert "<!subteam^S2>" in text

    def test_norwegian(self):
        text = render_welcome("U1", ["S1"], language=WelcomeLanguage.NO)
        assert text.startswith("Velkommen, <@U1>!")

    def test_custom_template(self):
        text = render_welcome("U1", ["S1"], template="Hi {user}: {groups}")
        assert text == "Hi U1: • <!subteam^S1>"


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


class TestAddToUsergroups:
    @pytest.mark.asyncio
    async def test_already_member_and_new_member(self, fake_api):
        updater = MembershipUpdater(fake_api, _settings())

        results = await updater.add_to_usergroups("U1", ["G1", "G2"])

        assert [r.to_dict() for r in results] == [
            {"usergroup": "G1", "ok": True, "updated": False, "reason": "already a member"},
            {"usergroup": "G2", "ok": True, "updated": True},
        ]
        assert ("usergroups.users.update", "G2", ["U2", "U3", "U1"]) in fake_api.calls
        assert not any(
            c[0] == "usergroups.users.update" and c[1] == "G1" for c in fake_api.calls
        )

    @pytest.mark.asyncio
    async def test_groups_are_processed_in_order(self, fake_api):
        updater = MembershipUpdater(fake_api, _settings())
        await updater.add_to_usergroups("U9", ["G2", "G1"])
        assert fake_api.calls == [
            ("usergroups.users.list", "G2"),
            ("usergroups.users.update", "G2", ["U2", "U3", "U9"]),
            ("usergroups.users.list", "G1"),
            ("usergroups.users.update", "G1", ["U1", "U2", "U9"]),
        ]

    @pytest.mark.asyncio
    async def test_update_failure_does_not_stop_other_groups(self, fake_api):
        fake_api.update_errors["G1"] = WorkspaceApiError(
            "usergroups.users.update", "permission_denied"
        )
        updater = MembershipUpdater(fake_api, _settings())

        results = await updater.add_to_usergroups("U9", ["G1", "G2"])

        assert results[0].to_dict() == {
            "usergroup": "G1",
            "ok": False,
            "updated": False,
            "error": "permission_denied",
        }
        assert results[1].to_dict() == {"usergroup": "G2", "ok": True, "updated": True}

    @pytest.mark.asyncio
    async def test_list_failure_and_transport_errors_are_recorded(self, fake_api):
        fake_api.list_errors["G2"] = ConnectionError("connection reset")
        updater = MembershipUpdater(fake_api, _settings())

        results = await updater.add_to_usergroups("U9", ["MISSING", "G2"])

        assert results[0].error == "no_such_subteam"
        assert results[1].error == "connection reset"
        assert all(not r.ok for r in results)

    @pytest.mark.asyncio
    async def test_cleanup_policy_is_applied_to_written_list(self, fake_api):
        fake_api.members["G3"] = ["UBOT", "U2", ""]
        updater = MembershipUpdater(fake_api, _settings(bot_user_id="UBOT"))

        await updater.add_to_usergroups("U9", ["G3"])

        assert fake_api.members["G3"] == ["U2", "U9"]


class TestInvitesAndWelcome:
    @pytest.mark.asyncio
    async def test_invite_results(self, fake_api):
        fake_api.invite_errors["C2"] = WorkspaceApiError(
            "conversations.invite", "already_in_channel"
        )
        fake_api.invite_errors["C3"] = WorkspaceApiError(
            "conversations.invite", "not_in_channel"
        )
        updater = MembershipUpdater(fake_api, _settings())

        results = await updater.invite_to_channels("U1", ["C1", "C2", "C3"])

        assert [r.to_dict() for r in results] == [
            {"channel": "C1", "ok": True, "invited": True},
            {"channel": "C2", "ok": True, "invited": False, "reason": "already_in_channel"},
            {"channel": "C3", "ok": False, "invited": False, "error": "not_in_channel"},
        ]

    @pytest.mark.asyncio
    async def test_send_welcome(self, fake_api):
        updater = MembershipUpdater(
            fake_api, _settings(usergroup_descriptions={"G2": "Designers"})
        )

        result = await updater.send_welcome("U1", ["G2"])

        assert result.to_dict() == {"ok": True, "sent": True, "channel": "D-U1"}
        channel, text = fake_api.messages[0]
        assert channel == "D-U1"
        assert "<!subteam^G2>: Designers" in text

    @pytest.mark.asyncio
    async def test_send_welcome_failure_is_reported(self, fake_api):
        fake_api.open_dm_error = WorkspaceApiError("conversations.open", "missing_scope")
        updater = MembershipUpdater(fake_api, _settings())

        result = await updater.send_welcome("U1", ["G2"])

        assert result.to_dict() == {"ok": False, "sent": False, "error": "missing_scope"}
        assert fake_api.messages == []
