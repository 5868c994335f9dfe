"""Tests for opano.core.app_state — the application state facade.

External services (mail, notifications, LLM) are mocked; the stores are real.
"""

from datetime import date
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from opano.core.app_state import AppState, AuthIdentity
from opano.data.directory import ConversationDirectory
from opano.data.models import (
    ConversationKind,
    LeaveStatus,
    Outcome,
    PendingInvitation,
    Role,
)
from opano.ports.mail_port import MailResult


def _make_app(directory, clock, **kwargs):
    return AppState(
        directory,
        clock=clock,
        app_base_url="https://opano.test",
        workspace_name="Opano",
        tick_interval=0.01,
        **kwargs,
    )


# ---------------------------------------------------------------------------
# Default conversation and identity
# ---------------------------------------------------------------------------


class TestDefaultConversation:
    def test_self_dm_preferred(self, app):
        active = app.active_conversation
        assert active.kind is ConversationKind.DM
        assert active.id == "u1"
        assert [m.id for m in app.messages] == ["self1"]

    def test_zero_channels_selects_self_dm(self, clock):
        state = _make_app(ConversationDirectory(), clock)
        user = state.on_identity_changed(AuthIdentity("abc", "solo@example.com", "Solo"))
        assert user.role is Role.ADMIN
        assert state.active_conversation.kind is ConversationKind.DM
        assert state.active_conversation.id == "abc"

    def test_first_channel_without_self_identity(self, directory, clock):
        state = _make_app(directory, clock)
        active = state.select_default_conversation()
        assert active.kind is ConversationKind.CHANNEL
        assert active.id == "c1"

    def test_nothing_to_select(self, clock):
        state = _make_app(ConversationDirectory(), clock)
        assert state.select_default_conversation() is None

    def test_existing_selection_kept(self, app):
        app.set_active_conversation(ConversationKind.CHANNEL, "c2")
        assert app.select_default_conversation().id == "c2"


class TestIdentity:
    def test_identity_matches_existing_user_by_email(self, app):
        user = app.on_identity_changed(AuthIdentity("firebase-uid", "HANZLAH@example.com"))
        assert user.id == "u2"
        assert app.current_user.id == "u2"

    def test_new_identity_becomes_member(self, app):
        user = app.on_identity_changed(AuthIdentity("new-uid", "newbie@example.com"))
        assert user.role is Role.MEMBER
        assert user.name == "newbie"

    def test_sign_out(self, app):
        app.on_identity_changed(None)
        assert app.current_user is None
        assert app.active_conversation is None
        assert app.messages == []

    def test_sign_in_unknown_user(self, app):
        assert app.sign_in_as("ghost") is None
        assert app.current_user.id == "u1"

    def test_users_excludes_current(self, app):
        assert "u1" not in [u.id for u in app.users]
        assert len(app.all_users) == 5

    def test_toggle_status(self, app):
        assert app.toggle_current_user_status().value.is_online is False
        assert app.current_user.is_online is False

    def test_update_profile(self, app):
        result = app.update_user_profile(name="Hassaan K")
        assert result.value.name == "Hassaan K"
        assert result.value.designation == "Lead Developer"
        assert app.current_user.name == "Hassaan K"

    def test_set_and_clear_phone_and_designation(self, app):
        updated = app.update_user_profile(phone_number="+92 300 1234567").value
        assert updated.phone_number == "+92 300 1234567"
        assert updated.designation == "Lead Developer"

        cleared = app.update_user_profile(designation=None, phone_number=None).value
        assert cleared.designation is None
        assert cleared.phone_number is None
        assert cleared.name == "Hassaan"

    def test_cannot_take_another_members_email(self, app):
        result = app.update_user_profile(email="Hanzlah@Example.com")
        assert result.outcome is Outcome.ALREADY_EXISTS

        app.sign_out()
        user = app.on_identity_changed(AuthIdentity("fb-hanzlah", "hanzlah@example.com"))
        assert user.id == "u2"

    @pytest.mark.asyncio
    async def test_direct_sign_up_supersedes_invitation(self, app):
        dispatch = await app.send_invitation("zed@example.com")
        app.on_identity_changed(AuthIdentity("fb-zed", "zed@example.com", "Zed"))

        rows = [(e.email, e.pending) for e in app.members_with_pending() if e.email == "zed@example.com"]
        assert rows == [("zed@example.com", False)]
        assert app.verify_invite_token(dispatch.invitation.token) is None

    def test_member_list_skips_invitations_for_existing_users(self, app):
        app.invitations.issue("yara@example.com")
        app.directory.create_user("Yara", "yara@example.com")
        pending = [e.email for e in app.members_with_pending() if e.pending]
        assert "yara@example.com" not in pending

    def test_set_role_admin_only(self, app):
        assert app.set_user_role("u2", Role.ADMIN).ok
        app.sign_in_as("u3")
        assert app.set_user_role("u4", Role.ADMIN).outcome is Outcome.DENIED

    def test_cannot_demote_self(self, app):
        assert app.set_user_role("u1", Role.MEMBER).outcome is Outcome.DENIED


# ---------------------------------------------------------------------------
# Conversations and messages
# ---------------------------------------------------------------------------


class TestActiveConversation:
    def test_switch_to_channel(self, app):
        assert app.set_active_conversation(ConversationKind.CHANNEL, "c1") is True
        assert app.active_conversation.name == "general"
        assert [m.id for m in app.messages] == ["m1", "m2"]

    def test_unknown_id_keeps_previous(self, app):
        app.set_active_conversation(ConversationKind.CHANNEL, "c2")
        assert app.set_active_conversation(ConversationKind.CHANNEL, "c404") is False
        assert app.set_active_conversation(ConversationKind.DM, "u404") is False
        assert app.active_conversation.id == "c2"

    def test_descriptor_follows_directory_changes(self, app):
        app.set_active_conversation(ConversationKind.DM, "u2")
        app.directory.update_profile("u2", name="Hanzlah R")
        assert app.active_conversation.name == "Hanzlah R"

    def test_conversation_name(self, app):
        assert app.get_conversation_name("c2", ConversationKind.CHANNEL) == "project-alpha"
        assert app.get_conversation_name("zz", ConversationKind.DM) == "Unknown User"


class TestMessages:
    def test_add_message_to_active(self, app):
        app.set_active_conversation(ConversationKind.CHANNEL, "c1")
        result = app.add_message("Standup in 5")
        assert result.ok
        assert app.messages[-1].content == "Standup in 5"
        assert app.messages[-1].user_id == "u1"

    def test_dm_visible_to_both_sides(self, app):
        app.set_active_conversation(ConversationKind.DM, "u2")
        app.add_message("ping")
        app.sign_in_as("u2")
        app.set_active_conversation(ConversationKind.DM, "u1")
        assert [m.content for m in app.messages][-1] == "ping"
        assert len(app.messages) == 3

    def test_empty_message_invalid(self, app):
        assert app.add_message("   ").outcome is Outcome.INVALID

    def test_not_signed_in(self, app):
        app.sign_out()
        assert app.add_message("hello").outcome is Outcome.DENIED

    def test_reply_carries_original(self, app):
        app.set_active_conversation(ConversationKind.CHANNEL, "c1")
        reply = app.add_message("Welcome!", reply_to_message_id="m1").value
        assert reply.original_sender_name == "Hanzlah"
        assert reply.original_content == "Hello everyone!"

    def test_edit_and_delete_own(self, app):
        app.set_active_conversation(ConversationKind.CHANNEL, "c1")
        assert app.edit_message("m2", "Hi Hanzlah :)").ok
        assert app.messages[-1].is_edited
        assert app.delete_message("m2").ok
        assert [m.id for m in app.messages] == ["m1"]

    def test_edit_and_delete_others_denied(self, app):
        app.set_active_conversation(ConversationKind.CHANNEL, "c1")
        before = app.messages
        assert app.edit_message("m1", "mine now").outcome is Outcome.DENIED
        assert app.delete_message("m1").outcome is Outcome.DENIED
        assert app.messages == before

    def test_toggle_reaction_twice_restores(self, app):
        app.set_active_conversation(ConversationKind.CHANNEL, "c1")
        original = app.messages[0].reactions
        app.toggle_reaction("m1", "🎉")
        assert app.messages[0].reactions["🎉"] == ("u1",)
        app.toggle_reaction("m1", "🎉")
        assert app.messages[0].reactions == original

    def test_sending_clears_draft(self, app):
        app.set_active_conversation(ConversationKind.CHANNEL, "c2")
        app.save_draft("wip")
        assert len(app.drafts.list_all()) == 1
        app.add_message("final")
        assert app.drafts.list_all() == []


class TestActivityFeed:
    def test_reactions_on_my_messages(self, app):
        app.sign_in_as("u2")
        app.set_active_conversation(ConversationKind.CHANNEL, "c1")
        app.toggle_reaction("m2", "❤️")
        app.sign_in_as("u1")

        feed = app.activity_feed()
        assert len(feed) == 1
        item = feed[0]
        assert item.reactor.id == "u2"
        assert item.emoji == "❤️"
        assert item.conversation_name == "general"

    def test_ordered_by_send_time_not_edit_time(self, app, clock):
        app.sign_in_as("u2")
        app.set_active_conversation(ConversationKind.DM, "u1")
        app.toggle_reaction("dm1", "👀")
        app.set_active_conversation(ConversationKind.CHANNEL, "c1")
        app.toggle_reaction("m2", "❤️")
        app.sign_in_as("u1")

        clock.advance(60)
        app.set_active_conversation(ConversationKind.DM, "u2")
        app.edit_message("dm1", "Hey Hanzlah, how is it going?")

        assert [item.message.id for item in app.activity_feed()] == ["m2", "dm1"]

    def test_own_reactions_excluded(self, app):
        app.set_active_conversation(ConversationKind.CHANNEL, "c1")
        app.toggle_reaction("m2", "👍")
        assert app.activity_feed() == []


class TestChannels:
    def test_add_channel_becomes_active(self, app):
        result = app.add_channel("launch", "Launch prep", member_ids=["u2"])
        assert result.ok
        assert app.active_conversation.id == result.value.id
        assert "launch" in [c.name for c in app.channels]
        assert set(result.value.member_ids) == {"u1", "u2"}

    def test_add_members_posts_system_message(self, app):
        channel = app.add_channel("launch").value
        app.add_members_to_channel(channel.id, ["u3", "u4"])
        system = app.messages[-1]
        assert system.is_system
        assert "Huzaifa, Fahad" in system.content

    def test_remove_member(self, app):
        channel = app.add_channel("launch", member_ids=["u2"]).value
        assert app.remove_member_from_channel(channel.id, "u2").ok
        assert app.directory.resolve_channel(channel.id).member_ids == ("u1",)
        assert app.messages[-1].is_system


# ---------------------------------------------------------------------------
# Invitations
# ---------------------------------------------------------------------------


class TestInvitations:
    @pytest.mark.asyncio
    async def test_send_invitation_emails_join_link(self, directory, clock):
        mailer = MagicMock()
        mailer.send = AsyncMock(return_value=MailResult(success=True, message_id="<1@x>"))
        state = _make_app(directory, clock, mailer=mailer)
        state.sign_in_as("u1")

        dispatch = await state.send_invitation("alice@example.com")

        assert dispatch.outcome is Outcome.APPLIED
        assert dispatch.email_sent is True
        assert dispatch.join_url == f"https://opano.test/join/{dispatch.invitation.token}"
        to, subject, body = mailer.send.call_args.args
        assert to == "alice@example.com"
        assert "Opano" in subject
        assert dispatch.join_url in body

    @pytest.mark.asyncio
    async def test_failed_send_keeps_invitation(self, directory, clock):
        mailer = MagicMock()
        mailer.send = AsyncMock(return_value=MailResult(success=False, error="auth failed"))
        state = _make_app(directory, clock, mailer=mailer)
        state.sign_in_as("u1")

        dispatch = await state.send_invitation("bob@example.com")

        assert dispatch.outcome is Outcome.APPLIED
        assert dispatch.email_sent is False
        assert dispatch.error == "auth failed"
        assert dispatch.join_url
        assert state.verify_invite_token(dispatch.invitation.token) is not None

    @pytest.mark.asyncio
    async def test_transport_exception_is_contained(self, directory, clock):
        mailer = MagicMock()
        mailer.send = AsyncMock(side_effect=RuntimeError("socket closed"))
        state = _make_app(directory, clock, mailer=mailer)
        state.sign_in_as("u1")

        dispatch = await state.send_invitation("carol@example.com")

        assert dispatch.outcome is Outcome.APPLIED
        assert "socket closed" in dispatch.error
        assert state.verify_invite_token(dispatch.invitation.token) is not None

    @pytest.mark.asyncio
    async def test_without_mailer_returns_link(self, app):
        dispatch = await app.send_invitation("dan@example.com")
        assert dispatch.outcome is Outcome.APPLIED
        assert dispatch.email_sent is False
        assert dispatch.join_url.startswith("https://opano.test/join/")

    @pytest.mark.asyncio
    async def test_duplicate_and_member_rejected(self, app):
        await app.send_invitation("erin@example.com")
        assert (await app.send_invitation("erin@example.com")).outcome is Outcome.ALREADY_EXISTS
        assert (await app.send_invitation("fahad@example.com")).outcome is Outcome.ALREADY_EXISTS

    @pytest.mark.asyncio
    async def test_members_cannot_invite(self, app):
        app.sign_in_as("u2")
        dispatch = await app.send_invitation("frank@example.com")
        assert dispatch.outcome is Outcome.DENIED
        assert app.invitations.list_pending() == []

    @pytest.mark.asyncio
    async def test_accept_flow_and_member_list(self, app):
        dispatch = await app.send_invitation("alice@example.com")
        entries = app.members_with_pending()
        pending = [e for e in entries if e.pending]
        assert [e.email for e in pending] == ["alice@example.com"]

        result = app.accept_invitation(dispatch.invitation.token, "Alice", "Eng")
        assert result.ok
        assert app.verify_invite_token(dispatch.invitation.token) is None
        entries = app.members_with_pending()
        assert not any(e.pending for e in entries)
        assert "Alice" in [e.name for e in entries]

    def test_verify_returns_invitation(self, app):
        invitation = app.invitations.issue("gina@example.com").value
        assert isinstance(app.verify_invite_token(invitation.token), PendingInvitation)


# ---------------------------------------------------------------------------
# Attendance
# ---------------------------------------------------------------------------


class TestAttendance:
    def test_session_logged_on_clock_out(self, app, clock):
        assert app.clock_in().ok
        for _ in range(5):
            clock.advance(1)
            app.attendance.tick()
        app.start_break()
        clock.advance(3)
        app.end_break()
        clock.advance(2)
        app.attendance.tick()
        result = app.clock_out(activity_percent=75)

        assert result.ok
        entry = result.value
        assert entry.worked_seconds == 7
        assert entry.break_seconds == 3
        assert entry.activity_percent == 75
        assert app.attendance_log.list_all() == [entry]

    def test_illegal_transition_reported(self, app):
        result = app.start_break()
        assert result.outcome is Outcome.INVALID
        assert "start a break" in result.reason
        assert app.clock_out().outcome is Outcome.INVALID
        assert app.attendance_log.list_all() == []

    @pytest.mark.asyncio
    async def test_ticker_follows_working_state(self, app):
        app.clock_in()
        assert app.ticker_running is True
        app.start_break()
        assert app.ticker_running is False
        app.end_break()
        assert app.ticker_running is True
        app.clock_out()
        assert app.ticker_running is False

    @pytest.mark.asyncio
    async def test_sign_out_stops_ticker(self, app):
        app.clock_in()
        app.sign_out()
        assert app.ticker_running is False


# ---------------------------------------------------------------------------
# Leave requests
# ---------------------------------------------------------------------------


class TestLeaveRequests:
    @pytest.mark.asyncio
    async def test_submit_notifies_admins(self, directory, clock):
        notifier = MagicMock()
        notifier.notify_admins = AsyncMock()
        state = _make_app(directory, clock, notifier=notifier)
        state.sign_in_as("u2")

        result = await state.submit_leave_request(date(2026, 4, 1), date(2026, 4, 3), "Family event")

        assert result.ok
        text = notifier.notify_admins.call_args.args[0]
        assert "Hanzlah" in text
        assert f"requestId={result.value.id}&action=approve" in text

    @pytest.mark.asyncio
    async def test_notifier_failure_keeps_request(self, directory, clock):
        notifier = MagicMock()
        notifier.notify_admins = AsyncMock(side_effect=RuntimeError("telegram down"))
        state = _make_app(directory, clock, notifier=notifier)
        state.sign_in_as("u2")

        result = await state.submit_leave_request(date(2026, 4, 1), date(2026, 4, 3), "Trip")

        assert result.ok
        assert state.leave_store.get(result.value.id) is not None

    @pytest.mark.asyncio
    async def test_invalid_range(self, app):
        result = await app.submit_leave_request(date(2026, 4, 3), date(2026, 4, 1), "Oops")
        assert result.outcome is Outcome.INVALID

    @pytest.mark.asyncio
    async def test_admin_decides_member_cannot(self, app):
        app.sign_in_as("u3")
        request = (await app.submit_leave_request(date(2026, 4, 1), date(2026, 4, 1), "Dentist")).value
        assert app.approve_leave_request(request.id).outcome is Outcome.DENIED
        assert [r.id for r in app.leave_requests] == [request.id]

        app.sign_in_as("u1")
        declined = app.decline_leave_request(request.id, "Release week")
        assert declined.ok
        assert declined.value.status is LeaveStatus.REJECTED
        assert declined.value.decision_reason == "Release week"
        assert app.approve_leave_request(request.id).outcome is Outcome.ALREADY_DECIDED

    @pytest.mark.asyncio
    async def test_members_see_only_their_requests(self, app):
        app.sign_in_as("u2")
        await app.submit_leave_request(date(2026, 4, 1), date(2026, 4, 1), "A")
        app.sign_in_as("u3")
        await app.submit_leave_request(date(2026, 4, 2), date(2026, 4, 2), "B")
        assert [r.reason for r in app.leave_requests] == ["B"]
        app.sign_in_as("u1")
        assert len(app.leave_requests) == 2


# ---------------------------------------------------------------------------
# Summaries
# ---------------------------------------------------------------------------


class TestSummaries:
    @pytest.mark.asyncio
    async def test_summarize_active_conversation(self, app):
        app.set_active_conversation(ConversationKind.CHANNEL, "c1")
        with patch("opano.core.summarizer.complete", AsyncMock(return_value="Greetings exchanged.")) as mock_complete:
            result = await app.summarize_active_conversation()

        assert result.ok
        assert result.summary == "Greetings exchanged."
        prompt = mock_complete.call_args.args[1]
        assert '"general"' in prompt
        assert "Hanzlah: Hello everyone!" in prompt
        assert prompt.index("Hanzlah: Hello everyone!") < prompt.index("Hassaan: Hi Hanzlah!")

    @pytest.mark.asyncio
    async def test_llm_failure_is_not_fatal(self, app):
        with patch("opano.core.summarizer.complete", AsyncMock(side_effect=RuntimeError("quota"))):
            result = await app.summarize_active_conversation()
        assert result.ok is False
        assert "quota" in result.error

    @pytest.mark.asyncio
    async def test_no_active_conversation(self, app):
        app.sign_out()
        result = await app.summarize_active_conversation()
        assert result.error == "No active conversation"
