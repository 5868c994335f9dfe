"""
Opano — Application State.

The single process-wide state object the UI layer talks to. It owns the
current user and the active conversation, fans mutations out to the
stores, and recomputes derived views (active conversation descriptor,
visible messages, member list) from the stores on every read, so nothing
here can drift from the source of truth.

All mutations are synchronous and run to completion. The only awaits are
calls to external services, which happen after local state is updated and
whose failures never undo it.
"""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Iterable

from opano.core.attendance import AttendanceSession, InvalidTransition
from opano.core.summarizer import SummaryResult, summarize_conversation
from opano.core.ticker import SessionTicker
from opano.data.attendance_log import AttendanceLog
from opano.data.directory import UNSET
from opano.data.documents import DocumentLibrary
from opano.data.invitations import InvitationRegistry
from opano.data.leave import LeaveRequestDB
from opano.data.messages import DraftStore, MessageStore, dm_conversation_id
from opano.data.models import (
    ActiveConversation,
    ActivityItem,
    Channel,
    Clock,
    ConversationKind,
    Draft,
    LeaveRequest,
    LeaveStatus,
    Message,
    MessageFile,
    Outcome,
    PendingInvitation,
    Role,
    StoreResult,
    User,
    utcnow,
)

if TYPE_CHECKING:
    from opano.data.directory import ConversationDirectory
    from opano.ports.mail_port import MailPort
    from opano.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)

_NO_USER = StoreResult(Outcome.DENIED, reason="Not signed in")
_ADMIN_ONLY = StoreResult(Outcome.DENIED, reason="Only administrators can do this")


# ---------------------------------------------------------------------------
# Response types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AuthIdentity:
    """What the identity provider tells us about the signed-in account."""

    uid: str
    email: str
    display_name: str = ""


@dataclass
class InvitationDispatch:
    """Outcome of inviting someone. ``join_url`` is set whenever a token was issued."""

    outcome: Outcome
    invitation: PendingInvitation | None = None
    join_url: str = ""
    email_sent: bool = False
    error: str = ""


@dataclass(frozen=True)
class MemberEntry:
    """One row of the admin member list: an active user or a pending invitee."""

    email: str
    name: str
    pending: bool
    role: Role = Role.MEMBER
    user_id: str | None = None


# ---------------------------------------------------------------------------
# Application state
# ---------------------------------------------------------------------------


class AppState:
    """Composes directory, messages, invitations, attendance, leave and documents."""

    def __init__(
        self,
        directory: ConversationDirectory,
        messages: MessageStore | None = None,
        invitations: InvitationRegistry | None = None,
        attendance_log: AttendanceLog | None = None,
        leave_requests: LeaveRequestDB | None = None,
        documents: DocumentLibrary | None = None,
        drafts: DraftStore | None = None,
        mailer: MailPort | None = None,
        notifier: NotificationPort | None = None,
        clock: Clock = utcnow,
        app_base_url: str | None = None,
        workspace_name: str | None = None,
        tick_interval: float | None = None,
    ) -> None:
        if app_base_url is None or workspace_name is None:
            from opano.config import settings
            app_base_url = app_base_url or settings.APP_BASE_URL
            workspace_name = workspace_name or settings.WORKSPACE_NAME

        self.directory = directory
        self.message_store = messages or MessageStore(clock=clock)
        self.invitations = invitations or InvitationRegistry(directory, clock=clock)
        self.attendance_log = attendance_log or AttendanceLog()
        self.leave_store = leave_requests or LeaveRequestDB(clock=clock)
        self.documents = documents or DocumentLibrary(clock=clock)
        self.drafts = drafts or DraftStore(clock=clock)
        self.attendance = AttendanceSession(clock=clock)

        self._mailer = mailer
        self._notifier = notifier
        self._base_url = app_base_url.rstrip("/")
        self._workspace_name = workspace_name
        self._ticker = SessionTicker(self.attendance.tick, interval=tick_interval)

        self._current_user_id: str | None = None
        self._active: tuple[ConversationKind, str] | None = None

    # -- identity ----------------------------------------------------------

    @property
    def current_user(self) -> User | None:
        if self._current_user_id is None:
            return None
        return self.directory.resolve_user(self._current_user_id)

    def _is_admin(self) -> bool:
        user = self.current_user
        return user is not None and user.role is Role.ADMIN

    def sign_in_as(self, user_id: str) -> User | None:
        """Make an existing user current and pick a default conversation."""
        user = self.directory.resolve_user(user_id)
        if user is None:
            logger.debug("Sign-in for unknown user %s ignored", user_id)
            return None
        self._current_user_id = user.id
        self._active = None
        self.select_default_conversation()
        if self.attendance.is_ticking:
            self._ticker.start()
        logger.info("Signed in as %s '%s'", user.id, user.name)
        return user

    def on_identity_changed(self, identity: AuthIdentity | None) -> User | None:
        """React to the identity provider: sign in (creating the user) or sign out."""
        if identity is None:
            self.sign_out()
            return None

        user = self.directory.resolve_user(identity.uid) or self.directory.find_user_by_email(identity.email)
        if user is None:
            first_user = not self.directory.list_users()
            created = self.directory.add_user(User(
                id=identity.uid,
                name=identity.display_name or identity.email.split("@")[0],
                email=identity.email.strip().lower(),
                role=Role.ADMIN if first_user else Role.MEMBER,
                is_online=True,
            ))
            if not created.ok:
                logger.warning("Could not register %s: %s", identity.email, created.reason)
                return None
            user = created.value
            # a direct sign-up supersedes any outstanding invitation
            self.invitations.revoke(user.email)
        return self.sign_in_as(user.id)

    def sign_out(self) -> None:
        self._ticker.stop()
        if self._current_user_id is not None:
            logger.info("Signed out %s", self._current_user_id)
        self._current_user_id = None
        self._active = None

    def toggle_current_user_status(self) -> StoreResult:
        user = self.current_user
        if user is None:
            return _NO_USER
        return self.directory.set_online(user.id, not user.is_online)

    def update_user_profile(
        self,
        name: str | None = None,
        designation: str | None | object = UNSET,
        email: str | None = None,
        avatar_url: str | None = None,
        phone_number: str | None | object = UNSET,
    ) -> StoreResult:
        """Edit the current user's profile. Pass None to clear designation or phone."""
        user = self.current_user
        if user is None:
            return _NO_USER
        return self.directory.update_profile(
            user.id,
            name=name,
            designation=designation,
            email=email,
            avatar_url=avatar_url,
            phone_number=phone_number,
        )

    def set_user_role(self, user_id: str, role: Role) -> StoreResult:
        if not self._is_admin():
            return _ADMIN_ONLY
        if user_id == self._current_user_id and role is not Role.ADMIN:
            return StoreResult(Outcome.DENIED, reason="You cannot remove your own admin role")
        return self.directory.set_role(user_id, role)

    # -- directory views ---------------------------------------------------

    @property
    def users(self) -> list[User]:
        """Everyone except the current user."""
        return [u for u in self.directory.list_users() if u.id != self._current_user_id]

    @property
    def all_users(self) -> list[User]:
        return self.directory.list_users()

    @property
    def channels(self) -> list[Channel]:
        return self.directory.list_channels()

    def members_with_pending(self) -> list[MemberEntry]:
        entries = [
            MemberEntry(email=u.email, name=u.name, pending=False, role=u.role, user_id=u.id)
            for u in self.directory.list_users()
        ]
        active_emails = {e.email.lower() for e in entries}
        entries.extend(
            MemberEntry(email=inv.email, name=inv.email.split("@")[0], pending=True)
            for inv in self.invitations.list_pending()
            if inv.email not in active_emails
        )
        return entries

    def get_conversation_name(self, conversation_id: str, kind: ConversationKind) -> str:
        return self.directory.conversation_name(conversation_id, kind)

    # -- active conversation -----------------------------------------------

    @property
    def active_conversation(self) -> ActiveConversation | None:
        if self._active is None:
            return None
        return self.directory.resolve_conversation(*self._active)

    def set_active_conversation(self, kind: ConversationKind, conversation_id: str) -> bool:
        """Switch conversations. An unknown id leaves the current selection as it was."""
        if self.directory.resolve_conversation(kind, conversation_id) is None:
            return False
        self._active = (kind, conversation_id)
        return True

    def select_default_conversation(self) -> ActiveConversation | None:
        """If nothing is active, pick the self-DM, or else the first channel."""
        if self.active_conversation is not None:
            return self.active_conversation
        if self._current_user_id is not None and self.set_active_conversation(
            ConversationKind.DM, self._current_user_id,
        ):
            return self.active_conversation
        channels = self.directory.list_channels()
        if channels:
            self.set_active_conversation(ConversationKind.CHANNEL, channels[0].id)
        return self.active_conversation

    def _storage_key(self, kind: ConversationKind, conversation_id: str) -> str | None:
        if kind is ConversationKind.CHANNEL:
            return conversation_id
        if self._current_user_id is None:
            return None
        return dm_conversation_id(self._current_user_id, conversation_id)

    def _active_key(self) -> str | None:
        if self._active is None:
            return None
        return self._storage_key(*self._active)

    # -- messages ----------------------------------------------------------

    @property
    def messages(self) -> list[Message]:
        """Messages of the active conversation, oldest first."""
        key = self._active_key()
        return self.message_store.list_for(key) if key else []

    def add_message(
        self,
        content: str,
        file: MessageFile | None = None,
        reply_to_message_id: str | None = None,
    ) -> StoreResult:
        user = self.current_user
        key = self._active_key()
        if user is None:
            return _NO_USER
        if key is None:
            return StoreResult(Outcome.INVALID, reason="No active conversation")
        if not content.strip() and file is None:
            return StoreResult(Outcome.INVALID, reason="Message is empty")

        sender_name = None
        if reply_to_message_id is not None:
            original = self.message_store.get(key, reply_to_message_id)
            if original is not None:
                author = self.directory.resolve_user(original.user_id)
                sender_name = author.name if author else "Unknown User"

        message = self.message_store.append(
            key, user.id, content,
            file=file,
            reply_to_message_id=reply_to_message_id,
            original_sender_name=sender_name,
        )
        existing = self.drafts.for_conversation(self._active[1])
        if existing is not None:
            self.drafts.delete(existing.id)
        return StoreResult(Outcome.APPLIED, message)

    def edit_message(self, message_id: str, content: str) -> StoreResult:
        user = self.current_user
        key = self._active_key()
        if user is None or key is None:
            return _NO_USER if user is None else StoreResult(Outcome.NOT_FOUND)
        return self.message_store.edit(key, message_id, user.id, content)

    def delete_message(self, message_id: str) -> StoreResult:
        user = self.current_user
        key = self._active_key()
        if user is None or key is None:
            return _NO_USER if user is None else StoreResult(Outcome.NOT_FOUND)
        return self.message_store.delete(key, message_id, user.id)

    def toggle_reaction(self, message_id: str, emoji: str) -> StoreResult:
        user = self.current_user
        key = self._active_key()
        if user is None or key is None:
            return _NO_USER if user is None else StoreResult(Outcome.NOT_FOUND)
        return self.message_store.toggle_reaction(key, message_id, emoji, user.id)

    def save_draft(self, content: str) -> Draft | None:
        active = self.active_conversation
        if active is None:
            return None
        return self.drafts.save(active.id, active.name, active.kind, content)

    def activity_feed(self) -> list[ActivityItem]:
        """Reactions by others on the current user's messages, newest first."""
        me = self._current_user_id
        if me is None:
            return []

        items: list[ActivityItem] = []
        for key in self.message_store.conversation_ids():
            target = self._conversation_for_key(key, me)
            if target is None:
                continue
            kind, conv_id = target
            conv_name = self.get_conversation_name(conv_id, kind)
            for message in self.message_store.list_for(key):
                if message.user_id != me:
                    continue
                for emoji, reactors in message.reactions.items():
                    for reactor_id in reactors:
                        reactor = self.directory.resolve_user(reactor_id)
                        if reactor_id == me or reactor is None:
                            continue
                        items.append(ActivityItem(message, reactor, emoji, conv_id, conv_name, kind))
        items.sort(key=lambda item: item.message.sent_at, reverse=True)
        return items

    def _conversation_for_key(self, key: str, me: str) -> tuple[ConversationKind, str] | None:
        """Map a storage key back to (kind, id) as seen by ``me``; None if not mine."""
        if not key.startswith("dm:"):
            channel = self.directory.resolve_channel(key)
            if channel is None or me not in channel.member_ids:
                return None
            return ConversationKind.CHANNEL, key
        _, first, second = key.split(":", 2)
        if me not in (first, second):
            return None
        return ConversationKind.DM, second if first == me else first

    # -- channels ----------------------------------------------------------

    def add_channel(
        self,
        name: str,
        description: str = "",
        member_ids: Iterable[str] = (),
        is_private: bool = False,
    ) -> StoreResult:
        """Create a channel with the current user as creator and make it active."""
        user = self.current_user
        if user is None:
            return _NO_USER
        result = self.directory.add_channel(name, user.id, description, member_ids, is_private)
        if result.ok:
            self.set_active_conversation(ConversationKind.CHANNEL, result.value.id)
        return result

    def add_members_to_channel(self, channel_id: str, user_ids: Iterable[str]) -> StoreResult:
        user = self.current_user
        if user is None:
            return _NO_USER
        before = self.directory.resolve_channel(channel_id)
        result = self.directory.add_members(channel_id, user_ids)
        if result.ok:
            added = [uid for uid in result.value.member_ids if uid not in before.member_ids]
            if added:
                names = ", ".join(self.directory.resolve_user(uid).name for uid in added)
                self.message_store.append(
                    channel_id, user.id, f"{user.name} added {names} to #{result.value.name}",
                    is_system=True,
                )
        return result

    def remove_member_from_channel(self, channel_id: str, user_id: str) -> StoreResult:
        user = self.current_user
        if user is None:
            return _NO_USER
        result = self.directory.remove_member(channel_id, user_id)
        if result.ok:
            removed = self.directory.resolve_user(user_id)
            self.message_store.append(
                channel_id, user.id,
                f"{removed.name if removed else user_id} was removed from #{result.value.name}",
                is_system=True,
            )
        return result

    # -- invitations -------------------------------------------------------

    def join_url(self, token: str) -> str:
        return f"{self._base_url}/join/{token}"

    def _invitation_email(self, join_url: str) -> tuple[str, str]:
        inviter = self.current_user
        inviter_name = html.escape(inviter.name) if inviter else "A teammate"
        workspace = html.escape(self._workspace_name)
        subject = f"You're invited to join {self._workspace_name}"
        body = (
            f"<p>Hello,</p>"
            f"<p>{inviter_name} has invited you to join the {workspace} workspace.</p>"
            f'<p><a href="{html.escape(join_url)}">Join {workspace}</a></p>'
            f"<p>If the button does not work, copy this link into your browser:<br>"
            f"{html.escape(join_url)}</p>"
        )
        return subject, body

    async def send_invitation(self, email: str) -> InvitationDispatch:
        """Issue an invitation and e-mail the join link.

        The invitation is stored before sending; a failed send leaves it in
        place and the returned join_url can be shared by other means.
        """
        if not self._is_admin():
            return InvitationDispatch(Outcome.DENIED, error=_ADMIN_ONLY.reason)

        issued = self.invitations.issue(email)
        if not issued.ok:
            return InvitationDispatch(issued.outcome, error=issued.reason)

        invitation: PendingInvitation = issued.value
        url = self.join_url(invitation.token)
        dispatch = InvitationDispatch(Outcome.APPLIED, invitation=invitation, join_url=url)

        if self._mailer is None:
            dispatch.error = "Email delivery is not configured"
            return dispatch

        subject, body = self._invitation_email(url)
        try:
            result = await self._mailer.send(invitation.email, subject, body)
        except Exception as exc:
            logger.error("Mail transport raised for %s: %s", invitation.email, exc)
            dispatch.error = f"Failed to send email: {exc}"
            return dispatch

        dispatch.email_sent = result.success
        dispatch.error = result.error
        if not result.success:
            logger.warning("Invitation email to %s failed; share the link manually", invitation.email)
        return dispatch

    def verify_invite_token(self, token: str) -> PendingInvitation | None:
        return self.invitations.verify(token)

    def accept_invitation(
        self, token: str, name: str, designation: str | None = None,
    ) -> StoreResult:
        return self.invitations.accept(token, name, designation)

    # -- attendance --------------------------------------------------------

    def _attendance_step(self, action) -> StoreResult:
        try:
            value = action()
        except InvalidTransition as exc:
            return StoreResult(Outcome.INVALID, reason=str(exc))
        if self.attendance.is_ticking:
            self._ticker.start()
        else:
            self._ticker.stop()
        return StoreResult(Outcome.APPLIED, value)

    def clock_in(self) -> StoreResult:
        return self._attendance_step(self.attendance.clock_in)

    def start_break(self) -> StoreResult:
        return self._attendance_step(self.attendance.start_break)

    def end_break(self) -> StoreResult:
        return self._attendance_step(self.attendance.end_break)

    def clock_out(self, activity_percent: int | None = None) -> StoreResult:
        """End the session and log it. Returns the new AttendanceLogEntry."""
        step = self._attendance_step(self.attendance.clock_out)
        if not step.ok:
            return step
        session = step.value
        return self.attendance_log.record(
            clock_in=session.clock_in,
            clock_out=session.clock_out,
            worked_seconds=session.worked_seconds,
            break_seconds=session.break_seconds,
            activity_percent=activity_percent,
        )

    @property
    def ticker_running(self) -> bool:
        return self._ticker.running

    # -- leave requests ----------------------------------------------------

    @property
    def leave_requests(self) -> list[LeaveRequest]:
        """All requests for admins, otherwise only the current user's."""
        if self._is_admin():
            return self.leave_store.list_requests()
        if self._current_user_id is None:
            return []
        return self.leave_store.list_requests(user_id=self._current_user_id)

    async def submit_leave_request(self, start_date: date, end_date: date, reason: str) -> StoreResult:
        user = self.current_user
        if user is None:
            return _NO_USER
        result = self.leave_store.submit(user.id, start_date, end_date, reason)
        if result.ok and self._notifier is not None:
            request: LeaveRequest = result.value
            action_url = f"{self._base_url}/leave-action?requestId={request.id}"
            text = (
                f"New leave request from {user.name}: "
                f"{request.start_date.isoformat()} → {request.end_date.isoformat()}\n"
                f"Reason: {request.reason}\n"
                f"Approve: {action_url}&action=approve\n"
                f"Decline: {action_url}&action=decline"
            )
            try:
                await self._notifier.notify_admins(text)
            except Exception as exc:
                logger.warning("Admin alert for leave request %s failed: %s", request.id, exc)
        return result

    def _decide_leave(self, request_id: str, status: LeaveStatus, reason: str | None) -> StoreResult:
        if not self._is_admin():
            return _ADMIN_ONLY
        return self.leave_store.decide(request_id, status, self._current_user_id, reason)

    def approve_leave_request(self, request_id: str, reason: str | None = None) -> StoreResult:
        return self._decide_leave(request_id, LeaveStatus.APPROVED, reason)

    def decline_leave_request(self, request_id: str, reason: str) -> StoreResult:
        return self._decide_leave(request_id, LeaveStatus.REJECTED, reason)

    # -- summaries ---------------------------------------------------------

    async def summarize_active_conversation(self) -> SummaryResult:
        active = self.active_conversation
        if active is None:
            return SummaryResult(error="No active conversation")

        lines = []
        for message in self.messages:
            if message.is_system or not message.content.strip():
                continue
            author = self.directory.resolve_user(message.user_id)
            lines.append(f"{author.name if author else 'Unknown User'}: {message.content}")
        return await summarize_conversation(active.name, lines)
