"""
Opano — Data Models.

Immutable records for everything the workspace tracks. Stores hand these
out as snapshots and swap in new instances (via dataclasses.replace) on
every mutation, so a caller holding a record never sees it change.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Mutation outcomes
# ---------------------------------------------------------------------------


class Outcome(Enum):
    APPLIED = "applied"
    DENIED = "denied"                    # caller lacks the right (author/admin)
    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"
    ALREADY_DECIDED = "already_decided"
    INVALID = "invalid"


@dataclass(frozen=True)
class StoreResult:
    """Result of a mutation: what happened, plus the new record when applied."""

    outcome: Outcome
    value: Any = None
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.APPLIED


# ---------------------------------------------------------------------------
# Directory
# ---------------------------------------------------------------------------


class Role(Enum):
    ADMIN = "admin"
    MEMBER = "member"


@dataclass(frozen=True)
class User:
    """A workspace member."""

    id: str
    name: str
    email: str
    role: Role = Role.MEMBER
    is_online: bool = False
    designation: str | None = None
    phone_number: str | None = None
    avatar_url: str | None = None


@dataclass(frozen=True)
class Channel:
    """A named, multi-member conversation. The creator is always a member."""

    id: str
    name: str
    description: str = ""
    is_private: bool = False
    member_ids: tuple[str, ...] = ()   # creation order, no duplicates
    created_by: str | None = None


class ConversationKind(Enum):
    CHANNEL = "channel"
    DM = "dm"


@dataclass(frozen=True)
class ActiveConversation:
    """The conversation currently displayed. Exactly one of channel/recipient is set."""

    kind: ConversationKind
    id: str
    name: str
    channel: Channel | None = None
    recipient: User | None = None


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


class FileKind(Enum):
    IMAGE = "image"
    DOCUMENT = "document"
    AUDIO = "audio"
    OTHER = "other"

    @classmethod
    def from_mime(cls, mime_type: str) -> FileKind:
        if mime_type.startswith("image/"):
            return cls.IMAGE
        if mime_type.startswith("audio/"):
            return cls.AUDIO
        if mime_type == "application/pdf" or mime_type.startswith("text/"):
            return cls.DOCUMENT
        return cls.OTHER


@dataclass(frozen=True)
class MessageFile:
    name: str
    url: str
    kind: FileKind = FileKind.OTHER
    duration: float | None = None      # seconds, audio/video only


@dataclass(frozen=True)
class Message:
    """A message in one conversation's log.

    ``timestamp`` is the send time, refreshed on edit; ``sent_at`` never changes.
    ``reactions`` maps emoji → reacting user ids in reaction order.
    """

    id: str
    conversation_id: str
    user_id: str
    content: str
    timestamp: datetime
    sent_at: datetime
    file: MessageFile | None = None
    reactions: dict[str, tuple[str, ...]] = field(default_factory=dict)
    is_edited: bool = False
    is_system: bool = False
    reply_to_message_id: str | None = None
    original_sender_name: str | None = None
    original_content: str | None = None


@dataclass(frozen=True)
class Draft:
    id: str
    conversation_id: str
    conversation_name: str
    kind: ConversationKind
    content: str
    timestamp: datetime


@dataclass(frozen=True)
class ActivityItem:
    """Someone reacted to one of the current user's messages."""

    message: Message
    reactor: User
    emoji: str
    conversation_id: str
    conversation_name: str
    kind: ConversationKind


# ---------------------------------------------------------------------------
# Invitations
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PendingInvitation:
    email: str
    token: str
    issued_at: datetime
    expires_at: datetime | None = None    # None → never expires


# ---------------------------------------------------------------------------
# Attendance
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AttendanceLogEntry:
    """A completed work session. All durations are whole seconds."""

    id: str
    clock_in: datetime
    clock_out: datetime
    worked_seconds: int
    break_seconds: int = 0
    activity_percent: int | None = None   # supplied by an activity source, if any


# ---------------------------------------------------------------------------
# Leave requests
# ---------------------------------------------------------------------------


class LeaveStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass(frozen=True)
class LeaveRequest:
    id: str
    user_id: str
    requested_at: datetime
    start_date: date
    end_date: date
    reason: str
    status: LeaveStatus = LeaveStatus.PENDING
    decision_reason: str | None = None
    decided_by: str | None = None


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class DocumentKind(Enum):
    FILE = "file"
    TEXT = "text"
    URL = "url"


@dataclass(frozen=True)
class Document:
    id: str
    name: str
    mime_type: str          # "application/pdf", "text/plain", "external/link", ...
    kind: DocumentKind
    last_modified: datetime
    file_url: str | None = None
    text_content: str | None = None


@dataclass(frozen=True)
class DocumentCategory:
    id: str
    name: str
    description: str
    icon_name: str = "FolderKanban"
    documents: tuple[Document, ...] = ()
