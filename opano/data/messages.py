"""
Opano — Message Store.

Per-conversation ordered message logs with author-only edit/delete and
reaction toggling. Every read hands out snapshots: the reaction maps are
rebuilt for each caller, so nothing outside the store can mutate it.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Iterable, Mapping

from opano.data.models import (
    Clock,
    ConversationKind,
    Draft,
    Message,
    MessageFile,
    Outcome,
    StoreResult,
    utcnow,
)

logger = logging.getLogger(__name__)

_REPLY_SNIPPET_CHARS = 100


def dm_conversation_id(user_a: str, user_b: str) -> str:
    """Storage key for a direct-message pair, independent of who is asking."""
    first, second = sorted((user_a, user_b))
    return f"dm:{first}:{second}"


def _snapshot(message: Message) -> Message:
    return replace(message, reactions=dict(message.reactions))


class MessageStore:
    """In-memory message logs keyed by conversation id."""

    def __init__(
        self,
        messages: Mapping[str, Iterable[Message]] | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._clock = clock
        self._logs: dict[str, list[Message]] = {
            conv_id: list(msgs) for conv_id, msgs in (messages or {}).items()
        }

    def _find(self, conversation_id: str, message_id: str) -> tuple[list[Message], int] | None:
        log = self._logs.get(conversation_id)
        if not log:
            return None
        for index, message in enumerate(log):
            if message.id == message_id:
                return log, index
        return None

    def append(
        self,
        conversation_id: str,
        user_id: str,
        content: str,
        *,
        file: MessageFile | None = None,
        message_id: str | None = None,
        timestamp: datetime | None = None,
        is_system: bool = False,
        reply_to_message_id: str | None = None,
        original_sender_name: str | None = None,
    ) -> Message:
        """Add a message to the tail of a conversation's log and return it."""
        now = timestamp or self._clock()
        original_content = None
        if reply_to_message_id is not None:
            found = self._find(conversation_id, reply_to_message_id)
            if found is None:
                logger.debug("Reply target %s not found, posting as plain message", reply_to_message_id)
                reply_to_message_id = None
                original_sender_name = None
            else:
                log, index = found
                original_content = log[index].content[:_REPLY_SNIPPET_CHARS]

        message = Message(
            id=message_id or f"m{uuid.uuid4().hex}",
            conversation_id=conversation_id,
            user_id=user_id,
            content=content,
            timestamp=now,
            sent_at=now,
            file=file,
            is_system=is_system,
            reply_to_message_id=reply_to_message_id,
            original_sender_name=original_sender_name,
            original_content=original_content,
        )
        self._logs.setdefault(conversation_id, []).append(message)
        logger.info("Message %s appended to %s by %s", message.id, conversation_id, user_id)
        return _snapshot(message)

    def get(self, conversation_id: str, message_id: str) -> Message | None:
        found = self._find(conversation_id, message_id)
        if found is None:
            return None
        log, index = found
        return _snapshot(log[index])

    def edit(
        self, conversation_id: str, message_id: str, user_id: str, new_content: str,
    ) -> StoreResult:
        """Replace a message's content. Only its author may edit it."""
        found = self._find(conversation_id, message_id)
        if found is None:
            return StoreResult(Outcome.NOT_FOUND, reason="Unknown message")
        log, index = found
        message = log[index]
        if message.user_id != user_id:
            logger.info("Edit of %s refused: %s is not the author", message_id, user_id)
            return StoreResult(Outcome.DENIED, reason="Only the author can edit this message")
        if not new_content.strip():
            return StoreResult(Outcome.INVALID, reason="Message content is required")

        updated = replace(message, content=new_content, is_edited=True, timestamp=self._clock())
        log[index] = updated
        logger.info("Message %s edited", message_id)
        return StoreResult(Outcome.APPLIED, _snapshot(updated))

    def delete(self, conversation_id: str, message_id: str, user_id: str) -> StoreResult:
        """Remove a message entirely. Only its author may delete it."""
        found = self._find(conversation_id, message_id)
        if found is None:
            return StoreResult(Outcome.NOT_FOUND, reason="Unknown message")
        log, index = found
        if log[index].user_id != user_id:
            logger.info("Delete of %s refused: %s is not the author", message_id, user_id)
            return StoreResult(Outcome.DENIED, reason="Only the author can delete this message")
        removed = log.pop(index)
        logger.info("Message %s deleted from %s", message_id, conversation_id)
        return StoreResult(Outcome.APPLIED, _snapshot(removed))

    def toggle_reaction(
        self, conversation_id: str, message_id: str, emoji: str, user_id: str,
    ) -> StoreResult:
        """Add the user's reaction, or take it back if already present.

        An emoji whose last reactor leaves disappears from the map.
        """
        found = self._find(conversation_id, message_id)
        if found is None:
            return StoreResult(Outcome.NOT_FOUND, reason="Unknown message")
        log, index = found
        message = log[index]

        reactions = dict(message.reactions)
        reactors = reactions.get(emoji, ())
        if user_id in reactors:
            remaining = tuple(uid for uid in reactors if uid != user_id)
            if remaining:
                reactions[emoji] = remaining
            else:
                del reactions[emoji]
        else:
            reactions[emoji] = (*reactors, user_id)

        updated = replace(message, reactions=reactions)
        log[index] = updated
        return StoreResult(Outcome.APPLIED, _snapshot(updated))

    def list_for(self, conversation_id: str) -> list[Message]:
        return [_snapshot(m) for m in self._logs.get(conversation_id, [])]

    def conversation_ids(self) -> list[str]:
        return list(self._logs)


class DraftStore:
    """One unsent draft per conversation."""

    def __init__(self, clock: Clock = utcnow) -> None:
        self._clock = clock
        self._drafts: dict[str, Draft] = {}

    def save(
        self,
        conversation_id: str,
        conversation_name: str,
        kind: ConversationKind,
        content: str,
    ) -> Draft | None:
        """Store a draft; blank content discards the conversation's draft instead."""
        existing = self.for_conversation(conversation_id)
        if not content.strip():
            if existing is not None:
                del self._drafts[existing.id]
            return None

        draft = Draft(
            id=existing.id if existing else f"d{uuid.uuid4().hex[:12]}",
            conversation_id=conversation_id,
            conversation_name=conversation_name,
            kind=kind,
            content=content,
            timestamp=self._clock(),
        )
        self._drafts[draft.id] = draft
        return draft

    def for_conversation(self, conversation_id: str) -> Draft | None:
        for draft in self._drafts.values():
            if draft.conversation_id == conversation_id:
                return draft
        return None

    def list_all(self) -> list[Draft]:
        """Newest first."""
        return sorted(self._drafts.values(), key=lambda d: d.timestamp, reverse=True)

    def delete(self, draft_id: str) -> bool:
        return self._drafts.pop(draft_id, None) is not None
