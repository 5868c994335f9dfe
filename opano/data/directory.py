"""
Opano — Conversation Directory.

Holds the workspace's users and channels in insertion order and resolves
conversation ids into display-ready descriptors.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from typing import Iterable

from opano.data.models import (
    ActiveConversation,
    Channel,
    ConversationKind,
    Outcome,
    Role,
    StoreResult,
    User,
)

logger = logging.getLogger(__name__)

UNSET = object()


class ConversationDirectory:
    """In-memory directory of users and channels."""

    def __init__(
        self,
        users: Iterable[User] = (),
        channels: Iterable[Channel] = (),
    ) -> None:
        # dicts preserve insertion order, which is the listing order
        self._users: dict[str, User] = {u.id: u for u in users}
        self._channels: dict[str, Channel] = {c.id: c for c in channels}

    # -- users -------------------------------------------------------------

    def resolve_user(self, user_id: str) -> User | None:
        return self._users.get(user_id)

    def find_user_by_email(self, email: str) -> User | None:
        """Case-insensitive match on email."""
        wanted = email.strip().lower()
        for user in self._users.values():
            if user.email.lower() == wanted:
                return user
        return None

    def list_users(self) -> list[User]:
        return list(self._users.values())

    def add_user(self, user: User) -> StoreResult:
        if user.id in self._users or self.find_user_by_email(user.email):
            return StoreResult(Outcome.ALREADY_EXISTS, reason="User already exists")
        self._users[user.id] = user
        logger.info("User added: %s '%s'", user.id, user.name)
        return StoreResult(Outcome.APPLIED, user)

    def create_user(
        self,
        name: str,
        email: str,
        role: Role = Role.MEMBER,
        designation: str | None = None,
        is_online: bool = True,
    ) -> StoreResult:
        user = User(
            id=f"u{uuid.uuid4().hex[:12]}",
            name=name.strip(),
            email=email.strip().lower(),
            role=role,
            is_online=is_online,
            designation=designation,
        )
        return self.add_user(user)

    def update_profile(
        self,
        user_id: str,
        name: str | None = None,
        designation: str | None | object = UNSET,
        email: str | None = None,
        avatar_url: str | None = None,
        phone_number: str | None | object = UNSET,
    ) -> StoreResult:
        """Update profile fields. Blank name/email/avatar keep the existing value."""
        user = self._users.get(user_id)
        if user is None:
            return StoreResult(Outcome.NOT_FOUND, reason="Unknown user")

        new_email = (email or "").strip().lower() or user.email
        owner = self.find_user_by_email(new_email)
        if owner is not None and owner.id != user_id:
            logger.info("Profile update for %s refused: email belongs to %s", user_id, owner.id)
            return StoreResult(Outcome.ALREADY_EXISTS, reason="Email is already in use")

        updated = replace(
            user,
            name=name or user.name,
            designation=user.designation if designation is UNSET else designation,
            email=new_email,
            avatar_url=avatar_url or user.avatar_url,
            phone_number=user.phone_number if phone_number is UNSET else phone_number,
        )
        self._users[user_id] = updated
        logger.info("Profile updated for user %s", user_id)
        return StoreResult(Outcome.APPLIED, updated)

    def set_role(self, user_id: str, role: Role) -> StoreResult:
        user = self._users.get(user_id)
        if user is None:
            return StoreResult(Outcome.NOT_FOUND, reason="Unknown user")
        updated = replace(user, role=role)
        self._users[user_id] = updated
        logger.info("User %s role set to %s", user_id, role.value)
        return StoreResult(Outcome.APPLIED, updated)

    def set_online(self, user_id: str, is_online: bool) -> StoreResult:
        user = self._users.get(user_id)
        if user is None:
            return StoreResult(Outcome.NOT_FOUND, reason="Unknown user")
        updated = replace(user, is_online=is_online)
        self._users[user_id] = updated
        return StoreResult(Outcome.APPLIED, updated)

    # -- channels ----------------------------------------------------------

    def resolve_channel(self, channel_id: str) -> Channel | None:
        return self._channels.get(channel_id)

    def list_channels(self) -> list[Channel]:
        return list(self._channels.values())

    def add_channel(
        self,
        name: str,
        creator_id: str,
        description: str = "",
        member_ids: Iterable[str] = (),
        is_private: bool = False,
    ) -> StoreResult:
        """Create a channel. The creator is always the first member."""
        name = name.strip().lstrip("#")
        if not name:
            return StoreResult(Outcome.INVALID, reason="Channel name is required")
        if creator_id not in self._users:
            return StoreResult(Outcome.NOT_FOUND, reason="Unknown creator")

        channel = Channel(
            id=f"c{uuid.uuid4().hex[:12]}",
            name=name,
            description=description,
            is_private=is_private,
            member_ids=_merge_members((creator_id,), member_ids),
            created_by=creator_id,
        )
        self._channels[channel.id] = channel
        logger.info("Channel added: %s '#%s' (%d members)", channel.id, name, len(channel.member_ids))
        return StoreResult(Outcome.APPLIED, channel)

    def add_members(self, channel_id: str, user_ids: Iterable[str]) -> StoreResult:
        """Add known users to a channel; unknown ids and existing members are skipped."""
        channel = self._channels.get(channel_id)
        if channel is None:
            return StoreResult(Outcome.NOT_FOUND, reason="Unknown channel")
        known = [uid for uid in user_ids if uid in self._users]
        updated = replace(channel, member_ids=_merge_members(channel.member_ids, known))
        self._channels[channel_id] = updated
        added = len(updated.member_ids) - len(channel.member_ids)
        logger.info("Added %d member(s) to channel %s", added, channel_id)
        return StoreResult(Outcome.APPLIED, updated)

    def remove_member(self, channel_id: str, user_id: str) -> StoreResult:
        channel = self._channels.get(channel_id)
        if channel is None:
            return StoreResult(Outcome.NOT_FOUND, reason="Unknown channel")
        if user_id not in channel.member_ids:
            return StoreResult(Outcome.NOT_FOUND, reason="Not a member")
        if user_id == channel.created_by:
            return StoreResult(Outcome.DENIED, reason="The channel creator cannot be removed")
        updated = replace(
            channel,
            member_ids=tuple(m for m in channel.member_ids if m != user_id),
        )
        self._channels[channel_id] = updated
        logger.info("Removed user %s from channel %s", user_id, channel_id)
        return StoreResult(Outcome.APPLIED, updated)

    # -- conversations -----------------------------------------------------

    def resolve_conversation(
        self, kind: ConversationKind, conversation_id: str,
    ) -> ActiveConversation | None:
        """Build a display descriptor, or None when the id is unknown."""
        if kind is ConversationKind.CHANNEL:
            channel = self._channels.get(conversation_id)
            if channel is None:
                logger.debug("No channel with id %s", conversation_id)
                return None
            return ActiveConversation(kind, channel.id, channel.name, channel=channel)

        user = self._users.get(conversation_id)
        if user is None:
            logger.debug("No user with id %s", conversation_id)
            return None
        return ActiveConversation(kind, user.id, user.name, recipient=user)

    def conversation_name(self, conversation_id: str, kind: ConversationKind) -> str:
        if kind is ConversationKind.CHANNEL:
            channel = self._channels.get(conversation_id)
            return channel.name if channel else "Unknown Channel"
        user = self._users.get(conversation_id)
        return user.name if user else "Unknown User"


def _merge_members(existing: Iterable[str], extra: Iterable[str]) -> tuple[str, ...]:
    """Concatenate while dropping duplicates, keeping first-seen order."""
    return tuple(dict.fromkeys([*existing, *extra]))
