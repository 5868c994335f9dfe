"""
Opano — Invitation Registry.

Pending workspace invitations keyed by an opaque, single-use token.
Tokens are random (secrets.token_urlsafe) and carry nothing about the
invitee; the email association lives only in this registry.
"""

from __future__ import annotations

import logging
import secrets
from datetime import timedelta
from typing import TYPE_CHECKING

from opano.data.models import (
    Clock,
    Outcome,
    PendingInvitation,
    Role,
    StoreResult,
    utcnow,
)

if TYPE_CHECKING:
    from opano.data.directory import ConversationDirectory

logger = logging.getLogger(__name__)

_TOKEN_BYTES = 32


class InvitationRegistry:
    """Issues, verifies and consumes invitation tokens."""

    def __init__(
        self,
        directory: ConversationDirectory,
        ttl_hours: int | None = None,
        clock: Clock = utcnow,
    ) -> None:
        if ttl_hours is None:
            from opano.config import settings
            ttl_hours = settings.INVITATION_TTL_HOURS

        self._directory = directory
        self._ttl = timedelta(hours=ttl_hours) if ttl_hours > 0 else None
        self._clock = clock
        self._by_token: dict[str, PendingInvitation] = {}

    def _is_expired(self, invitation: PendingInvitation) -> bool:
        return invitation.expires_at is not None and self._clock() >= invitation.expires_at

    def _purge_expired(self) -> None:
        expired = [t for t, inv in self._by_token.items() if self._is_expired(inv)]
        for token in expired:
            logger.info("Invitation for %s expired", self._by_token[token].email)
            del self._by_token[token]

    def _pending_for(self, email: str) -> PendingInvitation | None:
        for invitation in self._by_token.values():
            if invitation.email == email:
                return invitation
        return None

    def issue(self, email: str) -> StoreResult:
        """Create an invitation for an email that is neither a member nor already invited."""
        email = email.strip().lower()
        if not email:
            return StoreResult(Outcome.INVALID, reason="Email is required")

        self._purge_expired()
        if self._directory.find_user_by_email(email) is not None:
            return StoreResult(Outcome.ALREADY_EXISTS, reason=f"{email} is already a member")
        if self._pending_for(email) is not None:
            return StoreResult(Outcome.ALREADY_EXISTS, reason=f"{email} already has a pending invitation")

        now = self._clock()
        invitation = PendingInvitation(
            email=email,
            token=secrets.token_urlsafe(_TOKEN_BYTES),
            issued_at=now,
            expires_at=now + self._ttl if self._ttl else None,
        )
        self._by_token[invitation.token] = invitation
        logger.info("Invitation issued for %s", email)
        return StoreResult(Outcome.APPLIED, invitation)

    def verify(self, token: str) -> PendingInvitation | None:
        """Look up a live invitation. No side effects."""
        invitation = self._by_token.get(token)
        if invitation is None or self._is_expired(invitation):
            return None
        return invitation

    def accept(
        self,
        token: str,
        name: str,
        designation: str | None = None,
    ) -> StoreResult:
        """Consume an invitation and register the invitee as a member.

        The user is added and the token removed together; if the user
        cannot be added the invitation stays in place.
        """
        invitation = self.verify(token)
        if invitation is None:
            return StoreResult(Outcome.NOT_FOUND, reason="Invalid or expired invitation")
        if not name.strip():
            return StoreResult(Outcome.INVALID, reason="Name is required")

        created = self._directory.create_user(
            name=name,
            email=invitation.email,
            role=Role.MEMBER,
            designation=designation,
        )
        if not created.ok:
            return created

        del self._by_token[token]
        logger.info("Invitation for %s accepted as user %s", invitation.email, created.value.id)
        return created

    def revoke(self, email: str) -> bool:
        invitation = self._pending_for(email.strip().lower())
        if invitation is None:
            return False
        del self._by_token[invitation.token]
        logger.info("Invitation for %s revoked", invitation.email)
        return True

    def list_pending(self) -> list[PendingInvitation]:
        """Live invitations in issue order."""
        return [inv for inv in self._by_token.values() if not self._is_expired(inv)]
