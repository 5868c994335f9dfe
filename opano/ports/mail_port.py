"""Mail port — abstract interface for sending HTML e-mail.

Core modules depend on this protocol, never on a specific transport.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class MailError(Exception):
    """Raised inside a mail adapter when a send fails."""


@dataclass
class MailResult:
    success: bool
    message_id: str | None = None
    error: str = ""


class MailPort(Protocol):
    """Abstract mail interface used by the application state."""

    async def send(self, to: str, subject: str, html_body: str) -> MailResult: ...
