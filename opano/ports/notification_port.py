"""Notification port — pushes short alerts to workspace admins.

Core modules depend on this protocol, never on a specific messaging provider.
"""

from __future__ import annotations

from typing import Protocol


class NotificationPort(Protocol):
    """Abstract admin-alert interface used by the application state."""

    async def notify_admins(self, text: str) -> None: ...
