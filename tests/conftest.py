"""Shared test fixtures and configuration.

Sets up environment variables before any opano import so the settings
singleton loads predictably, and provides a controllable clock plus
ready-made stores and application state.
"""

import os

# Patch env vars BEFORE any opano imports
os.environ.setdefault("APP_BASE_URL", "https://opano.test")
os.environ.setdefault("WORKSPACE_NAME", "Opano")
os.environ.setdefault("INVITATION_TTL_HOURS", "72")
os.environ.setdefault("LLM_PROVIDER", "gemini")
os.environ.setdefault("LLM_API_KEY", "fake-llm-key-for-tests")
os.environ.setdefault("ADMIN_CHAT_IDS", "")
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "")

from datetime import datetime, timedelta, timezone

import pytest


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def directory():
    """Directory seeded with the demo users and channels."""
    from opano.data import seed
    from opano.data.directory import ConversationDirectory
    return ConversationDirectory(users=seed.USERS, channels=seed.CHANNELS)


@pytest.fixture
def message_store(clock):
    from opano.data import seed
    from opano.data.messages import MessageStore
    return MessageStore(seed.seed_messages(now=clock()), clock=clock)


@pytest.fixture
def registry(directory, clock):
    from opano.data.invitations import InvitationRegistry
    return InvitationRegistry(directory, ttl_hours=72, clock=clock)


@pytest.fixture
def app(directory, message_store, registry, clock):
    """AppState over the demo workspace, signed in as the demo admin (u1)."""
    from opano.core.app_state import AppState
    state = AppState(
        directory,
        messages=message_store,
        invitations=registry,
        clock=clock,
        app_base_url="https://opano.test",
        workspace_name="Opano",
        tick_interval=0.01,
    )
    state.sign_in_as("u1")
    return state
