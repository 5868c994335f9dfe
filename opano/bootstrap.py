"""Builds a seeded AppState wired to the configured external services."""

from __future__ import annotations

import logging

from opano.adapters.smtp_mailer import SmtpMailer
from opano.config import Settings, settings as default_settings
from opano.core.app_state import AppState
from opano.data import seed
from opano.data.directory import ConversationDirectory
from opano.data.invitations import InvitationRegistry
from opano.data.messages import MessageStore

logger = logging.getLogger(__name__)


def _create_notifier(cfg: Settings):
    """Telegram admin alerts, or None when no bot token / chat ids are set."""
    if not cfg.TELEGRAM_BOT_TOKEN or not cfg.ADMIN_CHAT_IDS:
        return None

    from telegram import Bot

    from opano.adapters.telegram_notifier import TelegramNotifier

    return TelegramNotifier(Bot(token=cfg.TELEGRAM_BOT_TOKEN), cfg.ADMIN_CHAT_IDS)


def create_app_state(cfg: Settings | None = None, sign_in: bool = True) -> AppState:
    """Seed the demo workspace and sign in as the demo admin."""
    cfg = cfg or default_settings

    directory = ConversationDirectory(users=seed.USERS, channels=seed.CHANNELS)
    app = AppState(
        directory,
        messages=MessageStore(seed.seed_messages()),
        invitations=InvitationRegistry(directory, ttl_hours=cfg.INVITATION_TTL_HOURS),
        mailer=SmtpMailer(),
        notifier=_create_notifier(cfg),
        app_base_url=cfg.APP_BASE_URL,
        workspace_name=cfg.WORKSPACE_NAME,
        tick_interval=cfg.ATTENDANCE_TICK_SECONDS,
    )
    if sign_in:
        app.sign_in_as(seed.CURRENT_USER_ID)
    logger.info(
        "Workspace '%s' ready: %d users, %d channels",
        cfg.WORKSPACE_NAME, len(app.all_users), len(app.channels),
    )
    return app
