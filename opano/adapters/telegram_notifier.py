"""Telegram admin alerts — implements NotificationPort.

Sends each alert to every chat id in ADMIN_CHAT_IDS through a telegram.Bot.
"""

from __future__ import annotations

import logging

from telegram import Bot
from telegram.error import TelegramError

logger = logging.getLogger(__name__)


class TelegramNotifier:
    """Telegram implementation of NotificationPort."""

    def __init__(self, bot: Bot, chat_ids: list[int]) -> None:
        self._bot = bot
        self._chat_ids = list(chat_ids)

    async def notify_admins(self, text: str) -> None:
        for chat_id in self._chat_ids:
            try:
                await self._bot.send_message(chat_id=chat_id, text=text)
            except TelegramError as exc:
                logger.warning("Telegram alert to chat %d failed: %s", chat_id, exc)
