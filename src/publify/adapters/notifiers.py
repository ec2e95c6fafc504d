"""Reminder delivery channels."""

import logging
from datetime import datetime

from telegram import Bot

from publify.core.events import Event, Reminder
from publify.core.reminders import format_reminder_message

logger = logging.getLogger(__name__)


class LoggingNotifier:
    """In-app channel: writes reminder lines through logging and keeps them."""

    def __init__(self):
        self.sent: list[str] = []

    async def notify(self, event: Event, reminder: Reminder, trigger_time: datetime) -> None:
        message = format_reminder_message(event, reminder)
        self.sent.append(message)
        logger.info(message)


class TelegramNotifier:
    """Push channel: sends the reminder to each configured Telegram chat."""

    def __init__(self, bot: Bot, chat_ids: list[int]):
        self.bot = bot
        self.chat_ids = chat_ids

    @classmethod
    def from_token(cls, token: str, chat_ids: list[int]) -> "TelegramNotifier":
        if not token:
            raise ValueError(
                "TELEGRAM_BOT_TOKEN not configured. "
                "Get a token from @BotFather on Telegram and add it to publify.conf"
            )
        return cls(Bot(token), chat_ids)

    async def notify(self, event: Event, reminder: Reminder, trigger_time: datetime) -> None:
        text = format_reminder_message(event, reminder)
        for chat_id in self.chat_ids:
            try:
                await self.bot.send_message(chat_id=chat_id, text=text)
            except Exception as e:
                logger.error(f"Failed to send reminder to chat {chat_id}: {e}")
