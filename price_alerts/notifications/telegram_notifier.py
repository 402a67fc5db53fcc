"""Telegram delivery of fired price alerts."""
import logging
from typing import Optional

from sqlalchemy import select
from telegram import Bot

from price_alerts.core.config import settings
from price_alerts.core.database import AsyncSessionLocal
from price_alerts.models import User
from price_alerts.notifications.base import Notifier, TriggerEvent
from price_alerts.utils.formatting import format_alert_message

logger = logging.getLogger(__name__)


class TelegramNotifier(Notifier):
    """Send trigger events to the owner's linked Telegram chat."""

    def __init__(self, token: Optional[str] = None):
        self.bot = Bot(token=token or settings.telegram_bot_token)

    async def _get_chat_id(self, user_id: str) -> Optional[str]:
        """Look up the owner's Telegram chat ID."""
        async with AsyncSessionLocal() as db:
            result = await db.execute(
                select(User.telegram_chat_id).where(User.id == user_id)
            )
            return result.scalar_one_or_none()

    async def send(self, event: TriggerEvent) -> None:
        """
        Send a trigger event to a single user.

        Args:
            event: Fired alert
        """
        chat_id = await self._get_chat_id(event.user_id)
        if not chat_id:
            logger.warning(f"User {event.user_id} has no telegram_chat_id, skipping alert {event.alert_id}")
            return

        await self.bot.send_message(
            chat_id=chat_id,
            text=format_alert_message(event)
        )
        logger.info(f"Sent alert {event.alert_id} to user {event.user_id}")

    async def close(self):
        await self.bot.shutdown()
