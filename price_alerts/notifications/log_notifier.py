"""Notifier that writes trigger events to the application log."""
import logging

from price_alerts.notifications.base import Notifier, TriggerEvent

logger = logging.getLogger(__name__)


class LoggingNotifier(Notifier):
    """Development transport: logs instead of delivering."""

    async def send(self, event: TriggerEvent) -> None:
        logger.info(
            f"Alert triggered for user {event.user_id}: {event.symbol} {event.operator} "
            f"{event.threshold}, current price: {event.observed_price}"
        )
