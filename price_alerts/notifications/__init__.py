"""Notification transports for fired alerts."""
from price_alerts.notifications.base import Notifier, TriggerEvent
from price_alerts.notifications.log_notifier import LoggingNotifier


def build_notifier(config=None) -> Notifier:
    """Create the notifier selected by ``notifier_backend``."""
    if config is None:
        from price_alerts.core.config import settings as config

    if config.notifier_backend == "telegram":
        from price_alerts.notifications.telegram_notifier import TelegramNotifier
        return TelegramNotifier(token=config.telegram_bot_token)
    return LoggingNotifier()


__all__ = ["Notifier", "TriggerEvent", "LoggingNotifier", "build_notifier"]
