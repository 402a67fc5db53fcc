"""Utilities package initialization."""
from price_alerts.utils.formatting import format_alert_message, format_price, describe_operator

__all__ = [
    "format_alert_message",
    "format_price",
    "describe_operator"
]
