"""Models package initialization."""
from price_alerts.models.user import User
from price_alerts.models.alert import Alert

__all__ = [
    "User",
    "Alert",
]
