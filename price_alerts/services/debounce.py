"""Re-trigger cooldown policy."""
from datetime import datetime, timedelta, timezone
from typing import Optional


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_eligible(
    last_triggered_at: Optional[datetime],
    now: datetime,
    cooldown: timedelta
) -> bool:
    """
    Decide whether an alert may fire again.

    Args:
        last_triggered_at: When the alert last fired, or None if never
        now: Current time of the evaluation run
        cooldown: Minimum time between two triggers of the same alert

    Returns:
        True if the alert never fired or the cooldown has fully elapsed
    """
    if last_triggered_at is None:
        return True
    return ensure_utc(now) - ensure_utc(last_triggered_at) >= cooldown
