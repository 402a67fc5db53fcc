"""Services package initialization."""
from price_alerts.services.alert_service import AlertService
from price_alerts.services.conditions import AlertOperator, holds, parse_operator
from price_alerts.services.debounce import is_eligible
from price_alerts.services.distributed_lock import RedisLock
from price_alerts.services.price_cache import PriceCache

__all__ = [
    "AlertService",
    "AlertOperator",
    "holds",
    "parse_operator",
    "is_eligible",
    "RedisLock",
    "PriceCache",
]
