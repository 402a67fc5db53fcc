"""Core package initialization."""
from price_alerts.core.config import settings
from price_alerts.core.database import Base, AsyncSessionLocal, init_db
from price_alerts.core.redis import get_redis, close_redis

__all__ = ["settings", "Base", "AsyncSessionLocal", "init_db", "get_redis", "close_redis"]
