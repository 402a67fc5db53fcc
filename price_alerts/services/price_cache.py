"""Prior reference prices for crossing alerts, kept in Redis."""
import asyncio
import json
import logging
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, Optional

from price_alerts.core.redis import get_redis
from price_alerts.services.debounce import ensure_utc

logger = logging.getLogger(__name__)


class PriceCache:
    """
    Last observed midpoint per symbol.

    Stored in one Redis hash so every replica sees the same history. Only the
    lock holder writes, which keeps one writer per evaluation run.
    """

    KEY = "alerts:last_prices"

    def __init__(self, max_age: timedelta, redis=None):
        self.max_age = max_age
        self.redis = redis
        self._lock = asyncio.Lock()

    async def _get_redis(self):
        """Get Redis connection."""
        if self.redis is None:
            async with self._lock:
                if self.redis is None:
                    self.redis = await get_redis()
        return self.redis

    async def get_prices(self, symbols: Iterable[str], now: datetime) -> Dict[str, Decimal]:
        """
        Get prior midpoints for the given symbols.

        Entries older than ``max_age`` are ignored so a long outage does not
        turn into a phantom crossing.
        """
        symbols = list(symbols)
        if not symbols:
            return {}

        redis = await self._get_redis()
        values = await redis.hmget(self.KEY, symbols)

        prices: Dict[str, Decimal] = {}
        for symbol, raw in zip(symbols, values):
            entry = self._decode(symbol, raw)
            if entry is None:
                continue
            price, as_of = entry
            if ensure_utc(now) - as_of > self.max_age:
                logger.debug(f"Ignoring stale prior price for {symbol} from {as_of.isoformat()}")
                continue
            prices[symbol] = price
        return prices

    async def set_prices(self, prices: Dict[str, Decimal], now: datetime):
        """Record the midpoints observed in the current run."""
        if not prices:
            return

        redis = await self._get_redis()
        as_of = ensure_utc(now).isoformat()
        mapping = {
            symbol: json.dumps({"price": str(price), "as_of": as_of})
            for symbol, price in prices.items()
        }
        await redis.hset(self.KEY, mapping=mapping)
        # Idle deployments should not keep prices forever
        await redis.expire(self.KEY, max(int(self.max_age.total_seconds()) * 2, 1))

    @staticmethod
    def _decode(symbol: str, raw) -> Optional[tuple]:
        if raw is None:
            return None
        try:
            data = json.loads(raw)
            return Decimal(data["price"]), ensure_utc(datetime.fromisoformat(data["as_of"]))
        except (ValueError, KeyError, TypeError, InvalidOperation):
            logger.warning(f"Discarding unreadable cached price for {symbol}: {raw!r}")
            return None
