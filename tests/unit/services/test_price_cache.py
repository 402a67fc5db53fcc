"""Unit tests for the prior price cache."""
import json
import pytest
from datetime import timedelta
from decimal import Decimal

from price_alerts.services.price_cache import PriceCache


@pytest.fixture
def cache(fake_redis):
    return PriceCache(max_age=timedelta(seconds=30), redis=fake_redis)


@pytest.mark.unit
class TestPriceCache:
    """Test storing and reading prior midpoints."""

    async def test_roundtrip(self, cache, now):
        """✅ Stored prices are returned as Decimals."""
        await cache.set_prices({"AAPL": Decimal("150.50"), "MSFT": Decimal("300.5")}, now)

        prices = await cache.get_prices(["AAPL", "MSFT"], now + timedelta(seconds=10))

        assert prices == {"AAPL": Decimal("150.50"), "MSFT": Decimal("300.5")}

    async def test_missing_symbol(self, cache, now):
        await cache.set_prices({"AAPL": Decimal("150.50")}, now)
        assert await cache.get_prices(["TSLA"], now) == {}

    async def test_stale_entries_ignored(self, cache, now):
        """✅ Entries older than max_age are treated as absent."""
        await cache.set_prices({"AAPL": Decimal("150.50")}, now)
        assert await cache.get_prices(["AAPL"], now + timedelta(seconds=31)) == {}

    async def test_empty_inputs(self, cache, now, fake_redis):
        await cache.set_prices({}, now)
        assert await fake_redis.exists(PriceCache.KEY) == 0
        assert await cache.get_prices([], now) == {}

    async def test_key_gets_ttl(self, cache, now, fake_redis):
        await cache.set_prices({"AAPL": Decimal("1")}, now)
        ttl = await fake_redis.ttl(PriceCache.KEY)
        assert 0 < ttl <= 60

    async def test_unreadable_entry_discarded(self, cache, now, fake_redis):
        await fake_redis.hset(PriceCache.KEY, mapping={
            "AAPL": "not json",
            "MSFT": json.dumps({"price": "300.5", "as_of": now.isoformat()}),
        })
        assert await cache.get_prices(["AAPL", "MSFT"], now) == {"MSFT": Decimal("300.5")}
