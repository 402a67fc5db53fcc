"""Shared pytest fixtures for price alert tests."""
import pytest
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

import fakeredis.aioredis

from price_alerts.models import Alert
from price_alerts.providers.models import Quote, QuoteFailure


NOW = datetime(2025, 1, 6, 15, 30, 0, tzinfo=timezone.utc)


def create_alert(
    symbol: str = "AAPL",
    operator: str = "greater_than",
    threshold="149.00",
    user_id: str = "user-1",
    active: bool = True,
    last_triggered_at: Optional[datetime] = None,
    alert_id: Optional[str] = None
) -> Alert:
    """Factory function to create transient Alert instances for testing."""
    return Alert(
        id=alert_id or str(uuid.uuid4()),
        user_id=user_id,
        symbol=symbol,
        operator=operator,
        threshold=Decimal(str(threshold)),
        active=active,
        last_triggered_at=last_triggered_at
    )


def create_quote(symbol: str, bid, ask) -> Quote:
    """Factory function to create Quote instances for testing."""
    return Quote(symbol=symbol, bid_price=Decimal(str(bid)), ask_price=Decimal(str(ask)))


def create_failure(symbol: str, reason: str = "not_found") -> QuoteFailure:
    return QuoteFailure(symbol=symbol, reason=reason)


@pytest.fixture
def now():
    """Fixed evaluation time."""
    return NOW


@pytest.fixture
async def fake_redis():
    """Create a FakeRedis instance for testing."""
    redis = fakeredis.aioredis.FakeRedis(decode_responses=True)
    yield redis
    await redis.flushall()
    await redis.aclose()
