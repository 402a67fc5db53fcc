"""Unit tests for SQLAlchemy models."""
import pytest
from decimal import Decimal

from price_alerts.models import Alert, User


@pytest.mark.unit
class TestAlertModel:

    def test_symbol_normalized(self):
        alert = Alert(id="a-1", user_id="user-1", symbol="  msft ", operator="less_than",
                      threshold=Decimal("350"))
        assert alert.symbol == "MSFT"

    def test_table_name(self):
        assert Alert.__tablename__ == "price_alerts"

    def test_repr(self):
        alert = Alert(id="a-1", user_id="user-1", symbol="AAPL", operator="greater_than",
                      threshold=Decimal("149"))
        assert "AAPL" in repr(alert)


@pytest.mark.unit
class TestUserModel:

    def test_alerts_relationship(self):
        user = User(id="user-1", telegram_chat_id="987654")
        user.alerts.append(Alert(id="a-1", symbol="AAPL", operator=">", threshold=Decimal("1")))
        assert user.alerts[0].symbol == "AAPL"

    def test_columns_limited_to_delivery_lookup(self):
        """✅ Owner record only carries what notifiers read."""
        assert set(User.__table__.columns.keys()) == {"id", "telegram_chat_id", "created_at"}
