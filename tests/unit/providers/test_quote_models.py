"""Unit tests for quote data models."""
import pytest
from decimal import Decimal

from price_alerts.providers.models import Quote, QuoteFailure


@pytest.mark.unit
class TestQuote:

    def test_midpoint(self):
        """✅ Reference price is the bid/ask midpoint."""
        quote = Quote(symbol="AAPL", bid_price=Decimal("150.00"), ask_price=Decimal("151.00"))
        assert quote.midpoint == Decimal("150.50")

    def test_midpoint_keeps_precision(self):
        quote = Quote(symbol="X", bid_price=Decimal("0.0001"), ask_price=Decimal("0.0002"))
        assert quote.midpoint == Decimal("0.00015")

    def test_failure_equality(self):
        assert QuoteFailure("AAPL", "not_found") == QuoteFailure(symbol="AAPL", reason="not_found")
