"""Unit tests for AlpacaQuoteProvider.

This module tests the Alpaca latest-quotes integration including batching,
response parsing, and per-symbol failure isolation.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from datetime import datetime, timezone
from decimal import Decimal
import httpx

from price_alerts.providers import ProviderError
from price_alerts.core.config import settings
from price_alerts.providers.alpaca import MAX_ATTEMPTS, AlpacaQuoteProvider
from price_alerts.providers.models import Quote, QuoteFailure


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def mock_client():
    """Mock httpx AsyncClient."""
    with patch("httpx.AsyncClient") as mock:
        client_instance = AsyncMock()
        mock.return_value = client_instance
        yield client_instance


@pytest.fixture
def provider(mock_client):
    """Create AlpacaQuoteProvider instance."""
    return AlpacaQuoteProvider(
        api_key_id="key-id",
        api_secret="secret",
        base_url="https://data.example.com/",
        batch_size=2
    )


def make_response(payload: dict, status_code: int = 200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    if status_code >= 400:
        response.raise_for_status.side_effect = httpx.HTTPStatusError(
            f"HTTP {status_code}", request=MagicMock(), response=response
        )
    return response


# ============================================================================
# Tests for get_latest_quotes
# ============================================================================

@pytest.mark.unit
class TestGetLatestQuotes:
    """Test get_latest_quotes method."""

    async def test_success(self, provider, mock_client):
        """✅ Quotes parsed to Decimal, midpoint computed."""
        mock_client.get.return_value = make_response({
            "quotes": {
                "AAPL": {"bp": 150.0, "ap": 151.0, "t": "2025-01-06T15:30:00.123456789Z"},
                "MSFT": {"bp": 300.0, "ap": 301.0, "t": "2025-01-06T15:30:01Z"},
            }
        })

        quotes = await provider.get_latest_quotes({"aapl", "MSFT"})

        assert isinstance(quotes["AAPL"], Quote)
        assert quotes["AAPL"].bid_price == Decimal("150.0")
        assert quotes["AAPL"].midpoint == Decimal("150.50")
        assert quotes["MSFT"].midpoint == Decimal("300.50")
        assert quotes["AAPL"].as_of == datetime(2025, 1, 6, 15, 30, 0, 123456, tzinfo=timezone.utc)

        args, kwargs = mock_client.get.call_args
        assert args[0] == "https://data.example.com/v2/stocks/quotes/latest"
        assert kwargs["params"] == {"symbols": "AAPL,MSFT"}
        assert kwargs["headers"]["APCA-API-KEY-ID"] == "key-id"
        assert kwargs["headers"]["APCA-API-SECRET-KEY"] == "secret"

    async def test_missing_symbol_is_failure(self, provider, mock_client):
        """✅ Symbol absent from response → QuoteFailure(not_found)."""
        mock_client.get.return_value = make_response({
            "quotes": {"AAPL": {"bp": 150.0, "ap": 151.0}}
        })

        quotes = await provider.get_latest_quotes(["AAPL", "ZZZZ"])

        assert isinstance(quotes["AAPL"], Quote)
        assert quotes["ZZZZ"] == QuoteFailure(symbol="ZZZZ", reason="not_found")

    @pytest.mark.parametrize("raw", [
        {"bp": 0, "ap": 151.0},
        {"bp": 150.0},
        {"bp": "abc", "ap": 1},
        {"bp": -1, "ap": 2},
    ])
    async def test_invalid_quote(self, provider, mock_client, raw):
        """✅ Missing or non-positive side → QuoteFailure(invalid_quote)."""
        mock_client.get.return_value = make_response({"quotes": {"AAPL": raw}})

        quotes = await provider.get_latest_quotes(["AAPL"])

        assert quotes["AAPL"] == QuoteFailure(symbol="AAPL", reason="invalid_quote")

    async def test_empty_symbols(self, provider, mock_client):
        assert await provider.get_latest_quotes([]) == {}
        mock_client.get.assert_not_called()

    async def test_chunks_requested_separately(self, provider, mock_client):
        """✅ 3 symbols with batch_size=2 → 2 requests."""
        def respond(url, params, headers):
            symbols = params["symbols"].split(",")
            return make_response({
                "quotes": {s: {"bp": 10.0, "ap": 12.0} for s in symbols}
            })

        mock_client.get.side_effect = respond

        quotes = await provider.get_latest_quotes(["C", "A", "B"])

        assert mock_client.get.call_count == 2
        requested = sorted(call.kwargs["params"]["symbols"] for call in mock_client.get.call_args_list)
        assert requested == ["A,B", "C"]
        assert all(q.midpoint == Decimal("11") for q in quotes.values())

    async def test_failed_chunk_isolated(self, provider, mock_client):
        """✅ One chunk failing does not lose the other chunk's quotes."""
        def respond(url, params, headers):
            if params["symbols"] == "C":
                return make_response({}, status_code=500)
            return make_response({
                "quotes": {s: {"bp": 10.0, "ap": 12.0} for s in params["symbols"].split(",")}
            })

        mock_client.get.side_effect = respond

        quotes = await provider.get_latest_quotes(["A", "B", "C"])

        assert isinstance(quotes["A"], Quote)
        assert isinstance(quotes["B"], Quote)
        assert isinstance(quotes["C"], QuoteFailure)
        assert "Alpaca API error" in quotes["C"].reason


# ============================================================================
# Tests for error mapping
# ============================================================================

@pytest.mark.unit
class TestErrorMapping:
    """Test HTTP errors are mapped to ProviderError messages."""

    async def test_access_denied(self, provider, mock_client):
        mock_client.get.return_value = make_response({}, status_code=403)

        with pytest.raises(ProviderError, match="access denied"):
            await provider._fetch_chunk(["AAPL"])

    async def test_rate_limit(self, provider, mock_client):
        mock_client.get.return_value = make_response({}, status_code=429)

        with pytest.raises(ProviderError, match="rate limit"):
            await provider._fetch_chunk(["AAPL"])

    async def test_timeout_after_retries(self, provider):
        provider._make_request = AsyncMock(side_effect=httpx.ReadTimeout("timed out"))

        with pytest.raises(ProviderError, match="timeout"):
            await provider._fetch_chunk(["AAPL"])

    async def test_timeout_surfaces_as_failures(self, provider):
        provider._make_request = AsyncMock(side_effect=httpx.ConnectError("refused"))

        quotes = await provider.get_latest_quotes(["AAPL"])

        assert isinstance(quotes["AAPL"], QuoteFailure)
        assert "connection error" in quotes["AAPL"].reason


@pytest.mark.unit
class TestRetryBudget:
    """Test retries fit inside the quote timeout."""

    def test_attempt_timeout_is_share_of_budget(self):
        with patch("httpx.AsyncClient") as mock_cls:
            AlpacaQuoteProvider(api_key_id="k", api_secret="s")

        timeout = mock_cls.call_args.kwargs["timeout"]
        assert timeout == settings.quote_timeout_seconds / (MAX_ATTEMPTS + 1)
        assert timeout < settings.quote_timeout_seconds

    async def test_timeout_then_success_retried(self, provider, mock_client):
        """✅ A timed-out attempt is retried and the second attempt wins."""
        mock_client.get.side_effect = [
            httpx.ReadTimeout("slow upstream"),
            make_response({"quotes": {"AAPL": {"bp": 150.0, "ap": 151.0}}}),
        ]

        quotes = await provider.get_latest_quotes(["AAPL"])

        assert mock_client.get.call_count == 2
        assert quotes["AAPL"].midpoint == Decimal("150.50")


@pytest.mark.unit
async def test_close(provider, mock_client):
    await provider.close()
    mock_client.aclose.assert_called_once()
