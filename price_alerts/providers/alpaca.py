"""Alpaca market data quote provider implementation."""
import asyncio
import httpx
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, List, Optional
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log
)
import logging
from price_alerts.providers import QuoteProvider, ProviderError
from price_alerts.providers.models import Quote, QuoteFailure, QuoteResult
from price_alerts.core.config import settings


logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3


class AlpacaQuoteProvider(QuoteProvider):
    """Alpaca implementation of the latest-quotes lookup."""

    QUOTES_PATH = "/v2/stocks/quotes/latest"

    def __init__(
        self,
        api_key_id: Optional[str] = None,
        api_secret: Optional[str] = None,
        base_url: Optional[str] = None,
        batch_size: Optional[int] = None,
    ):
        self.api_key_id = api_key_id if api_key_id is not None else settings.alpaca_api_key_id
        self.api_secret = api_secret if api_secret is not None else settings.alpaca_api_secret
        self.base_url = (base_url or settings.alpaca_data_url).rstrip("/")
        self.batch_size = batch_size or settings.quote_batch_size
        # Per-attempt timeout: a quarter of the quote budget
        self.client = httpx.AsyncClient(timeout=settings.quote_timeout_seconds / (MAX_ATTEMPTS + 1))

    @retry(
        stop=stop_after_attempt(MAX_ATTEMPTS),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=2),
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.ConnectError)),
        before_sleep=before_sleep_log(logger, logging.WARNING)
    )
    async def _make_request(self, url: str, params: dict) -> dict:
        """Make HTTP request with retry logic for transient failures.

        Retries timeouts and connection errors only. HTTP status errors
        are raised to the caller unchanged.
        """
        headers = {
            "APCA-API-KEY-ID": self.api_key_id,
            "APCA-API-SECRET-KEY": self.api_secret,
            "Accept": "application/json",
        }
        response = await self.client.get(url, params=params, headers=headers)
        response.raise_for_status()
        return response.json()

    async def get_latest_quotes(self, symbols: Iterable[str]) -> Dict[str, QuoteResult]:
        """
        Fetch latest quotes from Alpaca.

        Symbols are split into chunks of ``batch_size`` and the chunks are
        requested concurrently. A failed chunk turns into a QuoteFailure for
        each of its symbols so the rest of the batch is still usable.
        """
        unique = sorted({s.upper() for s in symbols if s})
        if not unique:
            return {}

        chunks = [unique[i:i + self.batch_size] for i in range(0, len(unique), self.batch_size)]
        logger.debug(f"Fetching quotes for {len(unique)} symbols in {len(chunks)} request(s)")

        responses = await asyncio.gather(
            *(self._fetch_chunk(chunk) for chunk in chunks),
            return_exceptions=True
        )

        results: Dict[str, QuoteResult] = {}
        for chunk, response in zip(chunks, responses):
            if isinstance(response, BaseException):
                if isinstance(response, asyncio.CancelledError):
                    raise response
                reason = str(response) or type(response).__name__
                logger.warning(f"Quote request failed for {len(chunk)} symbol(s): {reason}")
                for symbol in chunk:
                    results[symbol] = QuoteFailure(symbol=symbol, reason=reason)
                continue
            results.update(response)

        return results

    async def _fetch_chunk(self, symbols: List[str]) -> Dict[str, QuoteResult]:
        """Fetch one chunk of symbols and map the response."""
        url = f"{self.base_url}{self.QUOTES_PATH}"
        params = {"symbols": ",".join(symbols)}

        try:
            data = await self._make_request(url, params)
        except httpx.HTTPStatusError as e:
            if e.response.status_code in (401, 403):
                raise ProviderError(
                    f"Alpaca API access denied ({e.response.status_code}): check API key id and secret"
                )
            elif e.response.status_code == 429:
                raise ProviderError(
                    "Alpaca API rate limit exceeded (429). Please wait before making more requests."
                )
            raise ProviderError(f"Alpaca API error: {str(e)}")
        except httpx.TimeoutException as e:
            raise ProviderError(f"Alpaca API timeout after retries: {str(e)}")
        except httpx.HTTPError as e:
            raise ProviderError(f"Alpaca API connection error: {str(e)}")

        quotes = data.get("quotes") or {}
        results: Dict[str, QuoteResult] = {}
        for symbol in symbols:
            raw = quotes.get(symbol)
            if raw is None:
                results[symbol] = QuoteFailure(symbol=symbol, reason="not_found")
                continue
            results[symbol] = self._parse_quote(symbol, raw)
        return results

    def _parse_quote(self, symbol: str, raw: dict) -> QuoteResult:
        """Parse an Alpaca quote object into a Quote."""
        try:
            bid = Decimal(str(raw.get("bp")))
            ask = Decimal(str(raw.get("ap")))
        except (InvalidOperation, ValueError):
            return QuoteFailure(symbol=symbol, reason="invalid_quote")

        if not bid.is_finite() or not ask.is_finite() or bid <= 0 or ask <= 0:
            return QuoteFailure(symbol=symbol, reason="invalid_quote")

        return Quote(
            symbol=symbol,
            bid_price=bid,
            ask_price=ask,
            as_of=self._parse_timestamp(raw.get("t"))
        )

    @staticmethod
    def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
        if not value:
            return None
        try:
            # Alpaca sends nanosecond precision; trim to microseconds
            head, _, tail = value.rstrip("Z").partition(".")
            if tail:
                head = f"{head}.{tail[:6]}"
            return datetime.fromisoformat(head + "+00:00")
        except ValueError:
            return None

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()
