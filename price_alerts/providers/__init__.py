"""Abstract interface for market quote providers."""
from abc import ABC, abstractmethod
from typing import Dict, Iterable
from price_alerts.providers.models import QuoteResult


class QuoteProvider(ABC):
    """Abstract base class for market quote providers."""

    @abstractmethod
    async def get_latest_quotes(self, symbols: Iterable[str]) -> Dict[str, QuoteResult]:
        """
        Fetch the latest quote for each symbol in one logical batch.

        Args:
            symbols: Distinct symbols to look up

        Returns:
            Mapping of every requested symbol to a Quote or a QuoteFailure

        Raises:
            ProviderError: If the whole batch could not be fetched
        """
        pass

    async def close(self):
        """Release any underlying connections."""
        pass


class ProviderError(Exception):
    """Exception raised when provider API fails."""
    pass
