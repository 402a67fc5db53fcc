"""Data models for market quotes."""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Union


@dataclass
class Quote:
    """Latest bid/ask for a symbol."""
    symbol: str
    bid_price: Decimal
    ask_price: Decimal
    as_of: Optional[datetime] = None

    @property
    def midpoint(self) -> Decimal:
        """Reference price used for alert comparisons."""
        return (self.bid_price + self.ask_price) / 2


@dataclass
class QuoteFailure:
    """Per-symbol fetch failure indicator."""
    symbol: str
    reason: str


QuoteResult = Union[Quote, QuoteFailure]
