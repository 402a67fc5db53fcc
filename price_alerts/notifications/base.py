"""Abstract interface for trigger notification transports."""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal


@dataclass(frozen=True)
class TriggerEvent:
    """A fired alert, handed to a notifier."""
    alert_id: str
    user_id: str
    symbol: str
    operator: str
    threshold: Decimal
    observed_price: Decimal
    triggered_at: datetime


class Notifier(ABC):
    """Abstract base class for notification transports."""

    @abstractmethod
    async def send(self, event: TriggerEvent) -> None:
        """
        Deliver a trigger event to the alert owner.

        Delivery is best effort. Failures are raised to the caller, which
        logs them and does not retry.
        """
        pass

    async def close(self):
        """Release any transport resources."""
        pass
