from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class LiveQuote:
    symbol: str
    bid: float
    ask: float
    timestamp: datetime

    @property
    def mid(self) -> float:
        if self.bid > 0 and self.ask > 0:
            return (self.bid + self.ask) / 2.0
        return self.ask or self.bid


class QuoteStream(ABC):
    """Push-based live quote feed with per-symbol subscriptions."""

    @abstractmethod
    def subscribe(self, symbol: str) -> None:
        """Raises ``SubscriptionError`` when the feed refuses the symbol."""

    @abstractmethod
    def unsubscribe(self, symbol: str) -> None: ...

    @abstractmethod
    def latest_quote(self, symbol: str) -> LiveQuote | None: ...
