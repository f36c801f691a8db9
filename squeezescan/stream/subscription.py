"""Bounded, recency-ordered set of live quote subscriptions.

Works like an LRU cache keyed by symbol, except that loading an entry
subscribes to the feed and evicting one unsubscribes from it.
"""
from __future__ import annotations

import logging
from collections import OrderedDict
from collections.abc import Callable, Iterable

logger = logging.getLogger(__name__)


class SubscriptionManager:
    """Keeps at most ``limit`` symbols subscribed, evicting the least recently used.

    Args:
        subscribe: Called with a symbol to start streaming it. Raising leaves
            the symbol untracked so a later ``ensure`` can retry.
        unsubscribe: Called with an evicted symbol. Failures are logged and
            eviction proceeds regardless.
        limit: Maximum number of tracked symbols.
    """

    def __init__(
        self,
        subscribe: Callable[[str], None],
        unsubscribe: Callable[[str], None],
        limit: int = 50,
    ) -> None:
        if limit <= 0:
            raise ValueError("limit must be positive")
        self._subscribe = subscribe
        self._unsubscribe = unsubscribe
        self.limit = limit
        # Insertion order is recency order: oldest first
        self._entries: OrderedDict[str, None] = OrderedDict()

    @property
    def queue(self) -> list[str]:
        """Tracked symbols, least recently used first."""
        return list(self._entries)

    @property
    def members(self) -> frozenset[str]:
        return frozenset(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, symbol: object) -> bool:
        return symbol in self._entries

    def ensure(self, symbol: str) -> bool:
        """Make ``symbol`` the most recently used subscription.

        Returns True when the symbol is tracked afterwards.
        """
        if symbol in self._entries:
            self._entries.move_to_end(symbol)
            return True

        if len(self._entries) >= self.limit:
            oldest, _ = self._entries.popitem(last=False)
            try:
                self._unsubscribe(oldest)
            except Exception as exc:
                logger.warning("Failed to unsubscribe %s: %s", oldest, exc)
            else:
                logger.debug("Evicted %s", oldest)

        try:
            self._subscribe(symbol)
        except Exception as exc:
            logger.warning("Failed to subscribe %s: %s", symbol, exc)
            return False
        self._entries[symbol] = None
        return True

    def promote(self, symbols: Iterable[str]) -> list[str]:
        """``ensure`` each symbol in order; return the ones now tracked."""
        return [sym for sym in symbols if self.ensure(sym)]

    def discard(self, symbol: str) -> None:
        """Stop tracking ``symbol`` and unsubscribe it if it was tracked."""
        if symbol not in self._entries:
            return
        del self._entries[symbol]
        try:
            self._unsubscribe(symbol)
        except Exception as exc:
            logger.warning("Failed to unsubscribe %s: %s", symbol, exc)

    def snapshot(self) -> list[str]:
        return self.queue
