"""CachedQuoteProvider: file-backed daily cache in front of a slow provider.

The cache is one JSON document mapping each symbol to its last provider
record plus an ``updated_at`` timestamp. Entries younger than ``ttl`` are
served without calling the wrapped provider. When a refresh fails the stale
entry is served instead; with no entry at all the failure propagates.

Design decisions:
- Writes go to ``<path>.tmp`` first and are then renamed over the cache
  file, so a crash never leaves a half-written document.
- An unreadable cache file is deleted and the cache starts empty.
- Bar history is not cached; only scalar and fundamental fields are.
"""
from __future__ import annotations

import json
import logging
import os
from collections.abc import Callable
from dataclasses import asdict, fields
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from squeezescan.core.types import Fundamentals
from squeezescan.data.providers import ProviderQuote, QuoteProvider

logger = logging.getLogger(__name__)

_CACHED_FIELDS = tuple(
    f.name for f in fields(ProviderQuote) if f.name not in ("symbol", "history")
)


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class CachedQuoteProvider(QuoteProvider):
    """Serves ``inner`` records from a JSON cache while they are fresh.

    Usage::

        yahoo = CachedQuoteProvider(YahooFundamentalsProvider(limiter), "cache/fundamentals.json")
        quote = await yahoo.fetch("GME")
    """

    def __init__(
        self,
        inner: QuoteProvider,
        path: str | Path,
        ttl: timedelta = timedelta(days=1),
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._inner = inner
        self._path = Path(path)
        self._ttl = ttl
        self._clock = clock
        self._entries: dict[str, dict[str, Any]] | None = None
        self.name = inner.name

    async def fetch(self, symbol: str) -> ProviderQuote | None:
        entries = self._load()
        entry = entries.get(symbol)
        if entry is not None and self._is_fresh(entry):
            return _decode(symbol, entry)

        try:
            quote = await self._inner.fetch(symbol)
        except Exception as exc:
            if entry is None:
                raise
            logger.warning("[%s] %s refresh failed, serving stale cache: %s", symbol, self.name, exc)
            return _decode(symbol, entry)

        if quote is None:
            if entry is not None:
                logger.warning("[%s] %s returned no data, serving stale cache", symbol, self.name)
                return _decode(symbol, entry)
            return None

        entries[symbol] = _encode(quote, self._clock())
        self._write(entries)
        return quote

    def _is_fresh(self, entry: dict[str, Any]) -> bool:
        try:
            updated_at = datetime.fromisoformat(entry["updated_at"])
        except (KeyError, TypeError, ValueError):
            return False
        return self._clock() - updated_at < self._ttl

    def _load(self) -> dict[str, dict[str, Any]]:
        if self._entries is not None:
            return self._entries
        self._entries = {}
        if self._path.exists():
            try:
                data = json.loads(self._path.read_text(encoding="utf-8"))
                if not isinstance(data, dict):
                    raise ValueError("cache root is not an object")
                self._entries = data
            except (OSError, ValueError) as exc:
                logger.warning("Quote cache %s is corrupted (%s); starting empty", self._path, exc)
                self._path.unlink(missing_ok=True)
        return self._entries

    def _write(self, entries: dict[str, dict[str, Any]]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_name(self._path.name + ".tmp")
        tmp.write_text(json.dumps(entries, indent=2), encoding="utf-8")
        os.replace(tmp, self._path)


def _encode(quote: ProviderQuote, updated_at: datetime) -> dict[str, Any]:
    entry: dict[str, Any] = {}
    for name in _CACHED_FIELDS:
        value = getattr(quote, name)
        entry[name] = asdict(value) if isinstance(value, Fundamentals) else value
    entry["updated_at"] = updated_at.isoformat()
    return entry


def _decode(symbol: str, entry: dict[str, Any]) -> ProviderQuote:
    values = {name: entry.get(name) for name in _CACHED_FIELDS}
    if values.get("fundamentals") is not None:
        values["fundamentals"] = Fundamentals(**values["fundamentals"])
    return ProviderQuote(symbol=symbol, **values)
