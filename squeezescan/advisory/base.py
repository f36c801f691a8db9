from __future__ import annotations

from abc import ABC, abstractmethod
from types import MappingProxyType
from typing import Any

from squeezescan.core.exceptions import AdvisoryError
from squeezescan.core.types import Action, AdvisoryResult, TickerMetrics
from squeezescan.indicators.engine import IndicatorSnapshot

_REQUIRED_FIELDS = (
    "explanation",
    "action",
    "actionRationale",
    "isDayTradeCandidate",
    "buyPrice",
    "sellPrice",
)


class AdvisoryClient(ABC):
    """Turns a metrics payload into a Buy/Hold/Sell recommendation."""

    @abstractmethod
    async def advise(self, payload: dict[str, Any]) -> AdvisoryResult:
        """Raises ``AdvisoryError`` on any failure or malformed response."""


def build_payload(
    metrics: TickerMetrics, indicators: IndicatorSnapshot | None = None
) -> dict[str, Any]:
    """Structured snapshot of one symbol sent to the advisory service."""
    payload: dict[str, Any] = {
        "symbol": metrics.symbol,
        "price": metrics.price,
        "rsi": metrics.rsi,
        "shortFloat": metrics.short_percent,
        "volumeSpike": metrics.volume_spike,
        "momentum": metrics.momentum,
        "support": metrics.support,
        "resistance": metrics.resistance,
        "fundamentals": metrics.fundamentals.to_dict(),
        "preMarketChange": metrics.pre_market_change,
        "preMarketVolSpike": metrics.pre_market_vol_spike,
    }
    if indicators is not None:
        payload["technicals"] = {
            "ema10": _last(indicators.ema10),
            "ema50": _last(indicators.ema50),
            "macd": _last(indicators.macd_line),
            "macdSignal": _last(indicators.signal_line),
            "atr14": _last(indicators.atr14),
        }
    return payload


def parse_advisory(symbol: str, args: dict[str, Any]) -> AdvisoryResult:
    """Validate the structured response and convert it to ``AdvisoryResult``."""
    missing = [key for key in _REQUIRED_FIELDS if key not in args]
    if missing:
        raise AdvisoryError(symbol, f"missing fields {missing}")
    try:
        action = Action(args["action"])
    except ValueError as exc:
        raise AdvisoryError(symbol, f"invalid action {args['action']!r}") from exc

    return AdvisoryResult(
        action=action,
        explanation=str(args["explanation"]),
        rationale=str(args["actionRationale"]),
        is_day_trade=bool(args["isDayTradeCandidate"]),
        buy_price=_price(symbol, args, "buyPrice"),
        sell_price=_price(symbol, args, "sellPrice"),
        day_trade_buy_price=_price(symbol, args, "dayTradeBuyPrice"),
        day_trade_sell_price=_price(symbol, args, "dayTradeSellPrice"),
        long_buy_price=_price(symbol, args, "longBuyPrice"),
        long_sell_price=_price(symbol, args, "longSellPrice"),
        pre_market_entry_price=_price(symbol, args, "preMarketEntryPrice"),
        pre_market_exit_price=_price(symbol, args, "preMarketExitPrice"),
        raw=MappingProxyType(dict(args)),
    )


def _price(symbol: str, args: dict[str, Any], key: str) -> float | None:
    value = args.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise AdvisoryError(symbol, f"{key} is not a number: {value!r}")
    return float(value)


def _last(series: list) -> float | None:
    return series[-1] if series else None
