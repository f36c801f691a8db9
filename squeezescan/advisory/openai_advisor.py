"""OpenAI-backed advisory client.

Forces a single ``analyze_stock`` tool call so the model answers with a
structured recommendation built only from the metrics it is given.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from openai import OpenAI

from squeezescan.advisory.base import AdvisoryClient, parse_advisory
from squeezescan.core.exceptions import AdvisoryError
from squeezescan.core.types import AdvisoryResult

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = (
    "You are a market-data analyst. You have no external data access; only use "
    "the metrics given below. Do NOT reference any historical or internet-sourced "
    "knowledge about {symbol}. Base all decisions purely on the numbers provided, "
    "including pre-market surges."
)

_PRICE_FIELDS = {
    "buyPrice": "Primary entry price (day or long)",
    "sellPrice": "Primary exit price (day or long)",
    "dayTradeBuyPrice": "Intraday entry target",
    "dayTradeSellPrice": "Intraday exit target",
    "longBuyPrice": "Long-term entry target",
    "longSellPrice": "Long-term exit target",
    "preMarketEntryPrice": "Recommended pre-market entry",
    "preMarketExitPrice": "Recommended pre-market exit",
}

ANALYZE_STOCK_TOOL: dict[str, Any] = {
    "type": "function",
    "function": {
        "name": "analyze_stock",
        "description": (
            "Suggests entry/exit levels for pre-market surge or day-trade/long-hold "
            "based ONLY on provided metrics."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "explanation": {
                    "type": "string",
                    "description": "2-3 sentence rationale for the primary action",
                },
                "action": {
                    "type": "string",
                    "enum": ["Buy", "Hold", "Sell"],
                    "description": "Overall recommendation",
                },
                "actionRationale": {
                    "type": "string",
                    "description": "Brief explanation for the Buy/Hold/Sell recommendation",
                },
                "isDayTradeCandidate": {
                    "type": "boolean",
                    "description": "True if suitable for a same-day (intraday) trade.",
                },
                **{
                    name: {"type": "number", "description": desc}
                    for name, desc in _PRICE_FIELDS.items()
                },
            },
            "required": [
                "explanation",
                "action",
                "actionRationale",
                "isDayTradeCandidate",
                "buyPrice",
                "sellPrice",
            ],
        },
    },
}


class OpenAIAdvisor(AdvisoryClient):
    """Chat-completions advisor; the sync client runs in the default executor."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4.1-mini-2025-04-14",
        temperature: float = 0.2,
        max_tokens: int = 400,
        timeout: float = 60.0,
        client: OpenAI | None = None,
    ) -> None:
        self._client = client or OpenAI(api_key=api_key)
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._timeout = timeout

    async def advise(self, payload: dict[str, Any]) -> AdvisoryResult:
        symbol = str(payload.get("symbol", "?"))
        loop = asyncio.get_running_loop()
        try:
            args = await loop.run_in_executor(None, self._sync_call, symbol, payload)
        except AdvisoryError:
            raise
        except Exception as exc:
            logger.warning("OpenAI request failed for %s: %s", symbol, exc)
            raise AdvisoryError(symbol, str(exc)) from exc
        return parse_advisory(symbol, args)

    def _sync_call(self, symbol: str, payload: dict[str, Any]) -> dict[str, Any]:
        resp = self._client.chat.completions.create(
            model=self._model,
            messages=[
                {"role": "system", "content": _SYSTEM_PROMPT.format(symbol=symbol)},
                {"role": "user", "content": json.dumps(payload, indent=2)},
            ],
            tools=[ANALYZE_STOCK_TOOL],
            tool_choice={"type": "function", "function": {"name": "analyze_stock"}},
            temperature=self._temperature,
            max_tokens=self._max_tokens,
            timeout=self._timeout,
        )
        choice = resp.choices[0] if resp.choices else None
        tool_calls = choice.message.tool_calls if choice and choice.message else None
        if not tool_calls:
            raise AdvisoryError(symbol, "response contained no tool call")
        try:
            args = json.loads(tool_calls[0].function.arguments)
        except (TypeError, json.JSONDecodeError) as exc:
            raise AdvisoryError(symbol, f"unparseable tool arguments: {exc}") from exc
        if not isinstance(args, dict):
            raise AdvisoryError(symbol, "tool arguments are not an object")
        return args
