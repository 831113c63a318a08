"""Optional market context for the classifier prompt.

Binance covers crypto pairs; an LLM price lookup can fill in for anything
Binance does not list (stock tickers and the like).
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Any, Protocol, Sequence

import httpx

from newswatch.llm_client import LLMClient, extract_json_object
from newswatch.pipeline.models import MarketContext

logger = logging.getLogger(__name__)

_BINANCE_BASE = "https://api.binance.com"


class MarketContextProvider(Protocol):
    async def fetch(self, subject: str) -> MarketContext | None: ...


class BinanceMarketContext:
    """Average price from Binance. Crypto pairs only; anything else yields None."""

    def __init__(
        self,
        base_url: str = _BINANCE_BASE,
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client = client

    async def _get_avg_price(self, client: httpx.AsyncClient, subject: str) -> dict:
        resp = await client.get(
            f"{self._base_url}/api/v3/avgPrice",
            params={"symbol": subject.upper()},
            timeout=self._timeout,
        )
        resp.raise_for_status()
        return resp.json()

    async def fetch(self, subject: str) -> MarketContext | None:
        try:
            if self._client is not None:
                data = await self._get_avg_price(self._client, subject)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    data = await self._get_avg_price(client, subject)
            price = float(data["price"])
        except (httpx.HTTPError, KeyError, TypeError, ValueError) as exc:
            logger.debug("[market] binance price unavailable for %s: %s", subject, exc)
            return None

        logger.debug("[market] binance price for %s: %s", subject, price)
        return MarketContext(price=price, change_24h=None, source="binance")


PRICE_LOOKUP_PROMPT = """You report current market prices. Answer with ONE JSON object:
{"price": <number, USD>, "change_24h": <number, percent>, "context": "<one or two sentences on the move>"}
Use null for anything you cannot determine."""


def _finite_or_none(value: Any) -> float | None:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


class LLMMarketContext:
    """Price and 24h change from an LLM lookup; None when no usable price comes back."""

    def __init__(self, llm_client: LLMClient, timeout: float = 30.0) -> None:
        self._llm = llm_client
        self._timeout = timeout

    async def fetch(self, subject: str) -> MarketContext | None:
        if not self._llm.is_configured:
            return None
        try:
            raw = await asyncio.wait_for(
                self._llm.complete(
                    PRICE_LOOKUP_PROMPT,
                    f"Current price of {subject} today in USD.",
                    json_mode=True,
                ),
                timeout=self._timeout,
            )
            data = extract_json_object(raw)
        except Exception as exc:
            logger.warning("[market] llm price lookup failed for %s: %s", subject, exc)
            return None

        price = _finite_or_none(data.get("price"))
        if price is None:
            logger.debug("[market] llm price lookup returned no price for %s", subject)
            return None
        return MarketContext(
            price=price,
            change_24h=_finite_or_none(data.get("change_24h")),
            source="llm",
            context=str(data.get("context") or ""),
        )


class FallbackMarketContext:
    """Ask each provider in turn; the first one with a price wins."""

    def __init__(self, providers: Sequence[MarketContextProvider]) -> None:
        self._providers = list(providers)

    async def fetch(self, subject: str) -> MarketContext | None:
        for provider in self._providers:
            try:
                market = await provider.fetch(subject)
            except Exception as exc:
                logger.debug("[market] %s failed for %s: %s", type(provider).__name__, subject, exc)
                continue
            if market is not None:
                return market
        return None


def build_analysis_context(subject: str, market: MarketContext | None) -> str:
    """Prompt context handed to the classifier."""
    context = f"Analyze recent news and market sentiment for {subject}."
    if market is not None:
        change = f"{market.change_24h}%" if market.change_24h is not None else "N/A"
        context += (
            "\n\nCurrent Market Data:"
            f"\n- Price: ${market.price}"
            f"\n- 24h Change: {change}"
            f"\n- Context: {market.context or 'N/A'}"
        )
    context += "\n\nDetect any significant market-moving events."
    return context
