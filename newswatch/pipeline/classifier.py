"""Classifiers — turn a subject plus context into a ClassifierSignal.

The orchestrator only depends on the ``Classifier`` protocol. ``LLMClassifier``
asks an OpenAI-compatible model for a JSON verdict; ``MockClassifier`` derives
a deterministic signal from the subject name for offline runs.
"""

from __future__ import annotations

import hashlib
import logging
import math
from typing import Any, Protocol

from newswatch.errors import ClassifierError
from newswatch.llm_client import LLMClient, extract_json_object
from newswatch.pipeline.models import Category, ClassifierSignal, Source
from newswatch.pipeline.retry import BackoffRetrier

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a financial news analyst. Your job is to decide whether recent news about a single instrument contains a market-moving event.

Return ONE JSON object with:
- "event_category": one of "price_surge", "price_decline", "public_figure", "regulatory", "none"
  - "price_surge": news likely to push the price sharply up
  - "price_decline": news likely to push the price sharply down
  - "public_figure": a prominent person publicly mentioned or acted on the instrument
  - "regulatory": regulator action, lawsuit, approval, ban, filing
  - "none": nothing actionable
- "event_significance": float 0-1 — how market-moving the event is
- "sentiment_score": float -1 to 1 — bearish to bullish
- "headline": string — one-line summary of the event
- "description": string — two or three sentences of context
- "sources": array of {"title": string, "url": string}

Be strict — most of the time the right answer is "none"."""


class Classifier(Protocol):
    async def analyze(self, subject: str, context: str) -> ClassifierSignal: ...


def parse_sources(raw: Any) -> list[Source]:
    """Accept [{title, url}] objects or plain URL strings; drop anything else."""
    out: list[Source] = []
    if not isinstance(raw, list):
        return out
    for item in raw:
        if isinstance(item, dict) and item.get("url"):
            url = str(item["url"])
            out.append(Source(title=str(item.get("title") or url), url=url))
        elif isinstance(item, str) and item.strip():
            out.append(Source(title=item.strip(), url=item.strip()))
    return out


def parse_signal(raw: str) -> ClassifierSignal:
    """Parse the model's JSON verdict. Missing scores are treated as zero."""
    try:
        data = extract_json_object(raw)
    except ValueError as exc:
        raise ClassifierError(f"could not parse classifier response: {exc}") from exc

    # Sometimes the model wraps the verdict in an envelope
    for key in ("result", "analysis", "data"):
        if isinstance(data.get(key), dict):
            data = data[key]
            break

    try:
        significance = float(data.get("event_significance", 0.0) or 0.0)
        sentiment = float(data.get("sentiment_score", 0.0) or 0.0)
    except (TypeError, ValueError) as exc:
        raise ClassifierError(f"classifier returned non-numeric scores: {data!r}") from exc
    if not (math.isfinite(significance) and math.isfinite(sentiment)):
        raise ClassifierError(f"classifier returned non-finite scores: {data!r}")

    return ClassifierSignal.create(
        category=data.get("event_category", Category.NONE.value),
        significance=significance,
        sentiment=sentiment,
        headline=str(data.get("headline") or ""),
        description=str(data.get("description") or ""),
        sources=parse_sources(data.get("sources")),
    )


class LLMClassifier:
    """Classifier backed by an OpenAI-compatible chat model."""

    def __init__(self, llm_client: LLMClient, retrier: BackoffRetrier) -> None:
        self._llm = llm_client
        self._retrier = retrier
        self.model_name = llm_client.model

    async def analyze(self, subject: str, context: str) -> ClassifierSignal:
        user_prompt = f"Instrument: {subject}\n\n{context}"
        result = await self._retrier.execute(
            lambda: self._llm.complete(SYSTEM_PROMPT, user_prompt, json_mode=True),
            label=f"classify {subject}",
        )
        if not result.success:
            raise ClassifierError(
                f"classifier failed after {result.attempt_count} attempts: {result.error}"
            )
        signal = parse_signal(result.value)
        logger.debug(
            "[classifier] %s → %s significance=%.2f sentiment=%.2f",
            subject, signal.category.value, signal.significance, signal.sentiment,
        )
        return signal


class MockClassifier:
    """Deterministic stand-in: the same subject always yields the same signal."""

    model_name = "mock"

    async def analyze(self, subject: str, context: str) -> ClassifierSignal:
        digest = hashlib.sha256(subject.upper().encode()).digest()
        categories = list(Category)
        category = categories[digest[0] % len(categories)]
        significance = digest[1] / 255
        sentiment = (digest[2] / 255) * 2 - 1
        if category is Category.PRICE_SURGE:
            sentiment = abs(sentiment)
        elif category is Category.PRICE_DECLINE:
            sentiment = -abs(sentiment)
        return ClassifierSignal.create(
            category=category,
            significance=significance,
            sentiment=sentiment,
            headline=f"Mock {category.value.replace('_', ' ')} event for {subject}",
            description="Generated in mock mode; no external calls were made.",
            sources=[Source(title="mock", url=f"https://example.com/news/{subject.lower()}")],
        )
