"""Grounding for webhook alerts: a short contextual summary plus sources."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from newswatch.errors import GroundingError
from newswatch.llm_client import LLMClient, extract_json_object
from newswatch.pipeline.classifier import parse_sources
from newswatch.pipeline.formatting import format_sources
from newswatch.pipeline.models import Source
from newswatch.pipeline.retry import BackoffRetrier

logger = logging.getLogger(__name__)

GROUNDING_SYSTEM_PROMPT = """You are a market news desk editor. You receive a raw trading alert.
Write a concise contextual summary (at most three sentences) that explains what the alert
is about and why it may matter to traders. Keep the language of the alert.

Respond with ONE JSON object:
{"summary": "...", "sentiment": "bullish|bearish|neutral", "sources": [{"title": "...", "url": "..."}]}
Only cite sources you are confident exist; an empty list is fine."""


@dataclass(frozen=True)
class GroundedAlert:
    summary: str
    sources: tuple[Source, ...] = ()
    sentiment: str = "neutral"
    original_text: str = ""

    def render(self) -> str:
        """Message body sent to the channels."""
        lines = [self.original_text, "", self.summary] if self.original_text else [self.summary]
        if self.sources:
            lines += ["", f"Sources: {format_sources(self.sources)}"]
        return "\n".join(lines)

    def to_dict(self) -> dict:
        return {
            "summary": self.summary,
            "sentiment": self.sentiment,
            "sources": [s.to_dict() for s in self.sources],
        }


class AlertGrounder:
    def __init__(self, llm_client: LLMClient, retrier: BackoffRetrier, enabled: bool = False) -> None:
        self._llm = llm_client
        self._retrier = retrier
        self._enabled = enabled

    def is_enabled(self) -> bool:
        return self._enabled and self._llm.is_configured

    async def ground(self, text: str) -> GroundedAlert:
        """Raises GroundingError when the model cannot produce a usable summary."""
        result = await self._retrier.execute(
            lambda: self._llm.complete(GROUNDING_SYSTEM_PROMPT, text, json_mode=True),
            label="ground alert",
        )
        if not result.success:
            raise GroundingError(f"grounding failed after {result.attempt_count} attempts: {result.error}")

        try:
            data = extract_json_object(result.value)
        except ValueError as exc:
            raise GroundingError(f"could not parse grounding response: {exc}") from exc

        summary = str(data.get("summary") or "").strip()
        if not summary:
            raise GroundingError("grounding response has no summary")

        sentiment = str(data.get("sentiment") or "neutral").lower()
        sources = tuple(parse_sources(data.get("sources")))
        logger.debug("[grounding] summary with %d source(s), sentiment=%s", len(sources), sentiment)
        return GroundedAlert(summary=summary, sources=sources, sentiment=sentiment, original_text=text)
