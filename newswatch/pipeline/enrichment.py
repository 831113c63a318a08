"""ConfidenceEnricher — optional secondary review of a classifier signal.

The reviewer's confidence is combined with the primary one by taking the
minimum, so this stage can only lower confidence. Any failure yields None and
the caller keeps the primary confidence: a broken reviewer never suppresses an
alert the primary signal already supports.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Protocol

from newswatch.errors import ReviewerError
from newswatch.llm_client import LLMClient, extract_json_object
from newswatch.pipeline.models import ClassifierSignal, EnrichmentMetadata, conservative_confidence
from newswatch.pipeline.retry import BackoffRetrier
from newswatch.utils import elapsed_ms

logger = logging.getLogger(__name__)

REVIEW_ATTEMPTS = 3
REASONING_EXCERPT_CHARS = 500

REVIEW_SYSTEM_PROMPT = """You are a financial market analyst specializing in risk assessment.
Given an automated analysis of a market event, assess the confidence level of the detected event.
Respond with JSON: {"confidence": 0.0-1.0, "reasoning": "brief explanation"}
Use conservative scoring: 0.7+ only for highly credible, well-sourced events.
Penalize vague events, single sources, or uncorroborated claims."""


@dataclass(frozen=True)
class ReviewVerdict:
    confidence: float
    reasoning: str


class SecondaryReviewer(Protocol):
    model_name: str

    def is_configured(self) -> bool: ...

    async def review(self, prompt: str) -> ReviewVerdict: ...


def parse_verdict(data: dict[str, Any]) -> ReviewVerdict:
    """Validate a {confidence, reasoning} payload."""
    try:
        confidence = float(data["confidence"])
    except (KeyError, TypeError, ValueError) as exc:
        raise ReviewerError(f"reviewer response has no usable confidence: {data!r}") from exc
    if math.isnan(confidence) or not 0.0 <= confidence <= 1.0:
        raise ReviewerError(f"reviewer confidence out of range: {confidence}")
    reasoning = data.get("reasoning")
    return ReviewVerdict(confidence=confidence, reasoning=str(reasoning) if reasoning is not None else "")


class LLMReviewer:
    """SecondaryReviewer backed by an OpenAI-compatible chat model."""

    def __init__(self, llm_client: LLMClient) -> None:
        self._llm = llm_client
        self.model_name = llm_client.model or "unknown"

    def is_configured(self) -> bool:
        return self._llm.is_configured

    async def review(self, prompt: str) -> ReviewVerdict:
        raw = await self._llm.complete(REVIEW_SYSTEM_PROMPT, prompt)
        try:
            data = extract_json_object(raw)
        except ValueError as exc:
            raise ReviewerError(str(exc)) from exc
        return parse_verdict(data)


class ConfidenceEnricher:
    def __init__(
        self,
        reviewer: SecondaryReviewer | None,
        retrier: BackoffRetrier,
        enabled: bool = False,
    ) -> None:
        self._reviewer = reviewer
        self._retrier = retrier
        self._enabled = enabled

    def is_enabled(self) -> bool:
        if not self._enabled or self._reviewer is None:
            return False
        return self._reviewer.is_configured()

    @staticmethod
    def build_prompt(signal: ClassifierSignal) -> str:
        sources = ", ".join(s.url for s in signal.sources) or "none"
        return (
            "Assess the confidence of this financial event:\n"
            f"Event: {signal.headline or signal.category.value}\n"
            f"Category: {signal.category.value}\n"
            f"Sentiment Score: {signal.sentiment:.2f}\n"
            f"Event Significance: {signal.significance:.2f}\n"
            f"Sources: {len(signal.sources)} ({sources})\n"
            f"Initial Confidence: {signal.confidence:.2f}\n\n"
            'Respond with JSON: {"confidence": <0.0-1.0>, "reasoning": "<brief assessment>"}'
        )

    async def enrich(self, signal: ClassifierSignal) -> EnrichmentMetadata | None:
        if not self.is_enabled():
            logger.debug("[enricher] disabled, skipping")
            return None

        t0 = time.monotonic()
        prompt = self.build_prompt(signal)
        result = await self._retrier.execute(
            lambda: self._reviewer.review(prompt),
            max_attempts=REVIEW_ATTEMPTS,
            label="secondary review",
        )
        if not result.success or not isinstance(result.value, ReviewVerdict):
            logger.warning(
                "[enricher] review failed after %d attempts, keeping primary confidence: %s",
                result.attempt_count, result.error,
            )
            return None

        verdict: ReviewVerdict = result.value
        primary = signal.confidence
        enriched = conservative_confidence(primary, verdict.confidence)
        logger.debug(
            "[enricher] primary=%.2f secondary=%.2f selected=%.2f", primary, verdict.confidence, enriched,
        )
        return EnrichmentMetadata(
            original_confidence=primary,
            enriched_confidence=enriched,
            applied=True,
            reasoning_excerpt=verdict.reasoning[:REASONING_EXCERPT_CHARS],
            model_name=self._reviewer.model_name,
            duration_ms=elapsed_ms(t0),
        )
