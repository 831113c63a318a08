from __future__ import annotations

import pytest

from newswatch.errors import ReviewerError
from newswatch.pipeline.enrichment import (
    REASONING_EXCERPT_CHARS,
    ConfidenceEnricher,
    ReviewVerdict,
    parse_verdict,
)
from newswatch.pipeline.models import Category, ClassifierSignal
from newswatch.pipeline.retry import BackoffRetrier


async def _no_sleep(_: float) -> None:
    return None


class FakeReviewer:
    model_name = "reviewer-x"

    def __init__(self, verdicts, configured: bool = True) -> None:
        self._verdicts = list(verdicts)
        self._configured = configured
        self.calls = 0

    def is_configured(self) -> bool:
        return self._configured

    async def review(self, prompt: str) -> ReviewVerdict:
        self.calls += 1
        item = self._verdicts.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def _signal() -> ClassifierSignal:
    # confidence = 0.6*0.9 + 0.4*0.8 = 0.86
    return ClassifierSignal.create(Category.PRICE_SURGE, 0.9, 0.8, headline="ETF approved")


@pytest.mark.asyncio
async def test_enrichment_takes_the_lower_confidence() -> None:
    reviewer = FakeReviewer([ReviewVerdict(0.65, "single source")])
    enricher = ConfidenceEnricher(reviewer, BackoffRetrier(sleep=_no_sleep), enabled=True)

    meta = await enricher.enrich(_signal())

    assert meta is not None
    assert meta.original_confidence == pytest.approx(0.86)
    assert meta.enriched_confidence == pytest.approx(0.65)
    assert meta.applied is True
    assert meta.model_name == "reviewer-x"


@pytest.mark.asyncio
async def test_higher_secondary_confidence_does_not_raise_primary() -> None:
    reviewer = FakeReviewer([ReviewVerdict(0.99, "x" * 2000)])
    enricher = ConfidenceEnricher(reviewer, BackoffRetrier(sleep=_no_sleep), enabled=True)

    meta = await enricher.enrich(_signal())

    assert meta.enriched_confidence == pytest.approx(0.86)
    assert len(meta.reasoning_excerpt) == REASONING_EXCERPT_CHARS


@pytest.mark.asyncio
async def test_reviewer_failure_after_three_attempts_yields_none() -> None:
    reviewer = FakeReviewer([ReviewerError("bad json")] * 3)
    enricher = ConfidenceEnricher(reviewer, BackoffRetrier(max_attempts=5, sleep=_no_sleep), enabled=True)

    assert await enricher.enrich(_signal()) is None
    assert reviewer.calls == 3


@pytest.mark.asyncio
async def test_disabled_or_unconfigured_enricher_is_a_no_op() -> None:
    reviewer = FakeReviewer([ReviewVerdict(0.1, "")], configured=False)
    assert ConfidenceEnricher(reviewer, BackoffRetrier(sleep=_no_sleep), enabled=True).is_enabled() is False
    assert ConfidenceEnricher(reviewer, BackoffRetrier(sleep=_no_sleep), enabled=False).is_enabled() is False
    assert await ConfidenceEnricher(None, BackoffRetrier(sleep=_no_sleep), enabled=True).enrich(_signal()) is None
    assert reviewer.calls == 0


def test_parse_verdict_rejects_out_of_range_confidence() -> None:
    assert parse_verdict({"confidence": "0.4", "reasoning": "ok"}) == ReviewVerdict(0.4, "ok")
    for bad in ({}, {"confidence": "high"}, {"confidence": 1.5}, {"confidence": float("nan")}):
        with pytest.raises(ReviewerError):
            parse_verdict(bad)
