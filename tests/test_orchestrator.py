from __future__ import annotations

import asyncio

import pytest

from newswatch.channels.base import Channel
from newswatch.errors import ClassifierError
from newswatch.monitoring import FailureReporter
from newswatch.pipeline.cache import DedupCache
from newswatch.pipeline.dispatcher import ChannelDispatcher
from newswatch.pipeline.enrichment import ConfidenceEnricher, ReviewVerdict
from newswatch.pipeline.models import (
    Alert,
    AnalysisStatus,
    Category,
    ClassifierSignal,
    DeliveryOutcome,
    ValidationOutcome,
)
from newswatch.pipeline.orchestrator import AnalysisOrchestrator
from newswatch.pipeline.retry import BackoffRetrier


async def _no_sleep(_: float) -> None:
    return None


class ScriptedClassifier:
    """Returns a per-subject signal, raises, or hangs."""

    model_name = "fake-classifier"

    def __init__(self, script: dict) -> None:
        self.script = script
        self.calls: list[str] = []

    async def analyze(self, subject: str, context: str) -> ClassifierSignal:
        self.calls.append(subject)
        item = self.script[subject]
        if item == "hang":
            await asyncio.sleep(3600)
        if isinstance(item, Exception):
            raise item
        return item


class RecordingChannel(Channel):
    def __init__(self, name: str = "telegram") -> None:
        self._name = name
        self.sent: list[Alert] = []

    @property
    def name(self) -> str:
        return self._name

    async def validate(self) -> ValidationOutcome:
        return ValidationOutcome(self._name, True, "ok")

    def is_enabled(self) -> bool:
        return True

    async def send(self, alert: Alert) -> DeliveryOutcome:
        self.sent.append(alert)
        return DeliveryOutcome(self._name, True, message_id=str(len(self.sent)))


class FixedReviewer:
    model_name = "reviewer"

    def __init__(self, confidence: float) -> None:
        self.confidence = confidence
        self.calls = 0

    def is_configured(self) -> bool:
        return True

    async def review(self, prompt: str) -> ReviewVerdict:
        self.calls += 1
        return ReviewVerdict(self.confidence, "checked")


def _surge() -> ClassifierSignal:
    # confidence 0.86
    return ClassifierSignal.create(Category.PRICE_SURGE, 0.9, 0.8, headline="ETF approved")


def _build(script: dict, timeout: float = 5.0, enricher=None, reporter=None):
    classifier = ScriptedClassifier(script)
    channel = RecordingChannel()
    orchestrator = AnalysisOrchestrator(
        classifier=classifier,
        cache=DedupCache(ttl_seconds=3600),
        dispatcher=ChannelDispatcher([channel]),
        enricher=enricher,
        reporter=reporter,
        threshold=0.7,
        timeout_seconds=timeout,
    )
    return orchestrator, classifier, channel


@pytest.mark.asyncio
async def test_batch_fails_open_with_one_result_per_subject_in_order() -> None:
    reporter = FailureReporter()
    orchestrator, _, channel = _build(
        {"AAA": _surge(), "BBB": ClassifierError("model exploded"), "CCC": "hang"},
        timeout=0.05,
        reporter=reporter,
    )

    results = await orchestrator.analyze_batch(["AAA", "BBB", "CCC"], correlation_id="req-1")

    assert [r.subject for r in results] == ["AAA", "BBB", "CCC"]
    assert [r.status for r in results] == [
        AnalysisStatus.ANALYZED, AnalysisStatus.ERROR, AnalysisStatus.TIMEOUT,
    ]
    assert all(r.correlation_id == "req-1" for r in results)
    assert results[0].alert is not None
    assert results[1].error.code == "ANALYSIS_ERROR"
    assert "model exploded" in results[1].error.message
    assert results[2].error.code == "ANALYSIS_TIMEOUT"
    assert results[2].error.message == "Analysis exceeded 50ms budget"
    assert len(channel.sent) == 1
    assert reporter.get_stats()["external_failures"] == {"classifier": 1}

    summary = orchestrator.summarize(results)
    assert (summary.total, summary.analyzed, summary.timed_out, summary.errored) == (3, 1, 1, 1)
    assert summary.alerts_sent == 1


@pytest.mark.asyncio
async def test_repeat_analysis_replays_cached_alert_without_resending() -> None:
    orchestrator, classifier, channel = _build({"BTCUSDT": _surge()})

    first = (await orchestrator.analyze_batch(["BTCUSDT"]))[0]
    second = (await orchestrator.analyze_batch(["BTCUSDT"]))[0]

    assert first.status is AnalysisStatus.ANALYZED
    assert second.status is AnalysisStatus.CACHED
    assert second.cached is True
    assert second.alert == first.alert
    assert second.delivery_outcomes == first.delivery_outcomes
    assert classifier.calls == ["BTCUSDT"]
    assert len(channel.sent) == 1


@pytest.mark.asyncio
async def test_below_threshold_signal_builds_no_alert() -> None:
    weak = ClassifierSignal.create(Category.REGULATORY, 0.5, 0.5)  # 0.5
    orchestrator, _, channel = _build({"ETHUSDT": weak})

    result = (await orchestrator.analyze_batch(["ETHUSDT"]))[0]

    assert result.status is AnalysisStatus.ANALYZED
    assert result.alert is None
    assert channel.sent == []
    marker = orchestrator._cache.get("ETHUSDT", Category.REGULATORY)
    assert marker is not None
    assert marker.alert is None


@pytest.mark.asyncio
async def test_no_event_result_is_cached_as_a_marker() -> None:
    quiet = ClassifierSignal.create(Category.NONE, 0.9, 0.9)
    orchestrator, classifier, channel = _build({"SOLUSDT": quiet})

    first = (await orchestrator.analyze_batch(["SOLUSDT"]))[0]
    second = (await orchestrator.analyze_batch(["SOLUSDT"]))[0]

    assert first.status is AnalysisStatus.ANALYZED
    assert first.alert is None
    assert second.status is AnalysisStatus.CACHED
    assert second.alert is None
    assert classifier.calls == ["SOLUSDT"]
    assert channel.sent == []


@pytest.mark.asyncio
async def test_enrichment_can_suppress_an_alert() -> None:
    reviewer = FixedReviewer(0.4)
    enricher = ConfidenceEnricher(reviewer, BackoffRetrier(sleep=_no_sleep), enabled=True)
    orchestrator, classifier, channel = _build({"BTCUSDT": _surge()}, enricher=enricher)

    result = (await orchestrator.analyze_batch(["BTCUSDT"]))[0]
    again = (await orchestrator.analyze_batch(["BTCUSDT"]))[0]

    assert result.status is AnalysisStatus.ANALYZED
    assert result.alert is None
    assert channel.sent == []
    marker = orchestrator._cache.get("BTCUSDT", Category.PRICE_SURGE)
    assert marker is not None
    assert marker.alert is None
    assert again.status is AnalysisStatus.CACHED
    assert again.alert is None
    assert classifier.calls == ["BTCUSDT"]
    assert reviewer.calls == 1


@pytest.mark.asyncio
async def test_enriched_alert_carries_lowered_confidence() -> None:
    enricher = ConfidenceEnricher(FixedReviewer(0.75), BackoffRetrier(sleep=_no_sleep), enabled=True)
    orchestrator, _, channel = _build({"BTCUSDT": _surge()}, enricher=enricher)

    result = (await orchestrator.analyze_batch(["BTCUSDT"]))[0]

    assert result.alert.confidence == pytest.approx(0.75)
    assert result.alert.enrichment.original_confidence == pytest.approx(0.86)
    assert "Model Confidence: 75%" in result.alert.formatted_message
    assert len(channel.sent) == 1


@pytest.mark.asyncio
async def test_timed_out_subject_never_writes_the_cache() -> None:
    orchestrator, _, _ = _build({"AAA": "hang"}, timeout=0.02)

    result = (await orchestrator.analyze_batch(["AAA"]))[0]
    await asyncio.sleep(0.05)

    assert result.status is AnalysisStatus.TIMEOUT
    assert len(orchestrator._cache) == 0


@pytest.mark.asyncio
async def test_timeout_error_raised_by_classifier_is_an_error_not_a_deadline() -> None:
    reporter = FailureReporter()
    orchestrator, _, channel = _build(
        {"AAA": TimeoutError("upstream socket timeout")}, timeout=30.0, reporter=reporter,
    )

    result = (await orchestrator.analyze_batch(["AAA"]))[0]

    assert result.status is AnalysisStatus.ERROR
    assert result.error.code == "ANALYSIS_ERROR"
    assert result.error.message == "upstream socket timeout"
    assert reporter.get_stats()["runtime_errors"]
    assert channel.sent == []
