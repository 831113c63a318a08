"""AnalysisOrchestrator — per-subject analysis, gating, delivery and dedup.

For every subject in a batch one task runs the pipeline

    cache check → market context → classify → threshold gate
    → optional enrichment → build alert → dispatch → cache write

racing its own deadline. The batch always resolves: a timeout or an error in
one subject becomes that subject's result and never touches its siblings.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Iterable, Sequence

from newswatch.errors import ExternalFailure
from newswatch.monitoring import Reporter
from newswatch.pipeline.cache import DedupCache
from newswatch.pipeline.classifier import Classifier
from newswatch.pipeline.dispatcher import ChannelDispatcher
from newswatch.pipeline.enrichment import ConfidenceEnricher
from newswatch.pipeline.formatting import format_alert_message
from newswatch.pipeline.market_context import MarketContextProvider, build_analysis_context
from newswatch.pipeline.models import (
    Alert,
    AnalysisError,
    AnalysisResult,
    AnalysisStatus,
    BatchSummary,
    CachedAnalysis,
    Category,
    ClassifierSignal,
    DeliveryOutcome,
    EnrichmentMetadata,
    MarketContext,
)
from newswatch.utils import elapsed_ms

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _PipelineOutcome:
    status: AnalysisStatus
    alert: Alert | None = None
    delivery_outcomes: tuple[DeliveryOutcome, ...] | None = None
    cached: bool = False


class AnalysisOrchestrator:
    def __init__(
        self,
        classifier: Classifier,
        cache: DedupCache,
        dispatcher: ChannelDispatcher,
        enricher: ConfidenceEnricher | None = None,
        market_context: MarketContextProvider | None = None,
        reporter: Reporter | None = None,
        threshold: float = 0.7,
        timeout_seconds: float = 60.0,
    ) -> None:
        self._classifier = classifier
        self._cache = cache
        self._dispatcher = dispatcher
        self._enricher = enricher
        self._market_context = market_context
        self._reporter = reporter
        self.threshold = threshold
        self.timeout_seconds = timeout_seconds

    # ── batch entrypoint ───────────────────────────────────────────────

    async def analyze_batch(
        self,
        subjects: Sequence[str],
        correlation_id: str | None = None,
    ) -> list[AnalysisResult]:
        """Analyze every subject concurrently; exactly one result per subject, in input order."""
        correlation_id = correlation_id or uuid.uuid4().hex
        logger.info("[orchestrator] analyzing %d subject(s) correlation=%s", len(subjects), correlation_id)

        settled = await asyncio.gather(
            *(self.analyze_subject(s, correlation_id) for s in subjects),
            return_exceptions=True,
        )

        results: list[AnalysisResult] = []
        for subject, outcome in zip(subjects, settled):
            if isinstance(outcome, AnalysisResult):
                results.append(outcome)
                continue
            code = "ANALYSIS_ERROR" if isinstance(outcome, Exception) else "UNKNOWN_ERROR"
            results.append(self._error_result(subject, correlation_id, outcome, code, duration_ms=0))
        return results

    @staticmethod
    def summarize(results: Iterable[AnalysisResult]) -> BatchSummary:
        return BatchSummary.from_results(results)

    # ── single subject ─────────────────────────────────────────────────

    async def analyze_subject(self, subject: str, correlation_id: str) -> AnalysisResult:
        t0 = time.monotonic()
        task = asyncio.ensure_future(self._run_pipeline(subject, correlation_id))
        try:
            done, _ = await asyncio.wait({task}, timeout=self.timeout_seconds)
        except asyncio.CancelledError:
            task.cancel()
            raise

        # Only the deadline counts as a timeout; a TimeoutError raised inside
        # the pipeline is an ordinary failure.
        if not done:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            budget_ms = int(self.timeout_seconds * 1000)
            logger.warning(
                "[orchestrator] %s timed out after %dms correlation=%s", subject, budget_ms, correlation_id,
                extra={"subject": subject, "correlation_id": correlation_id},
            )
            return AnalysisResult(
                subject=subject,
                status=AnalysisStatus.TIMEOUT,
                correlation_id=correlation_id,
                error=AnalysisError("ANALYSIS_TIMEOUT", f"Analysis exceeded {budget_ms}ms budget"),
                duration_ms=elapsed_ms(t0),
            )

        try:
            outcome = task.result()
        except Exception as exc:
            logger.exception(
                "[orchestrator] %s failed correlation=%s", subject, correlation_id,
                extra={"subject": subject, "correlation_id": correlation_id},
            )
            return self._error_result(subject, correlation_id, exc, "ANALYSIS_ERROR", elapsed_ms(t0))

        return AnalysisResult(
            subject=subject,
            status=outcome.status,
            correlation_id=correlation_id,
            alert=outcome.alert,
            delivery_outcomes=outcome.delivery_outcomes,
            duration_ms=elapsed_ms(t0),
            cached=outcome.cached,
        )

    def _error_result(
        self,
        subject: str,
        correlation_id: str,
        exc: BaseException,
        code: str,
        duration_ms: int,
    ) -> AnalysisResult:
        message = str(exc) or exc.__class__.__name__
        self._report(subject, correlation_id, exc)
        return AnalysisResult(
            subject=subject,
            status=AnalysisStatus.ERROR,
            correlation_id=correlation_id,
            error=AnalysisError(code, message),
            duration_ms=duration_ms,
        )

    def _report(self, subject: str, correlation_id: str, exc: BaseException) -> None:
        if self._reporter is None:
            return
        try:
            if isinstance(exc, ExternalFailure):
                self._reporter.capture_external_failure(channel="classifier", error=str(exc))
            else:
                self._reporter.capture_runtime_error(
                    "news-monitor", exc, extra={"subject": subject, "correlation_id": correlation_id},
                )
        except Exception:
            logger.debug("[orchestrator] failure reporter raised", exc_info=True)

    # ── pipeline ───────────────────────────────────────────────────────

    def _probe_cache(self, subject: str) -> CachedAnalysis | None:
        for category in Category.alertable():
            hit = self._cache.get(subject, category)
            if hit is not None:
                return hit
        return self._cache.get(subject, Category.NONE)

    async def _fetch_market_context(self, subject: str) -> MarketContext | None:
        if self._market_context is None:
            return None
        try:
            return await self._market_context.fetch(subject)
        except Exception as exc:
            logger.warning("[orchestrator] market context failed for %s: %s", subject, exc)
            return None

    def _suppress(self, subject: str, category: Category) -> _PipelineOutcome:
        self._cache.set(subject, category, CachedAnalysis(alert=None))
        return _PipelineOutcome(status=AnalysisStatus.ANALYZED)

    async def _run_pipeline(self, subject: str, correlation_id: str) -> _PipelineOutcome:
        hit = self._probe_cache(subject)
        if hit is not None:
            logger.debug("[orchestrator] %s served from cache", subject)
            return _PipelineOutcome(
                status=AnalysisStatus.CACHED,
                alert=hit.alert,
                delivery_outcomes=hit.delivery_outcomes,
                cached=True,
            )

        market = await self._fetch_market_context(subject)
        context = build_analysis_context(subject, market)
        signal = await self._classifier.analyze(subject, context)

        if signal.category is Category.NONE:
            logger.debug("[orchestrator] no event detected for %s", subject)
            return self._suppress(subject, Category.NONE)

        confidence = signal.confidence
        if confidence < self.threshold:
            logger.info(
                "[orchestrator] %s below threshold: confidence=%.2f < %.2f",
                subject, confidence, self.threshold,
            )
            return self._suppress(subject, signal.category)

        enrichment: EnrichmentMetadata | None = None
        if self._enricher is not None and self._enricher.is_enabled():
            enrichment = await self._enricher.enrich(signal)
            if enrichment is not None:
                confidence = enrichment.enriched_confidence
                if confidence < self.threshold:
                    logger.info(
                        "[orchestrator] %s enrichment lowered confidence below threshold: %.2f",
                        subject, confidence,
                    )
                    return self._suppress(subject, signal.category)

        alert = self._build_alert(subject, signal, confidence, market, enrichment)
        logger.info(
            "[orchestrator] alert built for %s confidence=%.2f event=%s correlation=%s",
            subject, confidence, signal.category.value, correlation_id,
        )

        outcomes = tuple(await self._dispatcher.dispatch(alert))
        self._cache.set(subject, signal.category, CachedAnalysis(alert=alert, delivery_outcomes=outcomes))
        return _PipelineOutcome(status=AnalysisStatus.ANALYZED, alert=alert, delivery_outcomes=outcomes)

    def _build_alert(
        self,
        subject: str,
        signal: ClassifierSignal,
        confidence: float,
        market: MarketContext | None,
        enrichment: EnrichmentMetadata | None,
    ) -> Alert:
        model_name = getattr(self._classifier, "model_name", "") or ""
        return Alert(
            subject=subject,
            category=signal.category,
            headline=signal.headline,
            sentiment=signal.sentiment,
            confidence=confidence,
            sources=signal.sources,
            formatted_message=format_alert_message(subject, signal, confidence, market, model_name),
            market_context=market,
            enrichment=enrichment,
        )
