"""Data model for the analysis & delivery pipeline.

Everything here is immutable once built; results handed back to callers are
never mutated afterwards. ``to_dict()`` produces the wire shape used by the
HTTP layer.
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable

from newswatch.utils import utc_now


class Category(str, enum.Enum):
    """Closed set of event categories; NONE means nothing alert-worthy."""

    PRICE_SURGE = "price_surge"
    PRICE_DECLINE = "price_decline"
    PUBLIC_FIGURE = "public_figure"
    REGULATORY = "regulatory"
    NONE = "none"

    @classmethod
    def parse(cls, value: Any) -> Category:
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.NONE

    @classmethod
    def alertable(cls) -> list[Category]:
        return [c for c in cls if c is not cls.NONE]


class AnalysisStatus(str, enum.Enum):
    ANALYZED = "analyzed"
    CACHED = "cached"
    TIMEOUT = "timeout"
    ERROR = "error"


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def compute_confidence(significance: float, sentiment: float) -> float:
    """Primary confidence: ``clamp(0.6*significance + 0.4*|sentiment|, 0, 1)``."""
    return _clamp(0.6 * significance + 0.4 * abs(sentiment), 0.0, 1.0)


def conservative_confidence(primary: float, secondary: float) -> float:
    """A second opinion may lower confidence, never raise it."""
    return min(primary, secondary)


@dataclass(frozen=True)
class Source:
    title: str
    url: str

    def to_dict(self) -> dict[str, str]:
        return {"title": self.title, "url": self.url}


@dataclass(frozen=True)
class ClassifierSignal:
    """Immutable output of the external classifier."""

    category: Category
    significance: float
    sentiment: float
    headline: str = ""
    description: str = ""
    sources: tuple[Source, ...] = ()

    @classmethod
    def create(
        cls,
        category: Category | str,
        significance: float,
        sentiment: float,
        headline: str = "",
        description: str = "",
        sources: Iterable[Source] = (),
    ) -> ClassifierSignal:
        """Build a signal, clamping scores into their documented ranges."""
        if not isinstance(category, Category):
            category = Category.parse(category)
        significance, sentiment = float(significance), float(sentiment)
        if math.isnan(significance) or math.isnan(sentiment):
            raise ValueError(f"signal scores must be numbers, got {significance!r} / {sentiment!r}")
        return cls(
            category=category,
            significance=_clamp(significance, 0.0, 1.0),
            sentiment=_clamp(sentiment, -1.0, 1.0),
            headline=headline or "",
            description=description or "",
            sources=tuple(sources),
        )

    @property
    def confidence(self) -> float:
        return compute_confidence(self.significance, self.sentiment)


@dataclass(frozen=True)
class MarketContext:
    price: float | None
    change_24h: float | None = None
    source: str = ""
    context: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "price": self.price,
            "change24h": self.change_24h,
            "source": self.source,
            "context": self.context,
        }


@dataclass(frozen=True)
class EnrichmentMetadata:
    original_confidence: float
    enriched_confidence: float
    applied: bool
    reasoning_excerpt: str
    model_name: str
    duration_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "originalConfidence": self.original_confidence,
            "enrichedConfidence": self.enriched_confidence,
            "applied": self.applied,
            "reasoningExcerpt": self.reasoning_excerpt,
            "modelName": self.model_name,
            "durationMs": self.duration_ms,
        }


@dataclass(frozen=True)
class Alert:
    """A qualifying alert. Replayed verbatim on a cache hit."""

    subject: str
    category: Category
    headline: str
    sentiment: float
    confidence: float
    sources: tuple[Source, ...]
    formatted_message: str
    created_at: datetime = field(default_factory=utc_now)
    market_context: MarketContext | None = None
    enrichment: EnrichmentMetadata | None = None

    @classmethod
    def manual(cls, text: str, formatted_message: str, sources: Iterable[Source] = ()) -> Alert:
        """Alert pushed through the webhook endpoint; it bypasses analysis."""
        return cls(
            subject="",
            category=Category.NONE,
            headline=text,
            sentiment=0.0,
            confidence=1.0,
            sources=tuple(sources),
            formatted_message=formatted_message,
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "subject": self.subject,
            "category": self.category.value,
            "headline": self.headline,
            "sentiment": self.sentiment,
            "confidence": round(self.confidence, 4),
            "sources": [s.to_dict() for s in self.sources],
            "formattedMessage": self.formatted_message,
            "createdAt": self.created_at.isoformat(),
        }
        if self.market_context is not None:
            out["marketContext"] = self.market_context.to_dict()
        if self.enrichment is not None:
            out["enrichment"] = self.enrichment.to_dict()
        return out


@dataclass(frozen=True)
class DeliveryOutcome:
    channel: str
    success: bool
    message_id: str | None = None
    error: str | None = None
    attempt_count: int = 1
    duration_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "channel": self.channel,
            "success": self.success,
            "attemptCount": self.attempt_count,
            "durationMs": self.duration_ms,
        }
        if self.message_id is not None:
            out["messageId"] = self.message_id
        if self.error is not None:
            out["error"] = self.error
        return out


@dataclass(frozen=True)
class ValidationOutcome:
    channel: str
    valid: bool
    message: str
    fields: dict[str, bool] | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"channel": self.channel, "valid": self.valid, "message": self.message}
        if self.fields is not None:
            out["fields"] = dict(self.fields)
        return out


@dataclass(frozen=True)
class CachedAnalysis:
    """Cache payload: the built alert (or None for a no-alert marker) and its outcomes."""

    alert: Alert | None
    delivery_outcomes: tuple[DeliveryOutcome, ...] = ()


@dataclass(frozen=True)
class CacheEntry:
    key: tuple[str, Category]
    created_at: float
    payload: CachedAnalysis


@dataclass(frozen=True)
class AnalysisError:
    code: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


@dataclass(frozen=True)
class AnalysisResult:
    subject: str
    status: AnalysisStatus
    correlation_id: str
    alert: Alert | None = None
    delivery_outcomes: tuple[DeliveryOutcome, ...] | None = None
    error: AnalysisError | None = None
    duration_ms: int = 0
    cached: bool = False

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "subject": self.subject,
            "status": self.status.value,
            "alert": self.alert.to_dict() if self.alert else None,
            "durationMs": self.duration_ms,
            "cached": self.cached,
            "correlationId": self.correlation_id,
        }
        if self.delivery_outcomes is not None:
            out["deliveryOutcomes"] = [o.to_dict() for o in self.delivery_outcomes]
        if self.error is not None:
            out["error"] = self.error.to_dict()
        return out


@dataclass(frozen=True)
class BatchSummary:
    total: int = 0
    analyzed: int = 0
    cached: int = 0
    timed_out: int = 0
    errored: int = 0
    alerts_sent: int = 0

    @classmethod
    def from_results(cls, results: Iterable[AnalysisResult]) -> BatchSummary:
        counts = {"total": 0, "analyzed": 0, "cached": 0, "timed_out": 0, "errored": 0, "alerts_sent": 0}
        for r in results:
            counts["total"] += 1
            if r.status is AnalysisStatus.ANALYZED:
                counts["analyzed"] += 1
            elif r.status is AnalysisStatus.CACHED:
                counts["cached"] += 1
            elif r.status is AnalysisStatus.TIMEOUT:
                counts["timed_out"] += 1
            elif r.status is AnalysisStatus.ERROR:
                counts["errored"] += 1
            if r.alert is not None and r.status in (AnalysisStatus.ANALYZED, AnalysisStatus.CACHED):
                counts["alerts_sent"] += 1
        return cls(**counts)

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "analyzed": self.analyzed,
            "cached": self.cached,
            "timedOut": self.timed_out,
            "errored": self.errored,
            "alertsSent": self.alerts_sent,
        }
