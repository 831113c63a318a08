"""Plain-text alert rendering. Channel-specific markup is left to the channels."""

from __future__ import annotations

from newswatch.pipeline.models import Category, ClassifierSignal, MarketContext, Source

MAX_SOURCES = 3

CATEGORY_LABELS = {
    Category.PRICE_SURGE: "Bullish",
    Category.PRICE_DECLINE: "Bearish",
    Category.PUBLIC_FIGURE: "Public figure mention",
    Category.REGULATORY: "Regulatory",
    Category.NONE: "Market",
}


def category_label(category: Category) -> str:
    return CATEGORY_LABELS.get(category, "Market")


def sentiment_label(score: float) -> str:
    if score > 0.5:
        return "Bullish"
    if score > 0:
        return "Positive"
    if score < -0.5:
        return "Bearish"
    if score < 0:
        return "Negative"
    return "Neutral"


def alert_title(subject: str, signal: ClassifierSignal) -> str:
    headline = signal.headline.strip() or f"{category_label(signal.category)} event detected"
    return f"{subject}: {headline}"


def format_sources(sources: tuple[Source, ...]) -> str:
    return " | ".join(
        s.url if s.title == s.url else f"{s.title} ({s.url})" for s in sources[:MAX_SOURCES]
    )


def format_alert_message(
    subject: str,
    signal: ClassifierSignal,
    confidence: float,
    market_context: MarketContext | None = None,
    model_name: str = "",
) -> str:
    lines = [alert_title(subject, signal), ""]
    if signal.description.strip():
        lines += [signal.description.strip(), ""]

    lines.append(f"Sentiment: {sentiment_label(signal.sentiment)} ({signal.sentiment:.2f})")
    if market_context is not None and market_context.price:
        change = market_context.change_24h or 0.0
        sign = "+" if change > 0 else ""
        lines.append(f"Price: ${market_context.price} ({sign}{change:.1f}%)")
    if signal.sources:
        lines.append(f"Sources: {format_sources(signal.sources)}")

    lines.append("")
    lines.append(f"Model Confidence: {confidence * 100:.0f}%")
    if model_name:
        lines.append(f"Model used: {model_name}")
    return "\n".join(lines)
