"""Explicit wiring of the pipeline's collaborators from Settings.

Everything the HTTP layer and the CLI need is built here once and passed
down; nothing in the pipeline reaches for module-level state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from newswatch.channels import TelegramChannel, WhatsAppChannel
from newswatch.config import Settings
from newswatch.llm_client import LLMClient
from newswatch.monitoring import FailureReporter
from newswatch.pipeline.cache import DedupCache
from newswatch.pipeline.classifier import Classifier, LLMClassifier, MockClassifier
from newswatch.pipeline.dispatcher import ChannelDispatcher
from newswatch.pipeline.enrichment import ConfidenceEnricher, LLMReviewer
from newswatch.pipeline.grounding import AlertGrounder
from newswatch.pipeline.market_context import (
    BinanceMarketContext,
    FallbackMarketContext,
    LLMMarketContext,
    MarketContextProvider,
)
from newswatch.pipeline.orchestrator import AnalysisOrchestrator
from newswatch.pipeline.retry import BackoffRetrier

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    reporter: FailureReporter
    cache: DedupCache
    dispatcher: ChannelDispatcher
    orchestrator: AnalysisOrchestrator
    enricher: ConfidenceEnricher
    grounder: AlertGrounder
    classifier_llm: LLMClient
    reviewer_llm: LLMClient

    async def startup(self) -> None:
        await self.dispatcher.validate_all()
        self.cache.start()

    async def shutdown(self) -> None:
        await self.cache.shutdown()

    def token_usage(self) -> dict[str, dict[str, int]]:
        return {
            "classifier": self.classifier_llm.token_usage,
            "reviewer": self.reviewer_llm.token_usage,
        }


def _retrier(settings: Settings) -> BackoffRetrier:
    return BackoffRetrier(
        max_attempts=settings.max_retry_attempts,
        base_delay_ms=settings.retry_base_delay_ms,
    )


def build_services(settings: Settings, mock: bool = False) -> Services:
    """Build every collaborator. ``mock`` (or MOCK_MODE) swaps in the MockClassifier."""
    mock = mock or settings.mock_mode
    reporter = FailureReporter()

    classifier_llm = LLMClient(
        provider=settings.classifier_provider,
        api_key=settings.classifier_api_key,
        base_url=settings.classifier_base_url,
        model=settings.classifier_model,
    )
    reviewer_llm = LLMClient(
        provider=settings.reviewer_provider,
        api_key=settings.reviewer_api_key,
        base_url=settings.reviewer_base_url,
        model=settings.reviewer_model,
    )

    classifier: Classifier
    if mock:
        logger.info("[services] mock mode: using MockClassifier")
        classifier = MockClassifier()
    else:
        classifier = LLMClassifier(classifier_llm, _retrier(settings))

    channels = [
        TelegramChannel(
            bot_token=settings.telegram_bot_token,
            chat_id=settings.telegram_chat_id,
            retrier=_retrier(settings),
            enabled_flag=settings.enable_telegram_alerts,
            timeout=settings.channel_timeout_seconds,
        ),
        WhatsAppChannel(
            api_url=settings.whatsapp_api_url,
            api_key=settings.whatsapp_api_key,
            chat_id=settings.whatsapp_chat_id,
            retrier=_retrier(settings),
            enabled_flag=settings.enable_whatsapp_alerts,
            timeout=settings.channel_timeout_seconds,
        ),
    ]
    dispatcher = ChannelDispatcher(channels, reporter=reporter)

    cache = DedupCache(
        ttl_seconds=settings.news_cache_ttl_seconds,
        sweep_interval_seconds=settings.news_cache_sweep_interval_seconds,
    )
    enricher = ConfidenceEnricher(
        LLMReviewer(reviewer_llm),
        _retrier(settings),
        enabled=settings.enable_llm_enrichment,
    )
    market: MarketContextProvider | None = None
    if not mock:
        providers: list[MarketContextProvider] = []
        if settings.enable_binance_price_check:
            providers.append(BinanceMarketContext())
        if settings.enable_llm_price_lookup:
            providers.append(LLMMarketContext(classifier_llm))
        if providers:
            market = FallbackMarketContext(providers)

    orchestrator = AnalysisOrchestrator(
        classifier=classifier,
        cache=cache,
        dispatcher=dispatcher,
        enricher=enricher,
        market_context=market,
        reporter=reporter,
        threshold=settings.news_alert_threshold,
        timeout_seconds=settings.news_timeout_seconds,
    )
    grounder = AlertGrounder(classifier_llm, _retrier(settings), enabled=settings.enable_grounding)

    return Services(
        settings=settings,
        reporter=reporter,
        cache=cache,
        dispatcher=dispatcher,
        orchestrator=orchestrator,
        enricher=enricher,
        grounder=grounder,
        classifier_llm=classifier_llm,
        reviewer_llm=reviewer_llm,
    )
