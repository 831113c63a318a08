"""System endpoints — health, stats, config."""

from __future__ import annotations

from fastapi import APIRouter, Request

from newswatch import __version__
from newswatch.api.deps import get_services

router = APIRouter(tags=["system"])


@router.get("/health")
async def health(request: Request):
    from newswatch.api.app import get_uptime
    services = get_services(request)

    return {
        "status": "ok",
        "version": __version__,
        "uptime_seconds": round(get_uptime(), 1),
        "mock_mode": services.settings.mock_mode,
        "channels": services.dispatcher.enabled_channels(),
        "cache_size": len(services.cache),
        "enrichment_enabled": services.enricher.is_enabled(),
    }


@router.get("/stats")
async def stats(request: Request):
    services = get_services(request)
    return {
        "failures": services.reporter.get_stats(),
        "token_usage": services.token_usage(),
        "cache": services.cache.stats(),
    }


@router.get("/config")
async def config(request: Request):
    s = get_services(request).settings
    return {
        "enable_news_monitor": s.enable_news_monitor,
        "enable_llm_enrichment": s.enable_llm_enrichment,
        "enable_grounding": s.enable_grounding,
        "enable_telegram_alerts": s.enable_telegram_alerts,
        "enable_whatsapp_alerts": s.enable_whatsapp_alerts,
        "enable_binance_price_check": s.enable_binance_price_check,
        "enable_llm_price_lookup": s.enable_llm_price_lookup,
        "classifier_provider": s.classifier_provider,
        "classifier_model": s.classifier_model,
        "reviewer_provider": s.reviewer_provider,
        "reviewer_model": s.reviewer_model,
        "news_timeout_ms": s.news_timeout_ms,
        "news_alert_threshold": s.news_alert_threshold,
        "news_cache_ttl_hours": s.news_cache_ttl_hours,
        "default_subjects": s.default_subjects,
        "max_retry_attempts": s.max_retry_attempts,
        "mock_mode": s.mock_mode,
        "log_level": s.log_level,
    }
