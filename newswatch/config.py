"""Centralized configuration via pydantic-settings, loaded from .env."""

from __future__ import annotations

import functools

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Feature flags (optional stages default OFF) ────────────────────
    enable_news_monitor: bool = False
    enable_llm_enrichment: bool = False
    enable_grounding: bool = False
    enable_telegram_alerts: bool = False
    enable_whatsapp_alerts: bool = False
    enable_binance_price_check: bool = False
    enable_llm_price_lookup: bool = False
    mock_mode: bool = False

    # ── LLM · Classifier ───────────────────────────────────────────────
    classifier_provider: str = "deepseek"
    classifier_api_key: str = ""
    classifier_base_url: str = "https://api.deepseek.com/v1"
    classifier_model: str = "deepseek-chat"

    # ── LLM · Secondary reviewer ───────────────────────────────────────
    reviewer_provider: str = "openrouter"
    reviewer_api_key: str = ""
    reviewer_base_url: str = "https://openrouter.ai/api/v1"
    reviewer_model: str = ""

    # ── Delivery channels ──────────────────────────────────────────────
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""
    whatsapp_api_url: str = ""
    whatsapp_api_key: str = ""
    whatsapp_chat_id: str = ""
    channel_timeout_seconds: float = 10.0

    # ── Pipeline tuning ────────────────────────────────────────────────
    news_timeout_ms: int = 60_000
    news_alert_threshold: float = 0.7
    news_cache_ttl_hours: float = 6.0
    news_cache_sweep_interval_seconds: int = 3600
    news_default_subjects: str = ""
    max_retry_attempts: int = 3
    retry_base_delay_ms: int = 1000

    # ── API Server ────────────────────────────────────────────────────
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    log_level: str = "INFO"

    # ── Computed helpers ───────────────────────────────────────────────
    @property
    def default_subjects(self) -> list[str]:
        """Comma-separated default subjects, blanks dropped."""
        return [s.strip() for s in self.news_default_subjects.split(",") if s.strip()]

    @property
    def news_timeout_seconds(self) -> float:
        return self.news_timeout_ms / 1000

    @property
    def news_cache_ttl_seconds(self) -> float:
        return self.news_cache_ttl_hours * 3600


@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton accessor for the process settings."""
    return Settings()
