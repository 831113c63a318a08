"""Failure reporting — the pipeline's observability collaborator.

Reporting is best-effort: a reporter problem must never change pipeline
behavior, so every public method swallows its own errors after logging them.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any, Protocol

from newswatch.utils import utc_now

logger = logging.getLogger(__name__)

# channel name -> external provider id
PROVIDERS = {
    "telegram": "telegram-api",
    "whatsapp": "whatsapp-greenapi",
    "classifier": "classifier-llm",
    "reviewer": "reviewer-llm",
}


class Reporter(Protocol):
    def capture_external_failure(
        self,
        channel: str,
        error: str,
        attempt_count: int = 1,
        duration_ms: int = 0,
        provider: str | None = None,
    ) -> None: ...

    def capture_runtime_error(
        self, channel: str, error: BaseException | str, extra: dict[str, Any] | None = None,
    ) -> None: ...


class FailureReporter:
    """Logs failures as structured warnings and keeps per-channel counters."""

    def __init__(self) -> None:
        self._external = Counter()
        self._runtime = Counter()
        self._last_error: dict[str, dict[str, Any]] = {}

    def capture_external_failure(
        self,
        channel: str,
        error: str,
        attempt_count: int = 1,
        duration_ms: int = 0,
        provider: str | None = None,
    ) -> None:
        try:
            provider = provider or PROVIDERS.get(channel, channel)
            self._external[channel] += 1
            self._last_error[channel] = {
                "type": "external_failure",
                "provider": provider,
                "error": error,
                "attempt_count": attempt_count,
                "duration_ms": duration_ms,
                "at": utc_now().isoformat(),
            }
            logger.warning(
                "[monitoring] external failure channel=%s provider=%s attempts=%d duration=%dms: %s",
                channel, provider, attempt_count, duration_ms, error,
            )
        except Exception:
            logger.debug("[monitoring] failed to record external failure", exc_info=True)

    def capture_runtime_error(
        self, channel: str, error: BaseException | str, extra: dict[str, Any] | None = None,
    ) -> None:
        try:
            message = str(error) or error.__class__.__name__
            self._runtime[channel] += 1
            self._last_error[channel] = {
                "type": "runtime_error",
                "error": message,
                "extra": extra or {},
                "at": utc_now().isoformat(),
            }
            logger.warning("[monitoring] runtime error channel=%s: %s", channel, message)
        except Exception:
            logger.debug("[monitoring] failed to record runtime error", exc_info=True)

    def get_stats(self) -> dict[str, Any]:
        return {
            "external_failures": dict(self._external),
            "runtime_errors": dict(self._runtime),
            "last_errors": dict(self._last_error),
        }
