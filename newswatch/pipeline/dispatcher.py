"""ChannelDispatcher — fan one alert out to every enabled channel."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Sequence

from newswatch.channels.base import Channel
from newswatch.monitoring import Reporter
from newswatch.pipeline.models import Alert, DeliveryOutcome, ValidationOutcome
from newswatch.utils import elapsed_ms

logger = logging.getLogger(__name__)


class ChannelDispatcher:
    """Concurrent, failure-isolated delivery.

    One channel's failure never blocks or cancels its siblings, and
    ``dispatch`` never raises: a channel that throws becomes a failed outcome.
    """

    def __init__(self, channels: Sequence[Channel], reporter: Reporter | None = None) -> None:
        self._channels = list(channels)
        self._reporter = reporter
        self._invalid: set[str] = set()

    @property
    def channels(self) -> list[Channel]:
        return list(self._channels)

    async def validate_all(self) -> list[ValidationOutcome]:
        """Validate every channel once at startup; invalid channels stay disabled."""
        results: list[ValidationOutcome] = []
        for ch in self._channels:
            try:
                result = await ch.validate()
            except Exception as exc:
                logger.error("[dispatcher] error validating %s channel: %s", ch.name, exc)
                result = ValidationOutcome(ch.name, False, f"Validation error: {exc}")
            if result.valid:
                self._invalid.discard(ch.name)
            else:
                self._invalid.add(ch.name)
            state = "ENABLED" if self._usable(ch) else "DISABLED"
            log = logger.info if result.valid else logger.warning
            log("[dispatcher] channel %s: %s - %s", ch.name, state, result.message)
            results.append(result)
        logger.info("[dispatcher] enabled channels: %s", ", ".join(self.enabled_channels()) or "none")
        return results

    def _usable(self, ch: Channel) -> bool:
        return ch.name not in self._invalid and ch.is_enabled()

    def enabled_channels(self) -> list[str]:
        return [ch.name for ch in self._channels if self._usable(ch)]

    async def _send_one(self, ch: Channel, alert: Alert) -> DeliveryOutcome:
        t0 = time.monotonic()
        try:
            return await ch.send(alert)
        except Exception as exc:
            logger.exception("[dispatcher] %s send raised", ch.name, extra={"channel": ch.name})
            return DeliveryOutcome(
                channel=ch.name,
                success=False,
                error=str(exc) or exc.__class__.__name__,
                duration_ms=elapsed_ms(t0),
            )

    async def dispatch(self, alert: Alert) -> list[DeliveryOutcome]:
        enabled = [ch for ch in self._channels if self._usable(ch)]
        if not enabled:
            logger.warning("[dispatcher] no notification channels enabled")
            return []

        logger.debug(
            "[dispatcher] sending alert for %s to %d channel(s): %s",
            alert.subject or "webhook", len(enabled), ", ".join(ch.name for ch in enabled),
        )
        outcomes = list(await asyncio.gather(*(self._send_one(ch, alert) for ch in enabled)))

        for outcome in outcomes:
            if not outcome.success:
                self._report(outcome)

        logger.info(
            "[dispatcher] delivery results: %s",
            ", ".join(f"{o.channel}={'ok' if o.success else 'failed'}" for o in outcomes),
        )
        return outcomes

    def _report(self, outcome: DeliveryOutcome) -> None:
        if self._reporter is None:
            return
        try:
            self._reporter.capture_external_failure(
                channel=outcome.channel,
                error=outcome.error or "Unknown error",
                attempt_count=outcome.attempt_count,
                duration_ms=outcome.duration_ms,
            )
        except Exception:
            logger.debug("[dispatcher] failure reporter raised", exc_info=True)
