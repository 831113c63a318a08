"""BackoffRetrier — retry with exponential backoff and ±10% jitter.

Every outbound call (classifier, reviewer, each channel send) goes through
this executor. Operations report failure as a tagged result (anything whose
``success`` attribute is false); raised exceptions are caught and counted as
failed attempts too. Whether a failure is worth retrying is the caller's call.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from newswatch.utils import elapsed_ms

logger = logging.getLogger(__name__)

JITTER = 0.1

SleepFn = Callable[[float], Awaitable[Any]]


def backoff_delay(attempt: int, base_delay_ms: float = 1000, jitter: float | None = None) -> float:
    """Delay in ms after failed *attempt* (1-indexed): ~1s, 2s, 4s for a 1s base."""
    if jitter is None:
        jitter = random.uniform(-JITTER, JITTER)
    return (2 ** (attempt - 1)) * base_delay_ms * (1 + jitter)


@dataclass(frozen=True)
class RetryResult:
    success: bool
    value: Any = None
    error: str | None = None
    attempt_count: int = 0
    duration_ms: int = 0


class BackoffRetrier:
    """Call an async operation up to ``max_attempts`` times with backoff in between."""

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay_ms: float = 1000,
        sleep: SleepFn | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.max_attempts = max_attempts
        self.base_delay_ms = base_delay_ms
        self._sleep = sleep or asyncio.sleep

    async def execute(
        self,
        operation: Callable[[], Awaitable[Any]],
        max_attempts: int | None = None,
        label: str = "operation",
    ) -> RetryResult:
        attempts = max_attempts or self.max_attempts
        t0 = time.monotonic()
        last_value: Any = None
        last_error: str | None = None

        for attempt in range(1, attempts + 1):
            try:
                value = await operation()
            except Exception as exc:
                last_value = None
                last_error = str(exc) or exc.__class__.__name__
                logger.warning(
                    "[retry] %s raised on attempt %d/%d: %s", label, attempt, attempts, last_error,
                )
            else:
                if getattr(value, "success", True):
                    if attempt > 1:
                        logger.info("[retry] %s succeeded on attempt %d/%d", label, attempt, attempts)
                    return RetryResult(
                        success=True,
                        value=value,
                        attempt_count=attempt,
                        duration_ms=elapsed_ms(t0),
                    )
                last_value = value
                last_error = getattr(value, "error", None) or "operation reported failure"
                logger.warning(
                    "[retry] %s failed on attempt %d/%d: %s", label, attempt, attempts, last_error,
                )

            if attempt < attempts:
                delay = backoff_delay(attempt, self.base_delay_ms)
                logger.debug("[retry] %s retrying in %.0fms", label, delay)
                await self._sleep(delay / 1000)

        logger.error("[retry] %s: all %d attempts exhausted", label, attempts)
        return RetryResult(
            success=False,
            value=last_value,
            error=last_error or f"Max retries ({attempts}) exhausted",
            attempt_count=attempts,
            duration_ms=elapsed_ms(t0),
        )
