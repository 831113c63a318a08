"""Abstract delivery channel that every concrete integration inherits from."""

from __future__ import annotations

import abc
import dataclasses
import logging

import httpx

from newswatch.pipeline.models import Alert, DeliveryOutcome, ValidationOutcome
from newswatch.pipeline.retry import BackoffRetrier

logger = logging.getLogger(__name__)


class Channel(abc.ABC):
    """Every delivery integration implements validate / is_enabled / send.

    ``validate`` runs once at startup and decides whether the channel is
    enabled; a channel that fails validation is excluded, never fatal.
    """

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Short channel identifier, e.g. 'telegram', 'whatsapp'."""

    @abc.abstractmethod
    async def validate(self) -> ValidationOutcome:
        """Check configuration and flip the channel on or off."""

    @abc.abstractmethod
    def is_enabled(self) -> bool:
        """Whether the channel is configured and ready to send."""

    @abc.abstractmethod
    async def send(self, alert: Alert) -> DeliveryOutcome:
        """Deliver *alert*; failures are reported in the outcome, not raised."""


class RetryingChannel(Channel):
    """Subclasses implement ``_send_once``, a single attempt that returns a
    tagged DeliveryOutcome; ``send`` wraps it in the BackoffRetrier.
    """

    def __init__(self, retrier: BackoffRetrier) -> None:
        self._retrier = retrier
        self._enabled = False

    def is_enabled(self) -> bool:
        return self._enabled

    @abc.abstractmethod
    async def _send_once(self, alert: Alert) -> DeliveryOutcome:
        """One delivery attempt."""

    async def send(self, alert: Alert) -> DeliveryOutcome:
        result = await self._retrier.execute(
            lambda: self._send_once(alert), label=f"{self.name} send",
        )
        outcome = result.value
        if not isinstance(outcome, DeliveryOutcome):
            outcome = DeliveryOutcome(
                channel=self.name,
                success=False,
                error=result.error or "Unknown error",
            )
        return dataclasses.replace(
            outcome,
            attempt_count=result.attempt_count,
            duration_ms=result.duration_ms,
        )


class HttpChannel(RetryingChannel):
    """Shared plumbing for channels that POST JSON to an HTTP API."""

    def __init__(
        self,
        retrier: BackoffRetrier,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(retrier)
        self._timeout = timeout
        self._client = client

    async def _post(self, url: str, payload: dict) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(url, json=payload, timeout=self._timeout)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.post(url, json=payload)
