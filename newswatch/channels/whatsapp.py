"""WhatsApp delivery channel via GreenAPI."""

from __future__ import annotations

import logging

import httpx

from newswatch.channels.base import HttpChannel
from newswatch.pipeline.models import Alert, DeliveryOutcome, ValidationOutcome
from newswatch.pipeline.retry import BackoffRetrier
from newswatch.utils import truncate_message

logger = logging.getLogger(__name__)

MAX_MESSAGE_CHARS = 20_000


class WhatsAppChannel(HttpChannel):
    def __init__(
        self,
        api_url: str,
        api_key: str,
        chat_id: str,
        retrier: BackoffRetrier,
        enabled_flag: bool = False,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(retrier, timeout=timeout, client=client)
        self._api_url = api_url
        self._api_key = api_key
        self._chat_id = chat_id
        self._enabled_flag = enabled_flag

    @property
    def name(self) -> str:
        return "whatsapp"

    async def validate(self) -> ValidationOutcome:
        self._enabled = False
        if not self._enabled_flag:
            return ValidationOutcome(self.name, True, "WhatsApp disabled via env")
        if not self._api_url or not self._api_key or not self._chat_id:
            return ValidationOutcome(
                self.name,
                False,
                "Missing WHATSAPP_API_URL, WHATSAPP_API_KEY, or WHATSAPP_CHAT_ID",
                fields={
                    "apiUrl": bool(self._api_url),
                    "apiKey": bool(self._api_key),
                    "chatId": bool(self._chat_id),
                },
            )
        self._enabled = True
        return ValidationOutcome(self.name, True, "WhatsApp configured")

    async def _send_once(self, alert: Alert) -> DeliveryOutcome:
        payload = {
            "chatId": self._chat_id,
            "message": truncate_message(alert.formatted_message, MAX_MESSAGE_CHARS),
        }
        try:
            resp = await self._post(f"{self._api_url}{self._api_key}", payload)
        except httpx.TimeoutException:
            logger.error("[whatsapp] GreenAPI request timeout (%.0fs)", self._timeout)
            return DeliveryOutcome(self.name, False, error="GreenAPI request timeout")
        except httpx.HTTPError as exc:
            logger.error("[whatsapp] request failed: %s", exc)
            return DeliveryOutcome(self.name, False, error=str(exc))

        if resp.status_code >= 400:
            logger.error("[whatsapp] GreenAPI error: %d %s", resp.status_code, resp.text[:200])
            return DeliveryOutcome(self.name, False, error=f"GreenAPI {resp.status_code}: {resp.text[:200]}")

        try:
            data = resp.json()
        except ValueError:
            data = {}
        # GreenAPI's own success flag is unreliable; idMessage is the proof of delivery
        if data.get("idMessage"):
            return DeliveryOutcome(self.name, True, message_id=str(data["idMessage"]))

        error = data.get("error") or data.get("errorMessage") or "Unknown error"
        logger.warning("[whatsapp] GreenAPI returned error: %s", error)
        return DeliveryOutcome(self.name, False, error=f"GreenAPI error: {error}")
