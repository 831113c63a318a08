"""Telegram delivery channel on python-telegram-bot."""

from __future__ import annotations

import logging
from typing import Any

from telegram import Bot, LinkPreviewOptions
from telegram.error import RetryAfter, TelegramError
from telegram.request import HTTPXRequest

from newswatch.channels.base import RetryingChannel
from newswatch.pipeline.models import Alert, DeliveryOutcome, ValidationOutcome
from newswatch.pipeline.retry import BackoffRetrier
from newswatch.utils import truncate_message

logger = logging.getLogger(__name__)

MAX_MESSAGE_CHARS = 4096


class TelegramChannel(RetryingChannel):
    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        retrier: BackoffRetrier,
        enabled_flag: bool = False,
        timeout: float = 10.0,
        bot: Any = None,
    ) -> None:
        super().__init__(retrier)
        self._bot_token = bot_token
        self._chat_id = chat_id
        self._enabled_flag = enabled_flag
        self._timeout = timeout
        self._bot = bot

    @property
    def name(self) -> str:
        return "telegram"

    def _get_bot(self) -> Any:
        if self._bot is None:
            request = HTTPXRequest(
                connection_pool_size=8,
                read_timeout=self._timeout,
                write_timeout=self._timeout,
                connect_timeout=self._timeout,
            )
            self._bot = Bot(token=self._bot_token, request=request)
        return self._bot

    async def validate(self) -> ValidationOutcome:
        self._enabled = False
        if not self._enabled_flag:
            return ValidationOutcome(self.name, True, "Telegram disabled via env")
        if not self._bot_token or not self._chat_id:
            return ValidationOutcome(
                self.name,
                False,
                "Missing TELEGRAM_BOT_TOKEN or TELEGRAM_CHAT_ID",
                fields={"botToken": bool(self._bot_token), "chatId": bool(self._chat_id)},
            )
        self._enabled = True
        return ValidationOutcome(self.name, True, "Telegram configured")

    async def _send_once(self, alert: Alert) -> DeliveryOutcome:
        try:
            message = await self._get_bot().send_message(
                chat_id=self._chat_id,
                text=truncate_message(alert.formatted_message, MAX_MESSAGE_CHARS),
                link_preview_options=LinkPreviewOptions(is_disabled=True),
            )
        except RetryAfter as exc:
            logger.warning("[telegram] flood control, retry after %ss", exc.retry_after)
            return DeliveryOutcome(self.name, False, error=f"Telegram flood control: retry after {exc.retry_after}s")
        except TelegramError as exc:
            logger.error("[telegram] send failed: %s", exc)
            return DeliveryOutcome(self.name, False, error=f"Telegram error: {exc}")

        message_id = getattr(message, "message_id", None)
        return DeliveryOutcome(self.name, True, message_id=str(message_id) if message_id is not None else None)
