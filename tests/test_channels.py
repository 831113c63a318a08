from __future__ import annotations

import json
from types import SimpleNamespace

import httpx
import pytest
from telegram.error import NetworkError, TelegramError

from newswatch.channels import TelegramChannel, WhatsAppChannel
from newswatch.pipeline.models import Alert
from newswatch.pipeline.retry import BackoffRetrier


async def _no_sleep(_: float) -> None:
    return None


def _retrier() -> BackoffRetrier:
    return BackoffRetrier(max_attempts=3, base_delay_ms=1, sleep=_no_sleep)


def _alert(message: str = "BTCUSDT: ETF approved") -> Alert:
    return Alert.manual("ETF approved", message)


@pytest.mark.asyncio
async def test_telegram_disabled_via_flag_validates_but_stays_off() -> None:
    ch = TelegramChannel("token", "chat", _retrier(), enabled_flag=False)
    result = await ch.validate()
    assert result.valid is True
    assert "disabled" in result.message
    assert ch.is_enabled() is False


@pytest.mark.asyncio
async def test_telegram_missing_credentials_is_invalid() -> None:
    ch = TelegramChannel("", "chat", _retrier(), enabled_flag=True)
    result = await ch.validate()
    assert result.valid is False
    assert result.fields == {"botToken": False, "chatId": True}
    assert ch.is_enabled() is False


class FakeBot:
    def __init__(self, failures: list[Exception] | None = None) -> None:
        self.failures = list(failures or [])
        self.calls: list[dict] = []

    async def send_message(self, **kwargs):  # noqa: ANN003
        self.calls.append(kwargs)
        if self.failures:
            raise self.failures.pop(0)
        return SimpleNamespace(message_id=77)


@pytest.mark.asyncio
async def test_telegram_send_returns_message_id_and_truncates() -> None:
    bot = FakeBot()
    ch = TelegramChannel("abc", "-100", _retrier(), enabled_flag=True, bot=bot)
    await ch.validate()

    outcome = await ch.send(_alert("x" * 5000))

    assert ch.is_enabled() is True
    assert outcome.success is True
    assert outcome.message_id == "77"
    assert outcome.attempt_count == 1
    assert bot.calls[0]["chat_id"] == "-100"
    assert len(bot.calls[0]["text"]) == 4096


@pytest.mark.asyncio
async def test_telegram_network_errors_are_retried() -> None:
    bot = FakeBot(failures=[NetworkError("timeout")])
    ch = TelegramChannel("abc", "-100", _retrier(), enabled_flag=True, bot=bot)

    outcome = await ch.send(_alert())

    assert outcome.success is True
    assert outcome.attempt_count == 2
    assert len(bot.calls) == 2


@pytest.mark.asyncio
async def test_telegram_exhausted_retries_report_last_error() -> None:
    bot = FakeBot(failures=[TelegramError("Bad Request: chat not found")] * 3)
    ch = TelegramChannel("abc", "-100", _retrier(), enabled_flag=True, bot=bot)

    outcome = await ch.send(_alert())

    assert outcome.success is False
    assert outcome.attempt_count == 3
    assert "chat not found" in outcome.error


@pytest.mark.asyncio
async def test_whatsapp_success_requires_id_message() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"idMessage": "BAE5F4"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        ch = WhatsAppChannel(
            "https://api.green-api.com/waInstance1/sendMessage/", "key123", "123@g.us",
            _retrier(), enabled_flag=True, client=client,
        )
        assert (await ch.validate()).valid is True
        outcome = await ch.send(_alert())

    assert outcome.success is True
    assert outcome.message_id == "BAE5F4"
    assert str(seen[0].url).endswith("/sendMessage/key123")
    assert json.loads(seen[0].content) == {"chatId": "123@g.us", "message": "BTCUSDT: ETF approved"}


@pytest.mark.asyncio
async def test_whatsapp_without_id_message_is_a_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"error": "chat not found"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        ch = WhatsAppChannel("https://wa/", "k", "c", _retrier(), enabled_flag=True, client=client)
        outcome = await ch.send(_alert())

    assert outcome.success is False
    assert "chat not found" in outcome.error
    assert outcome.attempt_count == 3


@pytest.mark.asyncio
async def test_whatsapp_missing_credentials_lists_fields() -> None:
    ch = WhatsAppChannel("https://wa/", "", "", _retrier(), enabled_flag=True)
    result = await ch.validate()
    assert result.valid is False
    assert result.fields == {"apiUrl": True, "apiKey": False, "chatId": False}
