from __future__ import annotations

import asyncio

import pytest

from newswatch.channels.base import Channel
from newswatch.monitoring import FailureReporter
from newswatch.pipeline.dispatcher import ChannelDispatcher
from newswatch.pipeline.models import Alert, DeliveryOutcome, ValidationOutcome


class FakeChannel(Channel):
    def __init__(self, name: str, enabled: bool = True, outcome=None, delay: float = 0.0) -> None:
        self._name = name
        self._enabled = enabled
        self._outcome = outcome
        self._delay = delay
        self.sent: list[Alert] = []

    @property
    def name(self) -> str:
        return self._name

    async def validate(self) -> ValidationOutcome:
        return ValidationOutcome(self._name, self._enabled, "ok" if self._enabled else "missing creds")

    def is_enabled(self) -> bool:
        return self._enabled

    async def send(self, alert: Alert) -> DeliveryOutcome:
        self.sent.append(alert)
        if self._delay:
            await asyncio.sleep(self._delay)
        if isinstance(self._outcome, Exception):
            raise self._outcome
        return self._outcome or DeliveryOutcome(self._name, True, message_id="m1")


def _alert() -> Alert:
    return Alert.manual("BTC breaks out", "BTC breaks out")


@pytest.mark.asyncio
async def test_one_failing_channel_does_not_affect_the_other() -> None:
    telegram = FakeChannel("telegram", outcome=DeliveryOutcome("telegram", False, error="HTTP 500", attempt_count=3))
    whatsapp = FakeChannel("whatsapp", delay=0.01)
    reporter = FailureReporter()
    dispatcher = ChannelDispatcher([telegram, whatsapp], reporter=reporter)

    outcomes = await dispatcher.dispatch(_alert())

    by_channel = {o.channel: o for o in outcomes}
    assert by_channel["telegram"].success is False
    assert by_channel["whatsapp"].success is True
    assert len(whatsapp.sent) == 1
    assert reporter.get_stats()["external_failures"] == {"telegram": 1}


@pytest.mark.asyncio
async def test_raising_channel_becomes_failed_outcome() -> None:
    broken = FakeChannel("telegram", outcome=RuntimeError("socket closed"))
    ok = FakeChannel("whatsapp")
    dispatcher = ChannelDispatcher([broken, ok])

    outcomes = await dispatcher.dispatch(_alert())

    assert [o.channel for o in outcomes] == ["telegram", "whatsapp"]
    assert outcomes[0].success is False
    assert outcomes[0].error == "socket closed"
    assert outcomes[1].success is True


@pytest.mark.asyncio
async def test_zero_enabled_channels_returns_empty_list() -> None:
    disabled = FakeChannel("telegram", enabled=False)
    dispatcher = ChannelDispatcher([disabled])

    assert await dispatcher.dispatch(_alert()) == []
    assert disabled.sent == []
    assert dispatcher.enabled_channels() == []


@pytest.mark.asyncio
async def test_reporter_errors_never_escape_dispatch() -> None:
    class ExplodingReporter:
        def capture_external_failure(self, **kwargs):  # noqa: ANN003
            raise RuntimeError("reporter down")

        def capture_runtime_error(self, *args, **kwargs):  # noqa: ANN002, ANN003
            raise RuntimeError("reporter down")

    failing = FakeChannel("telegram", outcome=DeliveryOutcome("telegram", False, error="boom"))
    dispatcher = ChannelDispatcher([failing], reporter=ExplodingReporter())

    outcomes = await dispatcher.dispatch(_alert())
    assert outcomes[0].success is False


@pytest.mark.asyncio
async def test_validate_all_reports_each_channel() -> None:
    class RaisingValidation(FakeChannel):
        async def validate(self) -> ValidationOutcome:
            raise RuntimeError("bad config")

    dispatcher = ChannelDispatcher([FakeChannel("telegram"), RaisingValidation("whatsapp", enabled=False)])
    results = await dispatcher.validate_all()

    assert results[0].valid is True
    assert results[1].valid is False
    assert "bad config" in results[1].message


@pytest.mark.asyncio
async def test_channel_failing_validation_is_excluded_from_sends() -> None:
    class RaisingValidation(FakeChannel):
        async def validate(self) -> ValidationOutcome:
            raise RuntimeError("bad config")

    broken = RaisingValidation("whatsapp", enabled=True)
    ok = FakeChannel("telegram")
    dispatcher = ChannelDispatcher([ok, broken])

    results = await dispatcher.validate_all()
    outcomes = await dispatcher.dispatch(_alert())

    assert results[1].valid is False
    assert broken.is_enabled() is True
    assert dispatcher.enabled_channels() == ["telegram"]
    assert [o.channel for o in outcomes] == ["telegram"]
    assert broken.sent == []
