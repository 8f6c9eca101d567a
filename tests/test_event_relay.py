"""Tests for the event relay: publishing, subscriptions, connection supervision."""

import asyncio
import logging
from unittest.mock import AsyncMock, Mock

import pytest

from socialhub.adapters.events.base import POST_CREATED, POST_DELETED, DomainEvent
from socialhub.adapters.events.in_memory import InMemoryEventBroker
from socialhub.core.errors import BrokerUnavailable
from socialhub.services.event_relay import EventRelay


def _relay(broker=None, **kwargs) -> EventRelay:
    kwargs.setdefault("sleep", AsyncMock())
    return EventRelay(broker or InMemoryEventBroker(), service_name="test", **kwargs)


class Recorder:
    def __init__(self) -> None:
        self.events: list[DomainEvent] = []

    async def __call__(self, event: DomainEvent) -> None:
        self.events.append(event)


def test_publish_without_subscribers_is_a_no_op():
    async def _run():
        relay = _relay()
        relay.start()
        assert await relay.wait_until_connected(1.0)
        event = await relay.publish(POST_CREATED, {"postId": "p1"})
        await relay.stop()
        return event

    event = asyncio.run(_run())
    assert event is not None
    assert event.event_type == POST_CREATED


def test_subscriber_receives_event_published_after_subscription():
    recorder = Recorder()

    async def _run():
        relay = _relay()
        relay.subscribe(POST_DELETED, recorder, name="recorder")
        relay.start()
        await relay.wait_until_connected(1.0)
        await relay.publish(POST_DELETED, {"postId": "p1", "mediaIds": ["m1"]})
        await relay.broker.drain()
        await relay.stop()

    asyncio.run(_run())
    assert [e.payload for e in recorder.events] == [{"postId": "p1", "mediaIds": ["m1"]}]


def test_late_subscriber_does_not_see_earlier_events():
    recorder = Recorder()

    async def _run():
        relay = _relay()
        relay.start()
        await relay.wait_until_connected(1.0)
        await relay.publish(POST_CREATED, {"postId": "early"})
        relay.subscribe(POST_CREATED, recorder, name="late")
        # Let the consumer start in the background.
        for _ in range(5):
            await asyncio.sleep(0)
        await relay.publish(POST_CREATED, {"postId": "late"})
        await relay.broker.drain()
        await relay.stop()

    asyncio.run(_run())
    assert [e.payload["postId"] for e in recorder.events] == ["late"]


def test_payload_is_detached_from_caller():
    async def _run():
        relay = _relay()
        relay.start()
        await relay.wait_until_connected(1.0)
        payload = {"mediaIds": ["m1"]}
        event = await relay.publish(POST_DELETED, payload)
        payload["mediaIds"].append("m2")
        await relay.stop()
        return event

    assert asyncio.run(_run()).payload == {"mediaIds": ["m1"]}


def test_unserialisable_payload_raises_value_error():
    async def _run():
        relay = _relay()
        relay.start()
        await relay.wait_until_connected(1.0)
        try:
            await relay.publish(POST_CREATED, {"bad": object()})
        finally:
            await relay.stop()

    with pytest.raises(ValueError):
        asyncio.run(_run())


def test_publish_when_not_connected_returns_none_and_logs(caplog: pytest.LogCaptureFixture):
    relay = _relay()

    with caplog.at_level(logging.WARNING, logger="socialhub.services.event_relay"):
        result = asyncio.run(relay.publish(POST_CREATED, {"postId": "p1"}))

    assert result is None
    skipped = [r for r in caplog.records if r.getMessage() == "event.publish_skipped"]
    assert skipped and skipped[0].event_type == POST_CREATED


def test_publish_broker_failure_is_swallowed_and_logged(caplog: pytest.LogCaptureFixture):
    broker = Mock()
    broker.connected = True
    broker.publish = AsyncMock(side_effect=BrokerUnavailable(code="broker_publish_failed", message="down"))
    relay = _relay(broker)

    with caplog.at_level(logging.ERROR, logger="socialhub.services.event_relay"):
        result = asyncio.run(relay.publish(POST_DELETED, {"postId": "p1"}))

    assert result is None
    failed = [r for r in caplog.records if r.getMessage() == "event.publish_failed"]
    assert failed[0].error_code == "broker_publish_failed"


def test_subscribe_same_name_replaces_handler():
    relay = _relay()
    first, second = Recorder(), Recorder()

    relay.subscribe(POST_CREATED, first, name="indexer")
    relay.subscribe(POST_CREATED, second, name="indexer")
    relay.subscribe(POST_CREATED, Recorder(), name="audit")

    assert relay.subscriptions == {POST_CREATED: ("indexer", "audit")}

    asyncio.run(relay.dispatch(DomainEvent.create(POST_CREATED, {})))
    assert len(first.events) == 0
    assert len(second.events) == 1


def test_failing_handler_is_retried_and_isolated():
    calls = {"flaky": 0}
    recorder = Recorder()
    sleep = AsyncMock()

    async def flaky(event):
        calls["flaky"] += 1
        raise RuntimeError("index offline")

    relay = _relay(handler_max_retries=2, handler_retry_backoff_seconds=0.5, sleep=sleep)
    relay.subscribe(POST_DELETED, flaky, name="flaky")
    relay.subscribe(POST_DELETED, recorder, name="recorder")

    failures = asyncio.run(relay.dispatch(DomainEvent.create(POST_DELETED, {"postId": "p1"})))

    assert calls["flaky"] == 3
    assert len(recorder.events) == 1
    assert [f.details["handler"] for f in failures] == ["flaky"]
    assert [c.args[0] for c in sleep.await_args_list] == [0.5, 1.0]


def test_handler_succeeding_on_retry_reports_no_failure():
    attempts = []

    async def eventually(event):
        attempts.append(1)
        if len(attempts) < 2:
            raise RuntimeError("transient")

    relay = _relay(handler_max_retries=3)
    relay.subscribe(POST_CREATED, eventually, name="eventually")

    assert asyncio.run(relay.dispatch(DomainEvent.create(POST_CREATED, {}))) == []
    assert len(attempts) == 2


def test_connect_retries_with_exponential_backoff():
    broker = InMemoryEventBroker()
    real_connect = broker.connect
    outages = [BrokerUnavailable(code="broker_connect_failed", message="down") for _ in range(3)]

    async def flaky_connect():
        if outages:
            raise outages.pop()
        await real_connect()

    broker.connect = flaky_connect
    sleep = AsyncMock()

    async def _run():
        relay = _relay(
            broker,
            connect_initial_backoff_seconds=1,
            connect_max_backoff_seconds=3,
            sleep=sleep,
        )
        relay.start()
        connected = await relay.wait_until_connected(1.0)
        await relay.stop()
        return connected

    assert asyncio.run(_run()) is True
    assert [c.args[0] for c in sleep.await_args_list] == [1, 2, 3]


def test_connect_gives_up_after_max_attempts_and_degrades(caplog: pytest.LogCaptureFixture):
    broker = InMemoryEventBroker()
    broker.connect = AsyncMock(side_effect=BrokerUnavailable(code="broker_connect_failed", message="down"))

    async def _run():
        relay = _relay(broker, connect_max_attempts=2)
        await relay.start()
        return relay

    with caplog.at_level(logging.WARNING, logger="socialhub.services.event_relay"):
        relay = asyncio.run(_run())

    assert relay.degraded is True
    assert relay.connected is False
    assert broker.connect.await_count == 2
    assert any(r.getMessage() == "event.broker_unavailable" for r in caplog.records)


def test_connect_delay_is_honoured():
    sleep = AsyncMock()

    async def _run():
        relay = _relay(connect_delay_seconds=2, sleep=sleep)
        relay.start()
        await relay.wait_until_connected(1.0)
        await relay.stop()

    asyncio.run(_run())
    assert sleep.await_args_list[0].args[0] == 2


def test_wait_until_connected_times_out():
    broker = InMemoryEventBroker()

    async def _never():
        await asyncio.sleep(10)

    broker.connect = _never

    async def _run():
        relay = _relay(broker)
        relay.start()
        connected = await relay.wait_until_connected(0.01)
        await relay.stop()
        return connected

    assert asyncio.run(_run()) is False
