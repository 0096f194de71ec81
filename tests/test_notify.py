"""Tests for the reload broadcaster."""

from __future__ import annotations

import asyncio
import threading

import pytest

from memoize.notify import ReloadBroadcaster


def test_publish_from_another_thread_reaches_subscribers() -> None:
    broadcaster = ReloadBroadcaster()

    async def scenario() -> list:
        first = broadcaster.subscribe()
        second = broadcaster.subscribe()
        worker = threading.Thread(target=broadcaster.publish)
        worker.start()
        worker.join()
        return [await first.next(1.0), await second.next(1.0)]

    assert asyncio.run(scenario()) == [1, 1]
    assert broadcaster.published == 1


def test_next_times_out_without_signal() -> None:
    broadcaster = ReloadBroadcaster()

    async def scenario():  # type: ignore[no-untyped-def]
        subscription = broadcaster.subscribe()
        return await subscription.next(0.01)

    assert asyncio.run(scenario()) is None


def test_unsubscribed_clients_receive_nothing() -> None:
    broadcaster = ReloadBroadcaster()

    async def scenario():  # type: ignore[no-untyped-def]
        subscription = broadcaster.subscribe()
        assert broadcaster.subscriber_count == 1
        broadcaster.unsubscribe(subscription)
        broadcaster.publish()
        return await subscription.next(0.01)

    assert asyncio.run(scenario()) is None
    assert broadcaster.subscriber_count == 0


def test_publish_without_subscribers_counts() -> None:
    broadcaster = ReloadBroadcaster()

    assert broadcaster.publish() == 1
    assert broadcaster.publish() == 2


def test_subscribe_requires_running_loop() -> None:
    with pytest.raises(RuntimeError):
        ReloadBroadcaster().subscribe()
