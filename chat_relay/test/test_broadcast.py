"""
Tests for the hub broadcast channel.
"""

import asyncio

import pytest

from chat_relay.exceptions import HubClosed, Lagged
from chat_relay.hub import Hub


def drain(subscription):
    """Collect everything currently pending"""
    received = []
    while True:
        payload = subscription.try_recv()
        if payload is None:
            return received
        received.append(payload)


class TestPublish:

    def test_every_subscriber_sees_same_order(self):
        hub = Hub()
        first, second = hub.subscribe(), hub.subscribe()
        for i in range(5):
            hub.publish(f"m{i}".encode())

        expected = [f"m{i}".encode() for i in range(5)]
        assert drain(first) == expected
        assert drain(second) == expected

    def test_late_subscriber_misses_earlier_messages(self):
        hub = Hub()
        early = hub.subscribe()
        hub.publish(b"before")
        late = hub.subscribe()
        hub.publish(b"after")

        assert drain(early) == [b"before", b"after"]
        assert drain(late) == [b"after"]

    def test_publish_without_subscribers_is_not_an_error(self):
        hub = Hub()
        assert hub.publish(b"nobody listening") == 0
        assert hub.get_stats()["published"] == 1

    def test_publish_returns_receiver_count(self):
        hub = Hub()
        hub.subscribe()
        hub.subscribe()
        assert hub.publish(b"x") == 2

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            Hub(capacity=0)


class TestLag:

    def test_lagged_subscriber_skips_to_oldest_retained(self):
        hub = Hub(capacity=4)
        subscription = hub.subscribe()
        for i in range(10):
            hub.publish(str(i).encode())

        with pytest.raises(Lagged) as exc_info:
            subscription.try_recv()
        assert exc_info.value.skipped == 6
        assert exc_info.value.error_code == "HUB003"

        assert drain(subscription) == [b"6", b"7", b"8", b"9"]

    def test_lag_does_not_affect_other_subscribers(self):
        hub = Hub(capacity=2)
        slow = hub.subscribe()
        fast = hub.subscribe()
        for i in range(3):
            hub.publish(str(i).encode())
            assert fast.try_recv() == str(i).encode()

        with pytest.raises(Lagged):
            slow.try_recv()
        assert drain(slow) == [b"1", b"2"]

    def test_pending_counts_only_retained(self):
        hub = Hub(capacity=3)
        subscription = hub.subscribe()
        for i in range(5):
            hub.publish(b"x")
        assert subscription.pending == 3


class TestClose:

    def test_close_drains_then_reports_closed(self):
        hub = Hub()
        subscription = hub.subscribe()
        hub.publish(b"last words")
        hub.close()

        assert subscription.try_recv() == b"last words"
        with pytest.raises(HubClosed):
            subscription.try_recv()

    def test_publish_after_close_fails(self):
        hub = Hub()
        hub.close()
        with pytest.raises(HubClosed):
            hub.publish(b"too late")

    def test_close_is_idempotent(self):
        hub = Hub()
        hub.close()
        hub.close()
        assert hub.closed

    def test_unsubscribe(self):
        hub = Hub()
        subscription = hub.subscribe()
        other = hub.subscribe()
        assert hub.receiver_count == 2

        subscription.close()
        assert hub.receiver_count == 1
        assert hub.publish(b"x") == 1
        with pytest.raises(HubClosed):
            subscription.try_recv()

        with other:
            pass
        assert hub.receiver_count == 0


class TestRecv:

    @pytest.mark.asyncio
    async def test_recv_wakes_on_publish(self):
        hub = Hub()
        subscription = hub.subscribe()
        waiter = asyncio.create_task(subscription.recv())
        await asyncio.sleep(0)
        assert not waiter.done()

        hub.publish(b"wake up")
        assert await asyncio.wait_for(waiter, timeout=1.0) == b"wake up"

    @pytest.mark.asyncio
    async def test_recv_wakes_on_close(self):
        hub = Hub()
        subscription = hub.subscribe()
        waiter = asyncio.create_task(subscription.recv())
        await asyncio.sleep(0)

        hub.close()
        with pytest.raises(HubClosed):
            await asyncio.wait_for(waiter, timeout=1.0)

    @pytest.mark.asyncio
    async def test_recv_preserves_order_across_waits(self):
        hub = Hub()
        subscription = hub.subscribe()

        async def producer():
            for i in range(20):
                hub.publish(str(i).encode())
                await asyncio.sleep(0)

        received = []

        async def consumer():
            while len(received) < 20:
                received.append(await subscription.recv())

        await asyncio.wait_for(asyncio.gather(producer(), consumer()), timeout=2.0)
        assert received == [str(i).encode() for i in range(20)]
