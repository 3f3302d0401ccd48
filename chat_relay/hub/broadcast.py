"""Hub broadcast channel

A bounded multi-producer/multi-consumer broadcast channel. The hub keeps the
last ``capacity`` payloads in a ring buffer tagged with a global sequence
number; each subscription tracks its own cursor into that sequence. A
subscription whose cursor falls off the back of the buffer is moved to the
oldest retained payload and told how many it missed. Publishing never waits
on subscribers.
"""

import asyncio
from collections import deque
from typing import Deque, Optional, Set, Tuple

from ..exceptions import HubClosed, Lagged
from ..utils import get_logger

DEFAULT_CAPACITY = 100


class Subscription:
    """Receiving handle bound to a Hub

    Only the hub creates subscriptions; see Hub.subscribe().
    """

    def __init__(self, hub: "Hub", cursor: int):
        self._hub = hub
        self._cursor = cursor
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        """Number of retained payloads not yet received"""
        return max(0, self._hub._next_seq - max(self._cursor, self._hub._oldest_seq()))

    def try_recv(self) -> Optional[bytes]:
        """Take the next payload without waiting

        Returns:
            The payload, or None when nothing is pending

        Raises:
            Lagged: The cursor fell behind the backlog; it now points at the
                oldest retained payload
            HubClosed: The hub is closed and everything retained was received
        """
        if self._closed:
            raise HubClosed("Subscription closed")

        hub = self._hub
        oldest = hub._oldest_seq()
        if self._cursor < oldest:
            skipped = oldest - self._cursor
            self._cursor = oldest
            raise Lagged(skipped)

        if self._cursor < hub._next_seq:
            seq, payload = hub._buffer[self._cursor - oldest]
            self._cursor = seq + 1
            return payload

        if hub.closed:
            raise HubClosed()
        return None

    async def recv(self) -> bytes:
        """Wait for the next payload

        Raises:
            Lagged: See try_recv()
            HubClosed: See try_recv()
        """
        while True:
            # Grab the wake-up event before checking so a publish in between
            # cannot be missed.
            wakeup = self._hub._wakeup
            payload = self.try_recv()
            if payload is not None:
                return payload
            await wakeup.wait()

    def close(self) -> None:
        """Unregister from the hub"""
        if not self._closed:
            self._closed = True
            self._hub._unsubscribe(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class Hub:
    """In-process broadcast fan-out shared by all connections

    All subscribers observe publishes in the same global order. A payload is
    delivered to every subscription created before publish() returns;
    later subscriptions start after it.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._buffer: Deque[Tuple[int, bytes]] = deque(maxlen=capacity)
        self._next_seq = 0
        self._subscriptions: Set[Subscription] = set()
        self._wakeup = asyncio.Event()
        self._closed = False
        self.logger = get_logger("chat_relay.hub.broadcast")

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def receiver_count(self) -> int:
        return len(self._subscriptions)

    def _oldest_seq(self) -> int:
        return self._next_seq - len(self._buffer)

    def subscribe(self) -> Subscription:
        """Register a new receiver starting at the next publish"""
        subscription = Subscription(self, self._next_seq)
        self._subscriptions.add(subscription)
        return subscription

    def _unsubscribe(self, subscription: Subscription) -> None:
        self._subscriptions.discard(subscription)

    def publish(self, payload: bytes) -> int:
        """Send one payload to every current subscriber

        Args:
            payload: Bytes delivered verbatim to each subscriber

        Returns:
            Number of live subscriptions at publish time

        Raises:
            HubClosed: The hub has been torn down
        """
        if self._closed:
            raise HubClosed()
        self._buffer.append((self._next_seq, payload))
        self._next_seq += 1
        self._notify()
        return len(self._subscriptions)

    def close(self) -> None:
        """Tear the hub down

        Subscribers still drain retained payloads, then observe HubClosed.
        """
        if self._closed:
            return
        self._closed = True
        self.logger.debug(f"Hub closed with {self.receiver_count} subscribers")
        self._notify()

    def _notify(self) -> None:
        wakeup, self._wakeup = self._wakeup, asyncio.Event()
        wakeup.set()

    def get_stats(self) -> dict:
        return {
            "capacity": self.capacity,
            "retained": len(self._buffer),
            "published": self._next_seq,
            "subscribers": self.receiver_count,
            "closed": self._closed,
        }
