"""Hub connection pump

One Connection owns one accepted stream for its whole life. Its run() loop
races two waits, the next inbound read from the peer and the next delivery
from the hub, and handles whichever finishes first. The other wait stays
pending into the next iteration, so reads and deliveries are never dropped
and the two reactions never run concurrently.
"""

import asyncio
from enum import Enum
from typing import Optional

from .broadcast import Hub, Subscription
from ..exceptions import HubClosed, Lagged, MalformedMessage, ReadTimeout
from ..monitor.events import (
    EventType,
    EventEmitter,
    create_connection_event,
    create_message_event,
)
from ..protocol import parse, format_broadcast
from ..utils import RelayConfig, get_logger


class ConnectionState(Enum):
    """Connection lifecycle"""

    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"


class Connection:
    """Duplex pump between one client stream and the hub"""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        peer: str,
        subscription: Subscription,
        hub: Hub,
        config: Optional[RelayConfig] = None,
        emit: Optional[EventEmitter] = None,
    ):
        self.reader = reader
        self.writer = writer
        self.peer = peer
        self.subscription = subscription
        self.hub = hub
        self.config = config or RelayConfig()
        self._emit = emit

        self.state = ConnectionState.ACTIVE
        self.close_reason: Optional[str] = None
        self.messages_in = 0
        self.messages_out = 0
        self.messages_skipped = 0
        self._prefer_outbound = False

        self.logger = get_logger("chat_relay.hub.connection")

    def emit(self, event) -> None:
        if self._emit is not None:
            self._emit(event)

    async def run(self) -> None:
        """Pump until the peer leaves, the hub closes, or an error occurs

        Raises:
            MalformedMessage: The peer sent an unparseable payload
            ReadTimeout: The peer was idle longer than read_timeout
            OSError: Socket failure
        """
        inbound: Optional[asyncio.Task] = None
        outbound: Optional[asyncio.Task] = None
        self.logger.info(f"Handling client {self.peer}")

        try:
            while self.state is ConnectionState.ACTIVE:
                if inbound is None:
                    inbound = asyncio.ensure_future(self._read_next())
                if outbound is None:
                    outbound = asyncio.ensure_future(self.subscription.recv())

                done, _ = await asyncio.wait(
                    {inbound, outbound}, return_when=asyncio.FIRST_COMPLETED
                )

                # Alternate when both are ready so neither side starves.
                if outbound in done and (inbound not in done or self._prefer_outbound):
                    task, outbound = outbound, None
                    self._prefer_outbound = False
                    await self._handle_outbound(task)
                else:
                    task, inbound = inbound, None
                    self._prefer_outbound = True
                    await self._handle_inbound(task.result())
        except BaseException as e:
            self.close_reason = self.close_reason or type(e).__name__
            raise
        finally:
            await self._release(inbound, outbound)

    async def _read_next(self) -> bytes:
        try:
            if self.config.framing == "chunk":
                read = self.reader.read(self.config.read_chunk_size)
            else:
                read = self.reader.readline()
            return await asyncio.wait_for(read, timeout=self.config.read_timeout)
        except asyncio.TimeoutError:
            raise ReadTimeout(self.peer, self.config.read_timeout) from None
        except (asyncio.LimitOverrunError, ValueError) as e:
            # readline() reports over-long lines as ValueError
            raise MalformedMessage(
                f"Line from {self.peer} exceeds {self.config.max_line_bytes} bytes"
            ) from e

    async def _handle_inbound(self, data: bytes) -> None:
        if not data:
            self.logger.info(f"Client {self.peer} disconnected")
            self._begin_closing("peer closed")
            return

        text = data.decode("utf-8", errors="replace").strip()
        if not text:
            return

        message = parse(text)
        line = format_broadcast(self.peer, message)
        self.logger.debug(f"Broadcasting: {line!r}")
        try:
            receivers = self.hub.publish(line)
        except HubClosed:
            self.logger.info(f"Hub closed, dropping message from {self.peer}")
            self._begin_closing("hub closed")
            return
        self.messages_in += 1
        self.emit(
            create_message_event(
                EventType.MESSAGE_BROADCAST,
                self.peer,
                size=len(line),
                data={"sender": message.sender, "receivers": receivers},
            )
        )

    async def _handle_outbound(self, task: asyncio.Task) -> None:
        try:
            payload = task.result()
        except Lagged as e:
            self.messages_skipped += e.skipped
            self.logger.warning(f"Client {self.peer} lagged, skipped {e.skipped} messages")
            self.emit(
                create_message_event(
                    EventType.MESSAGE_LAGGED,
                    self.peer,
                    severity="warning",
                    data={"skipped": e.skipped},
                )
            )
            return
        except HubClosed:
            self.logger.info(f"Broadcast channel closed for {self.peer}")
            self._begin_closing("hub closed")
            return

        self.logger.debug(f"Sending to {self.peer}: {payload!r}")
        self.writer.write(payload)
        await self.writer.drain()
        self.messages_out += 1

    def _begin_closing(self, reason: str) -> None:
        self.state = ConnectionState.CLOSING
        self.close_reason = reason

    async def _release(self, *tasks: Optional[asyncio.Task]) -> None:
        self.state = ConnectionState.CLOSING
        pending = [task for task in tasks if task is not None]
        for task in pending:
            task.cancel()
        if pending:
            # Collect results so nothing is reported as never retrieved.
            await asyncio.gather(*pending, return_exceptions=True)

        self.subscription.close()
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except OSError as e:
            self.logger.debug(f"Error while closing {self.peer}: {e}")

        self.state = ConnectionState.CLOSED
        self.emit(
            create_connection_event(
                EventType.CONNECTION_CLOSED,
                self.peer,
                f"Client {self.peer} closed",
                data={
                    "reason": self.close_reason,
                    "messages_in": self.messages_in,
                    "messages_out": self.messages_out,
                    "messages_skipped": self.messages_skipped,
                },
            )
        )

    def get_stats(self) -> dict:
        return {
            "peer": self.peer,
            "state": self.state.value,
            "messages_in": self.messages_in,
            "messages_out": self.messages_out,
            "messages_skipped": self.messages_skipped,
            "pending": self.subscription.pending,
        }
