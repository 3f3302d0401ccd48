"""Hub TCP server

Binds the listening socket, owns the single Hub, and spawns one Connection
pump per accepted client.
"""

import asyncio
import errno
import socket
from typing import Dict, Optional, Set, Tuple

from .broadcast import Hub
from .connection import Connection
from ..exceptions import (
    AcceptError,
    BindError,
    ChatRelayError,
    ListenerError,
    ServerError,
)
from ..monitor.events import (
    EventType,
    EventEmitter,
    EventDispatcher,
    create_connection_event,
    create_error_event,
)
from ..protocol import format_peer, parse_address
from ..utils import RelayConfig, get_logger

# accept() errors meaning the listening socket itself is unusable
FATAL_ACCEPT_ERRNOS = {errno.EBADF, errno.ENOTSOCK, errno.EINVAL}


class ChatServer:
    """Chat relay server

    Create with ``await ChatServer.bind(address)``, then ``await run()``.
    """

    def __init__(
        self,
        listener: socket.socket,
        config: Optional[RelayConfig] = None,
        emit: Optional[EventEmitter] = None,
    ):
        self.config = config or RelayConfig()
        self.hub = Hub(self.config.hub_capacity)
        self.events = emit if isinstance(emit, EventDispatcher) else EventDispatcher(emit)

        self._listener = listener
        self._local_address = listener.getsockname()
        self._connections: Dict[str, Connection] = {}
        self._tasks: Set[asyncio.Task] = set()
        self._accept_future: Optional[asyncio.Future] = None

        self.running = False
        self._stopping = False
        self._stopped = asyncio.Event()

        self.logger = get_logger("chat_relay.hub.server")

    @classmethod
    async def bind(
        cls,
        address: str,
        config: Optional[RelayConfig] = None,
        emit: Optional[EventEmitter] = None,
    ) -> "ChatServer":
        """Bind a listening socket and build the server around it

        Args:
            address: ``host:port``; port 0 picks a free port
            config: Server configuration
            emit: Event sink

        Returns:
            The bound server, not yet accepting

        Raises:
            BindError: Address malformed, in use, or not permitted
        """
        config = (config or RelayConfig()).validate()
        try:
            host, port = parse_address(address)
        except ValueError as e:
            raise BindError(address, str(e)) from None
        family = socket.AF_INET6 if ":" in host else socket.AF_INET

        logger = get_logger("chat_relay.hub.server")
        try:
            listener = socket.create_server(
                (host, port), family=family, backlog=config.backlog
            )
        except OSError as e:
            logger.error(f"Failed to bind to {address}: {e}")
            raise BindError(address, e.strerror or str(e)) from e
        listener.setblocking(False)

        server = cls(listener, config, emit)
        logger.info(f"Chat server bound to {server.address}")
        return server

    @property
    def local_address(self) -> Tuple[str, int]:
        return self._local_address[0], self._local_address[1]

    @property
    def address(self) -> str:
        return format_peer(self._local_address)

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    @property
    def connections(self) -> Dict[str, Connection]:
        return dict(self._connections)

    async def run(self) -> None:
        """Accept connections until stop() is called

        Accept failures are logged and the loop continues.

        Raises:
            ListenerError: The listening socket failed
            ServerError: The server is already running
        """
        if self.running:
            raise ServerError("Server is already running")
        if self._stopping:
            raise ListenerError(f"Listener on {self.address} is closed")

        loop = asyncio.get_running_loop()
        self.running = True
        self.logger.info(f"Accepting connections on {self.address}")
        self.events(
            create_connection_event(
                EventType.SERVER_STARTED,
                "server",
                f"Listening on {self.address}",
                data={"address": self.address},
            )
        )

        try:
            while not self._stopping:
                try:
                    self._accept_future = asyncio.ensure_future(
                        loop.sock_accept(self._listener)
                    )
                    sock, addr = await self._accept_future
                except asyncio.CancelledError:
                    if self._stopping:
                        break
                    raise
                except OSError as e:
                    if self._stopping:
                        break
                    if e.errno in FATAL_ACCEPT_ERRNOS or self._listener.fileno() == -1:
                        self.logger.error(f"Listener on {self.address} failed: {e}")
                        raise ListenerError(
                            f"Listener on {self.address} failed: {e}"
                        ) from e
                    self._accept_failed(AcceptError(f"Accept failed: {e}"))
                    await asyncio.sleep(self.config.accept_backoff)
                    continue
                finally:
                    self._accept_future = None

                await self._spawn(sock, addr)
        finally:
            self.running = False
            self.events(
                create_connection_event(
                    EventType.SERVER_STOPPED, "server", f"Stopped listening on {self.address}"
                )
            )

    async def _spawn(self, sock: socket.socket, addr: tuple) -> None:
        peer = format_peer(addr)
        if self._stopping:
            sock.close()
            return

        try:
            reader, writer = await asyncio.open_connection(
                sock=sock, limit=self.config.max_line_bytes
            )
        except OSError as e:
            sock.close()
            self._accept_failed(AcceptError(f"Cannot open stream for {peer}: {e}"), peer)
            return

        if self._stopping:
            # stop() began while the stream was being set up
            writer.close()
            return

        subscription = self.hub.subscribe()
        connection = Connection(
            reader, writer, peer, subscription, self.hub, self.config, self.events
        )
        self._connections[peer] = connection

        self.logger.info(f"Accepted connection from {peer}")
        self.events(
            create_connection_event(
                EventType.CONNECTION_ACCEPTED, peer, f"Accepted connection from {peer}"
            )
        )

        task = asyncio.create_task(self._serve(connection), name=f"chat-relay {peer}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _serve(self, connection: Connection) -> None:
        peer = connection.peer
        try:
            await connection.run()
        except ChatRelayError as e:
            self.logger.warning(f"Client {peer} error: {e}")
            self.events(
                create_error_event(
                    EventType.CONNECTION_ERROR, peer, str(e), e, severity="warning"
                )
            )
        except Exception as e:
            self.logger.error(f"Client {peer} error: {e!r}")
            self.events(create_error_event(EventType.CONNECTION_ERROR, peer, str(e), e))
        finally:
            self._connections.pop(peer, None)
            self.logger.debug(f"Connection task for {peer} finished")

    def _accept_failed(self, error: AcceptError, source: str = "server") -> None:
        self.logger.warning(str(error))
        self.events(
            create_error_event(
                EventType.ACCEPT_FAILED, source, error.message, error, severity="warning"
            )
        )

    async def stop(self) -> None:
        """Stop accepting, close the hub and wait for connections to finish"""
        if self._stopping:
            await self._stopped.wait()
            return
        self._stopping = True
        self.logger.info("Stopping chat server")

        accept = self._accept_future
        if accept is not None and not accept.done():
            accept.cancel()
            await asyncio.wait([accept])
        self._listener.close()

        self.hub.close()

        tasks = list(self._tasks)
        if tasks:
            _, pending = await asyncio.wait(tasks, timeout=self.config.shutdown_timeout)
            for task in pending:
                task.cancel()
            if pending:
                self.logger.warning(f"Cancelled {len(pending)} connections at shutdown")
                await asyncio.gather(*pending, return_exceptions=True)

        self._stopped.set()
        self.logger.info("Chat server stopped")

    async def __aenter__(self) -> "ChatServer":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    def get_stats(self) -> dict:
        return {
            "server": {
                "running": self.running,
                "address": self.address,
                "read_timeout": self.config.read_timeout,
                "framing": self.config.framing,
            },
            "hub": self.hub.get_stats(),
            "connections": {
                peer: connection.get_stats()
                for peer, connection in self._connections.items()
            },
        }


async def bind(
    address: str,
    config: Optional[RelayConfig] = None,
    emit: Optional[EventEmitter] = None,
) -> ChatServer:
    """Bind a chat server at ``address``"""
    return await ChatServer.bind(address, config, emit)


async def run_server(
    config: Optional[RelayConfig] = None,
    emit: Optional[EventEmitter] = None,
    stop_event: Optional[asyncio.Event] = None,
) -> ChatServer:
    """Bind and run a server until ``stop_event`` is set

    Args:
        config: Server configuration, read from the environment by default
        emit: Event sink
        stop_event: Setting it stops the server; None runs until cancelled

    Returns:
        The stopped server
    """
    config = config or RelayConfig.from_env()
    server = await bind(config.address, config, emit)

    async def _stop_when_set() -> None:
        await stop_event.wait()
        await server.stop()

    watcher = asyncio.create_task(_stop_when_set()) if stop_event is not None else None
    try:
        await server.run()
    finally:
        if watcher is not None:
            if stop_event.is_set():
                await watcher
            else:
                watcher.cancel()
        await server.stop()
    return server
