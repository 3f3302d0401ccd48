"""
pytest configuration and fixtures.
"""

import asyncio
from typing import AsyncGenerator, Awaitable, Callable, List

import pytest
import pytest_asyncio

from chat_relay import ChatClient, ChatServer, MetricsCollector, MonitorEvent, RelayConfig


@pytest.fixture
def relay_config() -> RelayConfig:
    """Test configuration with short timeouts."""
    return RelayConfig(
        host="127.0.0.1",
        port=0,
        read_timeout=5.0,
        shutdown_timeout=2.0,
        enable_rich_logging=False,
    )


@pytest.fixture
def metrics() -> MetricsCollector:
    return MetricsCollector()


@pytest.fixture
def recorded_events() -> List[MonitorEvent]:
    return []


class RunningServer:
    """A bound server with its accept loop running in a task."""

    def __init__(self, server: ChatServer):
        self.server = server
        self.task = asyncio.create_task(server.run())
        self.clients: List[ChatClient] = []

    @property
    def address(self) -> str:
        return self.server.address

    async def connect(self) -> ChatClient:
        """Connect a client and wait until the server has subscribed it."""
        expected = self.server.connection_count + 1
        client = await ChatClient.connect(self.address)
        self.clients.append(client)
        await wait_until(lambda: self.server.connection_count >= expected)
        return client

    async def wait_until(self, predicate: Callable[[], bool], timeout: float = 5.0) -> None:
        await wait_until(predicate, timeout)

    async def stop(self) -> None:
        for client in self.clients:
            await client.close()
        await self.server.stop()
        await asyncio.wait_for(self.task, timeout=5.0)


async def wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> None:
    """Poll ``predicate`` until it is true or fail the test."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            pytest.fail("Condition not reached in time")
        await asyncio.sleep(0.01)


@pytest_asyncio.fixture
async def running_server(
    relay_config: RelayConfig, metrics: MetricsCollector, recorded_events: List[MonitorEvent]
) -> AsyncGenerator[RunningServer, None]:
    """Server on a free loopback port, stopped after the test."""
    server = await ChatServer.bind(
        "127.0.0.1:0", relay_config, emit=metrics
    )
    server.events.add_sink(recorded_events.append)
    running = RunningServer(server)
    yield running
    await running.stop()


@pytest_asyncio.fixture
async def start_server(
    metrics: MetricsCollector, recorded_events: List[MonitorEvent]
) -> AsyncGenerator[Callable[[RelayConfig], Awaitable[RunningServer]], None]:
    """Factory for servers with a test-specific configuration"""
    started: List[RunningServer] = []

    async def _start(config: RelayConfig) -> RunningServer:
        server = await ChatServer.bind("127.0.0.1:0", config, emit=metrics)
        server.events.add_sink(recorded_events.append)
        running = RunningServer(server)
        started.append(running)
        return running

    yield _start
    for running in started:
        await running.stop()
