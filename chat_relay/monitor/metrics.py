"""Chat Relay metrics collector"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from rich.table import Table

from .events import EventType, MonitorEvent
from ..utils import get_logger


@dataclass
class ConnectionMetric:
    """Connection metric"""

    peer: str
    connected_at: float
    disconnected_at: Optional[float] = None
    reason: Optional[str] = None

    @property
    def duration(self) -> float:
        if self.disconnected_at:
            return self.disconnected_at - self.connected_at
        return time.time() - self.connected_at


@dataclass
class LagMetric:
    """A subscriber skip"""

    peer: str
    skipped: int
    timestamp: float = field(default_factory=time.time)


class MetricsCollector:
    """Event sink that keeps running totals

    Install it as an emitter: ``ChatServer.bind(addr, emit=collector)``.
    """

    def __init__(self, max_points: int = 10000):
        self.max_points = max_points
        self.logger = get_logger("chat_relay.monitor.metrics")

        self.connections: Dict[str, ConnectionMetric] = {}
        self.closed: List[ConnectionMetric] = []
        self.lags: List[LagMetric] = []

        self._accepted_count = 0
        self._closed_count = 0
        self._broadcast_count = 0
        self._broadcast_bytes = 0
        self._lag_count = 0
        self._skipped_count = 0
        self._connection_error_count = 0
        self._accept_error_count = 0

    def __call__(self, event: MonitorEvent) -> None:
        self.record(event)

    def record(self, event: MonitorEvent) -> None:
        """Update totals from one event"""
        kind = event.event_type
        if kind is EventType.CONNECTION_ACCEPTED:
            self._accepted_count += 1
            self.connections[event.source] = ConnectionMetric(
                peer=event.source, connected_at=event.timestamp.timestamp()
            )
        elif kind is EventType.CONNECTION_CLOSED:
            self._closed_count += 1
            metric = self.connections.pop(event.source, None)
            if metric is not None:
                metric.disconnected_at = event.timestamp.timestamp()
                metric.reason = event.data.get("reason")
                self._append(self.closed, metric)
        elif kind is EventType.CONNECTION_ERROR:
            self._connection_error_count += 1
        elif kind is EventType.ACCEPT_FAILED:
            self._accept_error_count += 1
        elif kind is EventType.MESSAGE_BROADCAST:
            self._broadcast_count += 1
            self._broadcast_bytes += event.data.get("size", 0)
        elif kind is EventType.MESSAGE_LAGGED:
            skipped = event.data.get("skipped", 0)
            self._lag_count += 1
            self._skipped_count += skipped
            self._append(self.lags, LagMetric(peer=event.source, skipped=skipped))
        else:
            self.logger.debug(f"Ignoring event {kind.value}")

    def _append(self, points: list, item) -> None:
        points.append(item)
        if len(points) > self.max_points:
            points.pop(0)

    @property
    def active_connections(self) -> int:
        return len(self.connections)

    def get_summary(self) -> Dict[str, Any]:
        """Get a metrics summary"""
        return {
            "active_connections": self.active_connections,
            "connections_accepted": self._accepted_count,
            "connections_closed": self._closed_count,
            "connection_errors": self._connection_error_count,
            "accept_errors": self._accept_error_count,
            "messages_broadcast": self._broadcast_count,
            "bytes_broadcast": self._broadcast_bytes,
            "lag_events": self._lag_count,
            "messages_skipped": self._skipped_count,
        }

    def render_summary(self, title: str = "Chat Relay metrics") -> Table:
        """Render the summary as a rich table"""
        table = Table(title=title)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", justify="right", style="magenta")
        for name, value in self.get_summary().items():
            table.add_row(name.replace("_", " "), str(value))
        return table
