"""
Monitor events

Structured events the relay core emits to an injectable sink. The core only
depends on the EventEmitter callable shape, never on a sink implementation.
"""

from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
import uuid

from ..utils import get_logger


class EventType(Enum):
    """Monitor event types"""

    # Server events
    SERVER_STARTED = "server_started"
    SERVER_STOPPED = "server_stopped"
    ACCEPT_FAILED = "accept_failed"

    # Connection events
    CONNECTION_ACCEPTED = "connection_accepted"
    CONNECTION_CLOSED = "connection_closed"
    CONNECTION_ERROR = "connection_error"

    # Message events
    MESSAGE_BROADCAST = "message_broadcast"
    MESSAGE_LAGGED = "message_lagged"


@dataclass
class MonitorEvent:
    """Monitor event"""

    event_type: EventType
    timestamp: datetime = field(default_factory=datetime.now)
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    source: str = ""  # peer address or "server"

    message: str = ""
    data: Dict[str, Any] = field(default_factory=dict)

    severity: str = "info"  # debug, info, warning, error
    category: str = ""  # network, message, error

    exception: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_type": self.event_type.value,
            "timestamp": self.timestamp.isoformat(),
            "source": self.source,
            "message": self.message,
            "data": self.data,
            "severity": self.severity,
            "category": self.category,
            "exception": self.exception,
        }


EventEmitter = Callable[[MonitorEvent], None]


class EventDispatcher:
    """Fans events out to any number of sinks

    A failing sink is logged and skipped; it never breaks the caller.
    """

    def __init__(self, *sinks: EventEmitter):
        self._sinks: List[EventEmitter] = [sink for sink in sinks if sink is not None]
        self.logger = get_logger("chat_relay.monitor.events")

    def add_sink(self, sink: EventEmitter) -> None:
        self._sinks.append(sink)

    def remove_sink(self, sink: EventEmitter) -> bool:
        try:
            self._sinks.remove(sink)
            return True
        except ValueError:
            return False

    @property
    def sinks(self) -> List[EventEmitter]:
        return list(self._sinks)

    def __call__(self, event: MonitorEvent) -> None:
        self.emit(event)

    def emit(self, event: MonitorEvent) -> None:
        for sink in self._sinks:
            try:
                sink(event)
            except Exception:
                self.logger.exception(
                    f"Event sink {sink!r} failed on {event.event_type.value}"
                )


def create_connection_event(
    event_type: EventType, source: str, message: str = "", **kwargs
) -> MonitorEvent:
    """Create a connection event"""
    return MonitorEvent(
        event_type=event_type,
        source=source,
        message=message,
        category="network",
        **kwargs,
    )


def create_message_event(
    event_type: EventType, source: str, size: int = 0, **kwargs
) -> MonitorEvent:
    """Create a message event"""
    data = {"size": size}
    data.update(kwargs.pop("data", {}))
    return MonitorEvent(
        event_type=event_type,
        source=source,
        category="message",
        data=data,
        **kwargs,
    )


def create_error_event(
    event_type: EventType,
    source: str,
    error_message: str,
    exception: Optional[BaseException] = None,
    **kwargs,
) -> MonitorEvent:
    """Create an error event

    ChatRelayError details are carried in ``data``.
    """
    data = {"error_message": error_message}
    if exception is not None and hasattr(exception, "to_dict"):
        data.update(exception.to_dict())
    data.update(kwargs.pop("data", {}))

    return MonitorEvent(
        event_type=event_type,
        source=source,
        message=error_message,
        category="error",
        severity=kwargs.pop("severity", "error"),
        data=data,
        exception=repr(exception) if exception is not None else None,
        **kwargs,
    )
