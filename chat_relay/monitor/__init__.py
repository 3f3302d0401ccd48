"""
Monitoring

Pluggable observability for the relay core:
- structured events and the emitter/dispatcher seam
- a metrics collector sink
"""

from .events import (
    EventType,
    MonitorEvent,
    EventEmitter,
    EventDispatcher,
    create_connection_event,
    create_message_event,
    create_error_event,
)
from .metrics import MetricsCollector, ConnectionMetric, LagMetric

__all__ = [
    "EventType",
    "MonitorEvent",
    "EventEmitter",
    "EventDispatcher",
    "create_connection_event",
    "create_message_event",
    "create_error_event",
    "MetricsCollector",
    "ConnectionMetric",
    "LagMetric",
]
