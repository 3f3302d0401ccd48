"""
Chat Relay

Line-delimited text/JSON chat relay: every message a client sends is
broadcast to every connected client.
"""

__version__ = "1.0.0"
__description__ = "Line-delimited TCP chat relay with broadcast fan-out"

# Protocol core
from .protocol import (
    ChatMessage,
    BroadcastMessage,
    parse,
    serialize,
    parse_address,
    format_peer,
    format_broadcast,
    parse_broadcast,
)

# Hub server
from .hub import (
    Hub,
    Subscription,
    Connection,
    ConnectionState,
    ChatServer,
    bind,
    run_server,
)

# Client
from .client import ChatClient

# Monitoring
from .monitor import (
    EventType,
    MonitorEvent,
    EventEmitter,
    EventDispatcher,
    MetricsCollector,
)

# Utilities
from .utils import RelayConfig, configure_logging, get_logger

# Exceptions
from .exceptions import (
    ChatRelayError,
    BindError,
    AcceptError,
    ListenerError,
    MalformedMessage,
    ReadTimeout,
    HubClosed,
    Lagged,
    ConfigurationError,
)

__all__ = [
    # Version info
    "__version__",
    "__description__",
    # Protocol core
    "ChatMessage",
    "BroadcastMessage",
    "parse",
    "serialize",
    "parse_address",
    "format_peer",
    "format_broadcast",
    "parse_broadcast",
    # Hub server
    "Hub",
    "Subscription",
    "Connection",
    "ConnectionState",
    "ChatServer",
    "bind",
    "run_server",
    # Client
    "ChatClient",
    # Monitoring
    "EventType",
    "MonitorEvent",
    "EventEmitter",
    "EventDispatcher",
    "MetricsCollector",
    # Utilities
    "RelayConfig",
    "configure_logging",
    "get_logger",
    # Exceptions
    "ChatRelayError",
    "BindError",
    "AcceptError",
    "ListenerError",
    "MalformedMessage",
    "ReadTimeout",
    "HubClosed",
    "Lagged",
    "ConfigurationError",
]
