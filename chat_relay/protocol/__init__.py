"""Chat Relay protocol core"""

from .messages import (
    ChatMessage,
    BroadcastMessage,
    parse,
    serialize,
    parse_address,
    format_peer,
    format_broadcast,
    parse_broadcast,
)

__all__ = [
    "ChatMessage",
    "BroadcastMessage",
    "parse",
    "serialize",
    "parse_address",
    "format_peer",
    "format_broadcast",
    "parse_broadcast",
]
