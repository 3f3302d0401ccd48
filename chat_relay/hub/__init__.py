"""
Chat Relay Hub Module

TCP server, connection pumps and the broadcast channel
"""

from .broadcast import Hub, Subscription, DEFAULT_CAPACITY
from .connection import Connection, ConnectionState
from .server import ChatServer, bind, run_server

__all__ = [
    "Hub",
    "Subscription",
    "DEFAULT_CAPACITY",
    "Connection",
    "ConnectionState",
    "ChatServer",
    "bind",
    "run_server",
]
