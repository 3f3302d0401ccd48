"""Chat Relay client"""

import asyncio
from typing import Optional

from ..protocol import BroadcastMessage, ChatMessage, parse_address, parse_broadcast
from ..utils import get_logger


class ChatClient:
    """Client for connecting to and chatting through a relay server

    Usage:
        async with await ChatClient.connect("127.0.0.1:8080") as client:
            await client.send(ChatMessage(sender="avery", content="hi"))
            delivered = await client.receive_message()
    """

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter, address: str):
        self.reader = reader
        self.writer = writer
        self.address = address
        self.connected = True
        self.logger = get_logger("chat_relay.client")

    @classmethod
    async def connect(cls, address: str, timeout: Optional[float] = 10.0) -> "ChatClient":
        """Connect to a relay server

        Args:
            address: Server address, e.g. "127.0.0.1:8080"
            timeout: Connect timeout in seconds

        Returns:
            Connected client
        """
        host, port = parse_address(address)
        reader, writer = await asyncio.wait_for(
            asyncio.open_connection(host, port), timeout=timeout
        )
        client = cls(reader, writer, address)
        client.logger.info(f"Connected to {address}")
        return client

    async def send(self, message: ChatMessage) -> None:
        """Send a message in the structured form"""
        await self.send_raw(message.to_json())

    async def send_raw(self, text: str) -> None:
        """Send one line as-is (a newline is appended)"""
        self.writer.write(text.encode("utf-8") + b"\n")
        await self.writer.drain()
        self.logger.debug(f"Sent: {text}")

    async def receive(self, timeout: Optional[float] = None) -> str:
        """Receive one delivered line

        Returns:
            The line without its newline; empty string once the server closed
        """
        line = await asyncio.wait_for(self.reader.readline(), timeout=timeout)
        if not line:
            self.connected = False
        return line.decode("utf-8", errors="replace").rstrip("\n")

    async def receive_message(self, timeout: Optional[float] = None) -> BroadcastMessage:
        """Receive and decode one delivered message

        Raises:
            ConnectionResetError: The server closed the connection
            MalformedMessage: The line is not a relay broadcast
        """
        line = await self.receive(timeout=timeout)
        if not line and not self.connected:
            raise ConnectionResetError(f"Connection to {self.address} closed")
        return parse_broadcast(line)

    async def close(self) -> None:
        if not self.connected and self.writer.is_closing():
            return
        self.connected = False
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except OSError as e:
            self.logger.debug(f"Error while closing connection to {self.address}: {e}")

    async def __aenter__(self) -> "ChatClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
