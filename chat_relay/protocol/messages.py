"""Chat Relay message format

Defines the chat message carried over the wire and the codec between raw
line payloads and structured messages. Two inbound forms are accepted:

- structured: ``{"sender": "...", "content": "..."}``
- legacy: ``sender: content`` (split on the first colon)

Outbound payloads are always the structured form. Framing (one message per
line) is handled by the connection, not here.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Tuple, Union

from ..exceptions import MalformedMessage

BROADCAST_SEPARATOR = ": "


@dataclass
class ChatMessage:
    """A chat message"""

    sender: str
    content: str

    def to_dict(self) -> Dict[str, Any]:
        return {"sender": self.sender, "content": self.content}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChatMessage":
        """Build a message from a decoded JSON object

        Args:
            data: Decoded object, extra keys are ignored

        Returns:
            ChatMessage instance

        Raises:
            MalformedMessage: When a field is missing or not a string
                or cannot be encoded as UTF-8
        """
        try:
            sender = data["sender"]
            content = data["content"]
        except KeyError as e:
            raise MalformedMessage(f"Invalid ChatMessage format: missing {e}")
        if not isinstance(sender, str) or not isinstance(content, str):
            raise MalformedMessage(
                "Invalid ChatMessage format: sender and content must be strings"
            )
        for value in (sender, content):
            try:
                value.encode("utf-8")
            except UnicodeEncodeError:
                raise MalformedMessage(
                    "Invalid ChatMessage format: field is not valid UTF-8 text"
                ) from None
        return cls(sender=sender, content=content)

    def to_json(self) -> str:
        if not isinstance(self.sender, str) or not isinstance(self.content, str):
            raise MalformedMessage(
                "Cannot encode ChatMessage: sender and content must be strings"
            )
        return json.dumps(self.to_dict(), ensure_ascii=False, separators=(",", ":"))


@dataclass
class BroadcastMessage:
    """A message as delivered to clients, tagged with the origin peer"""

    peer: str
    message: ChatMessage


def _decode(raw: Union[bytes, str]) -> str:
    if isinstance(raw, (bytes, bytearray)):
        return bytes(raw).decode("utf-8", errors="replace")
    return raw


def parse(raw: Union[bytes, str]) -> ChatMessage:
    """Parse an inbound payload into a ChatMessage

    The structured form is tried first; anything that does not decode to a
    JSON object falls back to the legacy ``sender: content`` form.

    Args:
        raw: One payload, bytes are decoded as UTF-8 with replacement

    Returns:
        The parsed message

    Raises:
        MalformedMessage: Empty input, legacy form without a colon, or a JSON
            object failing schema validation
    """
    text = _decode(raw).strip()
    if not text:
        raise MalformedMessage("Empty message", raw=text)

    try:
        data = json.loads(text)
    except (ValueError, RecursionError):
        # Not JSON, or nested too deep to decode
        data = None

    if isinstance(data, dict):
        return ChatMessage.from_dict(data)

    sender, sep, content = text.partition(":")
    if not sep:
        raise MalformedMessage(f"Invalid message format: {text}", raw=text)
    return ChatMessage(sender=sender.strip(), content=content.strip())


def serialize(message: ChatMessage) -> bytes:
    """Encode a message in the structured wire form

    JSON string escaping keeps newline bytes out of the payload.

    Raises:
        MalformedMessage: When a field is not a string or is not valid UTF-8 text
    """
    try:
        return message.to_json().encode("utf-8")
    except UnicodeEncodeError as e:
        raise MalformedMessage(f"Cannot encode ChatMessage: {e}") from None


def parse_address(address: str) -> Tuple[str, int]:
    """Split ``host:port`` (or ``[v6host]:port``) into its parts

    Raises:
        ValueError: When the address is not in host:port form
    """
    host, sep, port = address.strip().rpartition(":")
    if not sep or not host:
        raise ValueError(f"expected host:port, got {address!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    try:
        port_number = int(port)
    except ValueError:
        raise ValueError(f"invalid port {port!r}") from None
    if not 0 <= port_number <= 65535:
        raise ValueError(f"port out of range: {port_number}")
    return host, port_number


def format_peer(address: Tuple) -> str:
    """Render a socket address as ``host:port`` (``[host]:port`` for IPv6)"""
    host, port = address[0], address[1]
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def format_broadcast(peer: str, message: ChatMessage) -> bytes:
    """Build the outbound line: ``<peer>: <structured payload>\\n``"""
    return peer.encode("utf-8") + BROADCAST_SEPARATOR.encode("utf-8") + serialize(message) + b"\n"


def parse_broadcast(line: Union[bytes, str]) -> BroadcastMessage:
    """Split a delivered line back into its origin peer and message

    Raises:
        MalformedMessage: When the line has no peer prefix or the payload is invalid
    """
    text = _decode(line).strip()
    peer, sep, payload = text.partition(BROADCAST_SEPARATOR)
    if not sep:
        raise MalformedMessage(f"Missing peer prefix: {text}", raw=text)
    return BroadcastMessage(peer=peer, message=parse(payload))
