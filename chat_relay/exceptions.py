"""
Chat Relay Exceptions

Error taxonomy for the relay core
"""

from typing import Optional


class ChatRelayError(Exception):
    """Base Chat Relay exception"""

    def __init__(self, message: str, error_code: str = "RELAY000", details: dict = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert to dictionary format"""
        return {
            "error_code": self.error_code,
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


# Server errors
class ServerError(ChatRelayError):
    """Server error"""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, "SERVER001", details)


class BindError(ServerError):
    """Listening socket could not be bound; the server never starts"""

    def __init__(self, address: str, reason: str, details: dict = None):
        super().__init__(f"Cannot bind {address}: {reason}", details)
        self.error_code = "SERVER002"
        self.address = address
        self.reason = reason


class AcceptError(ServerError):
    """A single accept attempt failed; the accept loop keeps going"""

    def __init__(self, message: str = "Accept failed", details: dict = None):
        super().__init__(message, details)
        self.error_code = "SERVER003"


class ListenerError(ServerError):
    """The listening socket itself is gone; run() cannot continue"""

    def __init__(self, message: str = "Listener failed", details: dict = None):
        super().__init__(message, details)
        self.error_code = "SERVER004"


# Message errors
class MessageError(ChatRelayError):
    """Message error"""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, "MSG001", details)


class MalformedMessage(MessageError):
    """Inbound payload is neither a valid structured nor legacy message"""

    def __init__(self, message: str = "Malformed message", raw: Optional[str] = None):
        super().__init__(message, {"raw": raw} if raw is not None else None)
        self.error_code = "MSG002"
        self.raw = raw


# Connection errors
class ConnectionError(ChatRelayError):
    """Connection error"""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, "CONN001", details)


class ReadTimeout(ConnectionError):
    """Peer stayed silent longer than the idle-read timeout"""

    def __init__(self, peer: str, timeout: float):
        super().__init__(
            f"No data from {peer} for {timeout:g}s",
            {"peer": peer, "timeout": timeout},
        )
        self.error_code = "CONN002"
        self.peer = peer
        self.timeout = timeout


# Hub errors
class HubError(ChatRelayError):
    """Hub error"""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, "HUB001", details)


class HubClosed(HubError):
    """Hub has been torn down"""

    def __init__(self, message: str = "Hub closed", details: dict = None):
        super().__init__(message, details)
        self.error_code = "HUB002"


class Lagged(HubError):
    """Subscriber fell behind the backlog and skipped messages"""

    def __init__(self, skipped: int):
        super().__init__(f"Subscriber lagged, skipped {skipped} messages", {"skipped": skipped})
        self.error_code = "HUB003"
        self.skipped = skipped


# Configuration errors
class ConfigurationError(ChatRelayError):
    """Configuration error"""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, "CONFIG001", details)


class InvalidConfigurationError(ConfigurationError):
    """Invalid configuration error"""

    def __init__(self, key: str, value, details: dict = None):
        message = f"Invalid configuration: {key} = {value!r}"
        super().__init__(message, details)
        self.error_code = "CONFIG002"
        self.key = key
        self.value = value


# Error code mapping
ERROR_CODE_MAP = {
    "RELAY000": ChatRelayError,
    "SERVER001": ServerError,
    "SERVER002": BindError,
    "SERVER003": AcceptError,
    "SERVER004": ListenerError,
    "MSG001": MessageError,
    "MSG002": MalformedMessage,
    "CONN001": ConnectionError,
    "CONN002": ReadTimeout,
    "HUB001": HubError,
    "HUB002": HubClosed,
    "HUB003": Lagged,
    "CONFIG001": ConfigurationError,
    "CONFIG002": InvalidConfigurationError,
}
