"""Chat Relay configuration

Unified configuration for the relay server, read from environment variables
with dataclass defaults as fallback.
Priority: explicit update() > environment variables > defaults
"""

import os
from typing import Any, Dict, Optional
from dataclasses import dataclass, field

from ..exceptions import InvalidConfigurationError

ENV_PREFIX = "CHAT_RELAY_"

FRAMING_MODES = ("line", "chunk")


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class RelayConfig:
    """Chat Relay configuration

    Holds every tunable of the listener, hub, connection pump and logging.
    """

    # Listener
    host: str = "127.0.0.1"
    port: int = 8080
    backlog: int = 128
    accept_backoff: float = 0.1
    shutdown_timeout: float = 5.0

    # Hub
    hub_capacity: int = 100

    # Connection pump
    read_timeout: float = 30.0
    read_chunk_size: int = 1024
    max_line_bytes: int = 64 * 1024
    framing: str = "line"

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None
    enable_rich_logging: bool = True

    # Monitoring
    metrics_enabled: bool = False

    custom: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_env(cls) -> "RelayConfig":
        """Create a configuration from environment variables

        Variables are named CHAT_RELAY_<FIELD>, e.g. CHAT_RELAY_PORT.

        Returns:
            Configuration read from the environment
        """
        config = cls()

        config.host = os.getenv(f"{ENV_PREFIX}HOST", config.host)
        config.port = int(os.getenv(f"{ENV_PREFIX}PORT", str(config.port)))
        config.backlog = int(os.getenv(f"{ENV_PREFIX}BACKLOG", str(config.backlog)))
        config.accept_backoff = float(
            os.getenv(f"{ENV_PREFIX}ACCEPT_BACKOFF", str(config.accept_backoff))
        )
        config.shutdown_timeout = float(
            os.getenv(f"{ENV_PREFIX}SHUTDOWN_TIMEOUT", str(config.shutdown_timeout))
        )

        config.hub_capacity = int(
            os.getenv(f"{ENV_PREFIX}HUB_CAPACITY", str(config.hub_capacity))
        )

        config.read_timeout = float(
            os.getenv(f"{ENV_PREFIX}READ_TIMEOUT", str(config.read_timeout))
        )
        config.read_chunk_size = int(
            os.getenv(f"{ENV_PREFIX}READ_CHUNK_SIZE", str(config.read_chunk_size))
        )
        config.max_line_bytes = int(
            os.getenv(f"{ENV_PREFIX}MAX_LINE_BYTES", str(config.max_line_bytes))
        )
        config.framing = os.getenv(f"{ENV_PREFIX}FRAMING", config.framing).lower()

        config.log_level = os.getenv(f"{ENV_PREFIX}LOG_LEVEL", config.log_level)
        config.log_file = os.getenv(f"{ENV_PREFIX}LOG_FILE", config.log_file)
        config.enable_rich_logging = _env_bool(
            f"{ENV_PREFIX}ENABLE_RICH_LOGGING", config.enable_rich_logging
        )

        config.metrics_enabled = _env_bool(
            f"{ENV_PREFIX}METRICS_ENABLED", config.metrics_enabled
        )

        return config

    @property
    def address(self) -> str:
        """Listening address in host:port form"""
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"

    def validate(self) -> "RelayConfig":
        """Check value ranges

        Returns:
            The configuration itself

        Raises:
            InvalidConfigurationError: When a value is out of range
        """
        if not 0 <= self.port <= 65535:
            raise InvalidConfigurationError("port", self.port)
        if self.hub_capacity < 1:
            raise InvalidConfigurationError("hub_capacity", self.hub_capacity)
        if self.read_timeout <= 0:
            raise InvalidConfigurationError("read_timeout", self.read_timeout)
        if self.read_chunk_size < 1:
            raise InvalidConfigurationError("read_chunk_size", self.read_chunk_size)
        if self.max_line_bytes < 1:
            raise InvalidConfigurationError("max_line_bytes", self.max_line_bytes)
        if self.framing not in FRAMING_MODES:
            raise InvalidConfigurationError("framing", self.framing)
        if self.backlog < 0:
            raise InvalidConfigurationError("backlog", self.backlog)
        if self.accept_backoff < 0:
            raise InvalidConfigurationError("accept_backoff", self.accept_backoff)
        return self

    def update(self, **kwargs) -> None:
        """Update configuration entries

        Unknown keys land in ``custom``.

        Args:
            **kwargs: Entries to update
        """
        for key, value in kwargs.items():
            if key != "custom" and hasattr(self, key):
                setattr(self, key, value)
            else:
                self.custom[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration entry

        Args:
            key: Entry name
            default: Value returned when the entry is unknown

        Returns:
            The entry value
        """
        if key != "custom" and hasattr(self, key):
            return getattr(self, key)
        return self.custom.get(key, default)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "host": self.host,
            "port": self.port,
            "backlog": self.backlog,
            "accept_backoff": self.accept_backoff,
            "shutdown_timeout": self.shutdown_timeout,
            "hub_capacity": self.hub_capacity,
            "read_timeout": self.read_timeout,
            "read_chunk_size": self.read_chunk_size,
            "max_line_bytes": self.max_line_bytes,
            "framing": self.framing,
            "log_level": self.log_level,
            "log_file": self.log_file,
            "enable_rich_logging": self.enable_rich_logging,
            "metrics_enabled": self.metrics_enabled,
        }
        result.update(self.custom)
        return result
