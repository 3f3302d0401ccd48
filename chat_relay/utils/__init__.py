"""Chat Relay utilities

Infrastructure support:
- configuration (RelayConfig)
- logging (configure_logging, get_logger)
"""

from .config import RelayConfig, FRAMING_MODES
from .logger import configure_logging, get_logger

__all__ = [
    "RelayConfig",
    "FRAMING_MODES",
    "configure_logging",
    "get_logger",
]
