"""
Chat Relay client SDK
"""

from .base import ChatClient

__all__ = ["ChatClient"]
