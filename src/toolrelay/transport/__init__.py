"""Message endpoints."""

from toolrelay.transport.base import Endpoint, MessageHandler, MessageSender
from toolrelay.transport.memory import MemoryEndpoint, create_memory_pair

__all__ = [
    "Endpoint",
    "MemoryEndpoint",
    "MessageHandler",
    "MessageSender",
    "create_memory_pair",
]
