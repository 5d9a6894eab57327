"""Core types and errors."""

from toolrelay.core.errors import (
    BridgeError,
    ClientMismatchError,
    ConfigError,
    DispatchError,
    ErrorCode,
    ExecutionTimeoutError,
    PeerDisconnectedError,
    RegistrationConflictError,
    RelayError,
    RequestNotFoundError,
    SessionClosedError,
    ShutdownError,
    ToolNotFoundError,
    TransportError,
)

__all__ = [
    "BridgeError",
    "ClientMismatchError",
    "ConfigError",
    "DispatchError",
    "ErrorCode",
    "ExecutionTimeoutError",
    "PeerDisconnectedError",
    "RegistrationConflictError",
    "RelayError",
    "RequestNotFoundError",
    "SessionClosedError",
    "ShutdownError",
    "ToolNotFoundError",
    "TransportError",
]
