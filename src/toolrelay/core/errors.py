"""Exception hierarchy for toolrelay.

Every module imports from here. The hierarchy is:

    RelayError
    ├── ToolNotFoundError(tool_name)
    ├── RequestNotFoundError(request_id)
    ├── ExecutionTimeoutError(tool_name, timeout_ms)
    ├── DispatchError(peer_id)
    │   └── PeerDisconnectedError
    ├── ClientMismatchError(expected, received)
    ├── RegistrationConflictError(tool_name, owner_id)
    ├── ShutdownError
    ├── BridgeError
    ├── TransportError
    │   └── SessionClosedError
    └── ConfigError

Router-level errors carry a JSON-RPC error code so that they can be
surfaced to callers as protocol errors via :meth:`RelayError.to_error_data`.
"""

from __future__ import annotations

import enum
from typing import Any

from mcp.types import INTERNAL_ERROR, ErrorData


class ErrorCode(enum.IntEnum):
    """JSON-RPC error codes for relay failures (server-defined range)."""

    TOOL_NOT_FOUND = -32004
    REQUEST_NOT_FOUND = -32005
    EXECUTION_TIMEOUT = -32006
    DISPATCH_FAILURE = -32007
    CLIENT_MISMATCH = -32008
    SHUTTING_DOWN = -32009


class RelayError(Exception):
    """Base exception for all toolrelay errors."""

    code: int = INTERNAL_ERROR
    kind: str = "relay_error"

    def to_error_data(self) -> ErrorData:
        """Render this error as a JSON-RPC error object."""
        data: dict[str, Any] = {"kind": self.kind}
        data.update(self._error_details())
        return ErrorData(code=int(self.code), message=str(self), data=data)

    def _error_details(self) -> dict[str, Any]:
        return {}


# ─── Routing Errors ───────────────────────────────────────────


class ToolNotFoundError(RelayError):
    """A call referenced a tool name nobody owns."""

    code = ErrorCode.TOOL_NOT_FOUND
    kind = "tool_not_found"

    def __init__(self, tool_name: str) -> None:
        self.tool_name = tool_name
        super().__init__(f"Tool not found: {tool_name}")

    def _error_details(self) -> dict[str, Any]:
        return {"toolName": self.tool_name}


class RequestNotFoundError(RelayError):
    """A response referenced a request id with no pending call."""

    code = ErrorCode.REQUEST_NOT_FOUND
    kind = "request_not_found"

    def __init__(self, request_id: str) -> None:
        self.request_id = request_id
        super().__init__(f"Request not found: {request_id}")

    def _error_details(self) -> dict[str, Any]:
        return {"id": self.request_id}


class ExecutionTimeoutError(RelayError):
    """No response arrived within the configured window."""

    code = ErrorCode.EXECUTION_TIMEOUT
    kind = "execution_timeout"

    def __init__(self, tool_name: str, timeout_ms: int) -> None:
        self.tool_name = tool_name
        self.timeout_ms = timeout_ms
        super().__init__(f"Tool execution timeout for {tool_name} after {timeout_ms}ms")

    def _error_details(self) -> dict[str, Any]:
        return {"toolName": self.tool_name, "timeoutMs": self.timeout_ms}


class DispatchError(RelayError):
    """The execute notification could not be handed to the owning peer."""

    code = ErrorCode.DISPATCH_FAILURE
    kind = "dispatch_failure"

    def __init__(self, peer_id: str, message: str) -> None:
        self.peer_id = peer_id
        super().__init__(f"[{peer_id}] {message}")

    def _error_details(self) -> dict[str, Any]:
        return {"clientId": self.peer_id}


class PeerDisconnectedError(DispatchError):
    """The owning peer went away while a call was in flight."""

    kind = "peer_disconnected"

    def __init__(self, peer_id: str) -> None:
        super().__init__(peer_id, "Peer disconnected before responding")


class ClientMismatchError(RelayError):
    """An execute notification was addressed to a different peer."""

    code = ErrorCode.CLIENT_MISMATCH
    kind = "client_mismatch"

    def __init__(self, expected: str, received: str) -> None:
        self.expected = expected
        self.received = received
        super().__init__(
            "Received execution request for different client: "
            f"{received}, expected: {expected}"
        )


class RegistrationConflictError(RelayError):
    """A tool name is already owned by another peer.

    Never raised across the registration call; conflicts are reported
    as data in the registration result.
    """

    kind = "registration_conflict"

    def __init__(self, tool_name: str, owner_id: str) -> None:
        self.tool_name = tool_name
        self.owner_id = owner_id
        super().__init__(f"Tool {tool_name} already exists, owned by client {owner_id}")


class ShutdownError(RelayError):
    """The router is shutting down; outstanding calls are abandoned."""

    code = ErrorCode.SHUTTING_DOWN
    kind = "shutting_down"

    def __init__(self, message: str = "Server shutdown") -> None:
        super().__init__(message)


# ─── Bridge / Transport Errors ────────────────────────────────


class BridgeError(RelayError):
    """Invalid forwarding bridge operation."""

    kind = "bridge_error"


class TransportError(RelayError):
    """Endpoint-level send/receive failure."""

    kind = "transport_error"


class SessionClosedError(TransportError):
    """The session was closed while a request was outstanding."""

    kind = "session_closed"


# ─── Configuration Errors ─────────────────────────────────────


class ConfigError(RelayError):
    """Invalid configuration."""

    kind = "config_error"
