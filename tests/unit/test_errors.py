"""Tests for the core error hierarchy."""

from mcp.types import INTERNAL_ERROR

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


class TestHierarchy:
    """All errors inherit from RelayError."""

    def test_routing_errors_are_relay_errors(self):
        errors = [
            ToolNotFoundError("echo"),
            RequestNotFoundError("abc"),
            ExecutionTimeoutError("echo", 100),
            DispatchError("client", "gone"),
            ClientMismatchError("a", "b"),
            RegistrationConflictError("echo", "a"),
            ShutdownError(),
        ]
        for err in errors:
            assert isinstance(err, RelayError)

    def test_peer_disconnected_is_dispatch_error(self):
        assert isinstance(PeerDisconnectedError("client"), DispatchError)

    def test_session_closed_is_transport_error(self):
        err = SessionClosedError("closed")
        assert isinstance(err, TransportError)
        assert isinstance(err, RelayError)

    def test_bridge_and_config_errors(self):
        assert isinstance(BridgeError("bad"), RelayError)
        assert isinstance(ConfigError("bad"), RelayError)


class TestMessages:
    def test_tool_not_found(self):
        err = ToolNotFoundError("weather")
        assert str(err) == "Tool not found: weather"
        assert err.tool_name == "weather"

    def test_timeout_mentions_tool_and_window(self):
        err = ExecutionTimeoutError("slow", 250)
        assert "slow" in str(err)
        assert "250ms" in str(err)

    def test_dispatch_error_prefixes_peer(self):
        assert str(DispatchError("client-a", "Client is not connected")) == (
            "[client-a] Client is not connected"
        )

    def test_client_mismatch(self):
        err = ClientMismatchError("me", "you")
        assert "you" in str(err)
        assert "expected: me" in str(err)

    def test_shutdown_default_message(self):
        assert str(ShutdownError()) == "Server shutdown"


class TestErrorData:
    """Relay errors render as JSON-RPC error objects."""

    def test_codes(self):
        cases = [
            (ToolNotFoundError("x"), ErrorCode.TOOL_NOT_FOUND),
            (RequestNotFoundError("x"), ErrorCode.REQUEST_NOT_FOUND),
            (ExecutionTimeoutError("x", 1), ErrorCode.EXECUTION_TIMEOUT),
            (DispatchError("p", "m"), ErrorCode.DISPATCH_FAILURE),
            (PeerDisconnectedError("p"), ErrorCode.DISPATCH_FAILURE),
            (ShutdownError(), ErrorCode.SHUTTING_DOWN),
        ]
        for err, code in cases:
            assert err.to_error_data().code == code

    def test_unclassified_errors_are_internal(self):
        assert BridgeError("bad").to_error_data().code == INTERNAL_ERROR

    def test_data_carries_kind_and_details(self):
        data = ExecutionTimeoutError("echo", 500).to_error_data()
        assert data.data == {
            "kind": "execution_timeout",
            "toolName": "echo",
            "timeoutMs": 500,
        }

        assert data.message == str(ExecutionTimeoutError("echo", 500))

    def test_peer_disconnected_kind(self):
        data = PeerDisconnectedError("client-a").to_error_data()
        assert data.data == {"kind": "peer_disconnected", "clientId": "client-a"}
