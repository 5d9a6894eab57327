"""Tests for the MCP server adapter."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest
from mcp.shared.exceptions import McpError
from mcp.types import (
    CallToolRequest,
    CallToolRequestParams,
    CallToolResult,
    ListToolsRequest,
    TextContent,
)

from tests.fixtures.relay import FakePeerSession, settle
from toolrelay.core.errors import ErrorCode
from toolrelay.mcp.server import RouterMcpServer
from toolrelay.protocol.messages import ToolResponseParams, ToolSchema
from toolrelay.relay.router import ExecutionRouter, LocalTool
from toolrelay.tools.echo import echo_local_tool


class _UnreachableSession(FakePeerSession):
    async def send_notification(
        self, method: str, params: dict[str, Any] | None = None
    ) -> None:
        raise ConnectionError("peer gone")


@pytest.fixture
def adapter(router: ExecutionRouter) -> RouterMcpServer:
    router.register_local_tool(echo_local_tool())
    return RouterMcpServer(router, name="test-relay")


async def _call(
    adapter: RouterMcpServer, name: str, arguments: dict[str, Any] | None = None
) -> CallToolResult:
    """Go through the handler the lowlevel server dispatches ``tools/call`` to."""
    handler = adapter.server.request_handlers[CallToolRequest]
    request = CallToolRequest(
        method="tools/call",
        params=CallToolRequestParams(name=name, arguments=arguments),
    )
    result = (await handler(request)).root
    assert isinstance(result, CallToolResult)
    return result


def _register_remote(
    router: ExecutionRouter, session: FakePeerSession, name: str = "remote"
) -> None:
    router.register_peer_tools(
        "peer-a",
        [ToolSchema(name=name, description="remote tool")],
        session=session,  # type: ignore[arg-type]
    )


def _text(result: CallToolResult) -> str:
    block = result.content[0]
    assert isinstance(block, TextContent)
    return block.text


class TestRegistration:
    def test_handlers_installed(self, adapter: RouterMcpServer):
        assert ListToolsRequest in adapter.server.request_handlers
        assert CallToolRequest in adapter.server.request_handlers

    def test_server_name(self, adapter: RouterMcpServer):
        assert adapter.server.name == "test-relay"


class TestListTools:
    async def test_lists_router_tools(self, adapter: RouterMcpServer):
        tools = await adapter.list_tools()
        assert [tool.name for tool in tools] == ["echo"]


class TestCallTool:
    async def test_success(self, adapter: RouterMcpServer):
        result = await _call(adapter, "echo", {"message": "hi", "repeat": 2})
        assert not result.isError
        assert _text(result) == "hi hi"

    async def test_none_arguments_is_tool_failure(self, adapter: RouterMcpServer):
        result = await _call(adapter, "echo", None)
        assert result.isError
        assert "message" in _text(result)

    async def test_structured_result(
        self, adapter: RouterMcpServer, router: ExecutionRouter
    ):
        def stats(_args: dict[str, Any]) -> dict[str, int]:
            return {"count": 2}

        router.register_local_tool(LocalTool("stats", "counts", stats))
        result = await _call(adapter, "stats", {})
        assert _text(result) == '{"count": 2}'

    async def test_peer_failure_is_returned(
        self, adapter: RouterMcpServer, router: ExecutionRouter
    ):
        session = FakePeerSession()
        _register_remote(router, session)
        task = asyncio.create_task(_call(adapter, "remote", {}))
        await settle(lambda: len(session.notifications) == 1)

        request_id = session.notifications[0][1]["id"]
        router.handle_peer_response(
            ToolResponseParams(id=request_id, success=False, error="disk full")
        )
        result = await task
        assert result.isError
        assert _text(result) == "disk full"


# ── Router failures keep their error codes ───────────────────────


class TestCallToolErrors:
    async def test_unknown_tool(self, adapter: RouterMcpServer):
        with pytest.raises(McpError) as exc_info:
            await _call(adapter, "ghost", {})
        assert exc_info.value.error.code == ErrorCode.TOOL_NOT_FOUND

    async def test_shutdown(self, adapter: RouterMcpServer, router: ExecutionRouter):
        await router.shutdown()
        with pytest.raises(McpError) as exc_info:
            await _call(adapter, "echo", {"message": "hi"})
        assert exc_info.value.error.code == ErrorCode.SHUTTING_DOWN

    async def test_timeout(self, adapter: RouterMcpServer, router: ExecutionRouter):
        router.set_request_timeout(20)
        _register_remote(router, FakePeerSession())
        with pytest.raises(McpError) as exc_info:
            await _call(adapter, "remote", {})
        assert exc_info.value.error.code == ErrorCode.EXECUTION_TIMEOUT

    async def test_dispatch_failure(
        self, adapter: RouterMcpServer, router: ExecutionRouter
    ):
        _register_remote(router, _UnreachableSession())
        with pytest.raises(McpError) as exc_info:
            await _call(adapter, "remote", {})
        assert exc_info.value.error.code == ErrorCode.DISPATCH_FAILURE
