"""MCP server exposing an execution router over stdio."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.shared.exceptions import McpError
from mcp.types import CallToolRequest, CallToolResult, ServerResult, Tool

from toolrelay.core.errors import RelayError

if TYPE_CHECKING:
    from toolrelay.relay.router import ExecutionRouter


class RouterMcpServer:
    """Answers ``tools/list`` and ``tools/call`` from a router's registry.

    ``tools/call`` is a raw request handler so router failures reach the
    caller as JSON-RPC errors with their own code.
    """

    def __init__(self, router: ExecutionRouter, name: str = "toolrelay") -> None:
        self.router = router
        self.server: Server = Server(name)
        self.server.list_tools()(self.list_tools)  # type: ignore[no-untyped-call]
        self.server.request_handlers[CallToolRequest] = self._handle_call_tool

    async def list_tools(self) -> list[Tool]:
        """List registry and local tools."""
        return await self.router.list_tools()

    async def call_tool(
        self, name: str, arguments: dict[str, Any] | None
    ) -> CallToolResult:
        """Route a tool call.

        A failure reported by the tool itself comes back as an ``isError``
        result.

        Raises:
            McpError: The router could not run the call, with the relay
                error's code.
        """
        try:
            return await self.router.call_tool(name, arguments or {})
        except RelayError as e:
            raise McpError(e.to_error_data()) from e

    async def _handle_call_tool(self, req: CallToolRequest) -> ServerResult:
        result = await self.call_tool(req.params.name, req.params.arguments)
        return ServerResult(result)


async def run_server(router: ExecutionRouter, name: str = "toolrelay") -> None:
    """Serve *router* as an MCP server on stdio."""
    adapter = RouterMcpServer(router, name)
    async with stdio_server() as (read_stream, write_stream):
        await adapter.server.run(
            read_stream,
            write_stream,
            adapter.server.create_initialization_options(),
        )
