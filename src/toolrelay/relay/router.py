"""Execution router: answers tools/list and tools/call for remote tools.

Calls to a peer-owned tool are turned into a ``proxy/execute_tool``
notification to the owning peer plus a pending call that is settled by
the peer's ``proxy/tool_response`` request, or by its expiry timer.

Per call: DISPATCHED -> RESOLVED | FAILED | TIMED_OUT.  No retries.
"""

from __future__ import annotations

import contextlib
import inspect
import json
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from mcp.types import (
    CallToolRequestParams,
    CallToolResult,
    ListToolsResult,
    TextContent,
    Tool,
)
from pydantic import ValidationError

from toolrelay.config.schema import RouterConfig
from toolrelay.core.errors import (
    DispatchError,
    PeerDisconnectedError,
    RelayError,
    RequestNotFoundError,
    ShutdownError,
    ToolNotFoundError,
)
from toolrelay.protocol.messages import (
    CALL_TOOL,
    EXECUTE_TOOL,
    LIST_TOOLS,
    REGISTER_TOOLS,
    TOOL_RESPONSE,
    ExecuteToolParams,
    RegisterToolsParams,
    RegisterToolsResult,
    ToolResponseParams,
    ToolResponseResult,
    ToolSchema,
)
from toolrelay.relay.pending import CallState, PendingCallTable
from toolrelay.relay.registry import ToolDescriptor, ToolRegistry

if TYPE_CHECKING:
    from toolrelay.rpc.session import RpcSession

logger = logging.getLogger(__name__)


# ── Result helpers ───────────────────────────────────────────


def normalize_result(result: Any) -> CallToolResult:
    """Coerce whatever an implementation returned into a CallToolResult."""
    if isinstance(result, CallToolResult):
        return result
    if isinstance(result, dict) and "content" in result:
        with contextlib.suppress(ValidationError):
            return CallToolResult.model_validate(result)
    if result is None:
        return CallToolResult(content=[])
    text = result if isinstance(result, str) else json.dumps(result, default=str)
    return CallToolResult(content=[TextContent(type="text", text=text)])


def failure_result(error: str | None) -> CallToolResult:
    """A tool-level failure, reported as data rather than raised."""
    return CallToolResult(
        content=[TextContent(type="text", text=error or "Tool execution failed")],
        isError=True,
    )


# ── Local tools ──────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class LocalTool:
    """A tool the router implements itself."""

    name: str
    description: str
    handler: Callable[[dict[str, Any]], Any]
    input_schema: dict[str, Any] = field(default_factory=lambda: {"type": "object"})

    def to_tool(self) -> Tool:
        return Tool(
            name=self.name,
            description=self.description,
            inputSchema=self.input_schema,
        )


@dataclass(frozen=True, slots=True)
class RouterStatus:
    """Point-in-time view of a router."""

    router_id: str
    registered_tools: list[str]
    connected_clients: list[str]
    client_tool_mapping: dict[str, list[str]]
    local_tools: list[str]
    pending_requests: int


# ── Router ───────────────────────────────────────────────────


class ExecutionRouter:
    """Routes tool calls to the peers that own them.

    One router serves any number of RPC sessions; peers are addressed by
    the client id they registered with, not by connection.
    """

    def __init__(
        self,
        config: RouterConfig | None = None,
        *,
        registry: ToolRegistry | None = None,
    ) -> None:
        self.config = config or RouterConfig()
        self.router_id = self.config.router_id
        self.registry = registry or ToolRegistry(namespacing=self.config.namespacing)
        self.pending = PendingCallTable()
        self.request_timeout_ms = self.config.request_timeout_ms
        self.fail_inflight_on_disconnect = self.config.fail_inflight_on_disconnect
        self._local_tools: dict[str, LocalTool] = {}
        self._peer_sessions: dict[str, RpcSession] = {}
        self._shutting_down = False

    # ── Settings ──────────────────────────────────────────────

    def set_namespacing(self, enabled: bool) -> None:
        self.registry.namespacing = enabled

    def set_request_timeout(self, timeout_ms: int) -> None:
        if timeout_ms <= 0:
            msg = f"Request timeout must be positive, got {timeout_ms}"
            raise ValueError(msg)
        self.request_timeout_ms = timeout_ms

    def register_local_tool(self, tool: LocalTool) -> None:
        """Add a tool served directly by the router."""
        self._local_tools[tool.name] = tool

    # ── Session wiring ────────────────────────────────────────

    def attach(self, session: RpcSession) -> None:
        """Serve the router's methods on *session*."""

        async def on_register(params: dict[str, Any]) -> RegisterToolsResult:
            request = RegisterToolsParams.model_validate(params)
            return self.register_peer_tools(
                request.clientId, request.tools, session=session
            )

        session.set_request_handler(LIST_TOOLS, self._on_list_tools)
        session.set_request_handler(CALL_TOOL, self._on_call_tool)
        session.set_request_handler(REGISTER_TOOLS, on_register)
        session.set_request_handler(TOOL_RESPONSE, self._on_tool_response)
        session.on_closed(self._on_session_closed)

    async def _on_list_tools(self, _params: dict[str, Any]) -> ListToolsResult:
        return ListToolsResult(tools=await self.list_tools())

    async def _on_call_tool(self, params: dict[str, Any]) -> CallToolResult:
        request = CallToolRequestParams.model_validate(params)
        return await self.call_tool(request.name, request.arguments)

    async def _on_tool_response(self, params: dict[str, Any]) -> ToolResponseResult:
        return self.handle_peer_response(ToolResponseParams.model_validate(params))

    def _on_session_closed(self, session: RpcSession) -> None:
        for peer_id, peer_session in list(self._peer_sessions.items()):
            if peer_session is session:
                logger.info("Client %s disconnected", peer_id)
                self.unregister_peer(peer_id)

    # ── Registration ──────────────────────────────────────────

    def register_peer_tools(
        self,
        peer_id: str,
        tools: Iterable[ToolSchema],
        *,
        session: RpcSession | None = None,
    ) -> RegisterToolsResult:
        result = self.registry.register_peer_tools(peer_id, tools)
        if session is not None:
            self._peer_sessions[peer_id] = session
        return RegisterToolsResult(
            status="success",
            registeredTools=result.accepted,
            conflicts=result.conflicts,
        )

    def unregister_peer(self, peer_id: str) -> None:
        self.registry.unregister_peer(peer_id)
        self._peer_sessions.pop(peer_id, None)
        if self.fail_inflight_on_disconnect:
            failed = self.pending.reject_where(
                lambda call: call.owner_id == peer_id,
                lambda _call: PeerDisconnectedError(peer_id),
            )
            if failed:
                logger.warning(
                    "Failed %d in-flight calls for disconnected client %s",
                    failed,
                    peer_id,
                )

    # ── tools/list, tools/call ────────────────────────────────

    async def list_tools(self) -> list[Tool]:
        """Registry tools followed by local tools. Names are not de-duplicated."""
        remote = [descriptor.to_tool() for descriptor in self.registry.list_all()]
        local = [tool.to_tool() for tool in self._local_tools.values()]
        return remote + local

    async def call_tool(
        self, name: str, arguments: dict[str, Any] | None = None
    ) -> CallToolResult:
        """Execute *name*, locally or on its owning peer.

        Raises:
            ToolNotFoundError: Nobody owns *name*.
            DispatchError: The owning peer could not be notified.
            ExecutionTimeoutError: The peer did not answer in time.
            ShutdownError: The router is shutting down.
        """
        if self._shutting_down:
            raise ShutdownError()
        args = dict(arguments or {})

        descriptor = self.registry.lookup(name)
        if descriptor is not None:
            return await self._dispatch(descriptor, args)

        local = self._local_tools.get(name)
        if local is not None:
            return await self._invoke_local(local, args)

        raise ToolNotFoundError(name)

    async def _invoke_local(
        self, tool: LocalTool, args: dict[str, Any]
    ) -> CallToolResult:
        try:
            result = tool.handler(args)
            if inspect.isawaitable(result):
                result = await result
        except RelayError:
            raise
        except Exception as e:
            logger.warning("Local tool %s failed: %s", tool.name, e)
            return failure_result(str(e))
        return normalize_result(result)

    async def _dispatch(
        self, descriptor: ToolDescriptor, args: dict[str, Any]
    ) -> CallToolResult:
        call = self.pending.create(
            descriptor.namespaced_name,
            self.request_timeout_ms,
            owner_id=descriptor.owner_id,
        )
        try:
            await self._notify(call.request_id, descriptor, args)
        except Exception as e:
            with contextlib.suppress(RequestNotFoundError):
                self.pending.resolve(call.request_id, None, state=CallState.FAILED)
            if isinstance(e, DispatchError):
                raise
            msg = f"Failed to notify client: {e}"
            raise DispatchError(descriptor.owner_id, msg) from e

        logger.debug(
            "Dispatched %s to client %s as %s",
            descriptor.namespaced_name,
            descriptor.owner_id,
            call.request_id,
        )
        result: CallToolResult = await call.wait()
        return result

    async def _notify(
        self, request_id: str, descriptor: ToolDescriptor, args: dict[str, Any]
    ) -> None:
        peer_id = descriptor.owner_id
        session = self._peer_sessions.get(peer_id)
        if session is None or session.closed:
            raise DispatchError(peer_id, "Client is not connected")

        params = ExecuteToolParams(
            id=request_id,
            toolName=descriptor.name,
            args=args,
            clientId=peer_id,
        )
        await session.send_notification(EXECUTE_TOOL, params.to_params())

    # ── proxy/tool_response ───────────────────────────────────

    def handle_peer_response(self, params: ToolResponseParams) -> ToolResponseResult:
        """Settle the pending call named by ``params.id``.

        Raises:
            RequestNotFoundError: The call already finished or never existed.
        """
        if params.success:
            self.pending.resolve(params.id, normalize_result(params.result))
        else:
            self.pending.resolve(
                params.id, failure_result(params.error), state=CallState.FAILED
            )
        return ToolResponseResult(status="received")

    # ── Teardown / introspection ──────────────────────────────

    async def shutdown(self) -> None:
        """Reject every outstanding call and refuse new ones."""
        self._shutting_down = True
        rejected = self.pending.reject_all(lambda _call: ShutdownError())
        if rejected:
            logger.info(
                "Router %s rejected %d pending calls on shutdown",
                self.router_id,
                rejected,
            )

    def status(self) -> RouterStatus:
        peers = self.registry.peers()
        return RouterStatus(
            router_id=self.router_id,
            registered_tools=[d.namespaced_name for d in self.registry.list_all()],
            connected_clients=peers,
            client_tool_mapping={peer: self.registry.tools_for(peer) for peer in peers},
            local_tools=list(self._local_tools),
            pending_requests=len(self.pending),
        )
