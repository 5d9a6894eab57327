"""Execution agent: the peer side of remote tool execution.

Holds local tool implementations, announces their schemas to the router
on every (re)connection, and answers ``proxy/execute_tool``
notifications with exactly one ``proxy/tool_response`` request.
Implementation failures become failure responses; they never propagate
across the connection.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from mcp.shared.exceptions import McpError

from toolrelay.config.schema import AgentConfig
from toolrelay.core.errors import ClientMismatchError, RelayError
from toolrelay.protocol.messages import (
    EXECUTE_TOOL,
    REGISTER_TOOLS,
    TOOL_RESPONSE,
    ExecuteToolParams,
    RegisterToolsParams,
    RegisterToolsResult,
    ToolResponseParams,
    ToolResponseResult,
    ToolSchema,
)

if TYPE_CHECKING:
    from toolrelay.rpc.session import RpcSession

logger = logging.getLogger(__name__)

ToolImplementation = Callable[[dict[str, Any]], Any]


@dataclass(frozen=True, slots=True)
class ToolDefinition:
    """A tool together with the code that runs it.

    The implementation may be a plain function or a coroutine function;
    both are awaited the same way.
    """

    name: str
    description: str
    implementation: ToolImplementation
    input_schema: dict[str, Any] = field(default_factory=lambda: {"type": "object"})

    def schema(self) -> ToolSchema:
        """The declarative part announced to the router."""
        return ToolSchema(
            name=self.name,
            description=self.description,
            inputSchema=self.input_schema,
        )


@dataclass(frozen=True, slots=True)
class AgentStatus:
    client_id: str
    tool_count: int
    tools: list[str]
    registered_to_server: bool


class ExecutionAgent:
    """Executes tools on behalf of a remote router."""

    def __init__(self, client_id: str, *, response_timeout_ms: int = 30_000) -> None:
        self.client_id = client_id
        self.response_timeout_ms = response_timeout_ms
        self._implementations: dict[str, ToolImplementation] = {}
        self._definitions: list[ToolDefinition] = []
        self._session: RpcSession | None = None
        self._announced = False

    @classmethod
    def from_config(cls, config: AgentConfig) -> ExecutionAgent:
        return cls(config.client_id, response_timeout_ms=config.response_timeout_ms)

    @property
    def session(self) -> RpcSession | None:
        return self._session

    def register_tools(self, tools: Iterable[ToolDefinition]) -> None:
        """Replace the local tool set. Takes effect at the next announce."""
        self._definitions = list(tools)
        self._implementations = {t.name: t.implementation for t in self._definitions}

    def declared_tools(self) -> list[ToolSchema]:
        return [tool.schema() for tool in self._definitions]

    # ── Connection lifecycle ──────────────────────────────────

    async def connect(self, session: RpcSession) -> RegisterToolsResult:
        """Serve execute notifications on *session* and announce tools.

        Call again with the new session after a reconnect; the router
        forgets a peer's tools whenever that peer disconnects.
        """
        previous = self._session
        if previous is not None and previous is not session:
            previous.remove_notification_handler(EXECUTE_TOOL)
        self._session = session
        self._announced = False
        session.set_notification_handler(EXECUTE_TOOL, self._on_execute)
        await session.start()
        return await self.announce()

    async def announce(self) -> RegisterToolsResult:
        """Send ``client/register_tools`` with the declared tool schemas."""
        session = self._require_session()
        params = RegisterToolsParams(
            clientId=self.client_id, tools=self.declared_tools()
        )
        try:
            raw = await session.send_request(
                REGISTER_TOOLS,
                params.to_params(),
                timeout_ms=self.response_timeout_ms,
            )
        except (RelayError, McpError) as e:
            logger.error("Failed to register tools to server: %s", e)
            raise

        result = RegisterToolsResult.model_validate(raw)
        if result.conflicts:
            logger.warning(
                "Tool registration conflicts for %d tools: %s",
                len(result.conflicts),
                result.conflicts,
            )
        self._announced = True
        return result

    def _require_session(self) -> RpcSession:
        if self._session is None:
            msg = f"Client {self.client_id} is not connected"
            raise RelayError(msg)
        return self._session

    # ── proxy/execute_tool ────────────────────────────────────

    async def _on_execute(self, params: dict[str, Any]) -> None:
        await self.on_execute_notification(ExecuteToolParams.model_validate(params))

    async def on_execute_notification(self, params: ExecuteToolParams) -> None:
        """Run the requested tool and report back exactly once."""
        if params.clientId != self.client_id:
            logger.warning("%s", ClientMismatchError(self.client_id, params.clientId))
            return

        response = await self.execute(params.id, params.toolName, params.args)
        await self._send_response(response)

    async def execute(
        self, request_id: str, tool_name: str, args: dict[str, Any]
    ) -> ToolResponseParams:
        """Invoke a local implementation, capturing any failure as data."""
        implementation = self._implementations.get(tool_name)
        if implementation is None:
            return ToolResponseParams(
                id=request_id,
                success=False,
                error=f"Tool {tool_name} not found in client {self.client_id}",
            )

        try:
            result = implementation(args)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            logger.warning(
                "Tool %s failed in client %s: %s", tool_name, self.client_id, e
            )
            error = str(e) or type(e).__name__
            return ToolResponseParams(id=request_id, success=False, error=error)

        return ToolResponseParams(id=request_id, success=True, result=result)

    async def _send_response(self, response: ToolResponseParams) -> None:
        session = self._require_session()
        try:
            params = response.to_params()
        except Exception as e:
            params = ToolResponseParams(
                id=response.id,
                success=False,
                error=f"Tool result is not serializable: {e}",
            ).to_params()

        try:
            raw = await session.send_request(
                TOOL_RESPONSE, params, timeout_ms=self.response_timeout_ms
            )
            ToolResponseResult.model_validate(raw)
        except Exception:
            logger.exception("Failed to send tool response for %s", response.id)

    def status(self) -> AgentStatus:
        return AgentStatus(
            client_id=self.client_id,
            tool_count=len(self._implementations),
            tools=list(self._implementations),
            registered_to_server=self._announced,
        )
