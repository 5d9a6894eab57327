"""Relay message shapes and method names.

Field names mirror the wire format exactly (``clientId``,
``inputSchema``, ``registeredTools``, ``toolName``), the same way
``mcp.types`` keeps camelCase fields for interoperability.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# ── Method names ─────────────────────────────────────────────

REGISTER_TOOLS = "client/register_tools"
EXECUTE_TOOL = "proxy/execute_tool"
TOOL_RESPONSE = "proxy/tool_response"

LIST_TOOLS = "tools/list"
CALL_TOOL = "tools/call"
LIST_RESOURCES = "resources/list"
READ_RESOURCE = "resources/read"
LIST_PROMPTS = "prompts/list"
GET_PROMPT = "prompts/get"

# Control methods the router itself depends on; never forwarded by a bridge.
INTERNAL_METHODS: frozenset[str] = frozenset({REGISTER_TOOLS, TOOL_RESPONSE})


class _Message(BaseModel):
    model_config = ConfigDict(extra="allow")

    def to_params(self) -> dict[str, Any]:
        """Dump to a JSON-ready dict, omitting unset optionals."""
        return self.model_dump(mode="json", exclude_none=True)


class ToolSchema(_Message):
    """Declarative part of a tool: what a peer announces to the router."""

    name: str
    description: str = ""
    inputSchema: dict[str, Any] = Field(default_factory=lambda: {"type": "object"})


# ── client/register_tools ────────────────────────────────────


class RegisterToolsParams(_Message):
    clientId: str
    tools: list[ToolSchema] = Field(default_factory=list)


class RegisterToolsResult(_Message):
    status: str
    registeredTools: list[str] = Field(default_factory=list)
    conflicts: list[str] | None = None


# ── proxy/execute_tool (notification, router -> agent) ──────


class ExecuteToolParams(_Message):
    id: str
    toolName: str
    args: dict[str, Any] = Field(default_factory=dict)
    clientId: str


# ── proxy/tool_response (request, agent -> router) ───────────


class ToolResponseParams(_Message):
    id: str
    success: bool
    result: Any = None
    error: str | None = None


class ToolResponseResult(_Message):
    status: str
