"""Wire-level message shapes exchanged between router and agents."""

from toolrelay.protocol.jsonrpc import message_method, parse_message
from toolrelay.protocol.messages import (
    CALL_TOOL,
    EXECUTE_TOOL,
    GET_PROMPT,
    INTERNAL_METHODS,
    LIST_PROMPTS,
    LIST_RESOURCES,
    LIST_TOOLS,
    READ_RESOURCE,
    REGISTER_TOOLS,
    TOOL_RESPONSE,
    ExecuteToolParams,
    RegisterToolsParams,
    RegisterToolsResult,
    ToolResponseParams,
    ToolResponseResult,
    ToolSchema,
)

__all__ = [
    "CALL_TOOL",
    "EXECUTE_TOOL",
    "GET_PROMPT",
    "INTERNAL_METHODS",
    "LIST_PROMPTS",
    "LIST_RESOURCES",
    "LIST_TOOLS",
    "READ_RESOURCE",
    "REGISTER_TOOLS",
    "TOOL_RESPONSE",
    "ExecuteToolParams",
    "RegisterToolsParams",
    "RegisterToolsResult",
    "ToolResponseParams",
    "ToolResponseResult",
    "ToolSchema",
    "message_method",
    "parse_message",
]
