"""Echo tool: repeats a message back to the caller."""

from __future__ import annotations

from typing import Any

from toolrelay.relay.agent import ToolDefinition
from toolrelay.relay.router import LocalTool

ECHO_DESCRIPTION = "Echo input message"

ECHO_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "message": {
            "type": "string",
            "description": "Message to echo",
        },
        "repeat": {
            "type": "integer",
            "description": "Number of repetitions, default is 1",
            "minimum": 1,
            "maximum": 10,
        },
    },
    "required": ["message"],
}


def echo(args: dict[str, Any]) -> str:
    """Return ``message`` repeated ``repeat`` times, space separated."""
    if "message" not in args:
        msg = "Missing required argument: message"
        raise ValueError(msg)
    repeat = int(args.get("repeat") or 1)
    if not 1 <= repeat <= 10:
        msg = f"repeat must be between 1 and 10, got {repeat}"
        raise ValueError(msg)
    return " ".join([str(args["message"])] * repeat)


def echo_local_tool() -> LocalTool:
    return LocalTool(
        name="echo",
        description=ECHO_DESCRIPTION,
        handler=echo,
        input_schema=ECHO_SCHEMA,
    )


def echo_definition() -> ToolDefinition:
    return ToolDefinition(
        name="echo",
        description=ECHO_DESCRIPTION,
        implementation=echo,
        input_schema=ECHO_SCHEMA,
    )

