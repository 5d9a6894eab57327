"""Helpers for inspecting raw JSON-RPC messages."""

from __future__ import annotations

from typing import Any

from mcp.types import JSONRPCMessage
from pydantic import ValidationError


def parse_message(raw: Any) -> JSONRPCMessage | None:
    """Validate *raw* as a JSON-RPC message, or return None."""
    if isinstance(raw, JSONRPCMessage):
        return raw
    try:
        return JSONRPCMessage.model_validate(raw)
    except ValidationError:
        return None


def message_method(raw: Any) -> str | None:
    """Method of a request or notification; None for responses and junk."""
    message = parse_message(raw)
    if message is None:
        return None
    return getattr(message.root, "method", None)
