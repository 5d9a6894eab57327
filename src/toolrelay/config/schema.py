"""Pydantic models for toolrelay configuration."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from toolrelay.protocol.messages import (
    CALL_TOOL,
    GET_PROMPT,
    LIST_PROMPTS,
    LIST_RESOURCES,
    LIST_TOOLS,
    READ_RESOURCE,
)

DEFAULT_FORWARDED_METHODS: tuple[str, ...] = (LIST_TOOLS, CALL_TOOL)
EXTENDED_FORWARDED_METHODS: tuple[str, ...] = (
    *DEFAULT_FORWARDED_METHODS,
    LIST_RESOURCES,
    READ_RESOURCE,
    LIST_PROMPTS,
    GET_PROMPT,
)


class RouterConfig(BaseModel):
    """Execution router settings."""

    router_id: str = "server"
    request_timeout_ms: int = Field(default=30_000, gt=0)
    namespacing: bool = False
    fail_inflight_on_disconnect: bool = True


class BridgeConfig(BaseModel):
    """Message forwarding bridge settings.

    ``forwarded_methods`` wins over ``preset`` when given.
    """

    preset: Literal["default", "extended"] = "default"
    forwarded_methods: list[str] | None = None
    mirror_puppet_sends: bool = True

    def resolved_methods(self) -> frozenset[str]:
        if self.forwarded_methods is not None:
            return frozenset(self.forwarded_methods)
        if self.preset == "extended":
            return frozenset(EXTENDED_FORWARDED_METHODS)
        return frozenset(DEFAULT_FORWARDED_METHODS)


class AgentConfig(BaseModel):
    """Execution agent settings."""

    client_id: str = "client"
    response_timeout_ms: int = Field(default=30_000, gt=0)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    file: str = ""
    structured: bool = False


class RelayConfig(BaseModel):
    """Top-level configuration for toolrelay."""

    router: RouterConfig = Field(default_factory=RouterConfig)
    bridge: BridgeConfig = Field(default_factory=BridgeConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
