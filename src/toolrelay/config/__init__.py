"""Configuration loading and schema."""

from toolrelay.config.loader import load_config
from toolrelay.config.schema import (
    DEFAULT_FORWARDED_METHODS,
    EXTENDED_FORWARDED_METHODS,
    AgentConfig,
    BridgeConfig,
    LoggingConfig,
    RelayConfig,
    RouterConfig,
)

__all__ = [
    "DEFAULT_FORWARDED_METHODS",
    "EXTENDED_FORWARDED_METHODS",
    "AgentConfig",
    "BridgeConfig",
    "LoggingConfig",
    "RelayConfig",
    "RouterConfig",
    "load_config",
]
