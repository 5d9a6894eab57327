"""TOML configuration discovery and merging.

Sources, lowest priority first:

* pydantic defaults
* ``$XDG_CONFIG_HOME/toolrelay/config.toml`` (``~/.config`` when unset)
* ``toolrelay.toml`` in the working directory
* the file named by ``$TOOLRELAY_CONFIG``
* an explicit path handed to :func:`load_config`
* ``TOOLRELAY_REQUEST_TIMEOUT_MS`` / ``TOOLRELAY_NAMESPACING``
* programmatic overrides handed to :func:`load_config`
"""

from __future__ import annotations

import os
import tomllib
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from toolrelay.core.errors import ConfigError

from .schema import RelayConfig

CONFIG_ENV_VAR = "TOOLRELAY_CONFIG"
PROJECT_FILENAME = "toolrelay.toml"

_TRUTHY = frozenset({"1", "true", "yes", "on"})
_FALSY = frozenset({"0", "false", "no", "off"})


def _as_int(name: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError as e:
        msg = f"{name} must be an integer, got {raw!r}"
        raise ConfigError(msg) from e


def _as_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    msg = f"{name} must be a boolean, got {raw!r}"
    raise ConfigError(msg)


# env var -> (router field, parser)
_ROUTER_ENV: dict[str, tuple[str, Callable[[str, str], Any]]] = {
    "TOOLRELAY_REQUEST_TIMEOUT_MS": ("request_timeout_ms", _as_int),
    "TOOLRELAY_NAMESPACING": ("namespacing", _as_bool),
}


def user_config_path() -> Path:
    """Per-user config file, following XDG conventions."""
    root = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(root) / "toolrelay" / "config.toml"


def _config_files(explicit: str | Path | None) -> Iterator[Path]:
    """Yield existing config files in merge order."""
    for candidate in (user_config_path(), Path.cwd() / PROJECT_FILENAME):
        if candidate.is_file():
            yield candidate

    from_env = os.environ.get(CONFIG_ENV_VAR)
    if from_env:
        env_file = Path(from_env)
        if not env_file.is_file():
            msg = f"{CONFIG_ENV_VAR} points to non-existent file: {from_env}"
            raise ConfigError(msg)
        yield env_file

    if explicit is not None:
        explicit_file = Path(explicit)
        if not explicit_file.is_file():
            msg = f"Config file not found: {explicit}"
            raise ConfigError(msg)
        yield explicit_file


def _load_toml(path: Path) -> dict[str, Any]:
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        msg = f"Invalid TOML in {path}: {e}"
        raise ConfigError(msg) from e
    except OSError as e:
        msg = f"Cannot read config file {path}: {e}"
        raise ConfigError(msg) from e


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge *override* into a copy of *base*; nested tables merge recursively."""
    result = dict(base)
    for key, value in override.items():
        current = result.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            value = _deep_merge(current, value)
        result[key] = value
    return result


def _env_overrides() -> dict[str, Any]:
    """Router settings taken from the environment."""
    router = {
        field: parse(name, os.environ[name])
        for name, (field, parse) in _ROUTER_ENV.items()
        if os.environ.get(name)
    }
    return {"router": router} if router else {}


def load_config(
    path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> RelayConfig:
    """Build a validated :class:`RelayConfig` from every source.

    Raises:
        ConfigError: A named file is missing, a file is not valid TOML,
            an environment value cannot be parsed, or the merged result
            fails validation.
    """
    layers = [_load_toml(config_file) for config_file in _config_files(path)]
    layers.append(_env_overrides())
    layers.append(overrides or {})

    merged: dict[str, Any] = {}
    for layer in layers:
        merged = _deep_merge(merged, layer)

    try:
        return RelayConfig.model_validate(merged)
    except ValidationError as e:
        msg = f"Configuration validation failed: {e}"
        raise ConfigError(msg) from e
