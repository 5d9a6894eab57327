"""Tests for configuration schema and loader."""

from __future__ import annotations

from pathlib import Path

import pytest

from toolrelay.config.loader import _deep_merge, _env_overrides, load_config
from toolrelay.config.schema import (
    DEFAULT_FORWARDED_METHODS,
    EXTENDED_FORWARDED_METHODS,
    BridgeConfig,
    RelayConfig,
    RouterConfig,
)
from toolrelay.core.errors import ConfigError


@pytest.fixture(autouse=True)
def _isolated(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep user and project config files out of every test."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.chdir(tmp_path)
    for var in (
        "TOOLRELAY_CONFIG",
        "TOOLRELAY_REQUEST_TIMEOUT_MS",
        "TOOLRELAY_NAMESPACING",
    ):
        monkeypatch.delenv(var, raising=False)


# ── Schema ───────────────────────────────────────────────────────


class TestSchema:
    def test_defaults(self):
        config = RelayConfig()
        assert config.router.router_id == "server"
        assert config.router.request_timeout_ms == 30_000
        assert config.router.namespacing is False
        assert config.router.fail_inflight_on_disconnect is True
        assert config.agent.client_id == "client"
        assert config.logging.level == "INFO"

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValueError):
            RouterConfig(request_timeout_ms=0)

    def test_bridge_default_preset(self):
        assert BridgeConfig().resolved_methods() == frozenset(DEFAULT_FORWARDED_METHODS)

    def test_bridge_extended_preset(self):
        methods = BridgeConfig(preset="extended").resolved_methods()
        assert methods == frozenset(EXTENDED_FORWARDED_METHODS)
        assert "resources/read" in methods

    def test_explicit_methods_win_over_preset(self):
        config = BridgeConfig(preset="extended", forwarded_methods=["tools/call"])
        assert config.resolved_methods() == frozenset({"tools/call"})


# ── Loader ───────────────────────────────────────────────────────


class TestDeepMerge:
    def test_nested_override(self):
        base = {"router": {"router_id": "a", "namespacing": False}}
        merged = _deep_merge(base, {"router": {"namespacing": True}})
        assert merged == {"router": {"router_id": "a", "namespacing": True}}
        assert base["router"]["namespacing"] is False


class TestLoadConfig:
    def test_no_files_gives_defaults(self):
        assert load_config() == RelayConfig()

    def test_project_file(self, tmp_path: Path):
        (tmp_path / "toolrelay.toml").write_text("[router]\nnamespacing = true\n")
        assert load_config().router.namespacing is True

    def test_user_file_overridden_by_project_file(self, tmp_path: Path):
        user = tmp_path / "xdg" / "toolrelay"
        user.mkdir(parents=True)
        (user / "config.toml").write_text(
            '[router]\nrouter_id = "user"\nrequest_timeout_ms = 5\n'
        )
        (tmp_path / "toolrelay.toml").write_text('[router]\nrouter_id = "project"\n')
        config = load_config()
        assert config.router.router_id == "project"
        assert config.router.request_timeout_ms == 5

    def test_explicit_path(self, tmp_path: Path):
        path = tmp_path / "custom.toml"
        path.write_text('[agent]\nclient_id = "worker"\n')
        assert load_config(path=path).agent.client_id == "worker"

    def test_missing_explicit_path(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(path=tmp_path / "nope.toml")

    def test_env_config_must_exist(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("TOOLRELAY_CONFIG", "/does/not/exist.toml")
        with pytest.raises(ConfigError, match="TOOLRELAY_CONFIG"):
            load_config()

    def test_invalid_toml(self, tmp_path: Path):
        path = tmp_path / "bad.toml"
        path.write_text("[router\n")
        with pytest.raises(ConfigError, match="Invalid TOML"):
            load_config(path=path)

    def test_validation_failure(self, tmp_path: Path):
        path = tmp_path / "bad.toml"
        path.write_text("[router]\nrequest_timeout_ms = -1\n")
        with pytest.raises(ConfigError, match="validation failed"):
            load_config(path=path)

    def test_overrides_win(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("TOOLRELAY_REQUEST_TIMEOUT_MS", "100")
        config = load_config(overrides={"router": {"request_timeout_ms": 200}})
        assert config.router.request_timeout_ms == 200


class TestEnvOverrides:
    def test_empty(self):
        assert _env_overrides() == {}

    def test_timeout(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("TOOLRELAY_REQUEST_TIMEOUT_MS", "1500")
        assert load_config().router.request_timeout_ms == 1500

    def test_bad_timeout(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("TOOLRELAY_REQUEST_TIMEOUT_MS", "soon")
        with pytest.raises(ConfigError, match="integer"):
            _env_overrides()

    @pytest.mark.parametrize(
        ("raw", "expected"), [("1", True), ("Yes", True), ("off", False)]
    )
    def test_namespacing(
        self, monkeypatch: pytest.MonkeyPatch, raw: str, expected: bool
    ):
        monkeypatch.setenv("TOOLRELAY_NAMESPACING", raw)
        assert load_config().router.namespacing is expected

    def test_bad_namespacing(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("TOOLRELAY_NAMESPACING", "maybe")
        with pytest.raises(ConfigError, match="boolean"):
            _env_overrides()
