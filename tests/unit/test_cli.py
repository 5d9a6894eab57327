"""Tests for the CLI commands: argument parsing, output formatting, errors."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest
from click.testing import CliRunner
from mcp.types import CallToolResult, TextContent, Tool
from rich.console import Console

from toolrelay.cli.app import cli
from toolrelay.cli.display import RelayDisplay, _truncate
from toolrelay.protocol.messages import RegisterToolsResult
from toolrelay.relay.router import RouterStatus


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture(autouse=True)
def _isolated(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.chdir(tmp_path)
    for var in (
        "TOOLRELAY_CONFIG",
        "TOOLRELAY_REQUEST_TIMEOUT_MS",
        "TOOLRELAY_NAMESPACING",
    ):
        monkeypatch.delenv(var, raising=False)



# ── CLI group ────────────────────────────────────────────────────


class TestCliGroup:
    def test_no_command_shows_help(self, runner: CliRunner) -> None:
        result = runner.invoke(cli)
        assert result.exit_code == 0
        assert "Remote tool execution router" in result.output

    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "toolrelay" in result.output
        assert "0.1.0" in result.output

    def test_help_lists_commands(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("config", "demo", "mcp"):
            assert command in result.output


# ── config command ───────────────────────────────────────────────


class TestConfigCommand:
    def test_prints_defaults(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["config"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["router"]["request_timeout_ms"] == 30_000

    def test_reads_config_file(self, runner: CliRunner, tmp_path: Path) -> None:
        path = tmp_path / "relay.toml"
        path.write_text('[router]\nrouter_id = "hub"\n')
        result = runner.invoke(cli, ["--config", str(path), "config"])
        assert result.exit_code == 0
        assert json.loads(result.output)["router"]["router_id"] == "hub"

    def test_invalid_config_exits(self, runner: CliRunner, tmp_path: Path) -> None:
        path = tmp_path / "bad.toml"
        path.write_text("[router]\nrequest_timeout_ms = 0\n")
        result = runner.invoke(cli, ["--config", str(path), "config"])
        assert result.exit_code == 1
        assert "Error:" in result.output


# ── demo command ─────────────────────────────────────────────────


class TestDemoCommand:
    @patch("toolrelay.cli.app._configure_logging")
    def test_round_trip(self, _logging: Any, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["demo", "--message", "ping", "--repeat", "2"])
        assert result.exit_code == 0, result.output
        assert "ping ping" in result.output
        assert "client" in result.output

    @patch("toolrelay.cli.app._configure_logging")
    def test_namespacing(self, _logging: Any, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["demo", "--namespacing"])
        assert result.exit_code == 0, result.output
        assert "client:echo" in result.output

    def test_repeat_range(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["demo", "--repeat", "11"])
        assert result.exit_code != 0


# ── mcp command ──────────────────────────────────────────────────


class TestMcpCommand:
    @patch("toolrelay.cli.app._configure_logging")
    @patch("toolrelay.cli.app.asyncio.run")
    def test_starts_server(
        self, mock_run: Any, _logging: Any, runner: CliRunner
    ) -> None:
        result = runner.invoke(cli, ["mcp"])
        assert result.exit_code == 0
        mock_run.assert_called_once()
        mock_run.call_args.args[0].close()


# ── Display ──────────────────────────────────────────────────────


def _display() -> tuple[RelayDisplay, Console]:
    console = Console(record=True, width=120)
    return RelayDisplay(console), console


class TestDisplay:
    def test_truncate(self) -> None:
        assert _truncate("short") == "short"
        assert _truncate("x" * 600).endswith(" ...")

    def test_registration_with_conflicts(self) -> None:
        display, console = _display()
        display.show_registration(
            "client-b",
            RegisterToolsResult(
                status="success", registeredTools=["add"], conflicts=["echo"]
            ),
        )
        text = console.export_text()
        assert "client-b" in text
        assert "add" in text
        assert "conflicts" in text

    def test_tools_table(self) -> None:
        display, console = _display()
        tool = Tool(name="a:echo", description="[a] Echo", inputSchema={})

        display.show_tools([tool])
        assert "a:echo" in console.export_text()

    def test_error_result(self) -> None:
        display, console = _display()
        content = [TextContent(type="text", text="boom")]
        result = CallToolResult(content=content, isError=True)

        display.show_result("echo", result)
        text = console.export_text()
        assert "echo failed" in text
        assert "boom" in text

    def test_status(self) -> None:
        display, console = _display()
        display.show_status(
            RouterStatus(
                router_id="server",
                registered_tools=["echo"],
                connected_clients=["client"],
                client_tool_mapping={"client": ["echo"]},
                local_tools=[],
                pending_requests=0,
            )
        )
        text = console.export_text()
        assert "Router server" in text
        assert "pending requests: 0" in text
