"""Main CLI application.

Click commands for toolrelay: config, demo, mcp.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import click

from toolrelay import __version__
from toolrelay.config.loader import load_config
from toolrelay.core.errors import ConfigError, RelayError

if TYPE_CHECKING:
    from mcp.types import CallToolResult, Tool

    from toolrelay.config.schema import LoggingConfig, RelayConfig
    from toolrelay.protocol.messages import RegisterToolsResult
    from toolrelay.relay.router import ExecutionRouter, RouterStatus

_STRUCTURED_FORMAT = (
    '{"time": "%(asctime)s", "level": "%(levelname)s", '
    '"logger": "%(name)s", "message": "%(message)s"}'
)
_PLAIN_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


# ── Helpers ──────────────────────────────────────────────────────


def _error(msg: str) -> None:
    """Print an error message to stderr and exit."""
    click.echo(f"Error: {msg}", err=True)
    sys.exit(1)


def _load_config(config_path: str | None) -> RelayConfig:
    """Load config with user-friendly error handling."""
    try:
        return load_config(path=config_path)
    except ConfigError as e:
        _error(str(e))
        raise  # unreachable, keeps mypy happy


def _configure_logging(config: LoggingConfig) -> None:
    """Route logs to stderr (rich) and optionally to a file."""
    from rich.console import Console
    from rich.logging import RichHandler

    level = getattr(logging, config.level.upper(), logging.INFO)
    handlers: list[logging.Handler] = [
        RichHandler(console=Console(stderr=True), show_path=False),
    ]
    if config.file:
        path = Path(config.file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path)
        fmt = _STRUCTURED_FORMAT if config.structured else _PLAIN_FORMAT
        file_handler.setFormatter(logging.Formatter(fmt))
        handlers.append(file_handler)
    logging.basicConfig(level=level, handlers=handlers, force=True)


def _build_router(config: RelayConfig) -> ExecutionRouter:
    """Router with the stock local tools."""
    from toolrelay.relay.router import ExecutionRouter
    from toolrelay.tools.echo import echo_local_tool

    router = ExecutionRouter(config.router)
    router.register_local_tool(echo_local_tool())
    return router


@dataclass(frozen=True, slots=True)
class DemoReport:
    """Everything the demo command shows."""

    client_id: str
    tool_name: str
    registration: RegisterToolsResult
    tools: list[Tool]
    result: CallToolResult
    status: RouterStatus


async def _run_demo(config: RelayConfig, message: str, repeat: int) -> DemoReport:
    """Round-trip one echo call through a router and an in-process agent."""
    from toolrelay.relay.agent import ExecutionAgent
    from toolrelay.relay.router import ExecutionRouter
    from toolrelay.rpc.session import RpcSession
    from toolrelay.tools.echo import echo_definition
    from toolrelay.transport.memory import create_memory_pair

    router = ExecutionRouter(config.router)
    agent = ExecutionAgent.from_config(config.agent)
    agent.register_tools([echo_definition()])

    router_end, agent_end = create_memory_pair(config.router.router_id, agent.client_id)
    router_session = RpcSession(
        router_end, request_timeout_ms=config.router.request_timeout_ms
    )
    router.attach(router_session)
    await router_session.start()

    agent_session = RpcSession(
        agent_end, request_timeout_ms=config.agent.response_timeout_ms
    )
    try:
        registration = await agent.connect(agent_session)
        tools = await router.list_tools()
        tool_name = router.registry.key_for(agent.client_id, "echo")
        args = {"message": message, "repeat": repeat}
        result = await router.call_tool(tool_name, args)
        status = router.status()
    finally:
        await agent_session.close()
        await router.shutdown()

    return DemoReport(
        client_id=agent.client_id,
        tool_name=tool_name,
        registration=registration,
        tools=tools,
        result=result,
        status=status,
    )


# ── CLI group ────────────────────────────────────────────────────


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="toolrelay")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True),
    default=None,
    help="Path to config file.",
)
@click.pass_context
def cli(ctx: click.Context, config_path: str | None) -> None:
    """toolrelay - Remote tool execution router.

    Route MCP tool calls to the peers that implement them.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# ── config ───────────────────────────────────────────────────────


@cli.command("config")
@click.pass_context
def show_config(ctx: click.Context) -> None:
    """Print the resolved configuration as JSON."""
    config = _load_config(ctx.obj["config_path"])
    click.echo(config.model_dump_json(indent=2))


# ── demo ─────────────────────────────────────────────────────────


@cli.command()
@click.option("--message", default="hello", show_default=True, help="Message to echo.")
@click.option(
    "--repeat",
    type=click.IntRange(1, 10),
    default=1,
    show_default=True,
    help="Repetitions.",
)
@click.option(
    "--namespacing/--no-namespacing",
    default=None,
    help="Override router namespacing.",
)
@click.option(
    "--timeout-ms",
    type=click.IntRange(min=1),
    default=None,
    help="Override request timeout.",
)
@click.pass_context
def demo(
    ctx: click.Context,
    message: str,
    repeat: int,
    namespacing: bool | None,
    timeout_ms: int | None,
) -> None:
    """Run an in-process round trip: register, list, call."""
    from toolrelay.cli.display import RelayDisplay

    config = _load_config(ctx.obj["config_path"])
    if namespacing is not None:
        config.router.namespacing = namespacing
    if timeout_ms is not None:
        config.router.request_timeout_ms = timeout_ms
    _configure_logging(config.logging)

    try:
        report = asyncio.run(_run_demo(config, message, repeat))
    except RelayError as e:
        _error(str(e))
        return

    display = RelayDisplay()
    display.show_registration(report.client_id, report.registration)
    display.show_tools(report.tools)
    display.show_result(report.tool_name, report.result)
    display.show_status(report.status)


# ── mcp ──────────────────────────────────────────────────────────


@cli.command()
@click.pass_context
def mcp(ctx: click.Context) -> None:
    """Start the MCP server on stdio."""
    from toolrelay.mcp.server import run_server

    config = _load_config(ctx.obj["config_path"])
    _configure_logging(config.logging)
    asyncio.run(run_server(_build_router(config)))
