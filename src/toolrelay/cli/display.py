"""Rich display for router and agent activity.

Renders registration outcomes, tool listings, call results and router
status.  Accepts an optional :class:`~rich.console.Console` for
dependency injection in tests.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from mcp.types import TextContent
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

if TYPE_CHECKING:
    from collections.abc import Sequence

    from mcp.types import CallToolResult, Tool

    from toolrelay.protocol.messages import RegisterToolsResult
    from toolrelay.relay.router import RouterStatus

_TRUNCATE_LEN = 500


def _truncate(text: str, limit: int = _TRUNCATE_LEN) -> str:
    """Truncate text to *limit* characters with an ellipsis."""
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + " ..."


def result_text(result: CallToolResult) -> str:
    """Concatenate the text blocks of a tool result."""
    parts = [block.text for block in result.content if isinstance(block, TextContent)]
    return "\n".join(parts)


class RelayDisplay:
    """Styled output for the ``toolrelay`` CLI."""

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()

    def show_registration(self, client_id: str, result: RegisterToolsResult) -> None:
        accepted = ", ".join(result.registeredTools) or "none"
        body = f"[green]registered:[/green] {accepted}"
        if result.conflicts:
            body += f"\n[yellow]conflicts:[/yellow] {', '.join(result.conflicts)}"
        panel = Panel(body, title=f"Client {client_id}", border_style="blue")
        self._console.print(panel)

    def show_tools(self, tools: Sequence[Tool]) -> None:
        table = Table(title="Tools", show_lines=False)
        table.add_column("Name", style="bold cyan")
        table.add_column("Description")
        for tool in tools:
            table.add_row(tool.name, tool.description or "")
        self._console.print(table)

    def show_result(self, name: str, result: CallToolResult) -> None:
        if result.isError:
            style, title = "red", f"{name} failed"
        else:
            style, title = "green", name
        text = _truncate(result_text(result)) or "(no content)"
        self._console.print(Panel(text, title=title, border_style=style))

    def show_status(self, status: RouterStatus) -> None:
        table = Table(title=f"Router {status.router_id}")
        table.add_column("Client", style="bold")
        table.add_column("Tools")
        for client, tools in status.client_tool_mapping.items():
            table.add_row(client, ", ".join(tools))
        self._console.print(table)
        self._console.print(f"[dim]pending requests: {status.pending_requests}[/dim]")

    def show_error(self, message: str) -> None:
        self._console.print(f"[bold red]Error:[/bold red] {message}")
