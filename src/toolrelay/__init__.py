"""toolrelay - remote tool execution over MCP-style message channels."""

__version__ = "0.1.0"
