"""Stock tools shipped with toolrelay."""

from toolrelay.tools.echo import ECHO_SCHEMA, echo, echo_definition, echo_local_tool

__all__ = ["ECHO_SCHEMA", "echo", "echo_definition", "echo_local_tool"]
