"""Remote tool execution: registry, router, agent, forwarding bridge."""

from toolrelay.relay.agent import ExecutionAgent, ToolDefinition
from toolrelay.relay.bridge import ForwardingBinding, MessageForwardingBridge
from toolrelay.relay.pending import CallState, PendingCall, PendingCallTable
from toolrelay.relay.registry import ToolDescriptor, ToolRegistry
from toolrelay.relay.router import ExecutionRouter, LocalTool
from toolrelay.relay.sessions import SessionManager

__all__ = [
    "CallState",
    "ExecutionAgent",
    "ExecutionRouter",
    "ForwardingBinding",
    "LocalTool",
    "MessageForwardingBridge",
    "PendingCall",
    "PendingCallTable",
    "SessionManager",
    "ToolDefinition",
    "ToolDescriptor",
    "ToolRegistry",
]
