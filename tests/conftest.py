"""Shared test fixtures for toolrelay."""

from __future__ import annotations

from typing import Any

import pytest

from toolrelay.config.schema import RouterConfig
from toolrelay.relay.agent import ExecutionAgent, ToolDefinition
from toolrelay.relay.router import ExecutionRouter
from toolrelay.rpc.session import RpcSession
from toolrelay.transport.memory import MemoryEndpoint, create_memory_pair


@pytest.fixture
def router() -> ExecutionRouter:
    return ExecutionRouter(RouterConfig(request_timeout_ms=1_000))


@pytest.fixture
def make_definition() -> Any:
    """Factory fixture for ToolDefinition with sensible defaults."""

    def _make(
        name: str = "echo", implementation: Any = None, **overrides: Any
    ) -> ToolDefinition:
        defaults: dict[str, Any] = {
            "name": name,
            "description": f"{name} tool",
            "implementation": implementation or (lambda args: args.get("message", "")),
        }
        defaults.update(overrides)
        return ToolDefinition(**defaults)

    return _make


@pytest.fixture
async def connect_agent(router: ExecutionRouter) -> Any:
    """Factory fixture: wire an agent to ``router`` over an in-memory pair.

    Returns ``(agent, agent_session, router_session)``.
    """
    opened: list[MemoryEndpoint] = []

    async def _connect(
        client_id: str,
        tools: list[ToolDefinition],
    ) -> tuple[ExecutionAgent, RpcSession, RpcSession]:
        router_end, agent_end = create_memory_pair(
            f"{router.router_id}-{client_id}", client_id
        )

        opened.extend([router_end, agent_end])
        router_session = RpcSession(router_end)
        router.attach(router_session)
        await router_session.start()

        agent = ExecutionAgent(client_id, response_timeout_ms=1_000)
        agent.register_tools(tools)
        agent_session = RpcSession(agent_end)
        await agent.connect(agent_session)
        return agent, agent_session, router_session

    yield _connect

    for endpoint in opened:
        await endpoint.close()
