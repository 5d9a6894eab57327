"""Tool registry: which peer owns which remotely executed tool.

Keys are raw tool names, or ``peer_id:raw_name`` when namespacing is
enabled.  A key has at most one owner.  Registration from a peer is an
atomic replace of everything that peer owned before.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from mcp.types import Tool

from toolrelay.core.errors import RegistrationConflictError
from toolrelay.protocol.messages import ToolSchema

logger = logging.getLogger(__name__)

NAMESPACE_SEPARATOR = ":"


@dataclass(frozen=True, slots=True)
class ToolDescriptor:
    """A registered tool and its owner."""

    name: str
    namespaced_name: str
    description: str
    input_schema: dict[str, Any]
    owner_id: str

    @property
    def is_namespaced(self) -> bool:
        return self.namespaced_name != self.name

    def to_tool(self) -> Tool:
        """Externally visible form for ``tools/list``."""
        if self.is_namespaced:
            return Tool(
                name=self.namespaced_name,
                description=f"[{self.owner_id}] {self.description}",
                inputSchema=self.input_schema,
            )
        return Tool(
            name=self.name,
            description=self.description,
            inputSchema=self.input_schema,
        )


@dataclass(slots=True)
class PeerSession:
    """Tools currently owned by one connected peer."""

    peer_id: str
    tool_names: set[str] = field(default_factory=set)


@dataclass(frozen=True, slots=True)
class RegistrationResult:
    """Outcome of one peer registration. Conflicts are data, not errors."""

    accepted: list[str]
    conflicts: list[str]


def split_namespaced(name: str) -> tuple[str | None, str]:
    """Split ``peer:tool`` into ``(peer, tool)``; ``(None, name)`` if unqualified."""
    if NAMESPACE_SEPARATOR not in name:
        return None, name
    peer_id, raw = name.split(NAMESPACE_SEPARATOR, 1)
    return peer_id, raw


class ToolRegistry:
    """In-memory table of peer-owned tools.

    Not thread-safe: mutation relies on single-threaded event-loop
    execution of the handlers that call it.
    """

    def __init__(self, namespacing: bool = False) -> None:
        self._tools: dict[str, ToolDescriptor] = {}
        self._sessions: dict[str, PeerSession] = {}
        self.namespacing = namespacing

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.lookup(name) is not None

    def key_for(
        self, peer_id: str, raw_name: str, namespacing: bool | None = None
    ) -> str:
        """Effective registry key for a peer's tool."""
        enabled = self.namespacing if namespacing is None else namespacing
        return f"{peer_id}{NAMESPACE_SEPARATOR}{raw_name}" if enabled else raw_name

    # ── Mutation ──────────────────────────────────────────────

    def register_peer_tools(
        self,
        peer_id: str,
        tools: Iterable[ToolSchema],
        namespacing: bool | None = None,
    ) -> RegistrationResult:
        """Replace everything *peer_id* owns with *tools*.

        Tools whose key is already owned by another peer are skipped and
        reported in ``conflicts``; the existing owner keeps them.
        """
        enabled = self.namespacing if namespacing is None else namespacing
        self.unregister_peer(peer_id)

        session = PeerSession(peer_id)
        accepted: list[str] = []
        conflicts: list[str] = []

        for tool in tools:
            key = self.key_for(peer_id, tool.name, enabled)
            existing = self._tools.get(key)
            if existing is not None and existing.owner_id != peer_id:
                conflict = RegistrationConflictError(tool.name, existing.owner_id)
                if enabled:
                    logger.error(
                        "Unexpected tool name conflict with namespacing: %s (%s)",
                        key,
                        conflict,
                    )
                else:
                    logger.warning(
                        "%s. Skipping registration for client %s", conflict, peer_id
                    )
                conflicts.append(tool.name)
                continue

            self._tools[key] = ToolDescriptor(
                name=tool.name,
                namespaced_name=key,
                description=tool.description,
                input_schema=dict(tool.inputSchema),
                owner_id=peer_id,
            )
            session.tool_names.add(key)
            accepted.append(tool.name)

        self._sessions[peer_id] = session
        if conflicts:
            logger.warning(
                "Client %s had %d tool conflicts: %s",
                peer_id,
                len(conflicts),
                conflicts,
            )
        logger.info("Registered %d tools for client %s", len(accepted), peer_id)
        return RegistrationResult(accepted=accepted, conflicts=conflicts)

    def unregister_peer(self, peer_id: str) -> list[str]:
        """Drop every tool owned by *peer_id*. Unknown peers are a no-op."""
        session = self._sessions.pop(peer_id, None)
        if session is None:
            return []
        removed = []
        for key in session.tool_names:
            descriptor = self._tools.get(key)
            if descriptor is not None and descriptor.owner_id == peer_id:
                del self._tools[key]
                removed.append(key)
        logger.debug("Unregistered %d tools for client %s", len(removed), peer_id)
        return removed

    # ── Queries ───────────────────────────────────────────────

    def list_all(self) -> list[ToolDescriptor]:
        """Snapshot of all registered tools in insertion order."""
        return list(self._tools.values())

    def lookup(self, name: str) -> ToolDescriptor | None:
        """Find a tool by effective key, raw name, or ``peer:name``.

        A raw name under namespacing resolves only when exactly one peer
        owns it.
        """
        descriptor = self._tools.get(name)
        if descriptor is not None:
            return descriptor

        peer_id, raw = split_namespaced(name)
        if peer_id is not None:
            candidate = self._tools.get(raw)
            if candidate is not None and candidate.owner_id == peer_id:
                return candidate

        if self.namespacing:
            matches = [d for d in self._tools.values() if d.name == name]
            if len(matches) == 1:
                return matches[0]
            if matches:
                logger.debug(
                    "Ambiguous raw tool name %s owned by %d clients",
                    name,
                    len(matches),
                )

        return None

    def resolve_owner(self, name: str) -> str | None:
        descriptor = self.lookup(name)
        return descriptor.owner_id if descriptor is not None else None

    def peers(self) -> list[str]:
        return list(self._sessions)

    def tools_for(self, peer_id: str) -> list[str]:
        session = self._sessions.get(peer_id)
        return sorted(session.tool_names) if session is not None else []
