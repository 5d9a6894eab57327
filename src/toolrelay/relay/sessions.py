"""Session manager: owns live endpoints and their puppet bindings.

Endpoints are keyed by session id.  A controller can be paired with a
puppet session; the pairing is remembered so that when the puppet
reconnects (a new endpoint under the same id) the binding is reapplied
as soon as the new endpoint has started.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from toolrelay.config.schema import DEFAULT_FORWARDED_METHODS
from toolrelay.core.errors import BridgeError
from toolrelay.relay.bridge import ForwardingBinding, MessageForwardingBridge

if TYPE_CHECKING:
    from toolrelay.config.schema import BridgeConfig
    from toolrelay.transport.base import Endpoint

logger = logging.getLogger(__name__)


class SessionManager:
    """Explicitly owned table of endpoints and controller/puppet pairings."""

    def __init__(
        self,
        default_methods: Iterable[str] = DEFAULT_FORWARDED_METHODS,
        *,
        mirror_puppet_sends: bool = True,
    ) -> None:
        self.default_methods = frozenset(default_methods)
        self.mirror_puppet_sends = mirror_puppet_sends
        self._endpoints: dict[str, Endpoint] = {}
        self._bridges: dict[str, MessageForwardingBridge] = {}
        self._puppet_links: dict[str, tuple[str, frozenset[str]]] = {}

    @classmethod
    def from_config(cls, config: BridgeConfig) -> SessionManager:
        return cls(
            config.resolved_methods(),
            mirror_puppet_sends=config.mirror_puppet_sends,
        )

    def __len__(self) -> int:
        return len(self._endpoints)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._endpoints

    def get(self, session_id: str) -> Endpoint | None:
        return self._endpoints.get(session_id)

    def session_ids(self) -> list[str]:
        return list(self._endpoints)

    # ── Endpoint lifecycle ────────────────────────────────────

    def add(self, endpoint: Endpoint) -> None:
        """Track *endpoint*; evicted automatically when it closes."""
        session_id = endpoint.endpoint_id
        previous = self._endpoints.get(session_id)
        if previous is not None and previous is not endpoint:
            logger.info("Session %s replaced by a new connection", session_id)
            self.evict(session_id)
        self._endpoints[session_id] = endpoint
        endpoint.on_closed(self._on_endpoint_closed)

        if self._is_linked_puppet(session_id):
            if endpoint.started:
                self._reapply(session_id)
            else:
                endpoint.on_started(lambda ep: self._reapply(ep.endpoint_id))

    def evict(self, session_id: str) -> Endpoint | None:
        """Forget *session_id*. Bindings it takes part in are unbound."""
        endpoint = self._endpoints.pop(session_id, None)
        if endpoint is None:
            return None

        # As controller: the pairing dies with it.
        self._puppet_links.pop(session_id, None)
        bridge = self._bridges.pop(session_id, None)
        if bridge is not None:
            bridge.unbind()

        # As puppet: unbind, but remember the pairing for a reconnect.
        self._release_puppet(session_id)
        logger.debug("Evicted session %s", session_id)
        return endpoint

    def _on_endpoint_closed(self, endpoint: Endpoint) -> None:
        if self._endpoints.get(endpoint.endpoint_id) is endpoint:
            self.evict(endpoint.endpoint_id)

    async def close_all(self) -> None:
        for endpoint in list(self._endpoints.values()):
            await endpoint.close()

    # ── Puppet bindings ───────────────────────────────────────

    def bind_puppet(
        self,
        controller_id: str,
        puppet_id: str,
        methods: Iterable[str] | None = None,
    ) -> ForwardingBinding:
        """Forward *controller_id*'s selected traffic to *puppet_id*.

        Raises:
            BridgeError: If either session is unknown or not started.
        """
        controller = self._require(controller_id)
        puppet = self._require(puppet_id)
        forwarded = frozenset(methods) if methods is not None else self.default_methods

        bridge = self._bridges.setdefault(controller_id, MessageForwardingBridge())
        bridge.unbind()
        binding = bridge.bind(
            controller, puppet, forwarded, mirror_puppet_sends=self.mirror_puppet_sends
        )
        self._puppet_links[controller_id] = (puppet_id, forwarded)
        return binding

    def unbind_puppet(self, controller_id: str) -> None:
        """Drop the pairing for *controller_id*. Idempotent."""
        self._puppet_links.pop(controller_id, None)
        bridge = self._bridges.pop(controller_id, None)
        if bridge is not None:
            bridge.unbind()

    def binding_for(self, controller_id: str) -> ForwardingBinding | None:
        bridge = self._bridges.get(controller_id)
        return bridge.binding if bridge is not None else None

    def _require(self, session_id: str) -> Endpoint:
        endpoint = self._endpoints.get(session_id)
        if endpoint is None:
            msg = f"Invalid or expired sessionId: {session_id}"
            raise BridgeError(msg)
        return endpoint

    def _is_linked_puppet(self, session_id: str) -> bool:
        return any(linked == session_id for linked, _ in self._puppet_links.values())

    def _release_puppet(self, puppet_id: str) -> None:
        for controller_id, (linked, _) in self._puppet_links.items():
            bridge = self._bridges.get(controller_id)
            if linked == puppet_id and bridge is not None:
                bridge.unbind()

    def _reapply(self, puppet_id: str) -> None:
        puppet = self._endpoints.get(puppet_id)
        if puppet is None or not puppet.started:
            return
        for controller_id, (linked, methods) in list(self._puppet_links.items()):
            controller = self._endpoints.get(controller_id)
            if linked != puppet_id or controller is None:
                continue
            bridge = self._bridges.setdefault(controller_id, MessageForwardingBridge())
            bridge.unbind()
            bridge.bind(
                controller,
                puppet,
                methods,
                mirror_puppet_sends=self.mirror_puppet_sends,
            )
            logger.info("Reapplied puppet binding %s -> %s", controller_id, puppet_id)
