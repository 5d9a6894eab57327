"""Message forwarding bridge between a controller and a puppet endpoint.

Once bound, requests for the forwarded methods that arrive at the
controller are delivered to the puppet's inbound handler instead, and
everything the puppet sends goes out through the controller (and, by
default, through the puppet's own original sender as well).

The binding is an immutable record of what was installed and what it
replaced; bind, rebind and unbind move the bridge between records.
"""

from __future__ import annotations

import enum
import inspect
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from toolrelay.config.schema import DEFAULT_FORWARDED_METHODS
from toolrelay.core.errors import BridgeError
from toolrelay.protocol.jsonrpc import message_method
from toolrelay.protocol.messages import INTERNAL_METHODS
from toolrelay.transport.base import Endpoint, MessageHandler, MessageSender

logger = logging.getLogger(__name__)


class Route(enum.Enum):
    ORIGINAL = "original"
    PUPPET = "puppet"


def route_for(message: Any, forwarded_methods: frozenset[str]) -> Route:
    """Decide where a controller-bound message goes.

    Invalid messages, responses, and the relay's own control methods
    always stay with the controller.
    """
    method = message_method(message)
    if method is None or method in INTERNAL_METHODS:
        return Route.ORIGINAL
    if method in forwarded_methods:
        return Route.PUPPET
    return Route.ORIGINAL


@dataclass(frozen=True, slots=True)
class ForwardingBinding:
    """What a bridge installed, and what it displaced."""

    controller: Endpoint
    puppet: Endpoint
    forwarded_methods: frozenset[str]
    mirror_puppet_sends: bool
    original_controller_handler: MessageHandler | None
    original_puppet_send: MessageSender | None
    controller_handler: MessageHandler
    puppet_send: MessageSender


class MessageForwardingBridge:
    """Binds one controller to one puppet at a time."""

    def __init__(self) -> None:
        self._binding: ForwardingBinding | None = None

    @property
    def binding(self) -> ForwardingBinding | None:
        return self._binding

    @property
    def bound(self) -> bool:
        return self._binding is not None

    def bind(
        self,
        controller: Endpoint,
        puppet: Endpoint,
        forwarded_methods: Iterable[str] = DEFAULT_FORWARDED_METHODS,
        *,
        mirror_puppet_sends: bool = True,
    ) -> ForwardingBinding:
        """Install the interceptors and capture the originals.

        Raises:
            BridgeError: If already bound, or either endpoint has not
                finished starting.
        """
        if self._binding is not None:
            bound = self._binding.controller
            msg = f"Bridge already binds {bound!r}; unbind or rebind first"
            raise BridgeError(msg)
        for endpoint in (controller, puppet):
            if not endpoint.started or endpoint.closed:
                msg = f"{endpoint!r} must be started before binding"
                raise BridgeError(msg)

        methods = frozenset(forwarded_methods)
        binding = _make_binding(controller, puppet, methods, mirror_puppet_sends)
        controller.handler = binding.controller_handler
        puppet.sender = binding.puppet_send
        self._binding = binding
        logger.info(
            "Bound puppet %s to controller %s for %s",
            puppet.endpoint_id,
            controller.endpoint_id,
            sorted(binding.forwarded_methods),
        )
        return binding

    def rebind(self, puppet: Endpoint | None = None) -> ForwardingBinding:
        """Re-capture after a puppet reconnect, keeping controller and methods.

        Raises:
            BridgeError: If nothing is bound.
        """
        current = self._binding
        if current is None:
            msg = "Nothing bound to rebind"
            raise BridgeError(msg)
        self.unbind()
        return self.bind(
            current.controller,
            puppet or current.puppet,
            current.forwarded_methods,
            mirror_puppet_sends=current.mirror_puppet_sends,
        )

    def unbind(self) -> ForwardingBinding | None:
        """Restore the captured originals. No-op when nothing is bound."""
        binding, self._binding = self._binding, None
        if binding is None:
            return None
        binding.controller.handler = binding.original_controller_handler
        binding.puppet.sender = binding.original_puppet_send
        logger.info(
            "Unbound puppet %s from controller %s",
            binding.puppet.endpoint_id,
            binding.controller.endpoint_id,
        )
        return binding


def _make_binding(
    controller: Endpoint,
    puppet: Endpoint,
    methods: frozenset[str],
    mirror: bool,
) -> ForwardingBinding:
    original_handler = controller.handler
    original_send = puppet.sender

    async def controller_handler(message: Any) -> None:
        if route_for(message, methods) is Route.PUPPET:
            logger.debug(
                "Forwarding %s to puppet %s",
                message_method(message),
                puppet.endpoint_id,
            )
            await puppet.deliver(message)
            return
        if original_handler is not None:
            result = original_handler(message)
            if inspect.isawaitable(result):
                await result

    async def puppet_send(message: Any) -> None:
        await controller.send(message)
        if mirror and original_send is not None:
            await original_send(message)

    return ForwardingBinding(
        controller=controller,
        puppet=puppet,
        forwarded_methods=methods,
        mirror_puppet_sends=mirror,
        original_controller_handler=original_handler,
        original_puppet_send=original_send,
        controller_handler=controller_handler,
        puppet_send=puppet_send,
    )
