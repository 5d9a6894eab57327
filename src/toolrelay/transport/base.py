"""Endpoint abstraction: one side of a message channel.

An endpoint has two swappable slots: ``handler`` receives inbound
messages and ``sender`` carries outbound ones.  Higher layers (the RPC
session, the forwarding bridge) install functions into these slots;
concrete transports only implement ``_open``, ``_transmit`` and
``_shutdown``.
"""

from __future__ import annotations

import inspect
import logging
import uuid
from collections.abc import Awaitable, Callable
from typing import Any

from toolrelay.core.errors import TransportError

logger = logging.getLogger(__name__)

MessageHandler = Callable[[Any], Awaitable[None] | None]
MessageSender = Callable[[Any], Awaitable[None]]
LifecycleCallback = Callable[["Endpoint"], None]


class Endpoint:
    """Base class for message endpoints."""

    def __init__(self, endpoint_id: str | None = None) -> None:
        self.endpoint_id = endpoint_id or uuid.uuid4().hex
        self.handler: MessageHandler | None = None
        self.sender: MessageSender | None = None
        self._started = False
        self._closed = False
        self._start_callbacks: list[LifecycleCallback] = []
        self._close_callbacks: list[LifecycleCallback] = []

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.endpoint_id!r})"

    # ── Lifecycle ─────────────────────────────────────────────

    @property
    def started(self) -> bool:
        return self._started

    @property
    def closed(self) -> bool:
        return self._closed

    def on_started(self, callback: LifecycleCallback) -> None:
        """Run *callback* once this endpoint has started."""
        self._start_callbacks.append(callback)

    def on_closed(self, callback: LifecycleCallback) -> None:
        """Run *callback* when this endpoint closes."""
        self._close_callbacks.append(callback)

    async def start(self) -> None:
        """Open the channel and install the default sender.

        Raises:
            TransportError: If already started or closed.
        """
        if self._started:
            msg = f"{self!r} already started"
            raise TransportError(msg)
        if self._closed:
            msg = f"{self!r} is closed"
            raise TransportError(msg)
        await self._open()
        self.sender = self._transmit
        self._started = True
        self._fire(self._start_callbacks)

    async def close(self) -> None:
        """Close the channel. Idempotent."""
        if self._closed:
            return
        self._closed = True
        await self._shutdown()
        self._fire(self._close_callbacks)

    def _fire(self, callbacks: list[LifecycleCallback]) -> None:
        for callback in list(callbacks):
            try:
                callback(self)
            except Exception:
                logger.exception("Lifecycle callback failed on %r", self)

    # ── Messaging ─────────────────────────────────────────────

    async def send(self, message: Any) -> None:
        """Send *message* through the currently installed sender."""
        if self.sender is None or self._closed:
            msg = f"{self!r} is not connected"
            raise TransportError(msg)
        await self.sender(message)

    async def deliver(self, message: Any) -> None:
        """Hand an inbound *message* to the currently installed handler."""
        handler = self.handler
        if handler is None:
            logger.debug("%r dropped message: no handler installed", self)
            return
        result = handler(message)
        if inspect.isawaitable(result):
            await result

    # ── Transport hooks ───────────────────────────────────────

    async def _open(self) -> None:
        return None

    async def _transmit(self, message: Any) -> None:
        raise NotImplementedError

    async def _shutdown(self) -> None:
        return None
