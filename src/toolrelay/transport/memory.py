"""In-memory endpoint pairs for in-process deployments and tests."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any

from toolrelay.core.errors import TransportError
from toolrelay.transport.base import Endpoint

logger = logging.getLogger(__name__)


class MemoryEndpoint(Endpoint):
    """Endpoint whose peer lives in the same event loop.

    Inbound messages are queued and delivered one at a time by a pump
    task, so a slow handler never re-enters the sender's call stack.
    """

    def __init__(self, endpoint_id: str | None = None) -> None:
        super().__init__(endpoint_id)
        self._inbox: asyncio.Queue[Any] = asyncio.Queue()
        self._peer: MemoryEndpoint | None = None
        self._pump: asyncio.Task[None] | None = None

    def link(self, peer: MemoryEndpoint) -> None:
        """Connect this endpoint and *peer* to each other."""
        self._peer = peer
        peer._peer = self

    @property
    def peer(self) -> MemoryEndpoint | None:
        return self._peer

    async def receive(self, message: Any) -> None:
        """Queue *message* as if it had arrived over the wire."""
        if self._closed:
            msg = f"{self!r} is closed"
            raise TransportError(msg)
        await self._inbox.put(message)

    async def drain(self) -> None:
        """Wait until every queued inbound message has been handled."""
        await self._inbox.join()

    async def _open(self) -> None:
        self._pump = asyncio.create_task(self._run(), name=f"pump-{self.endpoint_id}")

    async def _run(self) -> None:
        while True:
            message = await self._inbox.get()
            try:
                await self.deliver(message)
            except Exception:
                logger.exception("Handler failed on %r", self)
            finally:
                self._inbox.task_done()

    async def _transmit(self, message: Any) -> None:
        peer = self._peer
        if peer is None or peer.closed:
            msg = f"{self!r} has no connected peer"
            raise TransportError(msg)
        await peer.receive(message)

    async def _shutdown(self) -> None:
        pump, self._pump = self._pump, None
        if pump is not None:
            pump.cancel()
            if pump is not asyncio.current_task():
                with contextlib.suppress(asyncio.CancelledError):
                    await pump
        # Unblock anyone waiting in drain().
        while not self._inbox.empty():
            self._inbox.get_nowait()
            self._inbox.task_done()
        # A disconnect is seen by both sides.
        if self._peer is not None and not self._peer.closed:
            await self._peer.close()


def create_memory_pair(
    left_id: str | None = None,
    right_id: str | None = None,
) -> tuple[MemoryEndpoint, MemoryEndpoint]:
    """Return two linked, not-yet-started endpoints."""
    left = MemoryEndpoint(left_id)
    right = MemoryEndpoint(right_id)
    left.link(right)
    return left, right
