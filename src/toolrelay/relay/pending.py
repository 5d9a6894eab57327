"""Pending call table: correlates request ids with awaiting callers.

Each entry owns a future and an expiry timer.  Exactly one of resolve,
reject or expiry terminates an entry, and termination removes it, so a
late settlement finds nothing and raises :class:`RequestNotFoundError`
instead of resolving the caller twice.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import uuid
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any

from toolrelay.core.errors import ExecutionTimeoutError, RequestNotFoundError

logger = logging.getLogger(__name__)


class CallState(enum.Enum):
    """Lifecycle of one pending call. Everything but DISPATCHED is terminal."""

    DISPATCHED = "dispatched"
    RESOLVED = "resolved"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


@dataclass(eq=False, slots=True)
class PendingCall:
    """One in-flight request awaiting its response."""

    request_id: str
    label: str
    timeout_ms: int
    future: asyncio.Future[Any]
    owner_id: str | None = None
    timer: asyncio.TimerHandle | None = None
    state: CallState = CallState.DISPATCHED

    @property
    def done(self) -> bool:
        return self.state is not CallState.DISPATCHED

    async def wait(self) -> Any:
        """Wait for settlement; raises whatever the call was rejected with."""
        return await self.future


ErrorFactory = Callable[[PendingCall], BaseException]


def _default_timeout_error(call: PendingCall) -> BaseException:
    return ExecutionTimeoutError(call.label, call.timeout_ms)


class PendingCallTable:
    """Table of in-flight calls keyed by request id.

    Not thread-safe: all mutation must happen on the owning event loop.
    """

    def __init__(self, timeout_error: ErrorFactory | None = None) -> None:
        self._calls: dict[str, PendingCall] = {}
        self._timeout_error = timeout_error or _default_timeout_error

    def __len__(self) -> int:
        return len(self._calls)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._calls

    def __iter__(self) -> Iterator[PendingCall]:
        return iter(list(self._calls.values()))

    def get(self, request_id: str) -> PendingCall | None:
        return self._calls.get(request_id)

    def create(
        self,
        label: str,
        timeout_ms: int,
        *,
        owner_id: str | None = None,
        request_id: str | None = None,
    ) -> PendingCall:
        """Insert a new call and arm its expiry timer.

        Raises:
            ValueError: If *request_id* is already pending.
        """
        loop = asyncio.get_running_loop()
        request_id = request_id or str(uuid.uuid4())
        if request_id in self._calls:
            msg = f"Request id already pending: {request_id}"
            raise ValueError(msg)

        call = PendingCall(
            request_id=request_id,
            label=label,
            timeout_ms=timeout_ms,
            future=loop.create_future(),
            owner_id=owner_id,
        )
        call.timer = loop.call_later(timeout_ms / 1000, self._expire, request_id)
        call.future.add_done_callback(lambda _f: self._on_future_done(request_id))
        self._calls[request_id] = call
        return call

    def resolve(
        self,
        request_id: str,
        value: Any,
        *,
        state: CallState = CallState.RESOLVED,
    ) -> PendingCall:
        """Settle a call with *value*.

        Raises:
            RequestNotFoundError: If no such call is pending.
        """
        call = self._take(request_id, state)
        if not call.future.done():
            call.future.set_result(value)
        return call

    def reject(self, request_id: str, error: BaseException) -> PendingCall:
        """Fail a call with *error*.

        Raises:
            RequestNotFoundError: If no such call is pending.
        """
        call = self._take(request_id, CallState.FAILED)
        if not call.future.done():
            call.future.set_exception(error)
        return call

    def reject_where(
        self,
        predicate: Callable[[PendingCall], bool],
        make_error: ErrorFactory,
    ) -> int:
        """Fail every pending call matching *predicate*. Returns the count."""
        rejected = 0
        for call in list(self._calls.values()):
            if predicate(call):
                self.reject(call.request_id, make_error(call))
                rejected += 1
        return rejected

    def reject_all(self, make_error: ErrorFactory) -> int:
        """Fail every pending call (teardown)."""
        return self.reject_where(lambda _call: True, make_error)

    # ── Internals ─────────────────────────────────────────────

    def _take(self, request_id: str, state: CallState) -> PendingCall:
        call = self._calls.pop(request_id, None)
        if call is None:
            raise RequestNotFoundError(request_id)
        if call.timer is not None:
            call.timer.cancel()
            call.timer = None
        call.state = state
        return call

    def _expire(self, request_id: str) -> None:
        call = self._calls.pop(request_id, None)
        if call is None:
            return
        call.timer = None
        call.state = CallState.TIMED_OUT
        logger.warning(
            "Request %s (%s) timed out after %dms",
            request_id,
            call.label,
            call.timeout_ms,
        )

        if not call.future.done():
            call.future.set_exception(self._timeout_error(call))

    def _on_future_done(self, request_id: str) -> None:
        # A waiter cancelled from outside still has to leave the table.
        call = self._calls.get(request_id)
        if call is not None and call.future.cancelled():
            self._take(request_id, CallState.CANCELLED)
