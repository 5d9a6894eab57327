"""JSON-RPC session over an endpoint.

Correlates outgoing requests with their responses and dispatches
incoming requests and notifications to registered handlers.  Each
incoming request or notification runs in its own task so that a handler
awaiting a remote reply never blocks delivery of that reply.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from mcp.shared.exceptions import McpError
from mcp.types import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    METHOD_NOT_FOUND,
    ErrorData,
    JSONRPCError,
    JSONRPCMessage,
    JSONRPCNotification,
    JSONRPCRequest,
    JSONRPCResponse,
)
from pydantic import BaseModel, ValidationError

from toolrelay.core.errors import (
    ExecutionTimeoutError,
    RelayError,
    RequestNotFoundError,
    SessionClosedError,
)
from toolrelay.protocol.jsonrpc import parse_message
from toolrelay.relay.pending import CallState, PendingCallTable

if TYPE_CHECKING:
    from toolrelay.transport.base import Endpoint

logger = logging.getLogger(__name__)

RequestHandler = Callable[[dict[str, Any]], Awaitable[Any]]
NotificationHandler = Callable[[dict[str, Any]], Awaitable[None]]


def _dump(result: Any) -> dict[str, Any]:
    if isinstance(result, BaseModel):
        return result.model_dump(mode="json", by_alias=True, exclude_none=True)
    if result is None:
        return {}
    return dict(result)


class RpcSession:
    """One JSON-RPC conversation bound to a single endpoint."""

    def __init__(
        self,
        endpoint: Endpoint,
        *,
        request_timeout_ms: int = 30_000,
        name: str | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.name = name or endpoint.endpoint_id
        self.request_timeout_ms = request_timeout_ms
        self._request_handlers: dict[str, RequestHandler] = {}
        self._notification_handlers: dict[str, NotificationHandler] = {}
        self._pending = PendingCallTable(
            timeout_error=lambda call: ExecutionTimeoutError(
                call.label, call.timeout_ms
            )
        )
        self._tasks: set[asyncio.Task[None]] = set()
        self._close_callbacks: list[Callable[[RpcSession], None]] = []
        self._started = False

    def __repr__(self) -> str:
        return f"RpcSession({self.name!r})"

    # ── Handler registration ──────────────────────────────────

    def set_request_handler(self, method: str, handler: RequestHandler) -> None:
        self._request_handlers[method] = handler

    def get_request_handler(self, method: str) -> RequestHandler | None:
        return self._request_handlers.get(method)

    def remove_request_handler(self, method: str) -> None:
        self._request_handlers.pop(method, None)

    def set_notification_handler(
        self, method: str, handler: NotificationHandler
    ) -> None:
        self._notification_handlers[method] = handler

    def remove_notification_handler(self, method: str) -> None:
        self._notification_handlers.pop(method, None)

    # ── Lifecycle ─────────────────────────────────────────────

    @property
    def started(self) -> bool:
        return self._started

    @property
    def closed(self) -> bool:
        return self.endpoint.closed

    @property
    def pending_requests(self) -> int:
        return len(self._pending)

    def on_closed(self, callback: Callable[[RpcSession], None]) -> None:
        """Run *callback* once the underlying endpoint closes."""
        self._close_callbacks.append(callback)

    async def start(self) -> None:
        """Install the inbound handler and start the endpoint if needed."""
        if self._started:
            return
        self.endpoint.handler = self.handle_message
        self.endpoint.on_closed(self._on_endpoint_closed)
        if not self.endpoint.started:
            await self.endpoint.start()
        self._started = True

    async def close(self) -> None:
        await self.endpoint.close()

    def _on_endpoint_closed(self, _endpoint: Endpoint) -> None:
        self._pending.reject_all(
            lambda call: SessionClosedError(
                f"Session {self.name} closed while awaiting {call.label}"
            )
        )
        for task in list(self._tasks):
            task.cancel()
        for callback in list(self._close_callbacks):
            try:
                callback(self)
            except Exception:
                logger.exception("Close callback failed on %r", self)

    # ── Outgoing ──────────────────────────────────────────────

    async def send_request(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        *,
        timeout_ms: int | None = None,
    ) -> dict[str, Any]:
        """Send a request and wait for its result.

        Raises:
            McpError: If the remote side answers with an error.
            ExecutionTimeoutError: If no answer arrives in time.
            TransportError: If the request cannot be sent.
        """
        call = self._pending.create(method, timeout_ms or self.request_timeout_ms)
        request = JSONRPCRequest(
            jsonrpc="2.0", id=call.request_id, method=method, params=params
        )
        try:
            await self.endpoint.send(JSONRPCMessage(request))
        except Exception:
            with contextlib.suppress(RequestNotFoundError):
                self._pending.resolve(call.request_id, None, state=CallState.FAILED)
            raise
        result: dict[str, Any] = await call.wait()
        return result

    async def send_notification(
        self, method: str, params: dict[str, Any] | None = None
    ) -> None:
        """Send a fire-and-forget notification."""
        notification = JSONRPCNotification(jsonrpc="2.0", method=method, params=params)
        await self.endpoint.send(JSONRPCMessage(notification))

    # ── Incoming ──────────────────────────────────────────────

    async def handle_message(self, raw: Any) -> None:
        """Inbound handler installed on the endpoint."""
        message = parse_message(raw)
        if message is None:
            logger.warning("%r dropped invalid message: %r", self, raw)
            return

        root = message.root
        if isinstance(root, JSONRPCRequest):
            self._spawn(self._handle_request(root))
        elif isinstance(root, JSONRPCNotification):
            self._spawn(self._handle_notification(root))
        elif isinstance(root, JSONRPCResponse):
            self._settle(str(root.id), root.result, None)
        elif isinstance(root, JSONRPCError):
            self._settle(str(root.id), None, McpError(root.error))

    def _spawn(self, coro: Awaitable[None]) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _settle(
        self, request_id: str, result: Any, error: BaseException | None
    ) -> None:
        try:
            if error is None:
                self._pending.resolve(request_id, result)
            else:
                self._pending.reject(request_id, error)
        except RequestNotFoundError:
            logger.debug(
                "%r ignoring response for unknown request %s", self, request_id
            )

    async def _handle_request(self, request: JSONRPCRequest) -> None:
        method = request.method
        handler = self._request_handlers.get(method)
        reply: JSONRPCResponse | JSONRPCError
        if handler is None:
            message = f"Method not found: {method}"
            error = ErrorData(code=METHOD_NOT_FOUND, message=message)
            reply = JSONRPCError(jsonrpc="2.0", id=request.id, error=error)
        else:
            try:
                result = _dump(await handler(request.params or {}))
                reply = JSONRPCResponse(jsonrpc="2.0", id=request.id, result=result)
            except RelayError as e:
                logger.info("%s failed on %r: %s", method, self, e)
                error = e.to_error_data()
                reply = JSONRPCError(jsonrpc="2.0", id=request.id, error=error)
            except McpError as e:
                reply = JSONRPCError(jsonrpc="2.0", id=request.id, error=e.error)
            except ValidationError as e:
                message = f"Invalid params for {method}: {e}"
                error = ErrorData(code=INVALID_PARAMS, message=message)
                reply = JSONRPCError(jsonrpc="2.0", id=request.id, error=error)
            except Exception as e:
                logger.exception("Unhandled error in %s on %r", method, self)
                error = ErrorData(code=INTERNAL_ERROR, message=str(e))
                reply = JSONRPCError(jsonrpc="2.0", id=request.id, error=error)

        try:
            await self.endpoint.send(JSONRPCMessage(reply))
        except RelayError as e:
            logger.warning("Could not answer %s on %r: %s", request.method, self, e)

    async def _handle_notification(self, notification: JSONRPCNotification) -> None:
        handler = self._notification_handlers.get(notification.method)
        if handler is None:
            logger.debug(
                "%r has no handler for notification %s", self, notification.method
            )
            return
        try:
            await handler(notification.params or {})
        except Exception:
            logger.exception(
                "Notification handler %s failed on %r", notification.method, self
            )

