"""JSON-RPC request/response correlation over a shared websocket."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
import itertools
import json
import logging
from typing import Any

from ..const import DEFAULT_RPC_TIMEOUT, JSONRPC_VERSION
from ..errors import ProtocolError, RpcTimeoutError

_LOGGER = logging.getLogger(__name__)

SendCallable = Callable[[str], Awaitable[None]]


@dataclass(slots=True)
class PendingRequest:
    """A call waiting for its response frame."""

    request_id: int
    method: str
    future: asyncio.Future[Any]


class JsonRpcCorrelator:
    """Issue JSON-RPC calls and route responses back to their callers.

    Many calls may be outstanding at once. Responses are matched by ``id``
    regardless of arrival order; frames with an unknown or missing ``id`` are
    dropped.
    """

    def __init__(self, send: SendCallable) -> None:
        self._send = send
        self._ids = itertools.count(1)
        self._pending: dict[int, PendingRequest] = {}

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def pending_methods(self) -> list[str]:
        return [request.method for request in self._pending.values()]

    def _next_id(self) -> int:
        request_id = next(self._ids)
        while request_id in self._pending:
            request_id = next(self._ids)
        return request_id

    async def call(
        self,
        method: str,
        params: Mapping[str, Any] | None = None,
        *,
        timeout: float = DEFAULT_RPC_TIMEOUT,
    ) -> Any:
        """Send ``method`` and return the ``result`` member of its response."""

        request_id = self._next_id()
        payload: dict[str, Any] = {
            "jsonrpc": JSONRPC_VERSION,
            "method": method,
            "id": request_id,
        }
        if params is not None:
            payload["params"] = dict(params)
        frame = json.dumps(payload)

        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = PendingRequest(request_id, method, future)
        _LOGGER.debug("RPC: -> %s id=%s", method, request_id)
        try:
            async with asyncio.timeout(timeout):
                await self._send(frame)
                return await future
        except TimeoutError as err:
            if future.done() and not future.cancelled():
                raise
            _LOGGER.debug("RPC: %s id=%s timed out after %ss", method, request_id, timeout)
            raise RpcTimeoutError(
                f"{method} timed out after {timeout} seconds"
            ) from err
        finally:
            self._pending.pop(request_id, None)

    def handle_frame(self, data: str) -> None:
        """Resolve the pending call that ``data`` answers, if any."""

        try:
            message = json.loads(data)
        except (TypeError, ValueError):
            _LOGGER.debug("RPC: dropping invalid JSON frame: %s", str(data)[:200])
            return
        if not isinstance(message, Mapping):
            _LOGGER.debug("RPC: dropping non-object frame")
            return

        request_id = message.get("id")
        if request_id is None or isinstance(request_id, bool):
            # notification (e.g. Player.OnPlay); nothing subscribes to these
            return
        request = self._pending.get(request_id) if isinstance(request_id, int) else None
        if request is None:
            _LOGGER.debug("RPC: dropping response for unknown id %r", request_id)
            return
        if request.future.done():
            return

        error = message.get("error")
        if error is not None:
            request.future.set_exception(_protocol_error(request.method, error))
            return
        request.future.set_result(message.get("result"))

    def fail_all(self, exc: BaseException) -> int:
        """Fail every outstanding call with ``exc`` and return how many."""

        failed = 0
        for request in list(self._pending.values()):
            if not request.future.done():
                request.future.set_exception(exc)
                failed += 1
        self._pending.clear()
        if failed:
            _LOGGER.debug("RPC: failed %d pending call(s): %s", failed, exc)
        return failed


def _protocol_error(method: str, error: Any) -> ProtocolError:
    if isinstance(error, Mapping):
        code = error.get("code")
        return ProtocolError(
            f"{method} failed: {error.get('message', 'unknown error')}",
            code=code if isinstance(code, int) else None,
            data=error.get("data"),
        )
    return ProtocolError(f"{method} failed: {error}")


__all__ = ["JsonRpcCorrelator", "PendingRequest"]
