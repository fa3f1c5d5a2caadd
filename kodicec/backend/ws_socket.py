"""Websocket transport for the Kodi JSON-RPC endpoint."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
import logging
import time

import aiohttp

from ..const import CLOSE_TIMEOUT, CONNECT_TIMEOUT
from ..errors import NetworkError, NotConnectedError

_LOGGER = logging.getLogger(__name__)

FrameCallback = Callable[[str], None]
CloseCallback = Callable[[str], None]


class SocketState(str, Enum):
    """Lifecycle states of the websocket transport."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSING = "closing"


@dataclass
class WSStats:
    """Track websocket frame counters."""

    frames_received: int = 0
    frames_sent: int = 0
    last_frame_at: float | None = None
    connects_total: int = 0


class KodiWebSocket:
    """Own one websocket connection and hand inbound text frames to a callback.

    ``connect`` and ``close`` are serialized by a single lock, and concurrent
    ``connect`` callers share one dial, so a failed attempt is not retried
    by whoever was waiting on it. Sending does not take the lock.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession | None = None,
        *,
        on_frame: FrameCallback | None = None,
        on_close: CloseCallback | None = None,
        connect_timeout: float = CONNECT_TIMEOUT,
        close_timeout: float = CLOSE_TIMEOUT,
    ) -> None:
        self._session = session
        self._owns_session = session is None
        self.on_frame = on_frame
        self.on_close = on_close
        self._connect_timeout = connect_timeout
        self._close_timeout = close_timeout
        self._lock = asyncio.Lock()
        self._state = SocketState.DISCONNECTED
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._connect_task: asyncio.Task[None] | None = None
        self._url: str | None = None
        self.stats = WSStats()

    @property
    def state(self) -> SocketState:
        return self._state

    @property
    def url(self) -> str | None:
        return self._url

    @property
    def connected(self) -> bool:
        """Return True when frames can be sent right now."""

        ws = self._ws
        return (
            self._state is SocketState.CONNECTED and ws is not None and not ws.closed
        )

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def connect(self, url: str) -> None:
        """Open the websocket at ``url`` unless it is already open.

        Callers arriving while a dial is in flight share its outcome instead
        of dialling again. Raises :class:`NetworkError` for every
        transport-level failure.
        """

        task = self._connect_task
        if task is None or task.done():
            if self.connected:
                return
            task = asyncio.create_task(
                self._connect_locked(url), name="kodicec-ws-connect"
            )
            self._connect_task = task
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            raise NetworkError(f"Cannot connect to {url}: aborted") from None

    async def _connect_locked(self, url: str) -> None:
        async with self._lock:
            if self.connected:
                return
            if self._ws is not None or self._reader_task is not None:
                await self._teardown("reconnect")

            self._state = SocketState.CONNECTING
            session = self._ensure_session()
            _LOGGER.debug("WS (kodi): connecting to %s", url)
            try:
                async with asyncio.timeout(self._connect_timeout):
                    ws = await session.ws_connect(url, autoclose=True)
            except (aiohttp.ClientError, TimeoutError, OSError, ValueError) as err:
                self._state = SocketState.DISCONNECTED
                detail = str(err) or type(err).__name__
                raise NetworkError(f"Cannot connect to {url}: {detail}") from err
            except BaseException:
                self._state = SocketState.DISCONNECTED
                raise

            self._ws = ws
            self._url = url
            self._state = SocketState.CONNECTED
            self.stats.connects_total += 1
            self._reader_task = asyncio.create_task(
                self._read_loop(ws), name="kodicec-ws-reader"
            )
            _LOGGER.info("WS (kodi): connected to %s", url)

    async def send_str(self, frame: str) -> None:
        """Send one text frame."""

        ws = self._ws
        if not self.connected or ws is None:
            raise NotConnectedError("websocket is not connected")
        try:
            await ws.send_str(frame)
        except (aiohttp.ClientError, ConnectionError, RuntimeError) as err:
            raise NotConnectedError(f"websocket send failed: {err}") from err
        self.stats.frames_sent += 1

    async def close(self) -> None:
        """Close the websocket. Safe to call repeatedly."""

        pending = self._connect_task
        if pending is not None and not pending.done():
            pending.cancel()
            await asyncio.wait({pending})
        async with self._lock:
            if (
                self._state is SocketState.DISCONNECTED
                and self._ws is None
                and self._reader_task is None
            ):
                return
            self._state = SocketState.CLOSING
            try:
                await self._teardown("close")
            finally:
                self._state = SocketState.DISCONNECTED
            _LOGGER.debug("WS (kodi): closed %s", self._url)

    async def async_release(self) -> None:
        """Close the websocket and the aiohttp session when we created it."""

        await self.close()
        session = self._session
        if self._owns_session and session is not None and not session.closed:
            await session.close()
        if self._owns_session:
            self._session = None

    async def _teardown(self, reason: str) -> None:
        task = self._reader_task
        self._reader_task = None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            await asyncio.wait({task}, timeout=self._close_timeout)

        ws = self._ws
        self._ws = None
        if ws is None or ws.closed:
            return
        try:
            async with asyncio.timeout(self._close_timeout):
                await ws.close(
                    code=aiohttp.WSCloseCode.GOING_AWAY, message=reason.encode()
                )
        except (aiohttp.ClientError, TimeoutError, OSError):
            _LOGGER.debug("WS (kodi): close failed", exc_info=True)

    async def _read_loop(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        reason = "closed by peer"
        try:
            while True:
                msg = await ws.receive()
                if msg.type == aiohttp.WSMsgType.TEXT:
                    self.stats.frames_received += 1
                    self.stats.last_frame_at = time.time()
                    self._dispatch_frame(msg.data)
                    continue
                if msg.type == aiohttp.WSMsgType.BINARY:
                    _LOGGER.debug("WS (kodi): ignoring binary frame")
                    continue
                if msg.type == aiohttp.WSMsgType.ERROR:
                    reason = f"websocket error: {ws.exception()}"
                    break
                if msg.type in {
                    aiohttp.WSMsgType.CLOSE,
                    aiohttp.WSMsgType.CLOSING,
                    aiohttp.WSMsgType.CLOSED,
                }:
                    break
        except asyncio.CancelledError:
            raise
        except Exception as err:  # noqa: BLE001 - any transport failure ends the loop
            reason = str(err) or type(err).__name__
            _LOGGER.debug("WS (kodi): read loop failed", exc_info=True)

        if self._ws is not ws or self._state is not SocketState.CONNECTED:
            return
        self._ws = None
        self._reader_task = None
        self._state = SocketState.DISCONNECTED
        _LOGGER.warning("WS (kodi): connection to %s lost (%s)", self._url, reason)
        if not ws.closed:
            try:
                await ws.close()
            except (aiohttp.ClientError, OSError):
                _LOGGER.debug("WS (kodi): close after drop failed", exc_info=True)
        callback = self.on_close
        if callback is not None:
            try:
                callback(reason)
            except Exception:  # noqa: BLE001 - listener errors stay local
                _LOGGER.exception("WS (kodi): close callback raised")

    def _dispatch_frame(self, data: str) -> None:
        callback = self.on_frame
        if callback is None:
            return
        try:
            callback(data)
        except Exception:  # noqa: BLE001 - one bad frame must not kill the reader
            _LOGGER.exception("WS (kodi): frame handler raised")


__all__ = ["KodiWebSocket", "SocketState", "WSStats"]
