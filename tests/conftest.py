# ruff: noqa: D100,D101,D102,D103,D107,INP001
from __future__ import annotations

import asyncio
import inspect
import json
from types import SimpleNamespace
from typing import Any, Callable

import aiohttp
import pytest

KODI_VERSION = {"major": 18, "minor": 2, "revision": "abc123"}


def pytest_configure(config: pytest.Config) -> None:
    """Register custom pytest markers used across the suite."""

    if not config.pluginmanager.hasplugin("pytest_asyncio"):
        config.addinivalue_line(
            "markers", "asyncio: mark test as requiring asyncio event loop support."
        )


def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    """Execute async tests when pytest-asyncio is unavailable."""

    if pyfuncitem.config.pluginmanager.hasplugin("pytest_asyncio"):
        return None

    testfunction = pyfuncitem.obj
    if not inspect.iscoroutinefunction(testfunction):
        return None

    marker = pyfuncitem.get_closest_marker("asyncio")
    if marker is None:
        return None

    with asyncio.Runner(debug=False) as runner:
        runner.run(testfunction(**pyfuncitem.funcargs))
    return True


Responder = Callable[[dict[str, Any]], Any]


def kodi_responder(message: dict[str, Any]) -> dict[str, Any] | None:
    """Answer the two methods the bridge uses the way Kodi does."""

    method = message.get("method")
    if method == "Application.GetProperties":
        result: Any = {"version": dict(KODI_VERSION)}
    elif method == "Addons.ExecuteAddon":
        result = "OK"
    else:
        return {
            "jsonrpc": "2.0",
            "id": message["id"],
            "error": {"code": -32601, "message": "Method not found."},
        }
    return {"jsonrpc": "2.0", "id": message["id"], "result": result}


class FakeWebSocket:
    """In-memory stand-in for ``aiohttp.ClientWebSocketResponse``."""

    def __init__(self, responder: Responder | None = None) -> None:
        self.responder = responder
        self.sent: list[dict[str, Any]] = []
        self.closed = False
        self.close_calls = 0
        self._inbox: asyncio.Queue[Any] = asyncio.Queue()

    async def send_str(self, data: str) -> None:
        if self.closed:
            raise ConnectionResetError("Cannot write to closing transport")
        message = json.loads(data)
        self.sent.append(message)
        if self.responder is not None:
            reply = self.responder(message)
            if reply is not None:
                self.push_json(reply)

    def push_text(self, data: str) -> None:
        self._inbox.put_nowait(
            SimpleNamespace(type=aiohttp.WSMsgType.TEXT, data=data, extra=None)
        )

    def push_json(self, payload: Any) -> None:
        self.push_text(json.dumps(payload))

    def push_close(self) -> None:
        self._inbox.put_nowait(
            SimpleNamespace(type=aiohttp.WSMsgType.CLOSE, data=1000, extra="bye")
        )

    async def receive(self) -> Any:
        return await self._inbox.get()

    async def close(self, *, code: int = 1000, message: bytes = b"") -> bool:
        self.close_calls += 1
        was_open = not self.closed
        self.closed = True
        return was_open

    def exception(self) -> BaseException | None:
        return None


class FakeSession:
    """Record ``ws_connect`` calls and hand out :class:`FakeWebSocket` objects.

    Entries queued in ``results`` are used first; exceptions are raised.
    """

    def __init__(self, responder: Responder | None = kodi_responder) -> None:
        self.responder = responder
        self.results: list[Any] = []
        self.connect_calls: list[str] = []
        self.sockets: list[FakeWebSocket] = []
        self.connect_delay = 0.0
        self.closed = False

    async def ws_connect(self, url: str, **_: Any) -> FakeWebSocket:
        self.connect_calls.append(url)
        if self.connect_delay:
            await asyncio.sleep(self.connect_delay)
        if self.results:
            result = self.results.pop(0)
            if isinstance(result, BaseException):
                raise result
            ws = result
        else:
            ws = FakeWebSocket(self.responder)
        self.sockets.append(ws)
        return ws

    async def close(self) -> None:
        self.closed = True


async def drain(cycles: int = 10) -> None:
    """Let queued callbacks and reader tasks run."""

    for _ in range(cycles):
        await asyncio.sleep(0)


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()
