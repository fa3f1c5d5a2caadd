"""Tests for JSON-RPC request/response correlation."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest

from conftest import drain
from kodicec.backend.rpc import JsonRpcCorrelator
from kodicec.errors import (
    ConnectionClosedError,
    NotConnectedError,
    ProtocolError,
    RpcTimeoutError,
)


class RecordingSender:
    """Collect outbound frames without answering them."""

    def __init__(self) -> None:
        self.frames: list[dict[str, Any]] = []
        self.error: Exception | None = None

    async def __call__(self, frame: str) -> None:
        if self.error is not None:
            raise self.error
        self.frames.append(json.loads(frame))


def _response(request_id: Any, result: Any) -> str:
    return json.dumps({"jsonrpc": "2.0", "id": request_id, "result": result})


@pytest.mark.asyncio
async def test_call_builds_request_and_returns_result() -> None:
    """The request carries method, params and a fresh id."""

    sender = RecordingSender()
    rpc = JsonRpcCorrelator(sender)

    task = asyncio.create_task(
        rpc.call("Application.GetProperties", {"properties": ["version"]})
    )
    await drain()

    assert sender.frames == [
        {
            "jsonrpc": "2.0",
            "method": "Application.GetProperties",
            "params": {"properties": ["version"]},
            "id": 1,
        }
    ]
    assert rpc.pending_count == 1

    rpc.handle_frame(_response(1, {"version": {"major": 18}}))

    assert await task == {"version": {"major": 18}}
    assert rpc.pending_count == 0


@pytest.mark.asyncio
async def test_out_of_order_responses_reach_their_callers() -> None:
    """Responses are matched by id, not by arrival order."""

    sender = RecordingSender()
    rpc = JsonRpcCorrelator(sender)

    first = asyncio.create_task(rpc.call("A"))
    second = asyncio.create_task(rpc.call("B"))
    third = asyncio.create_task(rpc.call("C"))
    await drain()

    ids = {frame["method"]: frame["id"] for frame in sender.frames}
    assert len(set(ids.values())) == 3

    rpc.handle_frame(_response(ids["C"], "c"))
    rpc.handle_frame(_response(ids["B"], "b"))
    rpc.handle_frame(_response(ids["A"], "a"))

    assert await asyncio.gather(first, second, third) == ["a", "b", "c"]


@pytest.mark.asyncio
async def test_timeout_removes_pending_and_discards_late_response() -> None:
    """A timed out call fails fast and its late answer is ignored."""

    sender = RecordingSender()
    rpc = JsonRpcCorrelator(sender)
    loop = asyncio.get_running_loop()

    started = loop.time()
    with pytest.raises(RpcTimeoutError) as err:
        await rpc.call("Application.GetProperties", timeout=0.05)
    elapsed = loop.time() - started

    assert isinstance(err.value, TimeoutError)
    assert elapsed < 0.5
    assert rpc.pending_count == 0

    late_id = sender.frames[0]["id"]
    follow_up = asyncio.create_task(rpc.call("JSONRPC.Ping"))
    await drain()
    rpc.handle_frame(_response(late_id, "stale"))
    await drain()
    assert not follow_up.done()

    rpc.handle_frame(_response(sender.frames[1]["id"], "pong"))
    assert await follow_up == "pong"


@pytest.mark.asyncio
async def test_error_object_raises_protocol_error() -> None:
    """JSON-RPC error objects surface as ProtocolError with their code."""

    sender = RecordingSender()
    rpc = JsonRpcCorrelator(sender)

    task = asyncio.create_task(rpc.call("Addons.ExecuteAddon"))
    await drain()
    rpc.handle_frame(
        json.dumps(
            {
                "jsonrpc": "2.0",
                "id": sender.frames[0]["id"],
                "error": {"code": -32602, "message": "Invalid params.", "data": {"x": 1}},
            }
        )
    )

    with pytest.raises(ProtocolError) as err:
        await task
    assert err.value.code == -32602
    assert err.value.data == {"x": 1}
    assert "Invalid params." in str(err.value)


@pytest.mark.asyncio
async def test_unmatched_and_invalid_frames_are_dropped() -> None:
    """Notifications, unknown ids and junk never disturb pending calls."""

    sender = RecordingSender()
    rpc = JsonRpcCorrelator(sender)

    task = asyncio.create_task(rpc.call("JSONRPC.Ping"))
    await drain()

    rpc.handle_frame("not json")
    rpc.handle_frame("[1, 2, 3]")
    rpc.handle_frame(json.dumps({"jsonrpc": "2.0", "method": "Player.OnPlay", "params": {}}))
    rpc.handle_frame(_response(999, "nope"))
    rpc.handle_frame(_response(True, "nope"))
    await drain()

    assert not task.done()
    rpc.handle_frame(_response(sender.frames[0]["id"], "pong"))
    assert await task == "pong"


@pytest.mark.asyncio
async def test_send_failure_propagates_and_clears_pending() -> None:
    """Transport errors reach the caller immediately."""

    sender = RecordingSender()
    sender.error = NotConnectedError("websocket is not connected")
    rpc = JsonRpcCorrelator(sender)

    with pytest.raises(NotConnectedError):
        await rpc.call("JSONRPC.Ping")
    assert rpc.pending_count == 0


@pytest.mark.asyncio
async def test_stalled_send_counts_against_timeout() -> None:
    """A send that never completes still fails within the call timeout."""

    async def _stalled_send(frame: str) -> None:
        await asyncio.Event().wait()

    rpc = JsonRpcCorrelator(_stalled_send)
    loop = asyncio.get_running_loop()
    started = loop.time()

    with pytest.raises(RpcTimeoutError):
        await rpc.call("JSONRPC.Ping", timeout=0.05)

    assert loop.time() - started < 0.5
    assert rpc.pending_count == 0


@pytest.mark.asyncio
async def test_fail_all_unblocks_waiting_calls() -> None:
    """Every outstanding call fails with the given error."""

    sender = RecordingSender()
    rpc = JsonRpcCorrelator(sender)

    tasks = [asyncio.create_task(rpc.call(f"M{i}", timeout=30)) for i in range(3)]
    await drain()

    assert rpc.fail_all(ConnectionClosedError("closed")) == 3
    for task in tasks:
        with pytest.raises(ConnectionClosedError):
            await task
    assert rpc.pending_count == 0
    assert rpc.fail_all(ConnectionClosedError("closed")) == 0


@pytest.mark.asyncio
async def test_ids_stay_unique_while_pending() -> None:
    """Ids are never reused while their request is outstanding."""

    sender = RecordingSender()
    rpc = JsonRpcCorrelator(sender)

    tasks = [asyncio.create_task(rpc.call("JSONRPC.Ping")) for _ in range(20)]
    await drain()

    ids = [frame["id"] for frame in sender.frames]
    assert len(ids) == len(set(ids)) == 20

    rpc.fail_all(ConnectionClosedError("closed"))
    await asyncio.gather(*tasks, return_exceptions=True)
