"""Websocket transport and JSON-RPC plumbing for the Kodi CEC bridge."""

from __future__ import annotations

from .rpc import JsonRpcCorrelator
from .ws_health import DeviceStatus, ReachabilityTracker, StatusChange, StatusDetail
from .ws_socket import KodiWebSocket, SocketState, WSStats

__all__ = [
    "DeviceStatus",
    "JsonRpcCorrelator",
    "KodiWebSocket",
    "ReachabilityTracker",
    "SocketState",
    "StatusChange",
    "StatusDetail",
    "WSStats",
]
