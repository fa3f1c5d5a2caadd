"""Relay CEC commands to Kodi over its JSON-RPC websocket."""

from __future__ import annotations

from .backend.ws_health import DeviceStatus, StatusChange, StatusDetail
from .client import KodiCecClient, VersionInfo
from .config import ConnectionTarget
from .errors import (
    ConfigurationError,
    ConnectError,
    ConnectionClosedError,
    KodiCecError,
    NetworkError,
    NotConnectedError,
    ProtocolError,
    RpcError,
    RpcTimeoutError,
)
from .supervisor import KodiCecSupervisor

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "ConnectError",
    "ConnectionClosedError",
    "ConnectionTarget",
    "DeviceStatus",
    "KodiCecClient",
    "KodiCecError",
    "KodiCecSupervisor",
    "NetworkError",
    "NotConnectedError",
    "ProtocolError",
    "RpcError",
    "RpcTimeoutError",
    "StatusChange",
    "StatusDetail",
    "VersionInfo",
]
