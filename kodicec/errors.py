"""Errors raised by the Kodi CEC bridge."""

from __future__ import annotations

from typing import Any


class KodiCecError(Exception):
    """Base error for the Kodi CEC bridge."""


class ConnectError(KodiCecError):
    """Opening the websocket failed; the supervisor retries on its next tick."""


class ConfigurationError(ConnectError):
    """The connection target is missing or malformed."""


class NetworkError(ConnectError):
    """Connection refused, DNS failure, bad URI or handshake failure."""


class NotConnectedError(KodiCecError):
    """A frame was sent while the websocket is not connected."""


class RpcError(KodiCecError):
    """Base error for JSON-RPC calls."""


class ProtocolError(RpcError):
    """The peer answered with an error object or a malformed response."""

    def __init__(
        self,
        message: str,
        *,
        code: int | None = None,
        data: Any | None = None,
    ) -> None:
        super().__init__(message if code is None else f"{message} (code={code})")
        self.code = code
        self.message = message
        self.data = data


class RpcTimeoutError(RpcError, TimeoutError):
    """No response arrived before the call deadline."""


class ConnectionClosedError(RpcError):
    """The connection closed while the call was waiting for its response."""


__all__ = [
    "ConfigurationError",
    "ConnectError",
    "ConnectionClosedError",
    "KodiCecError",
    "NetworkError",
    "NotConnectedError",
    "ProtocolError",
    "RpcError",
    "RpcTimeoutError",
]
