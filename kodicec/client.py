"""Kodi JSON-RPC client used by the CEC bridge."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
import logging
from typing import Any

import aiohttp

from .backend.rpc import JsonRpcCorrelator
from .backend.ws_socket import KodiWebSocket, SocketState
from .config import ConnectionTarget
from .const import (
    CEC_ADDON_ID,
    CONNECT_TIMEOUT,
    DEFAULT_RPC_TIMEOUT,
    METHOD_EXECUTE_ADDON,
    METHOD_GET_PROPERTIES,
    PROPERTY_VERSION,
)
from .errors import ConnectionClosedError, ProtocolError

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class VersionInfo:
    """Kodi application version as reported by ``Application.GetProperties``."""

    major: int
    minor: int
    revision: str

    def __str__(self) -> str:
        return f"{self.major}.{self.minor} ({self.revision})"

    @classmethod
    def from_properties(cls, result: Any) -> VersionInfo | None:
        """Parse a ``GetProperties`` result; None when ``version`` is absent."""

        if not isinstance(result, Mapping) or PROPERTY_VERSION not in result:
            return None
        version = result[PROPERTY_VERSION]
        if not isinstance(version, Mapping):
            raise ProtocolError(f"malformed version property: {version!r}")
        major = version.get("major")
        minor = version.get("minor")
        revision = version.get("revision", "")
        if (
            not isinstance(major, int)
            or isinstance(major, bool)
            or not isinstance(minor, int)
            or isinstance(minor, bool)
        ):
            raise ProtocolError(f"malformed version property: {version!r}")
        return cls(major, minor, "" if revision is None else str(revision))


class KodiCecClient:
    """Connect to one Kodi instance and issue the calls the bridge needs."""

    def __init__(
        self,
        session: aiohttp.ClientSession | None = None,
        *,
        on_connection_lost: Callable[[str], None] | None = None,
        connect_timeout: float = CONNECT_TIMEOUT,
    ) -> None:
        self.on_connection_lost = on_connection_lost
        self._socket = KodiWebSocket(
            session,
            on_close=self._handle_socket_closed,
            connect_timeout=connect_timeout,
        )
        self._rpc = JsonRpcCorrelator(self._socket.send_str)
        self._socket.on_frame = self._rpc.handle_frame
        self._target: ConnectionTarget | None = None

    @property
    def socket(self) -> KodiWebSocket:
        return self._socket

    @property
    def rpc(self) -> JsonRpcCorrelator:
        return self._rpc

    @property
    def target(self) -> ConnectionTarget | None:
        return self._target

    @property
    def connected(self) -> bool:
        return self._socket.connected

    @property
    def state(self) -> SocketState:
        return self._socket.state

    async def async_connect(self, target: ConnectionTarget) -> None:
        """Open the websocket for ``target``; no-op when already connected."""

        self._target = target
        await self._socket.connect(target.ws_url)

    async def async_disconnect(self) -> None:
        """Close the websocket and fail calls still waiting for a response."""

        self._rpc.fail_all(ConnectionClosedError("connection closed"))
        await self._socket.close()

    async def async_close(self) -> None:
        """Disconnect and release the aiohttp session when we own it."""

        self._rpc.fail_all(ConnectionClosedError("client closed"))
        await self._socket.async_release()

    def _handle_socket_closed(self, reason: str) -> None:
        self._rpc.fail_all(ConnectionClosedError(f"connection lost: {reason}"))
        callback = self.on_connection_lost
        if callback is not None:
            callback(reason)

    async def call(
        self,
        method: str,
        params: Mapping[str, Any] | None = None,
        *,
        timeout: float = DEFAULT_RPC_TIMEOUT,
    ) -> Any:
        return await self._rpc.call(method, params, timeout=timeout)

    async def get_properties(
        self, properties: Iterable[str], *, timeout: float = DEFAULT_RPC_TIMEOUT
    ) -> Any:
        return await self.call(
            METHOD_GET_PROPERTIES,
            {"properties": list(properties)},
            timeout=timeout,
        )

    async def get_version(
        self, *, timeout: float = DEFAULT_RPC_TIMEOUT
    ) -> VersionInfo | None:
        """Return the application version, or None if Kodi omitted it."""

        result = await self.get_properties([PROPERTY_VERSION], timeout=timeout)
        return VersionInfo.from_properties(result)

    async def execute_addon(
        self,
        addonid: str,
        params: Mapping[str, Any] | None = None,
        *,
        timeout: float = DEFAULT_RPC_TIMEOUT,
    ) -> Any:
        payload: dict[str, Any] = {"addonid": addonid}
        if params is not None:
            payload["params"] = dict(params)
        return await self.call(METHOD_EXECUTE_ADDON, payload, timeout=timeout)

    async def send_cec_command(
        self, command: str, *, timeout: float = DEFAULT_RPC_TIMEOUT
    ) -> Any:
        """Forward ``command`` verbatim to the json-cec addon."""

        _LOGGER.debug("Sending CEC command %r", command)
        return await self.execute_addon(
            CEC_ADDON_ID, {"command": command}, timeout=timeout
        )


__all__ = ["KodiCecClient", "VersionInfo"]
