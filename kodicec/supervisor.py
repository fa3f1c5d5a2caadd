"""Connection supervisor for one Kodi CEC device."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping
import logging
from typing import Any

import aiohttp

from .backend.ws_health import (
    DeviceStatus,
    ReachabilityTracker,
    StatusChange,
    StatusDetail,
)
from .client import KodiCecClient, VersionInfo
from .config import ConnectionTarget, refresh_interval_from_config
from .const import (
    DEFAULT_RPC_TIMEOUT,
    INITIAL_DELAY,
    REASON_CONNECTION_LOST,
    REFRESH_COMMAND,
)
from .errors import ConfigurationError, ConnectError, KodiCecError

_LOGGER = logging.getLogger(__name__)

SleepCallable = Callable[[float], Awaitable[Any]]
StatusListener = Callable[[StatusChange], None]


class KodiCecSupervisor:
    """Keep one Kodi connection alive and expose the bridge operations.

    Construction does no I/O. :meth:`start` launches a background task that
    connects once, then ticks after ``INITIAL_DELAY`` and every refresh
    interval afterwards. Each tick either reconnects or runs a version query
    as a health check. Failures only ever change the reachability status;
    the next attempt waits for the next tick.
    """

    def __init__(
        self,
        config: Mapping[str, Any],
        *,
        session: aiohttp.ClientSession | None = None,
        client: KodiCecClient | None = None,
        sleep: SleepCallable | None = None,
        rpc_timeout: float = DEFAULT_RPC_TIMEOUT,
    ) -> None:
        self._config = dict(config)
        self._client = client or KodiCecClient(session)
        self._client.on_connection_lost = self._handle_connection_lost
        self._sleep = sleep or asyncio.sleep
        self._rpc_timeout = rpc_timeout
        self._refresh_interval = refresh_interval_from_config(self._config)
        self._tracker = ReachabilityTracker()
        self._listeners: list[StatusListener] = []
        self._task: asyncio.Task[None] | None = None
        self._version: VersionInfo | None = None
        self._command_value: str | None = None
        self._closed = False

    @property
    def client(self) -> KodiCecClient:
        return self._client

    @property
    def status(self) -> DeviceStatus:
        return self._tracker.status

    @property
    def status_detail(self) -> StatusDetail:
        return self._tracker.detail

    @property
    def status_reason(self) -> str | None:
        return self._tracker.reason

    @property
    def tracker(self) -> ReachabilityTracker:
        return self._tracker

    @property
    def refresh_interval(self) -> int:
        return self._refresh_interval

    @property
    def version(self) -> VersionInfo | None:
        return self._version

    @property
    def version_string(self) -> str:
        """Return the cached version from the last successful health check."""

        if self._version is None or not self._client.connected:
            return ""
        return str(self._version)

    @property
    def command_value(self) -> str | None:
        """Return the command currently shown as pending, if any."""

        return self._command_value

    # -- listeners -----------------------------------------------------------

    def add_listener(self, listener: StatusListener) -> Callable[[], None]:
        """Register ``listener`` for status changes and return its remover."""

        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def _set_status(
        self,
        status: DeviceStatus,
        *,
        detail: StatusDetail = StatusDetail.NONE,
        reason: str | None = None,
    ) -> None:
        if not self._tracker.update_status(status, detail=detail, reason=reason):
            return
        change = self._tracker.as_change()
        _LOGGER.debug(
            "Supervisor: status -> %s (%s) %s",
            change.status.value,
            change.detail.value,
            change.reason or "",
        )
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:  # noqa: BLE001 - listener errors stay local
                _LOGGER.exception("Supervisor: status listener raised")

    # -- lifecycle -----------------------------------------------------------

    def start(self) -> asyncio.Task[None]:
        """Launch the background connect-and-tick task."""

        if self._task and not self._task.done():
            return self._task
        if self._closed:
            raise RuntimeError("supervisor has been shut down")
        self._task = asyncio.get_running_loop().create_task(
            self._runner(), name="kodicec-supervisor"
        )
        return self._task

    def is_running(self) -> bool:
        return bool(self._task and not self._task.done())

    async def _runner(self) -> None:
        await self._guarded(self.async_connect)
        delay = INITIAL_DELAY
        while True:
            await self._sleep(delay)
            await self._guarded(self.async_check_connection)
            delay = self._refresh_interval

    async def _guarded(self, step: Callable[[], Awaitable[Any]]) -> None:
        """Run one connect or tick step; unexpected errors only mark Offline."""

        try:
            await step()
        except asyncio.CancelledError:
            raise
        except Exception as err:  # noqa: BLE001 - the tick loop must survive
            _LOGGER.exception("Supervisor: connection check raised")
            self._tracker.mark_check(success=False)
            self._version = None
            self._set_status(
                DeviceStatus.OFFLINE,
                detail=StatusDetail.COMMUNICATION_ERROR,
                reason=str(err) or type(err).__name__,
            )

    async def async_shutdown(self) -> None:
        """Cancel the tick task and release the connection. Idempotent."""

        self._closed = True
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self._client.async_close()
        self._version = None

    # -- connection ----------------------------------------------------------

    async def async_connect(self) -> bool:
        """Connect to the configured target and reflect the outcome in status."""

        try:
            target = ConnectionTarget.from_config(self._config)
        except ConfigurationError as err:
            _LOGGER.error("Supervisor: invalid configuration: %s", err)
            self._tracker.mark_check(success=False)
            self._set_status(
                DeviceStatus.OFFLINE,
                detail=StatusDetail.CONFIGURATION_ERROR,
                reason=str(err),
            )
            return False

        _LOGGER.debug("Supervisor: connecting to Kodi at %s", target.ws_url)
        try:
            await self._client.async_connect(target)
        except ConnectError as err:
            _LOGGER.warning("Supervisor: cannot connect to %s: %s", target.ws_url, err)
            self._tracker.mark_check(success=False)
            self._set_status(
                DeviceStatus.OFFLINE,
                detail=StatusDetail.COMMUNICATION_ERROR,
                reason=str(err),
            )
            return False

        self._tracker.mark_check(success=True)
        self._set_status(DeviceStatus.ONLINE)
        return True

    async def async_check_connection(self) -> None:
        """Run one supervisor tick."""

        if not self._client.connected:
            _LOGGER.debug("Supervisor: not connected, trying to connect")
            await self.async_connect()
            return

        try:
            version = await self._client.get_version(timeout=self._rpc_timeout)
        except KodiCecError as err:
            _LOGGER.warning("Supervisor: health check failed: %s", err)
            self._tracker.mark_check(success=False)
            self._version = None
            self._set_status(
                DeviceStatus.OFFLINE,
                detail=StatusDetail.COMMUNICATION_ERROR,
                reason=str(err),
            )
            await self._client.async_disconnect()
            return

        self._tracker.mark_check(success=True)
        self._version = version
        self._set_status(DeviceStatus.ONLINE)

    def _handle_connection_lost(self, reason: str) -> None:
        self._version = None
        self._set_status(
            DeviceStatus.OFFLINE,
            detail=StatusDetail.COMMUNICATION_ERROR,
            reason=f"{REASON_CONNECTION_LOST}: {reason}",
        )

    # -- host operations -----------------------------------------------------

    async def async_send_cec_command(self, command: str) -> Any:
        """Send ``command`` to the json-cec addon and return Kodi's result.

        Errors propagate to the caller; status is left to the next tick.
        """

        return await self._client.send_cec_command(command, timeout=self._rpc_timeout)

    async def async_handle_command(self, command: str) -> Any:
        """Handle a command from the host's command input.

        ``REFRESH`` only clears the pending display value.
        """

        if command.strip().upper() == REFRESH_COMMAND:
            self._command_value = None
            return None
        self._command_value = command
        try:
            return await self.async_send_cec_command(command)
        finally:
            self._command_value = None

    async def async_get_version_string(self) -> str:
        """Query Kodi for its version; empty string when unavailable."""

        if not self._client.connected:
            return ""
        version = await self._client.get_version(timeout=self._rpc_timeout)
        self._version = version
        return "" if version is None else str(version)

    def diagnostics(self) -> dict[str, Any]:
        """Return a snapshot of the supervisor for troubleshooting."""

        target = self._client.target
        stats = self._client.socket.stats
        return {
            "target": (
                None
                if target is None
                else {
                    "host": target.host,
                    "port": target.port,
                    "refresh_interval": target.refresh_interval,
                }
            ),
            "socket_state": self._client.state.value,
            "frames_received": stats.frames_received,
            "frames_sent": stats.frames_sent,
            "connects_total": stats.connects_total,
            "pending_calls": self._client.rpc.pending_methods(),
            "version": self.version_string or None,
            "running": self.is_running(),
            "reachability": self._tracker.snapshot(),
        }


__all__ = ["KodiCecSupervisor", "StatusListener"]
