"""Connection target parsing for the Kodi CEC bridge."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
import math
from typing import Any

from .const import (
    CONF_HOST,
    CONF_PORT,
    CONF_REFRESH_INTERVAL,
    DEFAULT_PORT,
    DEFAULT_REFRESH_INTERVAL,
    JSONRPC_PATH,
    MAX_PORT,
    REASON_NO_ADDRESS,
    WS_SCHEME,
)
from .errors import ConfigurationError

_HOST_FORBIDDEN = frozenset("/?#@\\")


def coerce_positive_int(value: Any, default: int) -> int:
    """Return ``value`` as a positive integer, or ``default`` when unusable."""

    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value if value > 0 else default
    if isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            return default
        return int(value) if value > 0 else default
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return default
        try:
            candidate = int(text, 10)
        except ValueError:
            return default
        return candidate if candidate > 0 else default
    return default


def coerce_port(value: Any, default: int = DEFAULT_PORT) -> int:
    """Return ``value`` as a TCP port, or ``default`` when out of range."""

    port = coerce_positive_int(value, default)
    return port if port <= MAX_PORT else default


def normalize_host(value: Any) -> str:
    """Return a cleaned host name or raise :class:`ConfigurationError`."""

    if value is None:
        raise ConfigurationError(REASON_NO_ADDRESS)
    host = str(value).strip()
    if not host:
        raise ConfigurationError(REASON_NO_ADDRESS)
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
        if not host:
            raise ConfigurationError(REASON_NO_ADDRESS)
    if any(ch.isspace() for ch in host) or _HOST_FORBIDDEN.intersection(host):
        raise ConfigurationError(f"Invalid network address: {value!r}")
    if ":" in host and not _looks_like_ipv6(host):
        raise ConfigurationError(f"Invalid network address: {value!r}")
    return host


def _looks_like_ipv6(host: str) -> bool:
    return host.count(":") >= 2 and all(
        ch in "0123456789abcdefABCDEF:." for ch in host.split("%", 1)[0]
    )


@dataclass(frozen=True, slots=True)
class ConnectionTarget:
    """Where and how often to reach one Kodi instance."""

    host: str
    port: int = DEFAULT_PORT
    refresh_interval: int = DEFAULT_REFRESH_INTERVAL

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> ConnectionTarget:
        """Build a target from a configuration mapping.

        ``ipAddress`` is required. ``port`` and ``refreshInterval`` fall back
        to their defaults when unset, unparsable, not positive, or (for the
        port) above 65535.
        """

        return cls(
            host=normalize_host(config.get(CONF_HOST)),
            port=coerce_port(config.get(CONF_PORT)),
            refresh_interval=coerce_positive_int(
                config.get(CONF_REFRESH_INTERVAL), DEFAULT_REFRESH_INTERVAL
            ),
        )

    @property
    def ws_url(self) -> str:
        """Return the JSON-RPC websocket URL."""

        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"{WS_SCHEME}://{host}:{self.port}{JSONRPC_PATH}"


def refresh_interval_from_config(config: Mapping[str, Any]) -> int:
    """Return the tick period even when the host is not configured."""

    return coerce_positive_int(
        config.get(CONF_REFRESH_INTERVAL), DEFAULT_REFRESH_INTERVAL
    )


__all__ = [
    "ConnectionTarget",
    "coerce_port",
    "coerce_positive_int",
    "normalize_host",
    "refresh_interval_from_config",
]
