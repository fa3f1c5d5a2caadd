"""Constants for the Kodi CEC bridge."""

from __future__ import annotations

from typing import Final

# Configuration keys
CONF_HOST: Final = "ipAddress"
CONF_PORT: Final = "port"
CONF_REFRESH_INTERVAL: Final = "refreshInterval"

DEFAULT_PORT: Final = 9090
MAX_PORT: Final = 65535
DEFAULT_REFRESH_INTERVAL: Final = 10

# Websocket endpoint
WS_SCHEME: Final = "ws"
JSONRPC_PATH: Final = "/jsonrpc"

# JSON-RPC methods
JSONRPC_VERSION: Final = "2.0"
METHOD_GET_PROPERTIES: Final = "Application.GetProperties"
METHOD_EXECUTE_ADDON: Final = "Addons.ExecuteAddon"
PROPERTY_VERSION: Final = "version"

# json-cec addon that forwards the command string to libcec
CEC_ADDON_ID: Final = "script.json-cec"
REFRESH_COMMAND: Final = "REFRESH"

# Timing (seconds)
INITIAL_DELAY: Final = 1.0
CONNECT_TIMEOUT: Final = 10.0
CLOSE_TIMEOUT: Final = 5.0
DEFAULT_RPC_TIMEOUT: Final = 5.0

# Offline reasons
REASON_NO_ADDRESS: Final = "No network address specified"
REASON_CONNECTION_LOST: Final = "Connection lost"
