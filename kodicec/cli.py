"""Typer CLI entrypoint."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import typer

from .backend.ws_health import StatusChange
from .client import KodiCecClient
from .config import ConnectionTarget
from .const import (
    CONF_HOST,
    CONF_PORT,
    CONF_REFRESH_INTERVAL,
    DEFAULT_PORT,
    DEFAULT_REFRESH_INTERVAL,
    DEFAULT_RPC_TIMEOUT,
)
from .errors import KodiCecError
from .supervisor import KodiCecSupervisor

app = typer.Typer(help="Send CEC commands to Kodi over its JSON-RPC websocket")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def _with_client(target: ConnectionTarget, action: Any) -> Any:
    client = KodiCecClient()
    try:
        await client.async_connect(target)
        return await action(client)
    finally:
        await client.async_close()


@app.command("send")
def send_command(
    host: str = typer.Argument(..., help="Kodi host name or IP address"),
    command: str = typer.Argument(..., help="Command passed verbatim to script.json-cec"),
    port: int = typer.Option(DEFAULT_PORT, "--port", "-p", help="JSON-RPC websocket port"),
    timeout: float = typer.Option(DEFAULT_RPC_TIMEOUT, "--timeout", help="Seconds to wait for Kodi"),
) -> None:
    """Send one CEC command."""
    try:
        target = ConnectionTarget.from_config({CONF_HOST: host, CONF_PORT: port})
        result = asyncio.run(
            _with_client(
                target,
                lambda client: client.send_cec_command(command, timeout=timeout),
            )
        )
        typer.echo(f"{command}: {result}")
    except KodiCecError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("version")
def show_version(
    host: str = typer.Argument(..., help="Kodi host name or IP address"),
    port: int = typer.Option(DEFAULT_PORT, "--port", "-p", help="JSON-RPC websocket port"),
    timeout: float = typer.Option(DEFAULT_RPC_TIMEOUT, "--timeout", help="Seconds to wait for Kodi"),
) -> None:
    """Print the Kodi application version."""
    try:
        target = ConnectionTarget.from_config({CONF_HOST: host, CONF_PORT: port})
        version = asyncio.run(
            _with_client(target, lambda client: client.get_version(timeout=timeout))
        )
        if version is None:
            typer.echo("Kodi did not report a version", err=True)
            raise typer.Exit(code=1)
        typer.echo(str(version))
    except KodiCecError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def _echo_status(change: StatusChange) -> None:
    line = change.status.value
    if change.reason:
        line = f"{line}: {change.reason}"
    typer.echo(line)


async def _monitor(config: dict[str, Any]) -> None:
    supervisor = KodiCecSupervisor(config)
    supervisor.add_listener(_echo_status)
    try:
        await supervisor.start()
    finally:
        await supervisor.async_shutdown()


@app.command("monitor")
def monitor(
    host: str = typer.Argument(..., help="Kodi host name or IP address"),
    port: int = typer.Option(DEFAULT_PORT, "--port", "-p", help="JSON-RPC websocket port"),
    refresh: int = typer.Option(
        DEFAULT_REFRESH_INTERVAL, "--refresh", "-r", help="Seconds between health checks"
    ),
) -> None:
    """Watch reachability until interrupted."""
    config = {CONF_HOST: host, CONF_PORT: port, CONF_REFRESH_INTERVAL: refresh}
    try:
        asyncio.run(_monitor(config))
    except KeyboardInterrupt:
        typer.echo("stopped")


if __name__ == "__main__":
    app()
