"""
Command-line interface for serialmon.

Runs the monitor server and inspects devices, the desired state, and the
sessions of a running server.
"""

import json
import logging
import sys
from pathlib import Path

import click
import requests

from serialmon import __version__
from serialmon.core.config import Config, load_config
from serialmon.core.errors import ConfigParseError
from serialmon.core.store import ConfigStore
from serialmon.serial.devices import list_devices


def _setup_logging(config: Config, verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(logging, config.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _server_url(ctx: click.Context, url: str | None) -> str:
    if url:
        return url.rstrip("/")
    config: Config = ctx.obj["config"]
    host = "localhost" if config.web.host in ("0.0.0.0", "::") else config.web.host
    return f"http://{host}:{config.web.port}"


@click.group()
@click.version_option(version=__version__, prog_name="serialmon")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option(
    "-c", "--config", "config_path", type=click.Path(exists=True, path_type=Path),
    help="Path to config file"
)
@click.pass_context
def main(ctx: click.Context, verbose: bool, config_path: Path | None) -> None:
    """Serial Monitor - Watch and drive serial devices from the browser."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config"] = load_config(config_path)


@main.command("serve")
@click.option("--host", "-h", help="Address to listen on")
@click.option("--port", "-p", type=int, help="Port to listen on")
@click.pass_context
def serve_cmd(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Run the monitor server."""
    config: Config = ctx.obj["config"]
    _setup_logging(config, ctx.obj.get("verbose", False))

    if host:
        config.web.host = host
    if port:
        config.web.port = port

    from serialmon.web.app import create_app

    app = create_app(config)
    socketio = app.extensions["socketio"]
    monitor = app.extensions["serialmon"]

    click.echo(f"serialmon on {config.web.host}:{config.web.port}")
    try:
        socketio.run(
            app,
            host=config.web.host,
            port=config.web.port,
            allow_unsafe_werkzeug=True,
        )
    finally:
        monitor.shutdown()


@main.command("ports")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def ports_cmd(ctx: click.Context, as_json: bool) -> None:
    """List available serial ports."""
    verbose = ctx.obj.get("verbose", False)
    devices = list_devices()

    if as_json:
        click.echo(json.dumps(devices, indent=2))
        return

    if not devices:
        click.echo("No serial ports found")
        return

    click.echo(f"{'DEVICE':<25} {'DESCRIPTION':<40}")
    click.echo("-" * 65)

    for dev in devices:
        click.echo(f"{dev['path']:<25} {(dev['description'] or '-'):<40}")
        if verbose and dev["hwid"]:
            click.echo(f"  {dev['hwid']}")

    if verbose:
        click.echo(f"\n{len(devices)} port(s) found")


@main.command("state")
@click.option("--path", "show_path", is_flag=True, help="Only print where the state file lives")
@click.pass_context
def state_cmd(ctx: click.Context, show_path: bool) -> None:
    """Show the saved desired state."""
    config: Config = ctx.obj["config"]

    if show_path:
        click.echo(str(config.state_file))
        return

    store = ConfigStore(config.state_file)
    try:
        state = store.load()
    except ConfigParseError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if not state.ports:
        click.echo(f"No ports in {config.state_file}")
        return

    click.echo(f"{'PATH':<30} {'BAUD':<10}")
    click.echo("-" * 40)
    for spec in state.ports:
        click.echo(f"{spec.path:<30} {spec.baud_rate:<10}")


@main.command("sessions")
@click.option("--url", "-u", help="Server URL (default: from config)")
@click.pass_context
def sessions_cmd(ctx: click.Context, url: str | None) -> None:
    """List sessions on a running server."""
    base = _server_url(ctx, url)
    try:
        response = requests.get(f"{base}/api/sessions", timeout=5)
        response.raise_for_status()
    except requests.RequestException as e:
        click.echo(f"Error: Cannot reach server at {base}: {e}", err=True)
        sys.exit(1)

    sessions = response.json()["sessions"]
    if not sessions:
        click.echo("No open sessions")
        return

    click.echo(f"{'PATH':<30} {'BAUD':<10} {'STATE':<10} {'IN':>10} {'OUT':>10}")
    click.echo("-" * 74)
    for s in sessions:
        click.echo(
            f"{s['path']:<30} {s['baudRate']:<10} {s['state']:<10} "
            f"{s['bytes_in']:>10} {s['bytes_out']:>10}"
        )


@main.command("close")
@click.argument("port_path")
@click.option("--url", "-u", help="Server URL (default: from config)")
@click.pass_context
def close_cmd(ctx: click.Context, port_path: str, url: str | None) -> None:
    """Close a port on a running server."""
    base = _server_url(ctx, url)
    try:
        response = requests.delete(f"{base}/api/sessions/{port_path.lstrip('/')}", timeout=5)
    except requests.RequestException as e:
        click.echo(f"Error: Cannot reach server at {base}: {e}", err=True)
        sys.exit(1)

    if response.status_code == 404:
        click.echo(f"Port {port_path} is not open")
        return
    if not response.ok:
        click.echo(f"Error: {response.json().get('error', response.status_code)}", err=True)
        sys.exit(1)

    click.echo(f"Closed {port_path}")


if __name__ == "__main__":
    main()
