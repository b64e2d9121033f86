"""Thin CLI wrapper over :class:`dahualight.Client`."""

from __future__ import annotations

import asyncio
import json
import logging
import sys

import typer

from dahualight.client import Client, StatusLevel, StatusUpdate

app = typer.Typer(help="Control IP camera illuminators.", invoke_without_command=True)

_STATUS_COLOURS: dict[StatusLevel, str] = {
    StatusLevel.INFO: "blue",
    StatusLevel.WARN: "yellow",
    StatusLevel.ERROR: "red",
}


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log protocol traffic"),
) -> None:
    """Control IP camera illuminators."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(0)


def _print_json(obj: object) -> None:
    """Print JSON, syntax-highlighted when stdout is a TTY, compact otherwise."""
    if sys.stdout.isatty():
        try:
            from rich.console import Console
            from rich.syntax import Syntax

            Console().print(Syntax(json.dumps(obj, indent=2), "json"))
        except ImportError:
            typer.echo(json.dumps(obj, indent=2))
    else:
        typer.echo(json.dumps(obj))


def _print_status(update: StatusUpdate) -> None:
    if sys.stderr.isatty():
        typer.echo(typer.style(update.label, fg=_STATUS_COLOURS[update.level]), err=True)
    else:
        typer.echo(f"[{update.level}] {update.label}", err=True)


def _ensure_client() -> Client:
    """Load the saved configuration or exit with an error."""
    try:
        return Client.from_saved(on_status=_print_status)
    except FileNotFoundError:
        typer.echo("No saved configuration. Run `dahualight configure` first.", err=True)
        raise typer.Exit(1) from None


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def configure(
    host: str = typer.Option(..., prompt=True, help="Camera address (host or host:port)"),
    username: str = typer.Option(..., prompt=True, help="Camera account name"),
    password: str = typer.Option(
        ..., prompt=True, hide_input=True, help="Camera account password"
    ),
) -> None:
    """Save the camera address and credentials locally."""
    Client(host, username, password).save_config()
    typer.echo(f"Saved configuration for {username}@{host}.")


@app.command()
def light(
    command: str = typer.Argument(..., help="on | off | <0-100> | auto [brightness]"),
) -> None:
    """Switch the camera light.

    \b
    Commands:
      on            manual mode, full brightness
      off           light off
      <number>      manual mode at that brightness
      auto [n]      automatic mode, brightness n (default 100)
    """
    client = _ensure_client()
    result = asyncio.run(client.handle_command(command))
    _print_json(result.to_payload())
    if not result.success:
        raise typer.Exit(1)


@app.command()
def show(
    as_json: bool = typer.Option(False, "--json", "-j", help="Print the raw Lighting_V2 table"),
) -> None:
    """Show the current light configuration."""
    client = _ensure_client()
    table = asyncio.run(client.get_lighting())
    if table is None:
        typer.echo("Could not read the light configuration (use -v for details).", err=True)
        raise typer.Exit(1)

    if as_json:
        _print_json(table)
        return

    try:
        entry = table[0][0][0]
    except (LookupError, TypeError):
        entry = None
    if not isinstance(entry, dict):
        typer.echo("Unexpected response format.", err=True)
        raise typer.Exit(1)
    typer.echo(f"Mode: {entry.get('Mode', '?')}")
    typer.echo(f"Brightness: {entry.get('PercentOfMaxBrightness', '?')}%")
