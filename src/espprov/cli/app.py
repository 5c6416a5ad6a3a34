from __future__ import annotations

from typing import Annotated

import typer

from espprov.utils.logging import setup_logging

from . import config as config_cmd
from .commands.devices import register as register_devices
from .commands.networks import register as register_networks
from .commands.provision import register as register_provision

app = typer.Typer(
    help="espprov - provision ESP devices with Wi-Fi and MQTT settings",
    no_args_is_help=True,
)

app.add_typer(config_cmd.app, name="config")

register_devices(app)
register_networks(app)
register_provision(app)


@app.callback(invoke_without_command=True)
def main(
    version: Annotated[
        bool,
        typer.Option("--version", "-v", help="Show version and exit"),
    ] = False,
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Log transport commands and phase changes"),
    ] = False,
) -> None:
    """espprov CLI."""
    try:
        setup_logging(debug=debug)
    except ValueError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(2) from exc

    if version:
        from importlib.metadata import version as get_version

        typer.echo(f"espprov version {get_version('espprov')}")
        raise typer.Exit()
