from __future__ import annotations

from typing import Annotated

import typer

from espprov.config import BrokerConfig, Settings, render_settings_toml, write_settings

from .common import load_settings_or_exit, resolve_config_path_or_exit

app = typer.Typer(no_args_is_help=True, help="Show or create the configuration file")


@app.command("show")
def show_config() -> None:
    """Print the settings in effect as TOML."""
    settings = load_settings_or_exit()
    path, exists = resolve_config_path_or_exit(allow_missing=True)

    typer.echo(f"Config source: {path if exists else 'defaults'}")
    typer.echo(render_settings_toml(settings))


@app.command("path")
def config_path() -> None:
    """Print where the config file is read from."""
    path, exists = resolve_config_path_or_exit(allow_missing=True)
    typer.echo(f"{path}{'' if exists else ' (not created yet)'}")


@app.command("init")
def init_config(
    broker_host: Annotated[
        str,
        typer.Option("--broker-host", help="Default MQTT broker for provisioning"),
    ] = "",
    broker_port: Annotated[
        int,
        typer.Option("--broker-port", min=1, max=65535, help="Default MQTT port"),
    ] = 1883,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Overwrite existing config"),
    ] = False,
) -> None:
    """Write a config file with default timings."""
    path, exists = resolve_config_path_or_exit(allow_missing=True)
    if exists and not force:
        typer.echo(f"Config already exists at {path} (use --force to replace it)")
        return

    settings = Settings(broker=BrokerConfig(host=broker_host, port=broker_port))
    write_settings(settings, path)
    typer.echo(f"Wrote config to {path}")
