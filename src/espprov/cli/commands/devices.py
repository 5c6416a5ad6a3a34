from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from espprov.cli.common import (
    build_transport,
    discover,
    load_settings_or_exit,
)
from espprov.config import Settings
from espprov.core import Provisioner, Transport
from espprov.models import DiscoveredDevice
from espprov.utils.redaction import Redactor


async def _discover_devices(
    transport: Transport, settings: Settings, name_filter: str
) -> list[DiscoveredDevice]:
    async with Provisioner(transport, settings) as provisioner:
        await discover(provisioner, settings.discovery.duration)
        return provisioner.filter_devices(name_filter)


def devices(
    name_filter: str | None = typer.Option(
        None,
        "--filter",
        "-f",
        help="Only list devices whose name or address contains this text (e.g. a UID)",
    ),
    scenario: str = typer.Option(
        "ok", "--scenario", help="Simulated peer behaviour to run against"
    ),
    redact: bool = typer.Option(
        False,
        "--redact",
        help="Redact device addresses in output",
    ),
) -> None:
    """Discover devices waiting to be provisioned."""
    console = Console()
    settings = load_settings_or_exit()
    transport = build_transport(scenario)

    if name_filter is None:
        name_filter = settings.discovery.name_filter

    console.print(
        f"Scanning for devices ({settings.discovery.duration:g}s)...",
    )
    found = asyncio.run(_discover_devices(transport, settings, name_filter))

    if not found:
        console.print("No devices found.")
        return

    redactor = Redactor(enabled=redact)
    table = Table()
    table.add_column("Address", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("RSSI", justify="right")

    for device in found:
        table.add_row(
            redactor.redact_address(device.address),
            device.name,
            f"{device.rssi} dBm",
        )

    console.print(table)
    console.print(f"\n[green]Found {len(found)} device(s)[/green]")


def register(app: typer.Typer) -> None:
    app.command()(devices)
