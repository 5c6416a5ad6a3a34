from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from espprov.cli.common import (
    build_transport,
    discover,
    load_settings_or_exit,
    render_entry,
)
from espprov.config import Settings
from espprov.core import Provisioner, Transport
from espprov.errors import ProvisioningError
from espprov.models import LogEntry, WifiNetwork
from espprov.utils.redaction import Redactor


async def _scan_networks(
    transport: Transport, settings: Settings, address: str, console: Console
) -> list[WifiNetwork]:
    redactor = Redactor(enabled=False)

    def show(entry: LogEntry) -> None:
        console.print(render_entry(entry, redactor), highlight=False)

    async with Provisioner(transport, settings, on_update=show) as provisioner:
        await discover(provisioner, settings.discovery.duration)
        provisioner.select_device(address)
        return await provisioner.scan_networks()


def networks(
    address: str = typer.Argument(..., help="Address of the device to scan with"),
    scenario: str = typer.Option(
        "ok", "--scenario", help="Simulated peer behaviour to run against"
    ),
) -> None:
    """List the Wi-Fi networks a device can see."""
    console = Console()
    settings = load_settings_or_exit()
    transport = build_transport(scenario)

    try:
        found = asyncio.run(_scan_networks(transport, settings, address, console))
    except KeyboardInterrupt:
        console.print("\n[yellow]Cancelled.[/yellow]")
        raise typer.Exit(1) from None
    except ProvisioningError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1) from None

    if not found:
        console.print("No Wi-Fi networks reported.")
        return

    table = Table()
    table.add_column("SSID", style="cyan")
    table.add_column("RSSI", justify="right")
    for network in found:
        table.add_row(network.ssid, f"{network.rssi} dBm")

    console.print(table)


def register(app: typer.Typer) -> None:
    app.command()(networks)
