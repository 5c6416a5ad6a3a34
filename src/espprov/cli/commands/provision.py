from __future__ import annotations

import asyncio

import typer
from rich.console import Console

from espprov.cli.common import (
    build_transport,
    discover,
    load_settings_or_exit,
    render_entry,
)
from espprov.config import Settings
from espprov.core import Provisioner, Transport
from espprov.errors import ProvisioningError
from espprov.models import LogEntry, OutcomeStatus, ProvisioningSession
from espprov.utils.redaction import Redactor


async def _provision(
    transport: Transport,
    settings: Settings,
    address: str,
    ssid: str,
    password: str,
    broker_host: str | None,
    broker_port: int | None,
    console: Console,
    redactor: Redactor,
) -> ProvisioningSession | None:
    def show(entry: LogEntry) -> None:
        console.print(render_entry(entry, redactor, password), highlight=False)

    async with Provisioner(transport, settings, on_update=show) as provisioner:
        await discover(provisioner, settings.discovery.duration)
        provisioner.select_device(address)
        await provisioner.start_provisioning(ssid, password, broker_host, broker_port)
        return await provisioner.join()


def provision(
    address: str = typer.Argument(..., help="Address of the device to provision"),
    ssid: str = typer.Option(..., "--ssid", "-s", help="Wi-Fi network to join"),
    password: str = typer.Option("", "--password", "-p", help="Wi-Fi password"),
    broker_host: str | None = typer.Option(
        None, "--broker-host", help="MQTT broker host (config default if omitted)"
    ),
    broker_port: int | None = typer.Option(
        None, "--broker-port", min=1, max=65535, help="MQTT broker port"
    ),
    scenario: str = typer.Option(
        "ok", "--scenario", help="Simulated peer behaviour to run against"
    ),
    redact: bool = typer.Option(
        False, "--redact", help="Redact the password and UID in output"
    ),
) -> None:
    """Send Wi-Fi and MQTT settings to a device and wait for it to apply them."""
    console = Console()
    settings = load_settings_or_exit()
    transport = build_transport(scenario)
    redactor = Redactor(enabled=redact)

    console.print(f"Provisioning {redactor.redact_address(address)} onto '{ssid}'...")
    console.print("Press Ctrl+C to cancel.\n")

    try:
        session = asyncio.run(
            _provision(
                transport,
                settings,
                address,
                ssid,
                password,
                broker_host,
                broker_port,
                console,
                redactor,
            )
        )
    except KeyboardInterrupt:
        console.print("\n[yellow]Cancelled.[/yellow]")
        raise typer.Exit(1) from None
    except ProvisioningError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1) from None

    if session is None:
        raise typer.Exit(1)

    console.print()
    if session.uid:
        console.print(f"Device UID: [cyan]{redactor.redact_uid(session.uid)}[/cyan]")

    if session.outcome.status is OutcomeStatus.SUCCEEDED:
        console.print("[green]✓[/green] Device provisioned")
        return

    reason = session.outcome.reason or session.outcome.status.value
    console.print(f"[red]✗[/red] Provisioning failed: {reason}")
    raise typer.Exit(1)


def register(app: typer.Typer) -> None:
    app.command()(provision)
