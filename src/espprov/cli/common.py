from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.text import Text

from espprov.config import Settings, get_settings, resolve_config_path
from espprov.core import Provisioner, Signal, SimulatedTransport, classify, default_fleet
from espprov.models import LogEntry
from espprov.utils.redaction import Redactor

LEVEL_STYLES = {
    "info": "",
    "success": "green",
    "warning": "yellow",
    "error": "red",
}

SIGNAL_STYLES = {
    Signal.UID: "cyan",
    Signal.WIFI_JOINED: "green",
    Signal.SECURITY_OK: "green",
    Signal.SECURITY_FAILED: "yellow",
    Signal.DISCONNECTED: "yellow",
    Signal.TRANSPORT_ERROR: "red",
}


def load_settings_or_exit() -> Settings:
    try:
        return get_settings()
    except (FileNotFoundError, ValueError) as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(1) from exc


def resolve_config_path_or_exit(allow_missing: bool = False) -> tuple[Path, bool]:
    try:
        return resolve_config_path(allow_missing=allow_missing)
    except FileNotFoundError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(1) from exc


def build_transport(scenario: str) -> SimulatedTransport:
    try:
        return SimulatedTransport(default_fleet(scenario))
    except ValueError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(2) from exc


async def discover(provisioner: Provisioner, duration: float) -> None:
    provisioner.start_discovery()
    try:
        await asyncio.sleep(duration)
    finally:
        provisioner.stop_discovery()


def render_entry(entry: LogEntry, redactor: Redactor, secret: str = "") -> Text:
    style = LEVEL_STYLES.get(entry.level, "")
    if not style:
        match = classify(entry.message)
        if match is not None:
            style = SIGNAL_STYLES.get(match.signal, "")
    message = redactor.redact_text(entry.format(), secret)
    return Text(message, style=style)
