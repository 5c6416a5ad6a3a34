from __future__ import annotations

import json
import tomllib
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from .paths import resolve_config_path


class TimingConfig(BaseModel):
    """Deadlines and pacing delays used by the provisioner, in seconds.

    The pacing values are imposed by the peer, which drops commands that arrive
    faster than it can process them.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    connect_timeout: float = Field(default=15.0, gt=0)
    post_connect_delay: float = Field(default=1.0, ge=0)
    negotiation_timeout: float = Field(default=10.0, gt=0)
    settle_delay: float = Field(default=3.0, ge=0)
    command_pacing: float = Field(default=0.5, ge=0)
    broker_settle: float = Field(default=2.0, ge=0)
    confirm_timeout: float = Field(default=30.0, gt=0)
    probe_interval: float = Field(default=2.0, gt=0)
    release_timeout: float = Field(default=15.0, ge=0)
    scan_timeout: float = Field(default=15.0, gt=0)


class BrokerConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    host: str = ""
    port: int = Field(default=1883, ge=1, le=65535)


class DiscoveryConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    duration: float = Field(default=5.0, gt=0)
    name_filter: str = ""


class Settings(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    timing: TimingConfig = Field(default_factory=TimingConfig)
    broker: BrokerConfig = Field(default_factory=BrokerConfig)
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)


def load_settings(path: Path) -> Settings:
    try:
        with path.open("rb") as handle:
            data = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Invalid TOML in config file: {path}\n{exc}") from exc

    try:
        return Settings.model_validate(data or {})
    except ValidationError as exc:
        raise ValueError(f"Invalid config file: {path}\n{exc}") from exc


@lru_cache
def get_settings() -> Settings:
    path, exists = resolve_config_path(allow_missing=False)
    if exists:
        return load_settings(path)
    return Settings()


def _toml_string(value: str) -> str:
    return json.dumps(value)


def render_settings_toml(settings: Settings) -> str:
    timing = settings.timing
    lines = [
        "# espprov configuration",
        "",
        "[timing]",
        *(
            f"{name} = {float(getattr(timing, name))}"
            for name in TimingConfig.model_fields
        ),
        "",
        "[broker]",
        f"host = {_toml_string(settings.broker.host)}",
        f"port = {settings.broker.port}",
        "",
        "[discovery]",
        f"duration = {settings.discovery.duration}",
        f"name_filter = {_toml_string(settings.discovery.name_filter)}",
        "",
    ]
    return "\n".join(lines)


def write_settings(settings: Settings, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_settings_toml(settings))
