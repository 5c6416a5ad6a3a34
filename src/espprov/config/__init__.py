from __future__ import annotations

from .paths import (
    APP_NAME,
    CONFIG_ENV_VAR,
    CONFIG_FILENAME,
    default_config_path,
    expand_path,
    resolve_config_path,
)
from .settings import (
    BrokerConfig,
    DiscoveryConfig,
    Settings,
    TimingConfig,
    get_settings,
    load_settings,
    render_settings_toml,
    write_settings,
)

__all__ = [
    "APP_NAME",
    "CONFIG_ENV_VAR",
    "CONFIG_FILENAME",
    "BrokerConfig",
    "DiscoveryConfig",
    "Settings",
    "TimingConfig",
    "default_config_path",
    "expand_path",
    "get_settings",
    "load_settings",
    "render_settings_toml",
    "resolve_config_path",
    "write_settings",
]
