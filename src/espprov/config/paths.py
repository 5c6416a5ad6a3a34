"""Where espprov looks for its configuration file.

Lookup order: the file named by ``ESPPROV_CONFIG`` (which must exist unless the
caller allows a missing file), then ``$XDG_CONFIG_HOME/espprov/config.toml``.
"""

from __future__ import annotations

import os
from pathlib import Path

APP_NAME = "espprov"
CONFIG_FILENAME = "config.toml"
CONFIG_ENV_VAR = "ESPPROV_CONFIG"


def expand_path(value: str) -> Path:
    return Path(os.path.expandvars(os.path.expanduser(value)))


def default_config_path() -> Path:
    base = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return expand_path(base) / APP_NAME / CONFIG_FILENAME


def resolve_config_path(allow_missing: bool = False) -> tuple[Path, bool]:
    """Return the config path in effect and whether the file exists."""
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if not env_path:
        path = default_config_path()
        return path, path.is_file()

    path = expand_path(env_path)
    exists = path.is_file()
    if not exists and not allow_missing:
        raise FileNotFoundError(f"{CONFIG_ENV_VAR} points to missing file: {path}")
    return path, exists
