from __future__ import annotations

import logging
import os
import sys

import coloredlogs  # type: ignore[import]

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
DATE_FORMAT = "%H:%M:%S"
LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")

# Loggers that are chatty below ERROR and say nothing about provisioning.
QUIET_LOGGERS = ("asyncio",)


def resolve_level(level: str | None = None) -> str:
    """Pick the log level: explicit argument, then ``LOGLEVEL``, then INFO."""
    resolved = (level or os.environ.get("LOGLEVEL") or "INFO").upper()
    if resolved not in LEVELS:
        raise ValueError(f"Unknown log level '{resolved}', expected one of {LEVELS}")
    return resolved


def setup_logging(level: str | None = None, debug: bool = False) -> None:
    resolved = "DEBUG" if debug else resolve_level(level)

    coloredlogs.install(
        level=resolved,
        fmt=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        stream=sys.stderr,
        field_styles={
            **coloredlogs.DEFAULT_FIELD_STYLES,
            "name": {"color": "cyan"},
        },
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.ERROR)
