"""espprov - provision headless ESP devices with Wi-Fi and MQTT settings over BluFi."""

from __future__ import annotations

from importlib.metadata import version

from .config import Settings, TimingConfig, get_settings
from .core import Provisioner, SimulatedTransport
from .errors import ProvisioningError
from .models import Phase, ProvisioningSession

__all__ = [
    "Phase",
    "ProvisioningError",
    "ProvisioningSession",
    "Provisioner",
    "Settings",
    "SimulatedTransport",
    "TimingConfig",
    "__version__",
    "get_settings",
]

__version__ = version("espprov")
