"""Error taxonomy for provisioning.

A log line that matches no known pattern is not an error: the matcher simply
returns ``None`` for it.
"""

from __future__ import annotations


class ProvisioningError(Exception):
    """Base class for everything the provisioner raises or records."""


class TransportError(ProvisioningError):
    """Raised by a transport when it rejects a command synchronously."""


class TransportCommandFailure(ProvisioningError):
    """A command call failed. Fatal for the session."""

    def __init__(self, command: str, cause: Exception) -> None:
        super().__init__(f"{command} failed: {cause}")
        self.command = command
        self.cause = cause


class TimeoutFailure(ProvisioningError):
    """An expected signal did not arrive before its deadline."""


class PeerDisconnected(ProvisioningError):
    """The peer dropped the link before it received the apply marker."""


class UserCancelled(ProvisioningError):
    """The user reset the session. Not a failure."""


class ProvisioningBusy(ProvisioningError):
    """Another operation already owns the link."""


class UnknownDevice(ProvisioningError):
    """The requested address was never discovered."""
