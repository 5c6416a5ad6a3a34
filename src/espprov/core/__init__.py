from __future__ import annotations

from .awaiter import Awaiter
from .bus import EventBus, Subscription, SubscriptionScope
from .matcher import Match, Signal, classify, extract_uid, message_text, signal_for
from .provisioner import Provisioner
from .simulator import PeerProfile, SimulatedTransport, default_fleet
from .transport import OpMode, Transport, TransportListener

__all__ = [
    "Awaiter",
    "EventBus",
    "Match",
    "OpMode",
    "PeerProfile",
    "Provisioner",
    "Signal",
    "SimulatedTransport",
    "Subscription",
    "SubscriptionScope",
    "Transport",
    "TransportListener",
    "classify",
    "default_fleet",
    "extract_uid",
    "message_text",
    "signal_for",
]
