from __future__ import annotations

from collections.abc import Callable

import pytest

from espprov.config import (
    BrokerConfig,
    DiscoveryConfig,
    Settings,
    TimingConfig,
    get_settings,
)
from espprov.core import PeerProfile

PEER_ADDRESS = "24:0A:C4:00:00:01"

FAST_TIMING = TimingConfig(
    connect_timeout=0.5,
    post_connect_delay=0,
    negotiation_timeout=0.2,
    settle_delay=0.01,
    command_pacing=0.01,
    broker_settle=0.01,
    confirm_timeout=1.0,
    probe_interval=0.05,
    release_timeout=0.3,
    scan_timeout=0.5,
)


@pytest.fixture(autouse=True)
def _isolate_settings_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("ESPPROV_CONFIG", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def fast_settings() -> Settings:
    return Settings(
        timing=FAST_TIMING,
        broker=BrokerConfig(host="10.0.0.5", port=1883),
        discovery=DiscoveryConfig(duration=0.1),
    )


@pytest.fixture
def make_peer() -> Callable[..., PeerProfile]:
    def _make(**overrides: object) -> PeerProfile:
        values: dict[str, object] = {
            "address": PEER_ADDRESS,
            "name": "BLUFI_TEST",
            "rssi": -50,
            "connect_delay": 0.02,
            "response_delay": 0.01,
            "join_delay": 0.05,
            "reboot_delay": 0.05,
        }
        values.update(overrides)
        return PeerProfile(**values)  # type: ignore[arg-type]

    return _make
