from __future__ import annotations

import pytest
from typer.testing import CliRunner

import espprov.cli.commands.provision as provision_cmd
from espprov.cli.app import app
from espprov.config import get_settings, write_settings
from espprov.core import SimulatedTransport

runner = CliRunner()


@pytest.fixture
def config_file(tmp_path, monkeypatch, fast_settings):
    path = tmp_path / "config.toml"
    write_settings(fast_settings, path)
    monkeypatch.setenv("ESPPROV_CONFIG", str(path))
    monkeypatch.setenv("LOGLEVEL", "WARNING")
    get_settings.cache_clear()
    return path


def use_peer(monkeypatch, peer):
    monkeypatch.setattr(
        provision_cmd, "build_transport", lambda scenario: SimulatedTransport([peer])
    )


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "espprov version" in result.stdout


def test_config_show_defaults(tmp_path, monkeypatch):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))

    result = runner.invoke(app, ["config", "show"])
    assert result.exit_code == 0
    assert "Config source: defaults" in result.stdout
    assert "connect_timeout = 15.0" in result.stdout


def test_config_init_does_not_overwrite(tmp_path, monkeypatch):
    path = tmp_path / "config.toml"
    monkeypatch.setenv("ESPPROV_CONFIG", str(path))

    result = runner.invoke(app, ["config", "init"])
    assert result.exit_code == 0
    assert path.exists()
    assert "[timing]" in path.read_text()

    path.write_text('[broker]\nhost = "kept"\n')
    result = runner.invoke(app, ["config", "init"])
    assert "already exists" in result.stdout
    assert "kept" in path.read_text()

    result = runner.invoke(app, ["config", "init", "--force"])
    assert result.exit_code == 0
    assert "kept" not in path.read_text()


def test_config_init_seeds_broker(tmp_path, monkeypatch):
    path = tmp_path / "config.toml"
    monkeypatch.setenv("ESPPROV_CONFIG", str(path))

    result = runner.invoke(app, ["config", "path"])
    assert "not created yet" in result.stdout

    result = runner.invoke(app, ["config", "init", "--broker-host", "mqtt.lan"])
    assert result.exit_code == 0
    assert get_settings().broker.host == "mqtt.lan"

    result = runner.invoke(app, ["config", "path"])
    assert result.stdout.strip() == str(path)


def test_invalid_log_level(monkeypatch):
    monkeypatch.setenv("LOGLEVEL", "chatty")

    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 2


def test_config_show_rejects_invalid_file(tmp_path, monkeypatch):
    path = tmp_path / "config.toml"
    path.write_text("[timing]\nconnect_timeout = 0\n")
    monkeypatch.setenv("ESPPROV_CONFIG", str(path))

    result = runner.invoke(app, ["config", "show"])
    assert result.exit_code == 1


def test_devices_lists_simulated_fleet(config_file):
    result = runner.invoke(app, ["devices"])
    assert result.exit_code == 0
    assert "BLUFI_9876543210" in result.stdout
    assert "BLUFI_1234567890" in result.stdout
    assert "Found 2 device(s)" in result.stdout


def test_devices_filter_and_redact(config_file):
    result = runner.invoke(app, ["devices", "--filter", "9876", "--redact"])
    assert result.exit_code == 0
    assert "BLUFI_9876543210" in result.stdout
    assert "BLUFI_1234567890" not in result.stdout
    assert "24:0A:C4:xx:xx:01" in result.stdout


def test_unknown_scenario(config_file):
    result = runner.invoke(app, ["devices", "--scenario", "meltdown"])
    assert result.exit_code == 2


def test_networks(config_file):
    result = runner.invoke(app, ["networks", "24:0A:C4:12:34:56"])
    assert result.exit_code == 0
    assert "workshop" in result.stdout
    assert "office-5g" in result.stdout


def test_provision_success(config_file, monkeypatch, make_peer):
    peer = make_peer()
    use_peer(monkeypatch, peer)

    result = runner.invoke(
        app, ["provision", peer.address, "--ssid", "workshop", "-p", "hunter22"]
    )
    assert result.exit_code == 0, result.stdout
    assert "Device UID: 9876543210" in result.stdout
    assert "Device provisioned" in result.stdout


def test_provision_redacts_uid(config_file, monkeypatch, make_peer):
    peer = make_peer()
    use_peer(monkeypatch, peer)

    result = runner.invoke(
        app,
        ["provision", peer.address, "-s", "workshop", "-p", "hunter22", "--redact"],
    )
    assert result.exit_code == 0
    assert "Device UID: xxxxxx3210" in result.stdout
    assert "9876543210" not in result.stdout


def test_provision_failure_exits_nonzero(config_file, monkeypatch, make_peer):
    peer = make_peer(reachable=False)
    use_peer(monkeypatch, peer)

    result = runner.invoke(app, ["provision", peer.address, "--ssid", "workshop"])
    assert result.exit_code == 1
    assert "Provisioning failed: connection timeout" in result.stdout


def test_provision_unknown_device(config_file, monkeypatch, make_peer):
    use_peer(monkeypatch, make_peer())

    result = runner.invoke(app, ["provision", "00:11:22:33:44:55", "--ssid", "workshop"])
    assert result.exit_code == 1
    assert "has not been discovered" in result.stdout
