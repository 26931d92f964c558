import json

import pytest

import tokenprinter.__main__ as cli
from tokenprinter.models import DiscoveredPrinter, TransportType


@pytest.fixture
def config_path(tmp_path, monkeypatch):
    monkeypatch.delenv("TOKENPRINTER_LOG_LEVEL", raising=False)
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"store": {"path": str(tmp_path / "printers.json")}}))
    return str(path)


def _run(config_path, *args):
    return cli.main(["--config", config_path, *args])


def test_add_list_and_remove(config_path, capsys):
    assert _run(config_path, "add", "Front desk", "network", "10.0.0.5:9100", "--default") == 0
    assert _run(config_path, "list") == 0
    out = capsys.readouterr().out
    assert "Added network_10_0_0_5_9100" in out
    assert "* network_10_0_0_5_9100\tFront desk\tnetwork\t10.0.0.5:9100\tdisconnected" in out

    assert _run(config_path, "remove", "network_10_0_0_5_9100") == 0
    assert _run(config_path, "remove", "network_10_0_0_5_9100") == 1


def test_set_default_unknown_printer(config_path, capsys):
    assert _run(config_path, "set-default", "missing") == 1
    assert "No printer configured" in capsys.readouterr().err


def test_print_tokens(config_path, fake_network, capsys):
    _run(config_path, "add", "Front desk", "network", "10.0.0.5:9100")

    assert _run(config_path, "print", "42", "43") == 0

    out = capsys.readouterr().out
    assert "Token #42 printed successfully" in out
    assert "Token #43 printed successfully" in out
    written = b"".join(b"".join(handle.data) for handle in fake_network.instances)
    assert b"TOKEN #42" in written and b"TOKEN #43" in written


def test_print_failure_exit_code(config_path, fake_network, capsys):
    _run(config_path, "add", "Front desk", "network", "10.0.0.5:9100")
    fake_network.refuse = True

    assert _run(config_path, "print", "7") == 1
    assert "Cannot connect to printer. Check network connection." in capsys.readouterr().err


def test_print_without_printer(config_path, capsys):
    assert _run(config_path, "print", "7") == 1
    assert "No printer configured" in capsys.readouterr().err


def test_test_and_status(config_path, fake_network, capsys):
    _run(config_path, "add", "Front desk", "network", "10.0.0.5:9100")

    assert _run(config_path, "test") == 0
    assert _run(config_path, "status", "network_10_0_0_5_9100") == 0
    fake_network.refuse = True
    assert _run(config_path, "status", "network_10_0_0_5_9100") == 0

    out = capsys.readouterr().out.splitlines()
    assert out[-3:] == ["Test page sent", "connected", "disconnected"]


def test_discover_json(config_path, monkeypatch, capsys):
    class FakeEngine:
        def __init__(self, settings=None):
            pass

        def full_discovery(self):
            return [DiscoveredPrinter("Network Printer (10.0.0.5)", TransportType.NETWORK, "10.0.0.5:9100")]

        def quick_discovery(self):
            return []

    monkeypatch.setattr(cli, "DiscoveryEngine", FakeEngine)

    assert _run(config_path, "discover", "--json") == 0
    data = json.loads(capsys.readouterr().out)
    assert data[0]["id"] == "network_10_0_0_5_9100"

    assert _run(config_path, "discover", "--quick") == 0
    assert "No printers found" in capsys.readouterr().out


def test_invalid_settings_file(tmp_path, capsys):
    path = tmp_path / "config.json"
    path.write_text("{")
    assert cli.main(["--config", str(path), "list"]) == 1
