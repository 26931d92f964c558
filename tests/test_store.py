import json
from datetime import datetime

import pytest

from tokenprinter.exceptions import InvalidConfigurationError, NoPrinterConfiguredError, UnsupportedTransportError
from tokenprinter.store import JsonPrinterStore


def test_empty_store(store):
    assert store.list() == []
    assert store.get_default() is None
    assert store.get("anything") is None


def test_first_printer_becomes_default(store):
    printer = store.add("Desk", "network", "10.0.0.5:9100")

    assert printer.id == "network_10_0_0_5_9100"
    assert store.get_default().id == printer.id


def test_only_one_default(store):
    store.add("Desk", "network", "10.0.0.5:9100", printer_id="desk")
    store.add("Kiosk", "usb", "auto", printer_id="kiosk", is_default=True)

    assert [p.id for p in store.list() if p.is_default] == ["kiosk"]

    store.set_default("desk")
    assert [p.id for p in store.list() if p.is_default] == ["desk"]


def test_set_default_unknown_printer(store):
    store.add("Desk", "network", "10.0.0.5:9100", printer_id="desk")
    with pytest.raises(NoPrinterConfiguredError):
        store.set_default("missing")
    assert store.get_default().id == "desk"


def test_duplicate_and_invalid_printers(store):
    store.add("Desk", "network", "10.0.0.5:9100")
    with pytest.raises(InvalidConfigurationError):
        store.add("Desk again", "network", "10.0.0.5:9100")
    with pytest.raises(UnsupportedTransportError):
        store.add("Old", "parallel", "LPT1")


def test_update_status_persists(store, tmp_path):
    store.add("Desk", "network", "10.0.0.5:9100", printer_id="desk")
    used = datetime(2024, 3, 4, 5, 6, 7)

    store.update_status("desk", True, last_used=used)
    store.update_status("unknown", True)

    reloaded = JsonPrinterStore(str(tmp_path / "printers.json")).get("desk")
    assert reloaded.is_connected is True
    assert reloaded.last_used == used


def test_remove(store):
    store.add("Desk", "network", "10.0.0.5:9100", printer_id="desk")

    assert store.remove("desk") is True
    assert store.remove("desk") is False
    assert store.list() == []


def test_writes_leave_no_temp_file(store, tmp_path):
    store.add("Desk", "network", "10.0.0.5:9100")

    assert sorted(p.name for p in tmp_path.iterdir()) == ["printers.json"]
    data = json.loads((tmp_path / "printers.json").read_text())
    assert data['printers'][0]['connectionString'] == "10.0.0.5:9100"


def test_corrupt_file(tmp_path):
    path = tmp_path / "printers.json"
    path.write_text("{not json")

    with pytest.raises(InvalidConfigurationError):
        JsonPrinterStore(str(path)).list()


def test_unreadable_file(tmp_path):
    path = tmp_path / "printers.json"
    path.mkdir()

    with pytest.raises(InvalidConfigurationError):
        JsonPrinterStore(str(path)).list()
