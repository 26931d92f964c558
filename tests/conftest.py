# Ensure the repository root is on sys.path so `tokenprinter` can be imported in tests.

import sys
from pathlib import Path


def _ensure_repo_root_on_syspath() -> None:
    # This file lives at: <repo_root>/tests/conftest.py
    here = Path(__file__).resolve()
    repo_root = here.parent.parent
    repo_str = str(repo_root)
    if repo_str not in sys.path:
        sys.path.insert(0, repo_str)


_ensure_repo_root_on_syspath()

import pytest  # noqa: E402

from tokenprinter.models import TransportType  # noqa: E402
from tokenprinter.store import JsonPrinterStore  # noqa: E402
from tokenprinter.transport import TransportDriver  # noqa: E402


class FakeDriver(TransportDriver):
    """In-memory transport that records every open/write/close in a shared log."""

    transport_type = TransportType.NETWORK

    def __init__(self, name, log, open_error=None, write_error=None):
        super().__init__()
        self.name = name
        self.log = log
        self.open_error = open_error
        self.write_error = write_error
        self.written = []

    def _open_handle(self):
        if self.open_error is not None:
            raise self.open_error
        self.log.append(("open", self.name))
        return self

    def _write_handle(self, handle, data):
        if self.write_error is not None:
            raise self.write_error
        self.written.append(data)

    def _close_handle(self, handle):
        self.log.append(("close", self.name))

    def describe(self):
        return f"fake printer {self.name}"


class FakeTransportFactory:
    """Stands in for the registry; errors can be set per printer id."""

    def __init__(self):
        self.log = []
        self.drivers = []
        self.open_errors = {}
        self.write_errors = {}

    def __call__(self, config):
        driver = FakeDriver(
            config.id,
            self.log,
            open_error=self.open_errors.get(config.id),
            write_error=self.write_errors.get(config.id),
        )
        self.drivers.append(driver)
        return driver

    def max_open_at_once(self):
        open_now = 0
        peak = 0
        for event, _ in self.log:
            open_now += 1 if event == "open" else -1
            peak = max(peak, open_now)
        return peak


class FakeNetworkPrinter:
    """Replacement for escpos.printer.Network that never touches a socket."""

    instances = []
    refuse = False

    def __init__(self, host, port=9100, timeout=60, *args, **kwargs):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.data = []
        self.opened = False
        self.closed = False
        FakeNetworkPrinter.instances.append(self)

    def open(self):
        if FakeNetworkPrinter.refuse:
            raise ConnectionRefusedError(111, "Connection refused")
        self.opened = True

    def _raw(self, data):
        self.data.append(data)

    def close(self):
        self.closed = True


@pytest.fixture
def store(tmp_path):
    return JsonPrinterStore(str(tmp_path / "printers.json"))


@pytest.fixture
def transport_factory():
    return FakeTransportFactory()


@pytest.fixture
def fake_network(monkeypatch):
    import tokenprinter.network as network

    FakeNetworkPrinter.instances = []
    FakeNetworkPrinter.refuse = False
    monkeypatch.setattr(network, "Network", FakeNetworkPrinter)
    return FakeNetworkPrinter
