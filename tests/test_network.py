import asyncio
import socket
from types import SimpleNamespace

import pytest

import tokenprinter.network as network
from tokenprinter.exceptions import UnsupportedTransportError
from tokenprinter.models import PrinterConfig
from tokenprinter.network import NetworkScanner, probe_port


def _refused_port() -> int:
    # Bind then close: nothing listens on the port afterwards
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


async def _listen():
    server = await asyncio.start_server(lambda r, w: w.close(), "127.0.0.1", 0)
    return server, server.sockets[0].getsockname()[1]


def test_refused_ports_contribute_nothing():
    ports = [_refused_port(), _refused_port(), _refused_port()]
    scanner = NetworkScanner(ports=ports, host_count=1, timeout=0.5, bases=["127.0.0"])

    assert asyncio.run(scanner.scan()) == []


def test_one_candidate_per_host_first_port_wins():
    async def scenario():
        first, first_port = await _listen()
        second, second_port = await _listen()
        async with first, second:
            scanner = NetworkScanner(
                ports=[_refused_port(), first_port, second_port],
                host_count=1,
                timeout=0.5,
                bases=["127.0.0"],
            )
            return first_port, await scanner.scan()

    port, printers = asyncio.run(scenario())

    assert len(printers) == 1
    printer = printers[0]
    assert printer.connection_string == f"127.0.0.1:{port}"
    assert printer.name == "Network Printer (127.0.0.1)"
    assert printer.id == f"network_127_0_0_1_{port}"


def test_no_local_networks():
    assert asyncio.run(NetworkScanner(bases=[]).scan()) == []


def test_probe_port():
    async def scenario():
        server, port = await _listen()
        async with server:
            return await probe_port("127.0.0.1", port, 0.5), await probe_port("127.0.0.1", _refused_port(), 0.5)

    assert asyncio.run(scenario()) == (True, False)


class _FakeUdpSocket:
    def __init__(self, *args):
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def connect(self, address):
        pass

    def getsockname(self):
        return ("10.0.0.5", 40000)


def _adapter(name, *ips):
    return SimpleNamespace(
        nice_name=name,
        ips=[SimpleNamespace(ip=ip, is_IPv4=isinstance(ip, str)) for ip in ips],
    )


def test_local_network_bases_cover_every_interface(monkeypatch):
    # Default route on eth0; eth1 holds a second printer LAN
    monkeypatch.setattr(network.socket, "socket", _FakeUdpSocket)
    monkeypatch.setattr(network.ifaddr, "get_adapters", lambda: [
        _adapter("lo", "127.0.0.1", ("::1", 0, 0)),
        _adapter("eth0", "10.0.0.5", ("fe80::1", 0, 2)),
        _adapter("eth1", "10.20.0.3"),
        _adapter("wlan0", "192.168.1.7", "192.168.1.8"),
    ])

    assert network.local_network_bases() == ["10.0.0", "10.20.0", "192.168.1"]


def test_local_network_bases_without_default_route(monkeypatch):
    class _NoRouteSocket(_FakeUdpSocket):
        def connect(self, address):
            raise OSError(101, "Network is unreachable")

    monkeypatch.setattr(network.socket, "socket", _NoRouteSocket)
    monkeypatch.setattr(network.ifaddr, "get_adapters", lambda: [
        _adapter("lo", "127.0.0.1"),
        _adapter("eth1", "10.20.0.3"),
    ])

    assert network.local_network_bases() == ["10.20.0"]


def test_sweep_keeps_probes_in_flight_bounded(monkeypatch):
    in_flight = 0
    peak = 0
    calls = []

    async def slow_probe(host, port, timeout):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        calls.append((host, port))
        await asyncio.sleep(0.01)
        in_flight -= 1
        return False

    monkeypatch.setattr(network, "probe_port", slow_probe)
    scanner = NetworkScanner(max_concurrency=60, host_count=40, bases=["10.0.0", "10.0.1"])

    assert asyncio.run(scanner.scan()) == []
    assert len(calls) == 2 * 40 * 3
    assert 1 < peak <= 60


def test_network_transport_from_config_rejects_mac():
    with pytest.raises(UnsupportedTransportError):
        network.NetworkTransport.from_config(PrinterConfig("n", "N", "network", "AA:BB:CC:DD:EE:FF"))


def test_network_transport_opens_and_writes(fake_network):
    driver = network.NetworkTransport("10.0.0.5", 9100, timeout=3)
    with driver:
        driver.write(b"\x1b@")

    handle = fake_network.instances[0]
    assert (handle.host, handle.port, handle.timeout) == ("10.0.0.5", 9100, 3.0)
    assert handle.data == [b"\x1b@"]
    assert handle.closed and not driver.is_open
