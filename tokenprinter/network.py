"""
TCP/IP network transport and the bounded LAN printer sweep.

Handles raw-socket (JetDirect-style) printers on ``host:port`` and the
network scanner that probes the first few hosts of each local /24.
"""

import asyncio
import ipaddress
import logging
import socket
from typing import Iterable, List, Optional, Sequence, Tuple

import ifaddr  # type: ignore
from escpos.printer import Network  # type: ignore

from .exceptions import UnsupportedTransportError
from .models import DiscoveredPrinter, PrinterConfig, TransportType
from .transport import TransportDriver

logger = logging.getLogger(__name__)

DEFAULT_PORT = 9100
DEFAULT_TIMEOUT = 10.0


def parse_host_port(value: str, default_port: Optional[int] = DEFAULT_PORT) -> Optional[Tuple[str, int]]:
    """
    Parse a ``host:port`` connection string.

    Args:
        value: Connection string, e.g. '192.168.1.50:9100'
        default_port: Port used when none is given; None makes the port mandatory

    Returns:
        (host, port) tuple, or None if the string is not a host:port pair
    """
    value = (value or '').strip()
    if not value:
        return None

    host, sep, port_str = value.rpartition(':')
    if not sep:
        host, port_str = value, ''

    # MAC addresses and bare IPv6 are not host:port pairs
    if not host or ':' in host:
        return None

    if not port_str:
        if default_port is None:
            return None
        return host, default_port

    try:
        port = int(port_str)
    except ValueError:
        return None
    if not 0 < port < 65536:
        return None
    return host, port


class NetworkTransport(TransportDriver):
    """Raw TCP socket to a network printer, via python-escpos."""

    transport_type = TransportType.NETWORK

    def __init__(self, host: str, port: int = DEFAULT_PORT, timeout: float = DEFAULT_TIMEOUT,
                 transport_type: TransportType = TransportType.NETWORK):
        super().__init__()
        self.host = host
        self.port = int(port)
        self.timeout = float(timeout)
        # Wi-Fi printers use the same socket transport, only the tag differs
        self.transport_type = transport_type

    @classmethod
    def from_config(cls, config: PrinterConfig, transport_type: Optional[TransportType] = None) -> "NetworkTransport":
        parsed = parse_host_port(config.connection_string)
        if parsed is None:
            raise UnsupportedTransportError(
                f"Invalid host:port connection string: {config.connection_string}",
                context={'printer': config.id}
            )
        host, port = parsed
        return cls(
            host,
            port,
            timeout=float(config.setting('timeout', DEFAULT_TIMEOUT)),
            transport_type=transport_type or config.transport_type,
        )

    def _open_handle(self):
        printer = Network(self.host, port=self.port, timeout=self.timeout)
        printer.open()
        return printer

    def describe(self) -> str:
        return f"{self.transport_type.value} printer at {self.host}:{self.port}"


async def probe_port(host: str, port: int, timeout: float) -> bool:
    """
    Check whether a TCP connect to host:port succeeds within timeout.

    Refusals, unreachable hosts and timeouts all count as a miss.
    """
    try:
        _, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout=timeout)
    except (OSError, asyncio.TimeoutError):
        return False

    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass
    return True


def local_network_bases() -> List[str]:
    """
    Derive the /24 base address ('a.b.c') of every non-loopback IPv4 interface.

    The interface holding the default route comes first, followed by every
    other adapter in the order the OS lists them.

    Returns:
        Deduplicated list of base addresses, in discovery order
    """
    addresses = []

    # Address of the interface that holds the default route; no packet is sent
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
            s.connect(('10.255.255.255', 1))
            addresses.append(s.getsockname()[0])
    except OSError as e:
        logger.debug(f"[Network] Default route lookup failed: {e}")

    try:
        adapters = ifaddr.get_adapters()
    except OSError as e:
        logger.warning(f"[Network] Could not list network interfaces: {e}")
        adapters = []
    for adapter in adapters:
        for adapter_ip in adapter.ips:
            if adapter_ip.is_IPv4:
                addresses.append(adapter_ip.ip)

    bases = []
    for address in addresses:
        try:
            ip = ipaddress.IPv4Address(address)
        except ValueError:
            continue
        if ip.is_loopback or ip.is_unspecified:
            continue
        base = '.'.join(address.split('.')[:3])
        if base not in bases:
            bases.append(base)
    return bases


class NetworkScanner:
    """Bounded sweep of the local /24 networks for printer-capable listeners."""

    transport_type = TransportType.NETWORK

    def __init__(self, ports: Sequence[int] = (9100, 515, 631), host_count: int = 20,
                 timeout: float = 1.0, max_concurrency: int = 60,
                 bases: Optional[Iterable[str]] = None):
        """
        Args:
            ports: Ports probed on every host, in preference order
            host_count: Host offsets 1..host_count are probed on each network
            timeout: Per-probe connect timeout in seconds
            max_concurrency: Upper bound on probes in flight
            bases: Fixed /24 bases to scan instead of the local interfaces
        """
        self.ports = list(ports)
        self.host_count = host_count
        self.timeout = timeout
        self.max_concurrency = max_concurrency
        self.bases = list(bases) if bases is not None else None

    async def _network_bases(self) -> List[str]:
        if self.bases is not None:
            return self.bases
        return await asyncio.to_thread(local_network_bases)

    async def scan(self) -> List[DiscoveredPrinter]:
        bases = await self._network_bases()
        if not bases:
            logger.info("[Network] No local IPv4 networks to scan")
            return []

        logger.info(f"[Network] Scanning {', '.join(b + '.0/24' for b in bases)} "
                    f"(hosts 1-{self.host_count}, ports {self.ports})")

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def bounded_probe(host: str, port: int):
            async with semaphore:
                return host, port, await probe_port(host, port, self.timeout)

        targets = [
            (f"{base}.{offset}", port)
            for base in bases
            for offset in range(1, self.host_count + 1)
            for port in self.ports
        ]
        results = await asyncio.gather(*(bounded_probe(h, p) for h, p in targets), return_exceptions=True)

        printers = []
        seen_hosts = set()
        for item in results:
            if isinstance(item, BaseException):
                logger.debug(f"[Network] Probe error: {item}")
                continue
            host, port, responded = item
            if not responded or host in seen_hosts:
                continue
            seen_hosts.add(host)
            printers.append(DiscoveredPrinter(
                name=f"Network Printer ({host})",
                transport_type=TransportType.NETWORK,
                connection_string=f"{host}:{port}",
                description=f"Network device responding on port {port}",
            ))

        logger.info(f"[Network] Found {len(printers)} responding hosts")
        return printers
