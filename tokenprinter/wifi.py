"""
Wi-Fi printer discovery.

Wi-Fi printers are reached over the same raw TCP socket as wired network
printers, so this module only adds discovery: an mDNS browse for printer
services, and a small port sweep plus ESC/POS probe when mDNS is not usable.
"""

import asyncio
import logging
import threading
import time
from typing import Dict, Iterable, List, Optional, Sequence

from .models import DiscoveredPrinter, TransportType
from .network import local_network_bases, probe_port

try:
    from zeroconf import ServiceBrowser, ServiceListener, Zeroconf  # type: ignore
    ZEROCONF_AVAILABLE = True
except ImportError:
    ZEROCONF_AVAILABLE = False
    ServiceListener = object

logger = logging.getLogger(__name__)

PRINTER_SERVICE_TYPES = ("_ipp._tcp.local.", "_printer._tcp.local.")
FALLBACK_PORTS = (9100, 515, 631, 8080, 80)

# ESC @ resets an ESC/POS printer and is harmless to most other listeners
ESC_INIT = b"\x1b@"


class PrinterServiceListener(ServiceListener):
    """Collects resolved printer services reported by a ServiceBrowser."""

    def __init__(self):
        self._lock = threading.Lock()
        self._services: Dict[str, dict] = {}

    def add_service(self, zeroconf, service_type: str, name: str) -> None:
        self._record(zeroconf, service_type, name)

    def update_service(self, zeroconf, service_type: str, name: str) -> None:
        self._record(zeroconf, service_type, name)

    def remove_service(self, zeroconf, service_type: str, name: str) -> None:
        logger.debug(f"[WiFi] Printer service went down: {name}")
        with self._lock:
            self._services.pop(f"{service_type}|{name}", None)

    def _record(self, zeroconf, service_type: str, name: str) -> None:
        info = zeroconf.get_service_info(service_type, name, timeout=3000)
        if not info:
            return
        addresses = [a for a in info.parsed_addresses() if ':' not in a]
        if not addresses or not info.port:
            return
        with self._lock:
            self._services[f"{service_type}|{name}"] = {
                'name': name.split('._', 1)[0] or name,
                'service_type': service_type,
                'address': addresses[0],
                'port': int(info.port),
            }

    def snapshot(self) -> List[dict]:
        with self._lock:
            return list(self._services.values())


class WifiScanner:
    """
    Finds Wi-Fi printers.

    mDNS/Bonjour is preferred. When zeroconf is missing or the mDNS socket
    cannot be opened, the first hosts of each local network are swept and every
    open port that accepts an ESC/POS reset is reported. That fallback is a weak
    heuristic: any TCP listener that accepts two bytes qualifies.
    """

    transport_type = TransportType.WIFI

    def __init__(self, browse_timeout: float = 5.0, host_count: int = 10,
                 ports: Sequence[int] = FALLBACK_PORTS, probe_timeout: float = 0.5,
                 identify_timeout: float = 1.0, max_concurrency: int = 60,
                 bases: Optional[Iterable[str]] = None, use_mdns: bool = True):
        self.browse_timeout = browse_timeout
        self.host_count = host_count
        self.ports = list(ports)
        self.probe_timeout = probe_timeout
        self.identify_timeout = identify_timeout
        self.max_concurrency = max_concurrency
        self.bases = list(bases) if bases is not None else None
        self.use_mdns = use_mdns

    async def scan(self) -> List[DiscoveredPrinter]:
        if self.use_mdns and ZEROCONF_AVAILABLE:
            try:
                return await asyncio.to_thread(self._browse_mdns)
            except OSError as e:
                logger.info(f"[WiFi] mDNS not available ({e}), using port sweep")
        else:
            logger.info("[WiFi] mDNS discovery disabled or zeroconf missing, using port sweep")
        return await self._sweep()

    def _browse_mdns(self) -> List[DiscoveredPrinter]:
        logger.info(f"[WiFi] Browsing {', '.join(PRINTER_SERVICE_TYPES)} for {self.browse_timeout}s")
        listener = PrinterServiceListener()
        zeroconf = Zeroconf()
        browsers = []
        try:
            for service_type in PRINTER_SERVICE_TYPES:
                browsers.append(ServiceBrowser(zeroconf, service_type, listener))
            time.sleep(self.browse_timeout)
            services = listener.snapshot()
        finally:
            for browser in browsers:
                browser.cancel()
            zeroconf.close()

        printers = []
        for service in services:
            printers.append(DiscoveredPrinter(
                name=f"WiFi Printer ({service['name']})",
                transport_type=TransportType.WIFI,
                connection_string=f"{service['address']}:{service['port']}",
                description=f"WiFi: {service['name']} - {service['service_type']}",
            ))
        logger.info(f"[WiFi] Found {len(printers)} mDNS printer services")
        return printers

    async def identify(self, host: str, port: int) -> bool:
        """
        Send an ESC/POS reset and check the peer accepts it.

        Returns:
            True if the connection, write and drain all completed in time
        """
        try:
            async with asyncio.timeout(self.identify_timeout):
                _, writer = await asyncio.open_connection(host, port)
                try:
                    writer.write(ESC_INIT)
                    await writer.drain()
                finally:
                    writer.close()
                    try:
                        await writer.wait_closed()
                    except OSError:
                        pass
        except (OSError, TimeoutError):
            return False
        return True

    async def _sweep(self) -> List[DiscoveredPrinter]:
        bases = self.bases if self.bases is not None else await asyncio.to_thread(local_network_bases)
        if not bases:
            return []

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def check(host: str, port: int) -> bool:
            async with semaphore:
                if not await probe_port(host, port, self.probe_timeout):
                    return False
                return await self.identify(host, port)

        targets = [
            (f"{base}.{offset}", port)
            for base in bases
            for offset in range(1, self.host_count + 1)
            for port in self.ports
        ]
        results = await asyncio.gather(*(check(h, p) for h, p in targets), return_exceptions=True)

        printers = []
        for (host, port), result in zip(targets, results):
            if isinstance(result, BaseException):
                logger.debug(f"[WiFi] Probe of {host}:{port} failed: {result}")
                continue
            if result:
                printers.append(DiscoveredPrinter(
                    name=f"WiFi Printer ({host})",
                    transport_type=TransportType.WIFI,
                    connection_string=f"{host}:{port}",
                    description=f"WiFi network printer on port {port}",
                ))
        logger.info(f"[WiFi] Port sweep found {len(printers)} candidates")
        return printers
