"""
Printer discovery across all transports.

Each scanner runs as its own asyncio task. A scanner that raises is logged and
contributes nothing; it never cancels or fails the other scanners.
"""

import asyncio
import logging
import threading
from typing import Dict, Iterable, List, Optional

from .bluetooth import BluetoothScanner
from .config import DiscoverySettings
from .models import DiscoveredPrinter, TransportType
from .network import NetworkScanner
from .serial_port import SerialScanner
from .usb import UsbScanner
from .wifi import WifiScanner

logger = logging.getLogger(__name__)

FULL_SCAN = (
    TransportType.USB,
    TransportType.NETWORK,
    TransportType.WIFI,
    TransportType.BLUETOOTH,
    TransportType.SERIAL,
)
# Transports that need no network sweep
QUICK_SCAN = (TransportType.USB, TransportType.SERIAL, TransportType.BLUETOOTH)


def default_scanners(settings: Optional[DiscoverySettings] = None) -> Dict[TransportType, object]:
    """Build one scanner per transport from the discovery settings."""
    settings = settings or DiscoverySettings()
    return {
        TransportType.USB: UsbScanner(),
        TransportType.NETWORK: NetworkScanner(
            ports=settings.network_ports,
            host_count=settings.network_hosts,
            timeout=settings.network_probe_timeout,
            max_concurrency=settings.max_concurrent_probes,
        ),
        TransportType.WIFI: WifiScanner(
            browse_timeout=settings.wifi_browse_timeout,
            host_count=settings.wifi_hosts,
            ports=settings.wifi_ports,
            probe_timeout=settings.wifi_probe_timeout,
            identify_timeout=settings.wifi_identify_timeout,
            max_concurrency=settings.max_concurrent_probes,
        ),
        TransportType.BLUETOOTH: BluetoothScanner(timeout=settings.bluetooth_scan_timeout),
        TransportType.SERIAL: SerialScanner(),
    }


class DiscoveryEngine:
    """
    Runs scanners concurrently and keeps the last result in memory.

    The cache holds the result of the most recent full or quick discovery and
    is replaced as a whole once a scan completes.
    """

    def __init__(self, scanners: Optional[Dict[TransportType, object]] = None,
                 settings: Optional[DiscoverySettings] = None):
        """
        Args:
            scanners: Scanner per transport type, defaults to default_scanners(settings)
            settings: Discovery timeouts and limits for the default scanners
        """
        self.scanners = scanners if scanners is not None else default_scanners(settings)
        self._cache: List[DiscoveredPrinter] = []
        self._lock = threading.Lock()

    async def _run_scanner(self, transport_type: TransportType) -> List[DiscoveredPrinter]:
        scanner = self.scanners[transport_type]
        printers = await scanner.scan()
        logger.info(f"[Discovery] {transport_type.value}: {len(printers)} candidates")
        return list(printers)

    async def _discover(self, transport_types: Iterable[TransportType]) -> List[DiscoveredPrinter]:
        selected = [t for t in transport_types if t in self.scanners]
        results = await asyncio.gather(
            *(self._run_scanner(t) for t in selected),
            return_exceptions=True
        )

        printers = []
        seen = set()
        for transport_type, result in zip(selected, results):
            if isinstance(result, BaseException):
                logger.error(f"[Discovery] {transport_type.value} scan failed: {result}")
                continue
            for printer in result:
                if printer.id in seen:
                    continue
                seen.add(printer.id)
                printers.append(printer)

        with self._lock:
            self._cache = printers
        logger.info(f"[Discovery] Found {len(printers)} printers")
        return list(printers)

    async def full_discovery_async(self) -> List[DiscoveredPrinter]:
        logger.info("[Discovery] Starting full printer discovery...")
        return await self._discover(FULL_SCAN)

    async def quick_discovery_async(self) -> List[DiscoveredPrinter]:
        logger.info("[Discovery] Starting quick printer discovery...")
        return await self._discover(QUICK_SCAN)

    def full_discovery(self) -> List[DiscoveredPrinter]:
        """
        Scan every transport concurrently.

        Returns:
            Deduplicated candidates in scanner order
        """
        return asyncio.run(self.full_discovery_async())

    def quick_discovery(self) -> List[DiscoveredPrinter]:
        """Scan USB, serial and Bluetooth only."""
        return asyncio.run(self.quick_discovery_async())

    def get_cached_printers(self) -> List[DiscoveredPrinter]:
        with self._lock:
            return list(self._cache)
