"""
Serial/COM port transport and scanner.
"""

import asyncio
import logging
from typing import List

import serial.tools.list_ports  # type: ignore
from escpos.printer import Serial as EscposSerial  # type: ignore

from .models import DiscoveredPrinter, PrinterConfig, TransportType
from .transport import TransportDriver

logger = logging.getLogger(__name__)

# Thermal printers default to 9600 baud, 8N1
DEFAULT_BAUDRATE = 9600

PRINTER_PATH_PATTERNS = ('COM', 'ttyUSB', 'ttyACM', 'usbserial')
PRINTER_MANUFACTURER_PATTERNS = ('ftdi', 'prolific', 'wch', 'silicon labs')


class SerialTransport(TransportDriver):
    """Serial printer connection through python-escpos."""

    transport_type = TransportType.SERIAL

    def __init__(self, device_path: str, baudrate: int = DEFAULT_BAUDRATE, timeout: float = 1):
        super().__init__()
        self.device_path = device_path
        self.baudrate = int(baudrate)
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: PrinterConfig) -> "SerialTransport":
        return cls(
            config.connection_string,
            baudrate=int(config.setting('baudrate', DEFAULT_BAUDRATE)),
        )

    def _open_handle(self):
        printer = EscposSerial(
            devfile=self.device_path,
            baudrate=self.baudrate,
            bytesize=8,
            parity='N',
            stopbits=1,
            timeout=self.timeout,
        )
        printer.open()
        return printer

    def describe(self) -> str:
        return f"serial printer on {self.device_path}@{self.baudrate}"


def is_printer_port(port) -> bool:
    """Check whether a port looks like a printer adapter (USB-serial bridge or COM port)."""
    path = port.device or ''
    manufacturer = (port.manufacturer or '').lower()
    if any(pattern in path for pattern in PRINTER_PATH_PATTERNS):
        return True
    return any(pattern in manufacturer for pattern in PRINTER_MANUFACTURER_PATTERNS)


class SerialScanner:
    """Lists serial ports that are likely to have a printer attached."""

    transport_type = TransportType.SERIAL

    def _scan_blocking(self) -> List[DiscoveredPrinter]:
        printers = []
        for port in serial.tools.list_ports.comports():
            if not is_printer_port(port):
                logger.debug(f"[Serial] Skipping {port.device}")
                continue
            printers.append(DiscoveredPrinter(
                name=f"Serial Printer ({port.device})",
                transport_type=TransportType.SERIAL,
                connection_string=port.device,
                description=f"{port.manufacturer or 'Unknown'} - {port.product or 'Serial Device'}",
            ))
        logger.info(f"[Serial] Found {len(printers)} candidate ports")
        return printers

    async def scan(self) -> List[DiscoveredPrinter]:
        return await asyncio.to_thread(self._scan_blocking)
