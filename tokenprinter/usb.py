"""
USB transport and scanner for thermal printers.
Handles USB device detection, auto-detection by known IDs and printer class.
"""

import asyncio
import logging
from typing import List, Optional, Tuple

from escpos.printer import Usb  # type: ignore

from .exceptions import PrinterNotFoundError, UnsupportedTransportError
from .models import DiscoveredPrinter, PrinterConfig, TransportType
from .transport import TransportDriver

try:
    import usb.backend.libusb0  # type: ignore
    import usb.backend.libusb1  # type: ignore
    import usb.backend.openusb  # type: ignore
    import usb.core  # type: ignore
    import usb.util  # type: ignore
    USB_AVAILABLE = True
except ImportError:
    USB_AVAILABLE = False

logger = logging.getLogger(__name__)

USB_CLASS_PRINTER = 0x07

# Common thermal printer vendor/product IDs
COMMON_PRINTER_IDS = [
    (0x0fe6, 0x811e),  # Gprinter GP-58
    (0x0416, 0x5011),  # Winbond POS-58
    (0x04b8, 0x0e15),  # Epson TM-T20
    (0x04b8, 0x0e28),  # Epson TM-T20III
    (0x0dd4, 0x0205),  # Custom
    (0x1fc9, 0x2016),  # NXP-based generic
]

KNOWN_VENDORS = {
    0x04b8: "Epson",
    0x0519: "Star Micronics",
    0x0dd4: "Custom",
    0x0fe6: "Gprinter",
    0x1504: "Bixolon",
    0x0416: "Winbond",
    0x154f: "SNBC",
}

AUTO_DETECT = ('', 'auto', 'auto-detect')


def usb_driver_available() -> bool:
    """True when pyusb is installed and a libusb backend can be loaded."""
    if not USB_AVAILABLE:
        return False
    for backend in (usb.backend.libusb1, usb.backend.libusb0, usb.backend.openusb):
        if backend.get_backend() is not None:
            return True
    return False


def parse_usb_ids(connection_string: str) -> Optional[Tuple[int, int]]:
    """
    Parse a 'VVVV:PPPP' hex id pair.

    Returns:
        (vendor_id, product_id), or None for auto-detection

    Raises:
        ValueError: If the string is neither an id pair nor an auto keyword
    """
    value = (connection_string or '').strip().lower()
    if value in AUTO_DETECT:
        return None
    vendor, sep, product = value.partition(':')
    if not sep:
        raise ValueError(f"Expected VVVV:PPPP, got {connection_string!r}")
    return int(vendor, 16), int(product, 16)


def _has_printer_interface(device) -> bool:
    if device.bDeviceClass == USB_CLASS_PRINTER:
        return True
    try:
        for cfg in device:
            for intf in cfg:
                if intf.bInterfaceClass == USB_CLASS_PRINTER:
                    return True
    except (usb.core.USBError, NotImplementedError) as e:
        logger.debug(f"[USB] Could not read descriptors of {device.idVendor:04x}:{device.idProduct:04x}: {e}")
    return False


def _product_name(device) -> Optional[str]:
    try:
        if device.iProduct:
            return usb.util.get_string(device, device.iProduct)
    except (usb.core.USBError, ValueError, NotImplementedError) as e:
        logger.debug(f"[USB] Could not read product string: {e}")
    return None


def _endpoint(value) -> int:
    # Accepts 0x82, 130 or '0x82' from JSON settings
    return int(value, 0) if isinstance(value, str) else int(value)


def find_printer_devices() -> list:
    """
    Enumerate attached USB devices that look like printers.

    A device qualifies if it has a known thermal printer id, a known printer
    vendor id, or a printer-class interface.
    """
    found = []
    for device in usb.core.find(find_all=True):
        ids = (device.idVendor, device.idProduct)
        if ids in COMMON_PRINTER_IDS or device.idVendor in KNOWN_VENDORS or _has_printer_interface(device):
            found.append(device)
    return found


class UsbTransport(TransportDriver):
    """USB printer connection through python-escpos."""

    transport_type = TransportType.USB

    def __init__(self, vendor_id: Optional[int] = None, product_id: Optional[int] = None,
                 timeout: int = 0, in_ep: Optional[int] = None, out_ep: Optional[int] = None):
        """
        Initialize USB transport.

        Args:
            vendor_id: USB vendor ID (None auto-detects)
            product_id: USB product ID (None auto-detects)
            timeout: USB write timeout in milliseconds, 0 for the library default
            in_ep: Optional IN endpoint override
            out_ep: Optional OUT endpoint override

        Raises:
            UnsupportedTransportError: If no USB driver is available on this host
        """
        if not usb_driver_available():
            raise UnsupportedTransportError(
                "USB driver not available. Install pyusb and libusb"
            )
        super().__init__()
        self.vendor_id = vendor_id
        self.product_id = product_id
        self.timeout = timeout
        self.in_ep = in_ep
        self.out_ep = out_ep

    @classmethod
    def from_config(cls, config: PrinterConfig) -> "UsbTransport":
        try:
            ids = parse_usb_ids(config.connection_string)
        except ValueError as e:
            raise UnsupportedTransportError(
                f"Invalid USB connection string: {config.connection_string}",
                context={'printer': config.id, 'error': str(e)}
            ) from e
        vendor_id, product_id = ids if ids else (None, None)
        return cls(
            vendor_id,
            product_id,
            timeout=int(config.setting('usb_timeout_ms', 0) or 0),
            in_ep=config.setting('in_ep'),
            out_ep=config.setting('out_ep'),
        )

    def detect_printer(self) -> Optional[Tuple[int, int]]:
        """
        Attempt to detect a connected USB thermal printer.

        Returns:
            Tuple of (vendor_id, product_id) if found, None otherwise
        """
        devices = find_printer_devices()
        if not devices:
            logger.warning("[USB] No printer detected during auto-detection")
            return None
        device = devices[0]
        logger.info(f"[USB] Printer detected: VID={hex(device.idVendor)}, PID={hex(device.idProduct)}")
        return device.idVendor, device.idProduct

    def _open_handle(self):
        if self.vendor_id and self.product_id:
            vid, pid = self.vendor_id, self.product_id
        else:
            detected = self.detect_printer()
            if not detected:
                raise PrinterNotFoundError("No USB printer found during auto-detection")
            vid, pid = detected

        kwargs = {}
        if self.timeout:
            kwargs['timeout'] = self.timeout
        if self.in_ep is not None:
            kwargs['in_ep'] = _endpoint(self.in_ep)
        if self.out_ep is not None:
            kwargs['out_ep'] = _endpoint(self.out_ep)

        logger.debug(f"[USB] Opening device {hex(vid)}:{hex(pid)}")
        printer = Usb(vid, pid, **kwargs)
        printer.open()
        return printer

    def describe(self) -> str:
        if self.vendor_id and self.product_id:
            return f"USB printer {self.vendor_id:04x}:{self.product_id:04x}"
        return "USB printer (auto-detect)"


class UsbScanner:
    """Lists attached USB printers. An absent driver yields no candidates."""

    transport_type = TransportType.USB

    def _scan_blocking(self) -> List[DiscoveredPrinter]:
        if not USB_AVAILABLE:
            logger.info("[USB] pyusb not installed, skipping USB discovery")
            return []
        try:
            devices = find_printer_devices()
        except usb.core.NoBackendError:
            logger.info("[USB] No libusb backend available, skipping USB discovery")
            return []

        printers = []
        for device in devices:
            ids = f"{device.idVendor:04x}:{device.idProduct:04x}"
            product = _product_name(device) or KNOWN_VENDORS.get(device.idVendor) or 'Unknown'
            printers.append(DiscoveredPrinter(
                name=f"USB Thermal Printer ({product})",
                transport_type=TransportType.USB,
                connection_string=ids,
                description=f"USB Device: {product} [{ids}]",
            ))
        logger.info(f"[USB] Found {len(printers)} printer devices")
        return printers

    async def scan(self) -> List[DiscoveredPrinter]:
        return await asyncio.to_thread(self._scan_blocking)
