"""
Bluetooth connection management for thermal printers.
Handles native RFCOMM connections, BLE scanning and the paired-device fallback.
"""

import asyncio
import json
import logging
import re
import socket
import subprocess
import sys
from typing import Dict, List, Optional

from .models import DiscoveredPrinter, PrinterConfig, TransportType
from .transport import TransportDriver

try:
    from bleak import BleakScanner  # type: ignore
    from bleak.exc import BleakError  # type: ignore
    BLEAK_AVAILABLE = True
except ImportError:
    BLEAK_AVAILABLE = False

    class BleakError(Exception):
        """Placeholder so except clauses stay valid without bleak."""

logger = logging.getLogger(__name__)

# 16-bit 0x18F0 service advertised by most BLE receipt printers
PRINTER_SERVICE_UUID = "000018f0-0000-1000-8000-00805f9b34fb"
PRINTER_NAME_KEYWORDS = ('printer', 'pos', 'receipt')
DEFAULT_RFCOMM_CHANNEL = 1

_MAC_PATTERN = re.compile(r'^([0-9A-Fa-f]{2}[:-]){5}([0-9A-Fa-f]{2})$')
# 12 hex digits not adjacent to other hex digits, e.g. "...&0&0012F3ABCDEF_C00000000"
_BARE_MAC_PATTERN = re.compile(r"(?<![0-9A-F])[0-9A-F]{12}(?![0-9A-F])")


def is_mac_address(value: str) -> bool:
    """
    Validate Bluetooth MAC address format.

    Args:
        value: MAC address to validate

    Returns:
        True if valid format
    """
    return bool(_MAC_PATTERN.match((value or '').strip()))


def mac_from_instance_id(instance_id: str) -> Optional[str]:
    """
    Extract the device address from a Windows PnP InstanceId.

    The address is the last bare 12-digit hex run. It always follows the
    service GUID, whose final group is also 12 hex digits.

    Returns:
        MAC address as 'AA:BB:CC:DD:EE:FF', or None if the id carries none
    """
    matches = _BARE_MAC_PATTERN.findall((instance_id or '').upper())
    if not matches or matches[-1] == '000000000000':
        return None
    raw = matches[-1]
    return ':'.join(raw[i:i + 2] for i in range(0, 12, 2))


def native_bluetooth_available() -> bool:
    """True when the Python build exposes RFCOMM sockets (Linux/BlueZ, Windows)."""
    return hasattr(socket, 'AF_BLUETOOTH') and hasattr(socket, 'BTPROTO_RFCOMM')


def looks_like_printer(name: Optional[str]) -> bool:
    lowered = (name or '').lower()
    return any(keyword in lowered for keyword in PRINTER_NAME_KEYWORDS)


class BluetoothTransport(TransportDriver):
    """Native Bluetooth serial-profile (RFCOMM) connection."""

    transport_type = TransportType.BLUETOOTH

    def __init__(self, mac_address: str, channel: int = DEFAULT_RFCOMM_CHANNEL, timeout: float = 10.0):
        super().__init__()
        self.mac_address = mac_address.strip().replace('-', ':').upper()
        self.channel = int(channel)
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: PrinterConfig) -> "BluetoothTransport":
        return cls(
            config.connection_string,
            channel=int(config.setting('channel', DEFAULT_RFCOMM_CHANNEL)),
            timeout=float(config.setting('timeout', 10.0)),
        )

    def _open_handle(self):
        sock = socket.socket(socket.AF_BLUETOOTH, socket.SOCK_STREAM, socket.BTPROTO_RFCOMM)
        sock.settimeout(self.timeout)
        try:
            sock.connect((self.mac_address, self.channel))
        except OSError:
            sock.close()
            raise
        return sock

    def _write_handle(self, handle, data: bytes) -> None:
        handle.sendall(data)

    def describe(self) -> str:
        return f"bluetooth printer {self.mac_address} (channel {self.channel})"


class BluetoothScanner:
    """
    Finds Bluetooth printers.

    Prefers a BLE scan filtered to the printer service; falls back to the
    operating system's paired-device list where one can be queried.
    """

    transport_type = TransportType.BLUETOOTH

    def __init__(self, timeout: float = 10.0, platform: Optional[str] = None):
        """
        Args:
            timeout: BLE scan window in seconds
            platform: Override for sys.platform (used to pick the paired-device query)
        """
        self.timeout = timeout
        self.platform = platform or sys.platform

    async def scan(self) -> List[DiscoveredPrinter]:
        if BLEAK_AVAILABLE:
            try:
                return await self._scan_ble()
            except (BleakError, OSError) as e:
                logger.info(f"[Bluetooth] BLE scan unavailable ({e}), using paired devices")
        else:
            logger.info("[Bluetooth] bleak not installed, using paired devices")
        return await asyncio.to_thread(self._paired_printers)

    async def _scan_ble(self) -> List[DiscoveredPrinter]:
        logger.info(f"[Bluetooth] Scanning BLE for printers ({self.timeout}s)...")
        found = await BleakScanner.discover(
            timeout=self.timeout,
            service_uuids=[PRINTER_SERVICE_UUID],
            return_adv=True,
        )

        printers = []
        for address, (device, advertisement) in found.items():
            name = advertisement.local_name or device.name
            if not looks_like_printer(name):
                continue
            printers.append(DiscoveredPrinter(
                name=f"Bluetooth Printer ({name})",
                transport_type=TransportType.BLUETOOTH,
                connection_string=device.address or address,
                description=f"Bluetooth: {name} - RSSI: {advertisement.rssi}dBm",
            ))
        logger.info(f"[Bluetooth] Found {len(printers)} BLE printers")
        return printers

    def _paired_printers(self) -> List[DiscoveredPrinter]:
        if self.platform.startswith('linux'):
            devices = self._paired_devices_bluez()
        elif self.platform == 'win32':
            devices = self._paired_devices_windows()
        else:
            logger.info(f"[Bluetooth] No paired-device query on {self.platform}")
            return []

        printers = []
        for device in devices:
            if not looks_like_printer(device['name']):
                continue
            printers.append(DiscoveredPrinter(
                name=f"Bluetooth Printer ({device['name']})",
                transport_type=TransportType.BLUETOOTH,
                connection_string=device['address'],
                description=f"Paired Bluetooth device: {device['name']}",
            ))
        logger.info(f"[Bluetooth] Found {len(printers)} paired printers")
        return printers

    def _paired_devices_bluez(self) -> List[Dict[str, str]]:
        """
        Read the paired-device list from bluetoothctl.

        Returns:
            List of {"address": mac, "name": name}
        """
        # Newer bluez uses 'devices Paired', older releases 'paired-devices'
        for args in (['bluetoothctl', 'devices', 'Paired'], ['bluetoothctl', 'paired-devices']):
            try:
                result = subprocess.run(args, capture_output=True, text=True, timeout=5)
            except FileNotFoundError:
                logger.info("[Bluetooth] bluetoothctl not found. Install with: sudo apt-get install bluez")
                return []
            except subprocess.TimeoutExpired:
                logger.warning("[Bluetooth] bluetoothctl timed out")
                return []
            if result.returncode == 0 and result.stdout.strip():
                break
        else:
            return []

        devices = []
        for line in result.stdout.splitlines():
            # Format: "Device XX:XX:XX:XX:XX:XX Device Name"
            parts = line.strip().split(' ', 2)
            if len(parts) >= 2 and parts[0] == 'Device' and is_mac_address(parts[1]):
                devices.append({
                    'address': parts[1],
                    'name': parts[2] if len(parts) > 2 else 'Unknown Device',
                })
        return devices

    def _paired_devices_windows(self) -> List[Dict[str, str]]:
        command = (
            "Get-PnpDevice -Class Bluetooth | "
            "Select-Object FriendlyName, InstanceId | ConvertTo-Json"
        )
        try:
            result = subprocess.run(
                ['powershell', '-NoProfile', '-Command', command],
                capture_output=True,
                text=True,
                timeout=15
            )
        except (FileNotFoundError, subprocess.TimeoutExpired) as e:
            logger.info(f"[Bluetooth] PowerShell device query failed: {e}")
            return []
        if result.returncode != 0 or not result.stdout.strip():
            return []

        try:
            entries = json.loads(result.stdout)
        except ValueError as e:
            logger.debug(f"[Bluetooth] Unexpected PowerShell output: {e}")
            return []
        if isinstance(entries, dict):
            entries = [entries]

        devices = []
        for entry in entries:
            address = mac_from_instance_id(entry.get('InstanceId') or '')
            if address is None:
                continue
            devices.append({'address': address, 'name': entry.get('FriendlyName') or 'Unknown Device'})
        return devices
