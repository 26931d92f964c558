"""
Transport registry.

Maps each TransportType to an ordered tuple of factories. The first factory
whose ``supports()`` check passes builds the driver, which is how Bluetooth
falls back to a Bluetooth-to-IP bridge when native RFCOMM is not usable.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Tuple

from .bluetooth import BluetoothTransport, is_mac_address, native_bluetooth_available
from .exceptions import UnsupportedTransportError
from .models import PrinterConfig, TransportType
from .network import NetworkTransport, parse_host_port
from .serial_port import SerialTransport
from .transport import TransportDriver
from .usb import UsbTransport, parse_usb_ids, usb_driver_available

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransportFactory:
    """A named way of building a driver, with an explicit feasibility check."""

    name: str
    supports: Callable[[PrinterConfig], bool]
    create: Callable[[PrinterConfig], TransportDriver]


def _usb_supported(config: PrinterConfig) -> bool:
    if not usb_driver_available():
        return False
    try:
        parse_usb_ids(config.connection_string)
    except ValueError:
        return False
    return True


def _host_port_supported(config: PrinterConfig) -> bool:
    return parse_host_port(config.connection_string) is not None


def _serial_supported(config: PrinterConfig) -> bool:
    return bool(config.connection_string.strip())


def _bluetooth_native_supported(config: PrinterConfig) -> bool:
    return native_bluetooth_available() and is_mac_address(config.connection_string)


def _bluetooth_bridge_supported(config: PrinterConfig) -> bool:
    # A bridge needs an explicit port; a bare name is never guessed at 9100
    return parse_host_port(config.connection_string, default_port=None) is not None


def _bluetooth_bridge(config: PrinterConfig) -> TransportDriver:
    logger.info(f"[Registry] Using Bluetooth-to-IP bridge at {config.connection_string}")
    return NetworkTransport.from_config(config, transport_type=TransportType.BLUETOOTH)


USB_FACTORY = TransportFactory('usb', _usb_supported, UsbTransport.from_config)
NETWORK_FACTORY = TransportFactory('network', _host_port_supported, NetworkTransport.from_config)
SERIAL_FACTORY = TransportFactory('serial', _serial_supported, SerialTransport.from_config)
BLUETOOTH_NATIVE_FACTORY = TransportFactory(
    'bluetooth-rfcomm', _bluetooth_native_supported, BluetoothTransport.from_config
)
BLUETOOTH_BRIDGE_FACTORY = TransportFactory('bluetooth-bridge', _bluetooth_bridge_supported, _bluetooth_bridge)

REGISTRY: Dict[TransportType, Tuple[TransportFactory, ...]] = {
    TransportType.USB: (USB_FACTORY,),
    TransportType.NETWORK: (NETWORK_FACTORY,),
    TransportType.WIFI: (NETWORK_FACTORY,),
    TransportType.SERIAL: (SERIAL_FACTORY,),
    TransportType.BLUETOOTH: (BLUETOOTH_NATIVE_FACTORY, BLUETOOTH_BRIDGE_FACTORY),
}


def create_transport(config: PrinterConfig,
                     registry: Dict[TransportType, Tuple[TransportFactory, ...]] = None) -> TransportDriver:
    """
    Build the driver for a printer configuration.

    Args:
        config: Printer configuration
        registry: Factory table to use instead of the module default

    Returns:
        An unopened TransportDriver

    Raises:
        UnsupportedTransportError: If no factory for the type supports the config
    """
    table = REGISTRY if registry is None else registry
    factories = table.get(config.transport_type, ())

    for factory in factories:
        if factory.supports(config):
            logger.debug(f"[Registry] {config.id}: using {factory.name} transport")
            return factory.create(config)
        logger.debug(f"[Registry] {config.id}: {factory.name} transport not usable")

    raise UnsupportedTransportError(
        f"No usable {config.transport_type.value} transport for '{config.connection_string}'",
        context={'printer': config.id, 'tried': ", ".join(f.name for f in factories) or 'none'}
    )
