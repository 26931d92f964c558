"""
Printer connection management.
Resolves a stored printer configuration into a live transport and tracks the session state.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from . import formatter
from .exceptions import NoPrinterConfiguredError, PrinterConnectionError, PrinterError, wrap_error
from .models import PrinterConfig
from .registry import create_transport
from .store import PrinterStore
from .transport import TransportDriver

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class ConnectionManager:
    """
    Owns the single printer session of the process.

    ``initialize`` always closes the previous session before opening a new
    one, so at most one device handle is live at any time. There is no
    automatic reconnect: after a failure the state stays DISCONNECTED until
    the next ``initialize``.
    """

    def __init__(self, store: PrinterStore,
                 transport_factory: Callable[[PrinterConfig], TransportDriver] = create_transport):
        """
        Args:
            store: Printer configuration store
            transport_factory: Builds a driver from a config (the registry by default)
        """
        self.store = store
        self.transport_factory = transport_factory
        self.state = ConnectionState.UNINITIALIZED
        self.printer: Optional[PrinterConfig] = None
        self.driver: Optional[TransportDriver] = None

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    def _record_status(self, printer_id: str, is_connected: bool, last_used: Optional[datetime] = None):
        """Persist connectivity status. Store failures are logged, never raised."""
        try:
            self.store.update_status(printer_id, is_connected, last_used=last_used)
        except Exception as e:
            logger.warning(f"[Manager] Could not record status for {printer_id}: {e}")

    def _resolve(self, printer_id: Optional[str]) -> PrinterConfig:
        config = self.store.get(printer_id) if printer_id else self.store.get_default()
        if config is None:
            raise NoPrinterConfiguredError(
                "No printer configuration found",
                context={'printer': printer_id or 'default'}
            )
        return config

    def initialize(self, printer_id: Optional[str] = None) -> PrinterConfig:
        """
        Open a session to a stored printer.

        Args:
            printer_id: Printer to use, or None for the default printer

        Returns:
            The printer configuration the session was opened for

        Raises:
            NoPrinterConfiguredError: If no matching configuration exists
            PrinterError: Classified transport failure
        """
        self.disconnect()
        self.state = ConnectionState.CONNECTING

        try:
            config = self._resolve(printer_id)
        except Exception as e:
            self.printer = None
            self.state = ConnectionState.DISCONNECTED
            error = wrap_error(e, context={'printer': printer_id or 'default'})
            logger.error(f"[Manager] Could not load printer {printer_id or 'default'}: {error}")
            if error is e:
                raise
            raise error from e

        self.printer = config
        logger.info(f"[Manager] Connecting to {config.name} ({config.transport_type.value}: {config.connection_string})")
        driver = None
        try:
            driver = self.transport_factory(config)
            driver.open()
        except Exception as e:
            if driver is not None:
                driver.close()
            self.state = ConnectionState.DISCONNECTED
            self._record_status(config.id, False)
            error = wrap_error(e, context={'printer': config.id})
            logger.error(f"[Manager] Connection to {config.name} failed: {error}")
            if error is e:
                raise
            raise error from e

        self.driver = driver
        self.state = ConnectionState.CONNECTED
        self._record_status(config.id, True, last_used=datetime.now())
        logger.info(f"[Manager] Connected to {config.name} via {driver.describe()}")
        return config

    def send(self, data: bytes) -> None:
        """
        Write bytes to the session printer, closing the handle afterwards.

        Raises:
            PrinterConnectionError: If there is no connected session
            PrinterError: Classified transport failure; the session becomes DISCONNECTED
        """
        if self.state is not ConnectionState.CONNECTED or self.driver is None:
            raise PrinterConnectionError(
                "Printer session is not connected",
                context={'state': self.state.value}
            )

        driver = self.driver
        try:
            if not driver.is_open:
                driver.open()
            driver.write(data)
        except Exception as e:
            self.state = ConnectionState.DISCONNECTED
            self._record_status(self.printer.id, False)
            error = wrap_error(e, context={'printer': self.printer.id})
            logger.error(f"[Manager] Write to {self.printer.name} failed: {error}")
            if error is e:
                raise
            raise error from e
        finally:
            driver.close()
        logger.debug(f"[Manager] Sent {len(data)} bytes to {self.printer.name}")

    def test_connection(self) -> bool:
        """
        Print the diagnostic test page.

        Initializes the default printer first when no session is connected.

        Returns:
            True if the test page was sent

        Raises:
            PrinterError: Classified failure of the implicit initialize or the write
        """
        if self.state is not ConnectionState.CONNECTED:
            logger.info("[Manager] Printer not connected, initializing before test print...")
            self.initialize()

        self.send(formatter.encode(formatter.test_page()))
        logger.info(f"[Manager] Test page sent to {self.printer.name}")
        return True

    test_printer = test_connection

    def check_status(self, printer_id: str) -> str:
        """
        Try to connect to a printer and report the outcome.

        Returns:
            "connected" or "disconnected"
        """
        try:
            self.initialize(printer_id)
        except PrinterError as e:
            logger.info(f"[Manager] Status check for {printer_id}: disconnected ({e.technical_detail})")
            return ConnectionState.DISCONNECTED.value
        return ConnectionState.CONNECTED.value

    def disconnect(self) -> None:
        """Close the session if any. Safe to call repeatedly."""
        driver, self.driver = self.driver, None
        if driver is not None:
            driver.close()
            logger.info(f"[Manager] Printer {self.printer.id if self.printer else ''} disconnected")
        if self.state is not ConnectionState.UNINITIALIZED:
            self.state = ConnectionState.DISCONNECTED

    def get_status(self) -> dict:
        """
        Get session status.

        Returns:
            Dictionary with state and the active printer, if any
        """
        status = {
            'state': self.state.value,
            'connected': self.is_connected,
            'printer_id': None,
            'transport': None,
        }
        if self.printer is not None:
            status['printer_id'] = self.printer.id
            status['printer_name'] = self.printer.name
            status['transport'] = self.printer.transport_type.value
        if self.driver is not None:
            status['device'] = self.driver.describe()
        return status
