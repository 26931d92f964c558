"""
Transport driver base class.

A driver wraps exactly one connection mechanism and owns at most one open
device handle. Drivers are scoped resources: ``with driver:`` opens the handle
and guarantees it is closed on every exit path.
"""

import logging
from abc import ABC, abstractmethod

from .exceptions import PrinterConnectionError, wrap_error
from .models import TransportType

logger = logging.getLogger(__name__)


class TransportDriver(ABC):
    """Abstract base class for printer transports."""

    transport_type: TransportType

    def __init__(self):
        self._handle = None

    @property
    def is_open(self) -> bool:
        return self._handle is not None

    @abstractmethod
    def _open_handle(self):
        """Open and return the underlying device handle."""

    def _write_handle(self, handle, data: bytes) -> None:
        # escpos printer objects accept raw ESC/POS bytes
        handle._raw(data)

    def _close_handle(self, handle) -> None:
        handle.close()

    def open(self):
        """
        Open the device handle.

        Returns:
            The underlying handle

        Raises:
            PrinterConnectionError: If the driver is already open
            PrinterError: Classified open failure
        """
        if self._handle is not None:
            raise PrinterConnectionError(
                f"{self.describe()} is already open",
                context={'transport': self.transport_type.value}
            )
        try:
            self._handle = self._open_handle()
        except Exception as e:
            raise wrap_error(e, context={'transport': self.transport_type.value}) from e
        logger.debug(f"[Transport] Opened {self.describe()}")
        return self._handle

    def write(self, data: bytes) -> None:
        """Send raw bytes to the open device."""
        if self._handle is None:
            raise PrinterConnectionError(
                f"{self.describe()} is not open",
                context={'transport': self.transport_type.value}
            )
        try:
            self._write_handle(self._handle, data)
        except Exception as e:
            raise wrap_error(e, context={'transport': self.transport_type.value}) from e

    def close(self) -> None:
        """Close the device handle if open. Never raises."""
        handle, self._handle = self._handle, None
        if handle is None:
            return
        try:
            self._close_handle(handle)
            logger.debug(f"[Transport] Closed {self.describe()}")
        except Exception as e:
            logger.debug(f"[Transport] Error closing {self.describe()}: {e}")

    def describe(self) -> str:
        return f"{self.transport_type.value} transport"

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def __repr__(self):
        return f"{type(self).__name__}({self.describe()})"
