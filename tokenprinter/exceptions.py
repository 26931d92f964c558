"""
Custom exceptions for printer connectivity and discovery.

Every failure that leaves this package is a PrinterError subclass tagged with an
ErrorCategory, so callers can choose a user-facing message without parsing
driver-specific error text. The raw technical message is kept in ``context``.
"""

import errno
import socket
from enum import Enum
from typing import Optional

from escpos.exceptions import DeviceNotFoundError as EscposDeviceNotFoundError  # type: ignore


class ErrorCategory(str, Enum):
    """Failure classes surfaced to callers."""

    NO_PRINTER_CONFIGURED = "no_printer_configured"
    UNSUPPORTED = "unsupported"
    DEVICE_NOT_FOUND = "device_not_found"
    PERMISSION_DENIED = "permission_denied"
    TIMEOUT = "timeout"
    CONNECTION_REFUSED = "connection_refused"
    UNKNOWN = "unknown"


USER_MESSAGES = {
    ErrorCategory.NO_PRINTER_CONFIGURED: "No printer configured. Please set up a printer first.",
    ErrorCategory.UNSUPPORTED: "This printer connection type is not supported on this host.",
    ErrorCategory.DEVICE_NOT_FOUND: "Printer not found. Check if printer is connected and powered on.",
    ErrorCategory.PERMISSION_DENIED: "Permission denied. Check printer permissions.",
    ErrorCategory.TIMEOUT: "Printer connection timeout. Check if printer is responding.",
    ErrorCategory.CONNECTION_REFUSED: "Cannot connect to printer. Check network connection.",
}


class PrinterError(Exception):
    """Base exception for all printer-related errors."""

    category = ErrorCategory.UNKNOWN

    def __init__(self, message: str, context: dict = None):
        """
        Initialize printer error.

        Args:
            message: Error message
            context: Optional dictionary with additional error context
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self):
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} ({context_str})"
        return self.message

    @property
    def technical_detail(self) -> str:
        """Raw driver error text when known, otherwise the message itself."""
        return str(self.context.get('error') or self.message)

    @property
    def user_message(self) -> str:
        if self.category in USER_MESSAGES:
            return USER_MESSAGES[self.category]
        return f"Printer error: {self.technical_detail}"


class PrinterConnectionError(PrinterError):
    """Raised when printer connection fails for an unclassified reason."""
    pass


class NoPrinterConfiguredError(PrinterError):
    """Raised when no matching printer configuration exists."""
    category = ErrorCategory.NO_PRINTER_CONFIGURED


class UnsupportedTransportError(PrinterError):
    """Raised when a transport has no driver on this host and no usable fallback."""
    category = ErrorCategory.UNSUPPORTED


class InvalidConfigurationError(PrinterError):
    """Raised when a settings or printer store file cannot be used."""
    pass


class PrinterNotFoundError(PrinterConnectionError):
    """Raised when the device or device path does not exist."""
    category = ErrorCategory.DEVICE_NOT_FOUND


class PrinterPermissionError(PrinterConnectionError):
    """Raised when access to the device is denied."""
    category = ErrorCategory.PERMISSION_DENIED


class PrinterTimeoutError(PrinterConnectionError):
    """Raised when the device does not respond in time."""
    category = ErrorCategory.TIMEOUT


class ConnectionRefusedByPrinterError(PrinterConnectionError):
    """Raised when the remote end actively refuses the connection."""
    category = ErrorCategory.CONNECTION_REFUSED


_CATEGORY_ERRORS = {
    ErrorCategory.NO_PRINTER_CONFIGURED: NoPrinterConfiguredError,
    ErrorCategory.UNSUPPORTED: UnsupportedTransportError,
    ErrorCategory.DEVICE_NOT_FOUND: PrinterNotFoundError,
    ErrorCategory.PERMISSION_DENIED: PrinterPermissionError,
    ErrorCategory.TIMEOUT: PrinterTimeoutError,
    ErrorCategory.CONNECTION_REFUSED: ConnectionRefusedByPrinterError,
    ErrorCategory.UNKNOWN: PrinterConnectionError,
}

_WRAPPED_MESSAGES = {
    ErrorCategory.NO_PRINTER_CONFIGURED: "No printer configuration found",
    ErrorCategory.UNSUPPORTED: "Transport not supported on this host",
    ErrorCategory.DEVICE_NOT_FOUND: "Printer device not found",
    ErrorCategory.PERMISSION_DENIED: "Permission denied opening printer",
    ErrorCategory.TIMEOUT: "Printer did not respond in time",
    ErrorCategory.CONNECTION_REFUSED: "Printer refused the connection",
}

_ERRNO_CATEGORIES = {
    errno.ETIMEDOUT: ErrorCategory.TIMEOUT,
    errno.ECONNREFUSED: ErrorCategory.CONNECTION_REFUSED,
    errno.EACCES: ErrorCategory.PERMISSION_DENIED,
    errno.EPERM: ErrorCategory.PERMISSION_DENIED,
    errno.ENOENT: ErrorCategory.DEVICE_NOT_FOUND,
    errno.ENODEV: ErrorCategory.DEVICE_NOT_FOUND,
    errno.ENXIO: ErrorCategory.DEVICE_NOT_FOUND,
    errno.EHOSTUNREACH: ErrorCategory.DEVICE_NOT_FOUND,
    errno.EHOSTDOWN: ErrorCategory.DEVICE_NOT_FOUND,
}

# Checked in order against the lowercased message chain
_MESSAGE_CATEGORIES = [
    ('no printer configuration found', ErrorCategory.NO_PRINTER_CONFIGURED),
    ('enoent', ErrorCategory.DEVICE_NOT_FOUND),
    ('device not found', ErrorCategory.DEVICE_NOT_FOUND),
    ('no such file or directory', ErrorCategory.DEVICE_NOT_FOUND),
    ('eacces', ErrorCategory.PERMISSION_DENIED),
    ('permission denied', ErrorCategory.PERMISSION_DENIED),
    ('access denied', ErrorCategory.PERMISSION_DENIED),
    ('etimedout', ErrorCategory.TIMEOUT),
    ('timed out', ErrorCategory.TIMEOUT),
    ('timeout', ErrorCategory.TIMEOUT),
    ('econnrefused', ErrorCategory.CONNECTION_REFUSED),
    ('connection refused', ErrorCategory.CONNECTION_REFUSED),
]


def _exception_chain(exc: BaseException):
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def _category_of(exc: BaseException) -> Optional[ErrorCategory]:
    if isinstance(exc, PrinterError) and exc.category is not ErrorCategory.UNKNOWN:
        return exc.category
    if isinstance(exc, (TimeoutError, socket.timeout)):
        return ErrorCategory.TIMEOUT
    if isinstance(exc, ConnectionRefusedError):
        return ErrorCategory.CONNECTION_REFUSED
    if isinstance(exc, PermissionError):
        return ErrorCategory.PERMISSION_DENIED
    if isinstance(exc, FileNotFoundError):
        return ErrorCategory.DEVICE_NOT_FOUND
    if isinstance(exc, OSError) and exc.errno in _ERRNO_CATEGORIES:
        return _ERRNO_CATEGORIES[exc.errno]
    return None


def classify_error(exc: BaseException) -> ErrorCategory:
    """
    Map any exception raised by a transport or driver to an ErrorCategory.

    The whole ``__cause__``/``__context__`` chain is inspected, since escpos
    wraps socket and serial errors in its own exception types.

    Args:
        exc: Exception to classify

    Returns:
        The most specific category found, ErrorCategory.UNKNOWN otherwise
    """
    chain = list(_exception_chain(exc))

    for item in chain:
        category = _category_of(item)
        if category is not None:
            return category

    text = " ".join(str(item) for item in chain).lower()
    for needle, category in _MESSAGE_CATEGORIES:
        if needle in text:
            return category

    for item in chain:
        if isinstance(item, EscposDeviceNotFoundError):
            return ErrorCategory.DEVICE_NOT_FOUND
        if type(item).__name__ == 'NoBackendError':
            return ErrorCategory.DEVICE_NOT_FOUND

    return ErrorCategory.UNKNOWN


def wrap_error(exc: BaseException, context: dict = None) -> PrinterError:
    """
    Convert an arbitrary exception into the matching PrinterError subclass.

    Already-classified PrinterErrors are returned untouched. The caller is
    expected to ``raise wrap_error(e) from e``.
    """
    category = classify_error(exc)
    if isinstance(exc, PrinterError) and (
        exc.category is category or category is ErrorCategory.UNKNOWN
    ):
        return exc

    raw = exc.technical_detail if isinstance(exc, PrinterError) else (str(exc) or type(exc).__name__)
    merged = dict(context or {})
    merged['error'] = raw
    message = _WRAPPED_MESSAGES.get(category, raw)
    return _CATEGORY_ERRORS[category](message, context=merged)
