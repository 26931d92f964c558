"""
Printer discovery, connection management and token receipt printing.
"""

from .discovery import DiscoveryEngine
from .exceptions import ErrorCategory, PrinterError, classify_error
from .executor import PrintJobExecutor
from .manager import ConnectionManager, ConnectionState
from .models import DiscoveredPrinter, PrinterConfig, PrintResult, TokenJob, TransportType
from .store import JsonPrinterStore, PrinterStore

__version__ = "1.0.0"

__all__ = [
    "ConnectionManager",
    "ConnectionState",
    "DiscoveredPrinter",
    "DiscoveryEngine",
    "ErrorCategory",
    "JsonPrinterStore",
    "PrintJobExecutor",
    "PrintResult",
    "PrinterConfig",
    "PrinterError",
    "PrinterStore",
    "TokenJob",
    "TransportType",
    "classify_error",
]
