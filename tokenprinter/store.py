"""
Printer configuration store.

The connection manager only needs the small ``PrinterStore`` interface; the
JSON file implementation here backs the command line tool and the tests.
"""

import json
import logging
import os
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from .exceptions import InvalidConfigurationError, NoPrinterConfiguredError
from .models import PrinterConfig, TransportType, printer_id_for

logger = logging.getLogger(__name__)


class PrinterStore(Protocol):
    """Read and status-write access to persisted printer configurations."""

    def get(self, printer_id: str) -> Optional[PrinterConfig]:
        ...

    def get_default(self) -> Optional[PrinterConfig]:
        ...

    def update_status(self, printer_id: str, is_connected: bool,
                      last_used: Optional[datetime] = None) -> None:
        ...

    def list(self) -> List[PrinterConfig]:
        ...


class JsonPrinterStore:
    """
    Printer configurations kept in a JSON file.

    The file holds ``{"printers": [...]}`` using the camelCase record layout
    of ``PrinterConfig.to_dict``. Every change rewrites the whole file through
    a temporary file and ``os.replace``.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _load(self) -> List[PrinterConfig]:
        if not self.path.exists():
            return []
        try:
            with self.path.open('r', encoding='utf-8') as f:
                data = json.load(f)
            return [PrinterConfig.from_dict(item) for item in data.get('printers', [])]
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            raise InvalidConfigurationError(
                f"Failed to load printers from {self.path}",
                context={'path': str(self.path), 'error': str(e)}
            ) from e

    def _save(self, printers: List[PrinterConfig]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + '.tmp')
        with tmp_path.open('w', encoding='utf-8') as f:
            json.dump({'printers': [p.to_dict() for p in printers]}, f, indent=2)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, self.path)

    def list(self) -> List[PrinterConfig]:
        with self._lock:
            return self._load()

    def get(self, printer_id: str) -> Optional[PrinterConfig]:
        for printer in self.list():
            if printer.id == printer_id:
                return printer
        return None

    def get_default(self) -> Optional[PrinterConfig]:
        for printer in self.list():
            if printer.is_default:
                return printer
        return None

    def update_status(self, printer_id: str, is_connected: bool,
                      last_used: Optional[datetime] = None) -> None:
        with self._lock:
            printers = self._load()
            for printer in printers:
                if printer.id == printer_id:
                    printer.is_connected = is_connected
                    if last_used is not None:
                        printer.last_used = last_used
                    self._save(printers)
                    return
        logger.debug(f"[Store] Status update for unknown printer {printer_id} ignored")

    def add(self, name: str, transport_type, connection_string: str, is_default: bool = False,
            settings: Optional[Dict[str, Any]] = None, printer_id: Optional[str] = None) -> PrinterConfig:
        """
        Add a printer configuration.

        Args:
            name: Display name
            transport_type: TransportType or its string value
            connection_string: Transport-specific address
            is_default: Make this the only default printer
            settings: Optional per-printer settings
            printer_id: Explicit id, derived from type and address when omitted

        Returns:
            The stored configuration

        Raises:
            UnsupportedTransportError: If the transport type is unknown
            InvalidConfigurationError: If a printer with the same id exists
        """
        transport_type = TransportType.parse(transport_type)
        printer = PrinterConfig(
            id=printer_id or printer_id_for(transport_type, connection_string),
            name=name,
            transport_type=transport_type,
            connection_string=connection_string,
            is_default=is_default,
            settings=settings or {},
        )
        with self._lock:
            printers = self._load()
            if any(p.id == printer.id for p in printers):
                raise InvalidConfigurationError(
                    f"Printer {printer.id} already exists",
                    context={'path': str(self.path)}
                )
            if is_default or not printers:
                for existing in printers:
                    existing.is_default = False
                printer.is_default = True
            printers.append(printer)
            self._save(printers)
        logger.info(f"[Store] Added printer {printer.id} ({printer.name})")
        return printer

    def remove(self, printer_id: str) -> bool:
        """Remove a printer. Returns False if it did not exist."""
        with self._lock:
            printers = self._load()
            remaining = [p for p in printers if p.id != printer_id]
            if len(remaining) == len(printers):
                return False
            self._save(remaining)
        logger.info(f"[Store] Removed printer {printer_id}")
        return True

    def set_default(self, printer_id: str) -> PrinterConfig:
        """
        Flag one printer as the default and clear the flag on all others.

        Raises:
            NoPrinterConfiguredError: If the printer does not exist
        """
        with self._lock:
            printers = self._load()
            selected = None
            for printer in printers:
                printer.is_default = printer.id == printer_id
                if printer.is_default:
                    selected = printer
            if selected is None:
                raise NoPrinterConfiguredError(
                    "No printer configuration found",
                    context={'printer': printer_id}
                )
            self._save(printers)
        logger.info(f"[Store] Default printer set to {printer_id}")
        return selected
