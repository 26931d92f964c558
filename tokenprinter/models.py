"""
Data types shared across the connectivity, discovery and printing layers.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from .exceptions import ErrorCategory, UnsupportedTransportError


class TransportType(str, Enum):
    """Physical or logical link used to reach a printer."""

    USB = "usb"
    NETWORK = "network"
    WIFI = "wifi"
    SERIAL = "serial"
    BLUETOOTH = "bluetooth"

    @classmethod
    def parse(cls, value) -> "TransportType":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnsupportedTransportError(
                f"Unsupported printer type: {value}",
                context={'type': value}
            )


# Defaults mirrored from the printer settings schema
DEFAULT_SETTINGS = {
    'width': 48,
    'font_size': 'normal',
    'auto_cut': True,
    'encoding': 'utf8',
}


@dataclass
class PrinterConfig:
    """A persisted printer, as read from the printer store."""

    id: str
    name: str
    transport_type: TransportType
    connection_string: str
    is_default: bool = False
    is_connected: bool = False
    settings: Dict[str, Any] = field(default_factory=dict)
    last_used: Optional[datetime] = None

    def __post_init__(self):
        self.transport_type = TransportType.parse(self.transport_type)
        self.settings = {**DEFAULT_SETTINGS, **(self.settings or {})}

    def setting(self, key: str, default=None):
        return self.settings.get(key, default)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'type': self.transport_type.value,
            'connectionString': self.connection_string,
            'isDefault': self.is_default,
            'isConnected': self.is_connected,
            'settings': dict(self.settings),
            'lastUsed': self.last_used.isoformat() if self.last_used else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PrinterConfig":
        last_used = data.get('lastUsed')
        return cls(
            id=str(data['id']),
            name=data.get('name') or str(data['id']),
            transport_type=data['type'],
            connection_string=str(data.get('connectionString', '')),
            is_default=bool(data.get('isDefault', False)),
            is_connected=bool(data.get('isConnected', False)),
            settings=data.get('settings') or {},
            last_used=datetime.fromisoformat(last_used) if last_used else None,
        )


def printer_id_for(transport_type, connection_string: str) -> str:
    """
    Stable identifier for a discovered printer.

    The same (transport, connection string) pair always yields the same id, so
    repeated scans can be compared and deduplicated.
    """
    transport = TransportType.parse(transport_type).value
    return f"{transport}_{re.sub(r'[^a-zA-Z0-9]', '_', connection_string)}"


@dataclass(frozen=True)
class DiscoveredPrinter:
    """A printer candidate found by a scanner. Never persisted here."""

    name: str
    transport_type: TransportType
    connection_string: str
    description: str = ""
    status: str = "available"

    @property
    def id(self) -> str:
        return printer_id_for(self.transport_type, self.connection_string)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'type': TransportType.parse(self.transport_type).value,
            'connectionString': self.connection_string,
            'status': self.status,
            'description': self.description,
        }


@dataclass
class TokenJob:
    """One token receipt to print. A missing timestamp means 'now'."""

    token_number: int
    timestamp: Optional[datetime] = None


@dataclass
class PrintResult:
    """Outcome of a single print attempt, returned to the caller as data."""

    success: bool
    token_number: Optional[int] = None
    error_category: Optional[ErrorCategory] = None
    user_message: Optional[str] = None
    technical_detail: Optional[str] = None
    message: str = ""

    def to_dict(self) -> dict:
        result = {
            'success': self.success,
            'tokenNumber': self.token_number,
            'message': self.message,
        }
        if not self.success:
            result['errorCategory'] = self.error_category.value if self.error_category else None
            result['error'] = self.user_message
            result['technicalError'] = self.technical_detail
        return result
