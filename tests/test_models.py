from datetime import datetime

import pytest

from tokenprinter.exceptions import ErrorCategory, UnsupportedTransportError
from tokenprinter.models import (
    DiscoveredPrinter,
    PrinterConfig,
    PrintResult,
    TransportType,
    printer_id_for,
)


def test_printer_id_replaces_non_alphanumerics():
    assert printer_id_for("network", "192.168.1.50:9100") == "network_192_168_1_50_9100"
    assert printer_id_for(TransportType.SERIAL, "/dev/ttyUSB0") == "serial__dev_ttyUSB0"


def test_discovered_printer_id_is_stable_for_same_pair():
    first = DiscoveredPrinter("Network Printer (10.0.0.5)", TransportType.NETWORK, "10.0.0.5:9100")
    second = DiscoveredPrinter("Renamed", TransportType.NETWORK, "10.0.0.5:9100", description="other")

    assert first.id == second.id
    assert first.id != DiscoveredPrinter("x", TransportType.WIFI, "10.0.0.5:9100").id


def test_discovered_printer_to_dict():
    printer = DiscoveredPrinter("USB Thermal Printer (TM-T20)", TransportType.USB, "04b8:0e15",
                                description="USB Device: TM-T20 [04b8:0e15]")
    assert printer.to_dict() == {
        'id': 'usb_04b8_0e15',
        'name': 'USB Thermal Printer (TM-T20)',
        'type': 'usb',
        'connectionString': '04b8:0e15',
        'status': 'available',
        'description': 'USB Device: TM-T20 [04b8:0e15]',
    }


def test_printer_config_merges_default_settings():
    config = PrinterConfig("p1", "Desk", "network", "10.0.0.5:9100", settings={'width': 32})

    assert config.transport_type is TransportType.NETWORK
    assert config.setting('width') == 32
    assert config.setting('auto_cut') is True
    assert config.setting('missing', 'fallback') == 'fallback'


def test_printer_config_dict_round_trip():
    config = PrinterConfig("p1", "Desk", TransportType.SERIAL, "/dev/ttyUSB0", is_default=True,
                           settings={'baudrate': 19200}, last_used=datetime(2024, 5, 1, 9, 30))
    restored = PrinterConfig.from_dict(config.to_dict())

    assert restored == config
    assert config.to_dict()['lastUsed'] == "2024-05-01T09:30:00"


def test_unknown_transport_type_is_unsupported():
    with pytest.raises(UnsupportedTransportError):
        PrinterConfig("p1", "Desk", "parallel", "LPT1")


def test_failed_print_result_to_dict():
    result = PrintResult(False, token_number=5, error_category=ErrorCategory.TIMEOUT,
                         user_message="Printer connection timeout. Check if printer is responding.",
                         technical_detail="timed out")
    data = result.to_dict()

    assert data['success'] is False
    assert data['errorCategory'] == "timeout"
    assert data['technicalError'] == "timed out"
    assert 'errorCategory' not in PrintResult(True, token_number=5).to_dict()
