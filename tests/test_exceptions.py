import errno
import socket

import pytest
from escpos.exceptions import DeviceNotFoundError

from tokenprinter.exceptions import (
    ConnectionRefusedByPrinterError,
    ErrorCategory,
    NoPrinterConfiguredError,
    PrinterConnectionError,
    PrinterError,
    PrinterPermissionError,
    PrinterTimeoutError,
    USER_MESSAGES,
    classify_error,
    wrap_error,
)


@pytest.mark.parametrize(
    "exc, expected",
    [
        (TimeoutError("timed out"), ErrorCategory.TIMEOUT),
        (socket.timeout("timed out"), ErrorCategory.TIMEOUT),
        (ConnectionRefusedError(errno.ECONNREFUSED, "Connection refused"), ErrorCategory.CONNECTION_REFUSED),
        (PermissionError(errno.EACCES, "Permission denied: '/dev/ttyUSB0'"), ErrorCategory.PERMISSION_DENIED),
        (FileNotFoundError(errno.ENOENT, "No such file or directory"), ErrorCategory.DEVICE_NOT_FOUND),
        (OSError(errno.EHOSTUNREACH, "No route to host"), ErrorCategory.DEVICE_NOT_FOUND),
        (RuntimeError("Error: connect ETIMEDOUT 10.0.0.9:9100"), ErrorCategory.TIMEOUT),
        (RuntimeError("open EACCES"), ErrorCategory.PERMISSION_DENIED),
        (RuntimeError("paper jam"), ErrorCategory.UNKNOWN),
    ],
)
def test_classify_error(exc, expected):
    assert classify_error(exc) is expected


def test_classify_error_walks_the_cause_chain():
    # escpos wraps socket failures in its own DeviceNotFoundError
    try:
        try:
            raise ConnectionRefusedError(errno.ECONNREFUSED, "Connection refused")
        except OSError as e:
            raise DeviceNotFoundError("Could not open socket") from e
    except DeviceNotFoundError as wrapped:
        assert classify_error(wrapped) is ErrorCategory.CONNECTION_REFUSED


def test_escpos_device_not_found_alone_is_device_not_found():
    assert classify_error(DeviceNotFoundError("Unable to open USB printer")) is ErrorCategory.DEVICE_NOT_FOUND


def test_classified_printer_error_keeps_its_category():
    assert classify_error(NoPrinterConfiguredError("No printer configuration found")) is \
        ErrorCategory.NO_PRINTER_CONFIGURED


def test_wrap_error_builds_matching_subclass_with_raw_detail():
    raw = TimeoutError("timed out after 10s")
    error = wrap_error(raw, context={'printer': 'p1'})

    assert isinstance(error, PrinterTimeoutError)
    assert isinstance(error, PrinterConnectionError)
    assert error.category is ErrorCategory.TIMEOUT
    assert error.technical_detail == "timed out after 10s"
    assert error.context['printer'] == 'p1'
    assert error.user_message == USER_MESSAGES[ErrorCategory.TIMEOUT]


def test_wrap_error_returns_classified_error_unchanged():
    original = PrinterPermissionError("Permission denied opening printer")
    assert wrap_error(original) is original


def test_wrap_error_reclassifies_unknown_printer_error_from_its_message():
    error = wrap_error(PrinterConnectionError("connect ECONNREFUSED 10.0.0.9:9100"))
    assert isinstance(error, ConnectionRefusedByPrinterError)


def test_unknown_error_user_message_keeps_raw_text():
    error = wrap_error(RuntimeError("paper jam"))
    assert type(error) is PrinterConnectionError
    assert error.category is ErrorCategory.UNKNOWN
    assert error.user_message == "Printer error: paper jam"


def test_printer_error_str_includes_context():
    error = PrinterError("Failed to open", context={'transport': 'usb'})
    assert str(error) == "Failed to open (transport=usb)"
