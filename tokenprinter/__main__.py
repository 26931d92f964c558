"""
Command line tool for printer setup and diagnostics.

Usage:
    python -m tokenprinter discover [--quick] [--json]
    python -m tokenprinter add "Front desk" network 192.168.1.50:9100 --default
    python -m tokenprinter test
    python -m tokenprinter print 42 43
"""

import argparse
import json
import logging
import sys
from typing import Iterable, Optional

from .config import load_settings
from .discovery import DiscoveryEngine
from .exceptions import PrinterError
from .executor import PrintJobExecutor
from .manager import ConnectionManager
from .models import TokenJob, TransportType
from .store import JsonPrinterStore

logger = logging.getLogger("tokenprinter")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tokenprinter",
        description="Discover, configure and test receipt printers for the token system",
    )
    parser.add_argument("--config", help="Settings file (default: $TOKENPRINTER_CONFIG_PATH or XDG config dir)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    discover = sub.add_parser("discover", help="Scan for printers")
    discover.add_argument("--quick", action="store_true", help="USB, serial and Bluetooth only")
    discover.add_argument("--json", action="store_true", help="Print results as JSON")

    sub.add_parser("list", help="List configured printers")

    add = sub.add_parser("add", help="Add a printer configuration")
    add.add_argument("name")
    add.add_argument("type", choices=[t.value for t in TransportType])
    add.add_argument("connection", help="host:port, device path, MAC address or VVVV:PPPP")
    add.add_argument("--default", action="store_true", help="Make this the default printer")

    remove = sub.add_parser("remove", help="Remove a printer configuration")
    remove.add_argument("printer_id")

    set_default = sub.add_parser("set-default", help="Make a printer the default")
    set_default.add_argument("printer_id")

    test = sub.add_parser("test", help="Print a test page")
    test.add_argument("printer_id", nargs="?", help="Printer to test (default printer if omitted)")

    status = sub.add_parser("status", help="Check whether a printer can be reached")
    status.add_argument("printer_id")

    for name, help_text in (("print", "Print token receipts"), ("reprint", "Reprint token receipts")):
        job = sub.add_parser(name, help=help_text)
        job.add_argument("tokens", nargs="+", type=int, metavar="TOKEN")
        job.add_argument("--printer", dest="printer_id", help="Printer to use (default printer if omitted)")

    return parser


def _discover(args, settings) -> int:
    engine = DiscoveryEngine(settings=settings.discovery)
    printers = engine.quick_discovery() if args.quick else engine.full_discovery()
    if args.json:
        print(json.dumps([p.to_dict() for p in printers], indent=2))
        return 0
    if not printers:
        print("No printers found")
        return 0
    for printer in printers:
        print(f"{printer.id}\t{printer.name}\t{printer.connection_string}\t{printer.description}")
    return 0


def _list(store: JsonPrinterStore) -> int:
    printers = store.list()
    if not printers:
        print("No printers configured")
        return 0
    for printer in printers:
        marker = "*" if printer.is_default else " "
        state = "connected" if printer.is_connected else "disconnected"
        print(f"{marker} {printer.id}\t{printer.name}\t{printer.transport_type.value}\t"
              f"{printer.connection_string}\t{state}")
    return 0


def _print_tokens(args, manager: ConnectionManager, reprint: bool) -> int:
    if args.printer_id:
        try:
            manager.initialize(args.printer_id)
        except PrinterError as e:
            print(f"Error: {e.user_message}", file=sys.stderr)
            return 1

    executor = PrintJobExecutor(manager)
    jobs = [TokenJob(token) for token in args.tokens]
    results = [executor.reprint(job) for job in jobs] if reprint else executor.print_many(jobs)

    for result in results:
        if result.success:
            print(result.message)
        else:
            print(f"Token #{result.token_number}: {result.user_message}", file=sys.stderr)
            logger.debug(f"Technical error: {result.technical_detail}")

    summary = PrintJobExecutor.summarize(results)
    return 0 if summary['print_status'] == 'success' else 1


def run(args, settings) -> int:
    store = JsonPrinterStore(settings.store_path)
    manager = ConnectionManager(store)

    try:
        if args.command == "discover":
            return _discover(args, settings)
        if args.command == "list":
            return _list(store)
        if args.command == "add":
            printer = store.add(args.name, args.type, args.connection, is_default=args.default)
            print(f"Added {printer.id}")
            return 0
        if args.command == "remove":
            if not store.remove(args.printer_id):
                print(f"Error: no printer {args.printer_id}", file=sys.stderr)
                return 1
            print(f"Removed {args.printer_id}")
            return 0
        if args.command == "set-default":
            store.set_default(args.printer_id)
            print(f"Default printer: {args.printer_id}")
            return 0
        if args.command == "test":
            if args.printer_id:
                manager.initialize(args.printer_id)
            manager.test_printer()
            print("Test page sent")
            return 0
        if args.command == "status":
            print(manager.check_status(args.printer_id))
            return 0
        if args.command in ("print", "reprint"):
            return _print_tokens(args, manager, reprint=args.command == "reprint")
    except PrinterError as e:
        print(f"Error: {e.user_message}", file=sys.stderr)
        logger.debug(f"Technical error: {e}")
        return 1
    finally:
        manager.disconnect()

    return 1


def main(argv: Optional[Iterable[str]] = None) -> int:
    args = _build_parser().parse_args(list(argv) if argv is not None else None)

    try:
        settings = load_settings(args.config)
    except PrinterError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    log_level = logging.DEBUG if args.debug else logging.getLevelName(settings.log_level)
    if not isinstance(log_level, int):
        log_level = logging.INFO

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        force=True
    )
    return run(args, settings)


if __name__ == "__main__":
    sys.exit(main())
