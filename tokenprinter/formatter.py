"""
ESC/POS command sequences for token receipts and test pages.

Formatting is pure: the template functions return a list of command objects
and ``encode`` renders them to bytes through python-escpos' Dummy printer,
so nothing here touches a device.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Union

from escpos.printer import Dummy  # type: ignore

DEFAULT_TITLE = "TOKEN SYSTEM"
SEPARATOR = "================"
INSTRUCTION = "Please wait for your turn"
DATE_FORMAT = "%d/%m/%Y %H:%M:%S"


@dataclass(frozen=True)
class Initialize:
    pass


@dataclass(frozen=True)
class Align:
    mode: str = "center"


@dataclass(frozen=True)
class Style:
    bold: bool = False
    underline: bool = False
    width: int = 1
    height: int = 1


@dataclass(frozen=True)
class Text:
    line: str


@dataclass(frozen=True)
class Cut:
    pass


Command = Union[Initialize, Align, Style, Text, Cut]

NORMAL = Style()
BLANK = Text("")


def token_receipt(token_number: int, timestamp: Optional[datetime] = None,
                  title: str = DEFAULT_TITLE) -> List[Command]:
    """
    Build the token receipt template.

    Args:
        token_number: Token to print in large type
        timestamp: Issue time, defaults to now
        title: Heading line

    Returns:
        Ordered list of commands, always ending with Cut
    """
    timestamp = timestamp or datetime.now()
    return [
        Initialize(),
        Align("center"),
        Style(bold=True, underline=True),
        Text(title),
        Text(SEPARATOR),
        BLANK,
        Style(bold=True, width=2, height=2),
        Text(f"TOKEN #{token_number}"),
        BLANK,
        NORMAL,
        Text(f"Date: {timestamp.strftime(DATE_FORMAT)}"),
        BLANK,
        Text(INSTRUCTION),
        Text(SEPARATOR),
        BLANK,
        Cut(),
    ]


def test_page(timestamp: Optional[datetime] = None) -> List[Command]:
    """Build the diagnostic page printed by a connection test."""
    timestamp = timestamp or datetime.now()
    return [
        Initialize(),
        Align("center"),
        Text("PRINTER TEST"),
        Text("Connection Successful"),
        Text(timestamp.strftime(DATE_FORMAT)),
        Cut(),
    ]


def large_lines(commands: Iterable[Command]) -> List[str]:
    """Text lines emitted while a style wider or taller than 1x1 is active."""
    lines = []
    style = NORMAL
    for command in commands:
        if isinstance(command, Initialize):
            style = NORMAL
        elif isinstance(command, Style):
            style = command
        elif isinstance(command, Text) and (style.width > 1 or style.height > 1):
            lines.append(command.line)
    return lines


def without_cut(commands: Iterable[Command]) -> List[Command]:
    return [command for command in commands if not isinstance(command, Cut)]


def encode(commands: Iterable[Command]) -> bytes:
    """
    Render commands to ESC/POS bytes.

    Args:
        commands: Sequence produced by a template function

    Returns:
        Raw bytes ready for TransportDriver.write()
    """
    printer = Dummy()
    for command in commands:
        if isinstance(command, Initialize):
            printer.hw('INIT')
        elif isinstance(command, Align):
            printer.set(align=command.mode)
        elif isinstance(command, Style):
            printer.set(
                bold=command.bold,
                underline=1 if command.underline else 0,
                custom_size=True,
                width=command.width,
                height=command.height,
            )
        elif isinstance(command, Text):
            printer.textln(command.line)
        elif isinstance(command, Cut):
            printer.cut()
        else:
            raise TypeError(f"Unknown printer command: {command!r}")
    return printer.output
