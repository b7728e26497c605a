"""
Terminal control for qx.

Wraps termios/tty so every mode switch is scoped: the saved attributes are
always restored on the way out, including on exceptions. A terminal left in
raw mode has no echo after qx exits.
"""

import os
import sys
import tty
import select
import termios
import logging
from contextlib import contextmanager
from typing import IO, Iterator, Optional

logger = logging.getLogger(__name__)

TTY_PATH = "/dev/tty"


def is_terminal(stream: Optional[IO]) -> bool:
    """True if the stream is attached to a terminal"""
    if stream is None:
        return False
    try:
        return stream.isatty()
    except (AttributeError, ValueError, OSError):
        return False


def in_shell_integration() -> bool:
    """stdout captured by the shell ($(qx ...)) while stderr is still the terminal"""
    return not is_terminal(sys.stdout) and is_terminal(sys.stderr)


@contextmanager
def open_tty(mode: str = "r", errors: Optional[str] = None) -> Iterator[IO]:
    """Open the controlling terminal, closing it on exit.

    errors applies to text mode only. Raises OSError when there is no
    controlling terminal.
    """
    if "b" in mode:
        f = open(TTY_PATH, mode, buffering=0)
    else:
        f = open(TTY_PATH, mode, errors=errors)
    try:
        yield f
    finally:
        f.close()


@contextmanager
def preserved_mode(fd: int) -> Iterator[None]:
    """Snapshot terminal attributes and put them back afterwards"""
    try:
        saved = termios.tcgetattr(fd)
    except termios.error:
        saved = None
    try:
        yield
    finally:
        if saved is not None:
            termios.tcsetattr(fd, termios.TCSADRAIN, saved)


@contextmanager
def raw_mode(fd: int) -> Iterator[None]:
    """Deliver keypresses byte by byte, without echo or line buffering"""
    with preserved_mode(fd):
        tty.setraw(fd, termios.TCSADRAIN)
        yield


@contextmanager
def cooked_mode(fd: int) -> Iterator[None]:
    """Line editing with echo, whatever mode the terminal was left in"""
    with preserved_mode(fd):
        attrs = termios.tcgetattr(fd)
        attrs[0] |= termios.ICRNL
        attrs[1] |= termios.OPOST
        attrs[3] |= termios.ICANON | termios.ECHO | termios.ISIG
        termios.tcsetattr(fd, termios.TCSADRAIN, attrs)
        yield


def bytes_ready(fd: int, timeout: float) -> bool:
    """Wait up to timeout seconds for fd to become readable"""
    readable, _, _ = select.select([fd], [], [], timeout)
    return bool(readable)


def read_byte(fd: int) -> bytes:
    """Read exactly one byte; raises EOFError when the stream is closed"""
    data = os.read(fd, 1)
    if not data:
        raise EOFError("terminal closed")
    return data
