"""
Post-selection action menu and revise prompt.

Both read from the controlling terminal rather than stdin, which may be a
pipe, and both write to stderr, which stays on the terminal when the shell
captures stdout.
"""

import os
import time
import termios
import logging
from enum import Enum
from typing import IO, List, Optional, Tuple
from rich.console import Console
from rich.text import Text

from qx.core.terminal import bytes_ready, cooked_mode, open_tty, raw_mode, read_byte
from qx.errors import EmptyRefinement

logger = logging.getLogger(__name__)

console = Console(stderr=True, highlight=False)

ESC = 0x1B
CTRL_C = 0x03
ESCAPE_DRAIN_TIMEOUT = 0.01


class Action(str, Enum):
    """What to do with the selected command"""
    EXECUTE = "execute"
    COPY = "copy"
    REVISE = "revise"
    QUIT = "quit"
    CANCEL = "cancel"


_KEYMAP = {
    ord('e'): Action.EXECUTE, ord('E'): Action.EXECUTE,
    ord('c'): Action.COPY, ord('C'): Action.COPY,
    ord('r'): Action.REVISE, ord('R'): Action.REVISE,
    ord('q'): Action.QUIT, ord('Q'): Action.QUIT,
    ord('\r'): Action.QUIT, ord('\n'): Action.QUIT,
    CTRL_C: Action.CANCEL,
}


def drain_escape_sequence(fd: int, timeout: float = ESCAPE_DRAIN_TIMEOUT) -> bytes:
    """Consume the tail of a multi-byte escape sequence (arrow keys send ESC [ A).

    Whatever is left unread would otherwise be delivered to the next reader
    of the terminal, usually the parent shell.
    """
    drained = b""
    deadline = time.monotonic() + timeout
    while bytes_ready(fd, max(deadline - time.monotonic(), 0)):
        chunk = os.read(fd, 8)
        if not chunk:
            break
        drained += chunk
    return drained


def read_keypress(fd: int, allow_revise: bool = True) -> Action:
    """Block until a key that maps to an action arrives; other keys are ignored"""
    while True:
        byte = read_byte(fd)[0]
        if byte == ESC:
            drain_escape_sequence(fd)
            return Action.CANCEL
        action = _KEYMAP.get(byte)
        if action is None:
            continue
        if action is Action.REVISE and not allow_revise:
            continue
        return action


def read_action(allow_revise: bool = True) -> Action:
    """Read one keypress from the terminal in raw mode.

    Raises OSError when the terminal cannot be opened or switched to raw mode,
    EOFError when it is closed.
    """
    try:
        with open_tty("rb") as tty_in, raw_mode(tty_in.fileno()):
            return read_keypress(tty_in.fileno(), allow_revise)
    except termios.error as e:
        raise OSError(f"failed to set raw mode: {e}") from e


def menu_text(allow_revise: bool = True) -> Text:
    """The one-line key legend"""
    entries: List[Tuple[str, str]] = [("e", "xecute"), ("c", "opy")]
    if allow_revise:
        entries.append(("r", "evise"))
    entries.append(("q", "uit"))

    text = Text("  ")
    for key, rest in entries:
        text.append("[", style="dim")
        text.append(key, style="bold cyan")
        text.append("]", style="dim")
        text.append(rest + "  ")
    return text


def prompt_action(command: str, allow_revise: bool = True) -> Action:
    """Show the command and the menu, then wait for a single keypress"""
    console.print()
    console.print(Text("  " + command, style="bold"))
    console.print()
    console.print(menu_text(allow_revise), end="")

    try:
        action = read_action(allow_revise)
    finally:
        console.print()

    logger.debug("action menu: %s", action.value)
    return action


def read_refinement_from(stream: IO[str]) -> str:
    """Read one line of refinement text; blank input or EOF is EmptyRefinement"""
    line = stream.readline()
    text = line.strip()
    if not text:
        raise EmptyRefinement("empty refinement query")
    return text


def read_refinement(prompt: Optional[str] = None) -> str:
    """Prompt for a revised query on the terminal in cooked (line editing) mode"""
    try:
        with open_tty("r", errors="replace") as tty_in, cooked_mode(tty_in.fileno()):
            console.print()
            console.print(Text(prompt or "  > ", style="bold green"), end="")
            return read_refinement_from(tty_in)
    except termios.error as e:
        raise OSError(f"failed to restore line mode: {e}") from e
