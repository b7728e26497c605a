"""
Command executor for qx.

Runs the selected command in the user's shell and decides where the child's
streams go. In shell integration mode the invoking shell captures our stdout
through $(...), so the child writes straight to the controlling terminal
instead; otherwise its output would end up in the user's command line buffer.
"""

import os
import sys
import time
import logging
import subprocess
from contextlib import ExitStack
from typing import IO, Optional
from dataclasses import dataclass

from qx.core.terminal import TTY_PATH, in_shell_integration, is_terminal
from qx.errors import ExecutionError

logger = logging.getLogger(__name__)


@dataclass
class ExecutionResult:
    """Result of command execution"""
    command: str
    exit_code: int
    execution_time: float

    @property
    def success(self) -> bool:
        return self.exit_code == 0


@dataclass
class StreamRouting:
    """Where the child's standard streams are connected"""
    stdout: Optional[IO] = None
    stderr: Optional[IO] = None
    stdin: Optional[IO] = None


def detect_shell() -> str:
    """The user's shell from $SHELL, falling back to /bin/sh"""
    return os.environ.get("SHELL") or "/bin/sh"


def route_streams(stack: ExitStack) -> StreamRouting:
    """Pick the child's streams for the current invocation context.

    Terminal handles are registered on ``stack`` so they are closed with it.
    A terminal that cannot be opened leaves the inherited stream in place.
    """
    routing = StreamRouting()

    if in_shell_integration():
        try:
            tty_out = stack.enter_context(open(TTY_PATH, "w"))
        except OSError as e:
            logger.debug("cannot open %s for output, inheriting streams: %s", TTY_PATH, e)
        else:
            routing.stdout = tty_out
            routing.stderr = tty_out

    # stdin already drained by a pipe: give interactive programs the terminal
    if not is_terminal(sys.stdin):
        try:
            routing.stdin = stack.enter_context(open(TTY_PATH, "r"))
        except OSError as e:
            logger.debug("cannot open %s for input, inheriting stdin: %s", TTY_PATH, e)

    return routing


class CommandExecutor:
    """Executes the chosen command with terminal-aware stream routing"""

    def __init__(self, shell: Optional[str] = None):
        self.shell = shell or detect_shell()

    def run(
        self,
        command: str,
        stdout: Optional[IO] = None,
        stderr: Optional[IO] = None,
        stdin: Optional[IO] = None,
    ) -> int:
        """Run the command and return its exit status.

        ``None`` streams are inherited from this process.
        """
        try:
            process = subprocess.run(
                [self.shell, "-c", command],
                stdout=stdout,
                stderr=stderr,
                stdin=stdin,
                check=False  # Don't raise on non-zero exit
            )
        except OSError as e:
            raise ExecutionError(f"command execution failed: {e}") from e

        code = process.returncode
        if code < 0:
            # Killed by a signal: report it the way shells do
            code = 128 + (-code)
        return code

    def execute(self, command: str) -> ExecutionResult:
        """Execute a command, routing its output to the terminal when needed"""
        start_time = time.time()

        with ExitStack() as stack:
            routing = route_streams(stack)
            exit_code = self.run(
                command,
                stdout=routing.stdout,
                stderr=routing.stderr,
                stdin=routing.stdin,
            )

        result = ExecutionResult(
            command=command,
            exit_code=exit_code,
            execution_time=time.time() - start_time
        )
        logger.info("executed command, exit code %d (%.2fs)", exit_code, result.execution_time)
        return result
