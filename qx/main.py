#!/usr/bin/env python3
"""
qx - natural language to shell commands
"""

import sys
import typer
from enum import Enum
from typing import List, Optional
from rich.console import Console
from rich.markup import escape

from qx import __version__
from qx.config import get_config, setup_logging
from qx.core.guard import check_query
from qx.core.llm import unformat_command
from qx.core.terminal import is_terminal
from qx.core.workflow import EXIT_CANCELLED, CommandWorkflow, Outcome
from qx.errors import ConfigError, QxError
from qx import shell as shell_scripts

# stdout is reserved for the command handed back to the shell
console = Console(stderr=True)

MAX_STDIN_SIZE = 64 * 1024

app = typer.Typer(
    name="qx",
    help="Generate shell commands from natural language",
    add_completion=False,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]}
)


class Shell(str, Enum):
    """Shells with an integration script"""
    bash = "bash"
    zsh = "zsh"
    fish = "fish"


def version_callback(value: bool):
    """Show version and exit"""
    if value:
        typer.echo(f"qx {__version__}")
        raise typer.Exit()


def read_stdin() -> str:
    """Piped input used as context for generation; empty when stdin is a terminal"""
    if sys.stdin is None or is_terminal(sys.stdin):
        return ""
    stream = getattr(sys.stdin, "buffer", None)
    if stream is not None:
        data = stream.read(MAX_STDIN_SIZE + 1)
    else:
        data = sys.stdin.read(MAX_STDIN_SIZE + 1).encode("utf-8")
    if len(data) > MAX_STDIN_SIZE:
        raise QxError("stdin input too large (max 64KB)")
    return data.decode("utf-8", errors="replace").strip()


def llm_configured(config) -> bool:
    """Whether a revise could reach the model; --last and --history work without it"""
    try:
        config.validate_llm()
    except ConfigError:
        return False
    return True


def finish(outcome: Outcome):
    """Print what the shell should see and exit with the outcome's status"""
    if outcome.output:
        typer.echo(outcome.output)
    raise typer.Exit(outcome.exit_code)


@app.command()
def main(
    query: Optional[List[str]] = typer.Argument(
        None,
        help="What the command should do; generation starts immediately"
    ),
    prefill: Optional[str] = typer.Option(
        None,
        "--query", "-q",
        help="Pre-fill the input field and wait for Enter"
    ),
    force_send: bool = typer.Option(
        False,
        "--force-send",
        help="Send the query even if it looks like it contains secrets"
    ),
    last: bool = typer.Option(
        False,
        "--last",
        help="Open the action menu on the last selected command"
    ),
    history: bool = typer.Option(
        False,
        "--history",
        help="Browse command history with the interactive picker"
    ),
    continue_query: Optional[str] = typer.Option(
        None,
        "--continue", "-c",
        help="Refine the last selected command with a follow-up request"
    ),
    shell_integration: Optional[Shell] = typer.Option(
        None,
        "--shell-integration",
        help="Print the shell integration script (bash, zsh or fish)"
    ),
    show_config: bool = typer.Option(
        False,
        "--config",
        help="Show the config file path"
    ),
    version: Optional[bool] = typer.Option(
        None,
        "--version", "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit"
    ),
):
    """
    Turn a request into a shell command, then execute, copy, revise or print it

    Examples:
    \b
        qx "find files larger than 100MB"
        qx --query "list open ports"
        kubectl get pods | qx "delete the failing ones"
        qx --continue "only in the current directory"
        eval "$(qx --shell-integration zsh)"
    """
    try:
        if show_config:
            typer.echo(str(get_config().config_file))
            return

        if shell_integration is not None:
            typer.echo(shell_scripts.script(shell_integration.value), nl=False)
            return

        config = get_config()
        setup_logging(config)
        workflow = CommandWorkflow(config, allow_revise=llm_configured(config))

        if last:
            finish(workflow.resume_last(force_send))
        if history:
            finish(workflow.browse(force_send))

        pipe_context = read_stdin()
        if pipe_context:
            check_query(pipe_context, force_send)

        config.validate_llm()

        if continue_query is not None:
            if not continue_query.strip():
                raise QxError("--continue needs a follow-up request")
            finish(workflow.continue_from(continue_query.strip(), force_send, pipe_context))

        text = " ".join(query or []).strip()
        if text:
            check_query(text, force_send)
            finish(workflow.run(
                initial_query=text,
                submit=True,
                force_send=force_send,
                pipe_context=pipe_context,
            ))

        finish(workflow.run(
            initial_query=unformat_command(prefill or ""),
            force_send=force_send,
            pipe_context=pipe_context,
        ))

    except QxError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        raise typer.Exit(EXIT_CANCELLED)


if __name__ == "__main__":
    app()
