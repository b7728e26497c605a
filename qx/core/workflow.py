"""
Selection -> action -> revise loop for qx.

One ``CommandWorkflow`` drives a whole invocation: it runs the picker, hands
the selected command to the action menu, and either finishes (execute, copy,
print) or loops back into a fresh picker run carrying the previous
query/command pair as follow-up context. History is only written when a
terminal action is reached, never for intermediate revisions.
"""

import sys
import logging
from dataclasses import dataclass, replace
from typing import Callable, List, Optional
from rich.console import Console
from rich.markup import escape

from qx.core.action import Action, prompt_action, read_refinement
from qx.core.clipboard import copy_to_clipboard
from qx.core.executor import CommandExecutor
from qx.core.history import HistoryEntry, HistoryStore
from qx.core.llm import FollowUpContext, LLMManager
from qx.core.terminal import in_shell_integration, is_terminal
from qx.errors import ClipboardError, EmptyRefinement, HistoryEmpty, HistoryError
from qx.tui import app as tui
from qx.tui.model import Cancelled, GenerateRequest, Result, Selected

logger = logging.getLogger(__name__)

console = Console(stderr=True)

EXIT_CANCELLED = 130


@dataclass
class Outcome:
    """How an invocation ended"""
    result: Result
    action: Optional[Action] = None
    exit_code: int = 0
    output: str = ""  # text for stdout, read by the shell widget


def should_prompt(config) -> bool:
    """Whether the post-selection menu is shown.

    The menu is on when enabled in the config and either stdout is a terminal
    or qx runs under shell integration (stdout captured, stderr on the
    terminal). Otherwise the selected command is printed.
    """
    if not config.action_menu:
        return False
    return is_terminal(sys.stdout) or in_shell_integration()


class CommandWorkflow:
    """Runs pick/act/revise cycles until a terminal action is reached"""

    def __init__(
        self,
        config,
        manager: Optional[LLMManager] = None,
        history: Optional[HistoryStore] = None,
        executor: Optional[CommandExecutor] = None,
        picker: Callable[[tui.RunOptions], Result] = tui.run,
        selector: Callable = tui.run_selector,
        prompt: Callable[..., Action] = prompt_action,
        refine: Callable[[], str] = read_refinement,
        copy: Callable[[str], None] = copy_to_clipboard,
        interactive: Optional[bool] = None,
        allow_revise: bool = True,
    ):
        self.config = config
        self.manager = manager or LLMManager(config)
        self.history = history or HistoryStore(config.history_file)
        self.executor = executor or CommandExecutor()
        self.picker = picker
        self.selector = selector
        self.prompt = prompt
        self.refine = refine
        self.copy = copy
        self.interactive = should_prompt(config) if interactive is None else interactive
        self.allow_revise = allow_revise

    async def _generate(self, request: GenerateRequest) -> List[str]:
        return await self.manager.generate(request.query, request.pipe_context, request.follow_up)

    def _options(self, **kwargs) -> tui.RunOptions:
        return tui.RunOptions(generate=self._generate, timeout=self.config.timeout, **kwargs)

    # Entry points

    def run(
        self,
        initial_query: str = "",
        submit: bool = False,
        force_send: bool = False,
        pipe_context: str = "",
        follow_up: Optional[FollowUpContext] = None,
    ) -> Outcome:
        """Interactive generation starting from an optional query"""
        options = self._options(
            initial_query=initial_query,
            submit=submit,
            force_send=force_send,
            pipe_context=pipe_context,
            follow_up=follow_up,
        )
        return self._cycle(self.picker(options), options)

    def continue_from(self, query: str, force_send: bool = False, pipe_context: str = "") -> Outcome:
        """Refine the most recent history entry with a new query"""
        entry = self.history.last()
        return self.run(
            initial_query=query,
            submit=True,
            force_send=force_send,
            pipe_context=pipe_context or entry.pipe_context or "",
            follow_up=FollowUpContext(entry.query, entry.selected),
        )

    def resume(self, entry: HistoryEntry, force_send: bool = False) -> Outcome:
        """Open the action menu on a command from history"""
        options = self._options(force_send=force_send, pipe_context=entry.pipe_context or "")
        selected = Selected(command=entry.selected, query=entry.query)
        return self._cycle(selected, options, record=False)

    def resume_last(self, force_send: bool = False) -> Outcome:
        return self.resume(self.history.last(), force_send)

    def browse(self, force_send: bool = False) -> Outcome:
        """Pick a history entry, then open the action menu on it"""
        entries = self.history.list()
        if not entries:
            raise HistoryEmpty("no history yet, run a query first")

        index = self.selector([e.selected for e in entries], lambda i: entries[i].display())
        if index < 0:
            return Outcome(Cancelled(query=""), exit_code=EXIT_CANCELLED)
        return self.resume(entries[index], force_send)

    # Loop

    def _cycle(self, result: Result, options: tui.RunOptions, record: bool = True) -> Outcome:
        # record is False while the selection is an unchanged history entry
        while True:
            if isinstance(result, Cancelled):
                return Outcome(result, exit_code=EXIT_CANCELLED, output=result.query)

            action = self._choose(result.command)
            if action is not Action.REVISE:
                return self._finish(result, action, options.pipe_context, record)

            try:
                refinement = self.refine()
            except (EmptyRefinement, EOFError, OSError, UnicodeDecodeError) as e:
                logger.info("revise abandoned: %s", e)
                return Outcome(
                    Cancelled(query=result.query),
                    action=Action.CANCEL,
                    exit_code=EXIT_CANCELLED,
                    output=result.query,
                )

            follow_up = FollowUpContext(result.query, result.command)
            logger.info("revising selection with follow-up context")
            options = replace(options, initial_query=refinement, submit=True, follow_up=follow_up)
            result = self.picker(options)
            record = True

    def _choose(self, command: str) -> Action:
        if not self.interactive:
            return Action.QUIT
        try:
            return self.prompt(command, allow_revise=self.allow_revise)
        except (OSError, EOFError) as e:
            # No usable terminal for the menu: behave like Quit
            logger.debug("action menu unavailable: %s", e)
            return Action.QUIT

    def _finish(self, selected: Selected, action: Action, pipe_context: str, record: bool = True) -> Outcome:
        if action is Action.CANCEL:
            return Outcome(
                Cancelled(query=selected.query),
                action=action,
                exit_code=EXIT_CANCELLED,
                output=selected.query,
            )

        if record:
            self._record(selected, pipe_context)

        if action is Action.EXECUTE:
            result = self.executor.execute(selected.command)
            return Outcome(selected, action=action, exit_code=result.exit_code)

        if action is Action.COPY:
            try:
                self.copy(selected.command)
            except ClipboardError as e:
                console.print(f"[red]Error: {escape(str(e))}[/red]")
                return Outcome(selected, action=action, output=selected.command)
            console.print("[green]Copied to clipboard[/green]")
            return Outcome(selected, action=action)

        return Outcome(selected, action=Action.QUIT, output=selected.command)

    def _record(self, selected: Selected, pipe_context: str) -> None:
        """Best-effort history write"""
        if not selected.query:
            return
        try:
            self.history.add(HistoryEntry.create(selected.query, selected.command, pipe_context))
        except (OSError, HistoryError) as e:
            logger.warning("failed to save history: %s", e)
