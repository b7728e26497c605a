"""
State machine behind the interactive picker.

The model knows nothing about the terminal: the event loop in ``qx.tui.app``
feeds it discrete events (keys, text edits, resize, generation results) and
renders whatever state it is left in. Transitions that need background work
return a ``GenerateRequest`` for the loop to dispatch.

    Input --enter--> Loading --N>1--> Select --enter--> Done
                        |  --N==1-------------------->  Done
                        '--error / N==0--> Input
    any state --esc/ctrl-c--> Done (no selection)
"""

import logging
from enum import Enum
from typing import Callable, List, Optional, Sequence, Union
from dataclasses import dataclass

from qx.core.guard import check_query
from qx.core.llm import FollowUpContext
from qx.errors import GenerationError, SecretDetectedError
from qx.tui.selector import Selector

logger = logging.getLogger(__name__)

MAX_HEIGHT_PERCENT = 40  # share of terminal rows the picker may use
MIN_HEIGHT = 5
RESERVED_LINES = 3  # input line, counter, status


class State(str, Enum):
    INPUT = "input"
    LOADING = "loading"
    SELECT = "select"
    DONE = "done"


@dataclass(frozen=True)
class Selected:
    """The user picked a command"""
    command: str
    query: str
    index: int = -1


@dataclass(frozen=True)
class Cancelled:
    """The user left without picking; ``query`` restores the shell's buffer"""
    query: str


Result = Union[Selected, Cancelled]


@dataclass(frozen=True)
class GenerateRequest:
    """Work for the event loop: generate candidates for a query"""
    query: str
    pipe_context: str = ""
    follow_up: Optional[FollowUpContext] = None


class Model:
    """Input -> Loading -> Select -> Done"""

    def __init__(
        self,
        initial_query: str = "",
        force_send: bool = False,
        pipe_context: str = "",
        follow_up: Optional[FollowUpContext] = None,
    ):
        self.state = State.INPUT
        self.text = initial_query
        self.original_query = ""
        self.error: Optional[Exception] = None
        self.force_send = force_send
        self.pipe_context = pipe_context
        self.follow_up = follow_up
        self.selector: Optional[Selector] = None
        self.selector_mode = False
        self.max_height = MIN_HEIGHT
        self._result: Optional[Result] = None

    @classmethod
    def for_items(cls, items: Sequence[str], display: Optional[Callable[[int], str]] = None) -> "Model":
        """A model that starts in Select over existing items (no generation)"""
        model = cls()
        model.selector_mode = True
        model.selector = Selector(items, display, window=model.visible_window())
        model.state = State.SELECT
        return model

    @property
    def done(self) -> bool:
        return self.state is State.DONE

    def visible_window(self) -> int:
        return max(self.max_height - RESERVED_LINES, 1)

    def _transition(self, state: State) -> None:
        logger.debug("picker state %s -> %s", self.state.value, state.value)
        self.state = state

    # Events

    def start(self) -> Optional[GenerateRequest]:
        """Submit a pre-filled query right away"""
        if self.state is State.INPUT and self.text.strip():
            return self.on_enter()
        return None

    def on_resize(self, rows: int) -> None:
        self.max_height = max(rows * MAX_HEIGHT_PERCENT // 100, MIN_HEIGHT)
        if self.selector is not None:
            self.selector.set_window(self.visible_window())

    def on_text(self, text: str) -> None:
        """The input widget changed (query in Input, filter in Select)"""
        if self.state is State.INPUT:
            self.text = text
        elif self.state is State.SELECT:
            self.text = text
            self.selector.set_filter(text)

    def on_enter(self) -> Optional[GenerateRequest]:
        if self.state is State.INPUT:
            return self._submit()
        if self.state is State.SELECT:
            self._select()
        return None

    def on_move(self, delta: int) -> None:
        if self.state is State.SELECT:
            self.selector.move(delta)

    def on_cancel(self) -> None:
        if self.done:
            return
        if self.state in (State.LOADING, State.SELECT) and self.original_query:
            query = self.original_query
        else:
            query = self.text
        self._result = Cancelled(query=query)
        self._transition(State.DONE)

    def on_commands(self, commands: List[str]) -> None:
        """Generation finished with a candidate list"""
        if self.state is not State.LOADING:
            return
        if not commands:
            self.on_error(GenerationError("no commands generated"))
            return

        if len(commands) == 1:
            self._result = Selected(command=commands[0], query=self.original_query, index=0)
            self._transition(State.DONE)
            return

        self.selector = Selector(commands, window=self.visible_window())
        self.text = ""
        self._transition(State.SELECT)

    def on_error(self, error: Exception) -> None:
        """Generation failed; back to Input with the query still in the widget"""
        if self.state is not State.LOADING:
            return
        logger.warning("generation failed: %s", error)
        self.error = error
        self._transition(State.INPUT)

    # Transitions

    def _submit(self) -> Optional[GenerateRequest]:
        query = self.text.strip()
        if not query:
            return None
        try:
            check_query(query, self.force_send)
        except SecretDetectedError as e:
            self.error = e
            return None

        self.original_query = query
        self.error = None
        self._transition(State.LOADING)
        return GenerateRequest(query=query, pipe_context=self.pipe_context, follow_up=self.follow_up)

    def _select(self) -> None:
        index = self.selector.current()
        if index is None:
            return
        self._result = Selected(
            command=self.selector.items[index],
            query=self.original_query,
            index=index,
        )
        self._transition(State.DONE)

    def result(self) -> Result:
        if self._result is not None:
            return self._result
        # Loop ended without a decision (e.g. the terminal went away)
        return Cancelled(query=self.original_query or self.text)
