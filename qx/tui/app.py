"""
prompt_toolkit event loop for the picker.

One ``Model`` per run. Keys, text edits and resizes are fed to it from key
bindings and buffer callbacks; generation runs as a background task whose only
contact with the model is the single result it delivers back into the loop.
Once the model reaches Done the application exits and any pending generation
is cancelled and ignored.
"""

import sys
import time
import asyncio
import logging
from contextlib import ExitStack, contextmanager
from typing import Awaitable, Callable, Iterator, List, Optional, Sequence, Tuple
from dataclasses import dataclass

from prompt_toolkit.application import Application
from prompt_toolkit.buffer import Buffer
from prompt_toolkit.document import Document
from prompt_toolkit.filters import Condition
from prompt_toolkit.input import Input, create_input
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.layout import HSplit, Layout, Window
from prompt_toolkit.layout.controls import BufferControl, FormattedTextControl
from prompt_toolkit.layout.processors import AfterInput, BeforeInput
from prompt_toolkit.output import Output, create_output
from prompt_toolkit.styles import Style

from qx.config import DEFAULT_TIMEOUT
from qx.core.llm import FollowUpContext, unformat_command
from qx.core.terminal import TTY_PATH, preserved_mode
from qx.errors import GenerationError, QxError
from qx.tui.model import GenerateRequest, Model, Result, Selected, State

logger = logging.getLogger(__name__)

Generator = Callable[[GenerateRequest], Awaitable[List[str]]]

SPINNER_FRAMES = "⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏"

STYLE = Style.from_dict({
    "prompt": "ansicyan bold",
    "placeholder": "ansibrightblack",
    "error": "ansired",
    "spinner": "ansicyan",
    "muted": "ansibrightblack",
    "selected": "ansigreen bold",
    "item": "",
})


@dataclass
class RunOptions:
    """Inputs for one picker run"""
    generate: Optional[Generator] = None
    initial_query: str = ""
    submit: bool = False  # generate for initial_query without waiting for Enter
    force_send: bool = False
    pipe_context: str = ""
    follow_up: Optional[FollowUpContext] = None
    timeout: float = DEFAULT_TIMEOUT


def truncate(text: str, width: int) -> str:
    if width <= 3 or len(text) <= width:
        return text
    return text[:width - 3] + "..."


class PickerApp:
    """Binds a Model to a prompt_toolkit Application"""

    def __init__(
        self,
        model: Model,
        generate: Optional[Generator] = None,
        timeout: float = DEFAULT_TIMEOUT,
        submit: bool = False,
        input: Optional[Input] = None,
        output: Optional[Output] = None,
    ):
        self.model = model
        self.generate = generate
        self.timeout = timeout
        self.submit = submit
        self._task: Optional[asyncio.Task] = None
        self._exited = False

        self.buffer = Buffer(
            document=Document(model.text),
            multiline=False,
            read_only=Condition(lambda: self.model.state not in (State.INPUT, State.SELECT)),
            on_text_changed=self._on_text_changed,
        )

        input_window = Window(
            BufferControl(
                self.buffer,
                input_processors=[
                    BeforeInput("> ", style="class:prompt"),
                    AfterInput(self._placeholder, style="class:placeholder"),
                ],
            ),
            height=1,
            dont_extend_height=True,
        )
        body_window = Window(
            FormattedTextControl(self._render_body),
            dont_extend_height=True,
            wrap_lines=False,
        )

        self.application = Application(
            layout=Layout(HSplit([input_window, body_window]), focused_element=input_window),
            key_bindings=self._key_bindings(),
            style=STYLE,
            full_screen=False,
            erase_when_done=True,
            refresh_interval=0.1,
            before_render=self._before_render,
            input=input,
            output=output,
        )

    def _key_bindings(self) -> KeyBindings:
        kb = KeyBindings()

        @kb.add("c-c")
        @kb.add("escape", eager=True)
        def _cancel(event) -> None:
            self.model.on_cancel()
            self._after_update()

        @kb.add("enter")
        def _enter(event) -> None:
            request = self.model.on_enter()
            if request is not None:
                self._dispatch(request)
            self._after_update()

        @kb.add("up")
        @kb.add("c-p")
        def _up(event) -> None:
            self.model.on_move(-1)
            self._after_update()

        @kb.add("down")
        @kb.add("c-n")
        def _down(event) -> None:
            self.model.on_move(1)
            self._after_update()

        return kb

    # Event plumbing

    def _on_text_changed(self, buffer: Buffer) -> None:
        self.model.on_text(buffer.text)

    def _before_render(self, app: Application) -> None:
        self.model.on_resize(app.output.get_size().rows)

    def _pre_run(self) -> None:
        if self.submit:
            request = self.model.start()
            if request is not None:
                self._dispatch(request)
        self._after_update()

    def _dispatch(self, request: GenerateRequest) -> None:
        if self.generate is None:
            self.model.on_error(GenerationError("no generator configured"))
            return
        self._task = self.application.create_background_task(self._run_generation(request))

    async def _run_generation(self, request: GenerateRequest) -> None:
        try:
            commands = await asyncio.wait_for(self.generate(request), self.timeout)
        except asyncio.TimeoutError:
            self._deliver(error=GenerationError("request timed out"))
        except QxError as e:
            self._deliver(error=e)
        except Exception as e:
            logger.exception("generation crashed")
            self._deliver(error=GenerationError(str(e) or type(e).__name__))
        else:
            self._deliver(commands=commands)

    def _deliver(self, commands: Optional[List[str]] = None, error: Optional[Exception] = None) -> None:
        # A retired model no longer receives messages
        if self.model.done:
            return
        if error is not None:
            self.model.on_error(error)
        else:
            self.model.on_commands(commands)
        self._after_update()

    def _after_update(self) -> None:
        if self.model.done:
            if self._task is not None and not self._task.done():
                self._task.cancel()
            if not self._exited:
                self._exited = True
                self.application.exit(result=self.model.result())
            return

        if self.model.state in (State.INPUT, State.SELECT) and self.buffer.text != self.model.text:
            self.buffer.set_document(Document(self.model.text), bypass_readonly=True)
        self.application.invalidate()

    async def run_async(self) -> Result:
        return await self.application.run_async(pre_run=self._pre_run)

    # Rendering

    def _placeholder(self) -> str:
        if self.buffer.text:
            return ""
        if self.model.state is State.SELECT:
            return "filter..."
        if self.model.state is State.INPUT:
            return "describe the command you need..."
        return ""

    def _render_body(self) -> List[Tuple[str, str]]:
        model = self.model
        width = self.application.output.get_size().columns
        lines: List[Tuple[str, str]] = []

        if model.state is State.INPUT and model.error is not None:
            lines.append(("class:error", truncate(f"Error: {model.error}", width)))

        elif model.state is State.LOADING:
            frame = SPINNER_FRAMES[int(time.monotonic() * 10) % len(SPINNER_FRAMES)]
            lines.append(("class:spinner", frame))
            lines.append(("class:muted", " Generating commands..."))

        elif model.state is State.SELECT:
            selector = model.selector
            for position in selector.visible():
                label = unformat_command(selector.label(position)).replace("\n", " ")
                if position == selector.cursor:
                    lines.append(("class:selected", truncate("> " + label, width)))
                else:
                    lines.append(("class:item", truncate("  " + label, width)))
                lines.append(("", "\n"))
            lines.append(("class:muted", f"  {len(selector)}/{len(selector.items)}"))

        return lines


@contextmanager
def terminal_io() -> Iterator[Tuple[Optional[Input], Optional[Output]]]:
    """Input and output on the controlling terminal.

    stdout may be captured by the shell and stdin may be a pipe, so the picker
    talks to /dev/tty directly. Without one it falls back to stdin and stderr.
    The terminal mode is snapshotted and restored after the run.
    """
    with ExitStack() as stack:
        try:
            tty_in = stack.enter_context(open(TTY_PATH, "r"))
            tty_out = stack.enter_context(open(TTY_PATH, "w"))
        except OSError as e:
            logger.debug("no controlling terminal (%s), using stdin/stderr", e)
            yield create_input(always_prefer_tty=True), create_output(stdout=sys.stderr)
            return
        stack.enter_context(preserved_mode(tty_in.fileno()))
        yield create_input(stdin=tty_in), create_output(stdout=tty_out)


def run(options: RunOptions) -> Result:
    """Run Input -> Loading -> Select -> Done once and return the outcome"""
    model = Model(
        initial_query=options.initial_query,
        force_send=options.force_send,
        pipe_context=options.pipe_context,
        follow_up=options.follow_up,
    )
    with terminal_io() as (pt_input, pt_output):
        app = PickerApp(
            model,
            generate=options.generate,
            timeout=options.timeout,
            submit=options.submit,
            input=pt_input,
            output=pt_output,
        )
        return asyncio.run(app.run_async())


def run_selector(items: Sequence[str], display: Optional[Callable[[int], str]] = None) -> int:
    """Pick one of ``items`` with the same filter UI; -1 when cancelled"""
    if not items:
        return -1
    model = Model.for_items(items, display)
    with terminal_io() as (pt_input, pt_output):
        app = PickerApp(model, input=pt_input, output=pt_output)
        result = asyncio.run(app.run_async())
    if isinstance(result, Selected):
        return result.index
    return -1

