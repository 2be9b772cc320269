"""prompt_toolkit driver for the root model."""

import asyncio
import logging
from typing import Any, Optional

from prompt_toolkit.application import Application, run_in_terminal
from prompt_toolkit.formatted_text import ANSI
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.keys import Keys
from prompt_toolkit.layout import Layout, Window
from prompt_toolkit.layout.controls import FormattedTextControl
from prompt_toolkit.output import ColorDepth

from .messages import BACK, QUIT, Batch, Cmd, KeyMsg, ResizeMsg, Suspend, Tick
from .root import RootModel
from .widgets import is_printable

# prompt_toolkit key name -> name used by the screens
KEY_NAMES = {
    "up": "up",
    "down": "down",
    "left": "left",
    "right": "right",
    "enter": "enter",
    "escape": "esc",
    "tab": "tab",
    "s-tab": "shift+tab",
    "backspace": "backspace",
    "delete": "delete",
    "home": "home",
    "end": "end",
    "pageup": "pgup",
    "pagedown": "pgdown",
    "c-c": "ctrl+c",
    "c-u": "ctrl+u",
    "c-a": "ctrl+a",
    "c-e": "ctrl+e",
}


class TuiApp:
    """Runs the root model on prompt_toolkit's asyncio loop.

    Key presses and command results are fed to ``RootModel.update`` one at a
    time on the loop. Commands run in the default thread pool executor.
    """

    def __init__(self, root: RootModel, alt_screen: bool = True, mouse: bool = False,
                 refresh_interval: float = 1.0):
        self.root = root
        self.logger = logging.getLogger(__name__)
        self._size = None

        control = FormattedTextControl(self._render, focusable=True, show_cursor=False)
        self.app = Application(
            layout=Layout(Window(content=control, wrap_lines=False)),
            key_bindings=self._key_bindings(),
            full_screen=alt_screen,
            mouse_support=mouse,
            refresh_interval=refresh_interval,
            color_depth=ColorDepth.TRUE_COLOR,
        )
        self.app.ttimeoutlen = 0.05
        self.app.timeoutlen = 0.05

    def _key_bindings(self) -> KeyBindings:
        kb = KeyBindings()

        @kb.add(Keys.Any)
        def _(event):
            for char in event.data:
                if is_printable(char):
                    self.dispatch(KeyMsg(char))

        for pt_name, name in KEY_NAMES.items():
            kb.add(pt_name, eager=pt_name == "escape")(self._named_key(name))
        return kb

    def _named_key(self, name: str):
        def handler(event):
            self.dispatch(KeyMsg(name))
        return handler

    def _render(self):
        size = self.app.output.get_size()
        if self._size != (size.columns, size.rows):
            self._size = (size.columns, size.rows)
            self.root.update(ResizeMsg(size.columns, size.rows))
        return ANSI(self.root.view())

    def dispatch(self, msg: Any) -> None:
        """Feed one message to the root and execute the command it returns."""
        if self.root.exiting:
            return
        self.execute(self.root.update(msg))
        self.app.invalidate()

    def execute(self, cmd: Optional[Cmd]) -> None:
        if cmd is None or cmd is BACK:
            return
        if cmd is QUIT:
            if self.app.is_running and not self.app.future.done():
                self.app.exit()
            return
        if isinstance(cmd, Batch):
            for sub in cmd.cmds:
                self.execute(sub)
        elif isinstance(cmd, Tick):
            self.app.create_background_task(self._tick(cmd))
        elif isinstance(cmd, Suspend):
            self.app.create_background_task(self._suspend(cmd))
        else:
            self.app.create_background_task(self._run(cmd))

    async def _run(self, cmd) -> None:
        loop = asyncio.get_running_loop()
        try:
            msg = await loop.run_in_executor(None, cmd)
        except Exception:
            self.logger.exception("Command failed")
            return
        self._deliver(msg)

    async def _tick(self, tick: Tick) -> None:
        await asyncio.sleep(tick.interval)
        await self._run(tick.msg)

    async def _suspend(self, suspend: Suspend) -> None:
        try:
            msg = await run_in_terminal(suspend.func, in_executor=True)
        except Exception:
            self.logger.exception("Interactive command failed")
            return
        self._size = None
        self._deliver(msg)

    def _deliver(self, msg: Any) -> None:
        if msg is not None:
            self.dispatch(msg)

    def run(self) -> None:
        """Block until the user quits, then dispose of the active screen."""
        self.logger.info("Starting TUI")
        try:
            self.app.run()
        finally:
            self.root.shutdown()
            self.logger.info("TUI stopped")
