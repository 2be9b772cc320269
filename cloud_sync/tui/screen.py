"""Base classes for the sub-models behind each menu entry."""

import itertools
import logging
from typing import Any, Callable, Optional, Set

from ..core.errors import CloudSyncError
from .messages import BACK, Cmd, KeyMsg, ResizeMsg, Result, Tick

_screen_ids = itertools.count(1)


class Screen:
    """A small event driven state machine.

    ``init`` returns the first command, ``update`` reacts to one message and
    returns the next command, ``view`` renders the current state. Screens
    never block: anything touching the filesystem or a subprocess goes
    through :meth:`task`.
    """

    title = ""

    def __init__(self, services):
        self.services = services
        self.screen_id = next(_screen_ids)
        self.width = 80
        self.height = 24
        self.error: Optional[str] = None
        self.logger = logging.getLogger(__name__)

    def init(self) -> Optional[Cmd]:
        return None

    def update(self, msg: Any) -> Optional[Cmd]:
        if isinstance(msg, ResizeMsg):
            self.resize(msg.width, msg.height)
            return None
        if isinstance(msg, KeyMsg):
            return self.on_key(msg.key)
        if isinstance(msg, Result):
            return self.on_result(msg)
        return None

    def resize(self, width: int, height: int) -> None:
        self.width = width
        self.height = height

    def on_key(self, key: str) -> Optional[Cmd]:
        return None

    def on_result(self, result: Result) -> Optional[Cmd]:
        return None

    def view(self) -> str:
        return ""

    def footer(self) -> str:
        return "esc: Main menu"

    @property
    def captures_text(self) -> bool:
        """True while a text field has focus, so ``q`` is typed, not handled."""
        return False

    def back(self) -> bool:
        """Step back one level inside the screen.

        Returns:
            False when already at the top level, letting the caller leave.
        """
        return False

    def dispose(self) -> None:
        """Release resources before the screen is discarded."""

    def owner_ids(self) -> Set[int]:
        return {self.screen_id}

    def task(self, tag: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Cmd:
        """Wrap ``func`` as a background command producing a :class:`Result`.

        Expected failures become the result's error string.
        """
        owner = self.screen_id
        logger = self.logger

        def run() -> Result:
            try:
                return Result(owner, tag, func(*args, **kwargs))
            except (CloudSyncError, OSError, ValueError) as e:
                logger.warning(f"{tag} failed: {e}")
                return Result(owner, tag, error=str(e))

        return run

    def tick(self, tag: str, interval: float, func: Callable[[], Any]) -> Tick:
        """A :meth:`task` delivered after ``interval`` seconds."""
        return Tick(interval, self.task(tag, func))


class ParentScreen(Screen):
    """A screen that can open another screen in place of its own view."""

    def __init__(self, services):
        super().__init__(services)
        self.child: Optional[Screen] = None

    def open_child(self, child: Screen) -> Optional[Cmd]:
        self.child = child
        child.resize(self.width, self.height)
        return child.init()

    def close_child(self) -> Optional[Cmd]:
        child, self.child = self.child, None
        self.on_child_closed(child)
        return child.dispose if child is not None else None

    def on_child_closed(self, child: Screen) -> None:
        """Hook for refreshing state after a child finishes."""

    def update(self, msg: Any) -> Optional[Cmd]:
        if isinstance(msg, ResizeMsg):
            self.resize(msg.width, msg.height)
            if self.child is not None:
                self.child.resize(msg.width, msg.height)
            return None

        if self.child is not None:
            if isinstance(msg, Result) and msg.owner not in self.child.owner_ids():
                return self.on_result(msg)
            cmd = self.child.update(msg)
            if cmd is BACK:
                return self.close_child()
            return cmd

        return super().update(msg)

    @property
    def captures_text(self) -> bool:
        return self.child is not None and self.child.captures_text

    def back(self) -> bool:
        if self.child is None:
            return False
        if not self.child.back():
            closer = self.close_child()
            if closer is not None:
                closer()
        return True

    def dispose(self) -> None:
        if self.child is not None:
            self.child.dispose()

    def owner_ids(self) -> Set[int]:
        ids = {self.screen_id}
        if self.child is not None:
            ids |= self.child.owner_ids()
        return ids

    def footer(self) -> str:
        if self.child is not None:
            return self.child.footer()
        return super().footer()
