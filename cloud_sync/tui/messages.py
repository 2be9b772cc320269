"""Messages and commands exchanged between the event loop and the screens.

A screen's ``update`` returns a command. A command is either a plain
callable, run on a worker thread with its return value fed back as a
message, or one of the special values below.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Union


@dataclass(frozen=True)
class KeyMsg:
    """A key press, named like ``"enter"``, ``"ctrl+c"`` or ``"a"``."""
    key: str


@dataclass(frozen=True)
class ResizeMsg:
    width: int
    height: int


@dataclass
class Result:
    """Outcome of a background task, addressed to the screen that started it."""
    owner: int
    tag: str
    value: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class _Signal:
    def __init__(self, name: str):
        self.name = name

    def __repr__(self) -> str:
        return self.name


BACK = _Signal("BACK")
QUIT = _Signal("QUIT")


@dataclass
class Tick:
    """Deliver ``msg()`` after ``interval`` seconds."""
    interval: float
    msg: Callable[[], Any]


@dataclass
class Suspend:
    """Run ``func`` with the terminal handed back to it (interactive tools)."""
    func: Callable[[], Any]


@dataclass
class Batch:
    cmds: List[Any] = field(default_factory=list)


Cmd = Union[Callable[[], Any], Tick, Suspend, Batch, _Signal]


def batch(*cmds: Optional[Cmd]) -> Optional[Cmd]:
    """Combine commands, dropping ``None``."""
    real = [c for c in cmds if c is not None]
    if not real:
        return None
    if len(real) == 1:
        return real[0]
    return Batch(real)
