"""Reusable input and display widgets for the screens."""

from dataclasses import dataclass
from typing import List, Optional

from . import styles

MASK_CHAR = "•"


def is_printable(key: str) -> bool:
    return len(key) == 1 and key.isprintable()


class TextInput:
    """Single line text field."""

    def __init__(self, prompt: str, placeholder: str = "", value: str = "",
                 char_limit: int = 100, masked: bool = False):
        self.prompt = prompt
        self.placeholder = placeholder
        self.value = value
        self.char_limit = char_limit
        self.masked = masked
        self.focused = False
        self.cursor = len(value)

    def set_value(self, value: str) -> None:
        self.value = value[:self.char_limit]
        self.cursor = len(self.value)

    def handle_key(self, key: str) -> bool:
        """Apply an editing key.

        Returns:
            True if the key was consumed.
        """
        if is_printable(key):
            if len(self.value) < self.char_limit:
                self.value = self.value[:self.cursor] + key + self.value[self.cursor:]
                self.cursor += 1
            return True
        if key == "backspace":
            if self.cursor > 0:
                self.value = self.value[:self.cursor - 1] + self.value[self.cursor:]
                self.cursor -= 1
            return True
        if key == "delete":
            self.value = self.value[:self.cursor] + self.value[self.cursor + 1:]
            return True
        if key == "left":
            self.cursor = max(0, self.cursor - 1)
            return True
        if key == "right":
            self.cursor = min(len(self.value), self.cursor + 1)
            return True
        if key in ("home", "ctrl+a"):
            self.cursor = 0
            return True
        if key in ("end", "ctrl+e"):
            self.cursor = len(self.value)
            return True
        if key == "ctrl+u":
            self.value = self.value[self.cursor:]
            self.cursor = 0
            return True
        return False

    def view(self) -> str:
        shown = MASK_CHAR * len(self.value) if self.masked else self.value
        prompt = styles.styled(self.prompt, styles.FOCUSED) if self.focused else self.prompt
        if not shown and not self.focused:
            return prompt + styles.render_muted(self.placeholder)
        if not self.focused:
            return prompt + shown
        before, at, after = shown[:self.cursor], shown[self.cursor:self.cursor + 1], shown[self.cursor + 1:]
        cursor = styles.styled(at or " ", styles.SELECTED)
        text = styles.styled(before, styles.FOCUSED) + cursor + styles.styled(after, styles.FOCUSED)
        if not shown and self.placeholder:
            text += styles.render_muted(self.placeholder)
        return prompt + text


class Form:
    """A group of text inputs with one focused at a time."""

    def __init__(self, inputs: List[TextInput]):
        self.inputs = inputs
        self.focus = 0
        self._refocus()

    def _refocus(self) -> None:
        for i, field_input in enumerate(self.inputs):
            field_input.focused = i == self.focus

    def next(self) -> None:
        self.focus = (self.focus + 1) % len(self.inputs)
        self._refocus()

    def prev(self) -> None:
        self.focus = (self.focus - 1) % len(self.inputs)
        self._refocus()

    @property
    def current(self) -> TextInput:
        return self.inputs[self.focus]

    def handle_key(self, key: str) -> bool:
        if key in ("tab", "down"):
            self.next()
            return True
        if key in ("shift+tab", "up"):
            self.prev()
            return True
        return self.current.handle_key(key)

    def values(self) -> List[str]:
        return [i.value.strip() for i in self.inputs]

    def view(self) -> str:
        return "\n\n".join("  " + i.view() for i in self.inputs)


@dataclass
class MenuItem:
    title: str
    description: str = ""
    disabled: bool = False
    value: object = None


class SelectList:
    """Vertical menu navigated with arrows or ``j``/``k``."""

    def __init__(self, items: List[MenuItem]):
        self.items = items
        self.cursor = 0

    @property
    def selected(self) -> Optional[MenuItem]:
        if not self.items:
            return None
        return self.items[self.cursor]

    def set_items(self, items: List[MenuItem]) -> None:
        self.items = items
        self.cursor = min(self.cursor, max(0, len(items) - 1))

    def handle_key(self, key: str) -> bool:
        if not self.items:
            return False
        if key in ("up", "k"):
            self.cursor = (self.cursor - 1) % len(self.items)
            return True
        if key in ("down", "j"):
            self.cursor = (self.cursor + 1) % len(self.items)
            return True
        if key == "home":
            self.cursor = 0
            return True
        if key == "end":
            self.cursor = len(self.items) - 1
            return True
        return False

    def view(self, numbered: bool = False) -> str:
        lines = []
        for i, item in enumerate(self.items):
            title = f"{i + 1}. {item.title}" if numbered else item.title
            lines.append(styles.render_menu_item(title, i == self.cursor, item.disabled))
            if item.description and i == self.cursor:
                lines.append("     " + styles.render_muted(item.description))
        return "\n".join(lines)


class Viewport:
    """Scrollable block of pre-rendered lines."""

    def __init__(self, height: int = 20):
        self.lines: List[str] = []
        self.offset = 0
        self.height = max(1, height)

    def set_content(self, content: str) -> None:
        self.lines = content.split("\n") if content else []
        self.offset = min(self.offset, self.max_offset)

    def set_height(self, height: int) -> None:
        self.height = max(1, height)
        self.offset = min(self.offset, self.max_offset)

    @property
    def max_offset(self) -> int:
        return max(0, len(self.lines) - self.height)

    def handle_key(self, key: str) -> bool:
        if key in ("up", "k"):
            self.offset = max(0, self.offset - 1)
        elif key in ("down", "j"):
            self.offset = min(self.max_offset, self.offset + 1)
        elif key in ("pgup", "b"):
            self.offset = max(0, self.offset - self.height)
        elif key in ("pgdown", "f", " "):
            self.offset = min(self.max_offset, self.offset + self.height)
        elif key in ("g", "home"):
            self.offset = 0
        elif key in ("G", "end"):
            self.offset = self.max_offset
        else:
            return False
        return True

    def scroll_percent(self) -> int:
        if self.max_offset == 0:
            return 100
        return int(self.offset * 100 / self.max_offset)

    def view(self) -> str:
        return "\n".join(self.lines[self.offset:self.offset + self.height])
