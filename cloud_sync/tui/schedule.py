"""Wizard for the LaunchAgent schedule."""

from typing import List, Optional, Tuple

from . import styles
from .messages import BACK, Cmd, Result
from .screen import Screen
from .widgets import Form, TextInput

DEFAULT_HOUR = 10
DEFAULT_MINUTE = 5


def parse_schedule(values: List[str]) -> Tuple[int, int]:
    """Validate the hour and minute fields.

    Raises:
        ValueError: With the message shown under the form.
    """
    hour_text, minute_text = values
    if not hour_text or not minute_text:
        raise ValueError("all fields are required")
    try:
        hour = int(hour_text)
    except ValueError:
        raise ValueError("hour must be a number")
    try:
        minute = int(minute_text)
    except ValueError:
        raise ValueError("minute must be a number")
    if not 0 <= hour <= 23:
        raise ValueError("hour must be between 0 and 23")
    if not 0 <= minute <= 59:
        raise ValueError("minute must be between 0 and 59")
    return hour, minute


class ScheduleScreen(Screen):
    """Collect hour and minute, then write, save and load the LaunchAgent."""

    title = "Backup Schedule"

    def __init__(self, services):
        super().__init__(services)
        self.form = Form([
            TextInput("Hour (0-23): ", str(DEFAULT_HOUR), value=str(DEFAULT_HOUR), char_limit=2),
            TextInput("Minute (0-59): ", str(DEFAULT_MINUTE), value=str(DEFAULT_MINUTE), char_limit=2),
        ])
        self.saving = False
        self.plist_path: Optional[str] = None

    @property
    def captures_text(self) -> bool:
        return self.plist_path is None

    def on_key(self, key: str) -> Optional[Cmd]:
        if self.plist_path is not None:
            return BACK if key in ("enter", "q") else None
        if self.saving:
            return None
        if key == "enter":
            try:
                hour, minute = parse_schedule(self.form.values())
            except ValueError as e:
                self.error = str(e)
                return None
            self.error = None
            self.saving = True
            return self.task("setup", self.services.backup.setup_launch_agent, hour, minute)
        self.form.handle_key(key)
        return None

    def on_result(self, result: Result) -> Optional[Cmd]:
        self.saving = False
        if not result.ok:
            self.error = result.error
            return None
        self.plist_path = result.value
        return None

    def view(self) -> str:
        if self.plist_path is not None:
            hour, minute = parse_schedule(self.form.values())
            content = styles.render_success("✓ LaunchAgent scheduled and loaded!")
            content += f"\n\nRuns daily at {hour:02d}:{minute:02d}; the backup itself runs once a month."
            content += f"\nPlist: {self.plist_path}"
            return styles.render_box(content, width=min(76, self.width))

        lines = [
            styles.render_info("  When should the scheduled backup check run?"),
            "",
            self.form.view(),
        ]
        if self.saving:
            lines += ["", "  " + styles.render_info("Writing plist and loading agent...")]
        if self.error:
            lines += ["", "  " + styles.render_error(f"Error: {self.error}")]
        return "\n".join(lines)

    def footer(self) -> str:
        if self.plist_path is not None:
            return "enter: Continue • esc: Main menu"
        return "tab: Next field • enter: Save and load • esc: Main menu"
