"""Keyboard reference and a short tour of each screen."""

from typing import Optional

from . import styles
from .messages import Cmd
from .screen import Screen
from .widgets import Viewport

SECTIONS = [
    ("Global keys", [
        ("↑/k, ↓/j", "Move the selection"),
        ("1-8", "Pick a main menu entry directly"),
        ("enter", "Select or confirm"),
        ("q", "Go back one level (quits from the main menu)"),
        ("esc", "Return to the main menu"),
        ("?", "Open this help from the main menu"),
        ("ctrl+c", "Quit immediately"),
    ]),
    ("Text fields", [
        ("tab / shift+tab", "Next or previous field"),
        ("←/→, home/end", "Move the cursor"),
        ("backspace, ctrl+u", "Delete a character or everything before the cursor"),
    ]),
    ("Installation & Setup", [
        ("", "Installs Homebrew and rclone, creates the script and log directories"),
        ("", "and generates the backup scripts once a source and destination exist."),
        ("", "New locations are local folders (sync pairs) or cloud remotes; B2 and"),
        ("", "Scaleway are configured here, other providers through rclone config."),
    ]),
    ("Configuration", [
        ("", "Add remotes, manage sync pairs, set the monthly backup source and"),
        ("", "destination, schedule the LaunchAgent and review the saved settings."),
        ("a / d / t", "Add, delete or toggle a sync pair"),
    ]),
    ("Backup Operations", [
        ("", "Runs every enabled sync pair now (or the monthly remote to remote"),
        ("", "backup when no pairs exist) and shows live progress."),
        ("c / x", "Cancel the running backup"),
        ("r", "Run again once finished"),
    ]),
    ("Log Viewer", [
        ("1-5", "All transfers, today, recent 50, sessions, statistics"),
        ("r", "Re-read the log"),
        ("pgup/pgdown, g/G", "Scroll by page, jump to top or bottom"),
    ]),
    ("LaunchAgent Management", [
        ("", "Load, unload, start, stop or remove the scheduled agent."),
        ("r", "Refresh the status"),
    ]),
    ("Maintenance", [
        ("", "Remove a stale lockfile, reset the monthly timestamp, trim old log"),
        ("", "lines, regenerate rclone.conf or the scripts, update rclone."),
        ("y / n", "Confirm or cancel the selected task"),
    ]),
]


def help_text() -> str:
    lines = []
    for title, rows in SECTIONS:
        lines.append(styles.render_info(title))
        for key, text in rows:
            if key:
                lines.append(f"  {styles.styled(f'{key:<20}', styles.FOCUSED)}{text}")
            else:
                lines.append(f"  {text}")
        lines.append("")
    return "\n".join(lines).rstrip("\n")


class HelpScreen(Screen):
    title = "Help"

    def __init__(self, services):
        super().__init__(services)
        self.viewport = Viewport(self.height - 8)
        self.viewport.set_content(help_text())

    def resize(self, width: int, height: int) -> None:
        super().resize(width, height)
        self.viewport.set_height(height - 8)

    def on_key(self, key: str) -> Optional[Cmd]:
        self.viewport.handle_key(key)
        return None

    def view(self) -> str:
        return self.viewport.view()

    def footer(self) -> str:
        return f"↑/↓: Scroll ({self.viewport.scroll_percent()}%) • q: Back • esc: Main menu"
