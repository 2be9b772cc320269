"""LaunchAgent status and controls."""

import os
from typing import Optional

from ..core.errors import CloudSyncError
from ..core.launchd import LaunchdManager
from ..core.models import LaunchdStatus
from . import styles
from .messages import Cmd, Result
from .screen import Screen
from .widgets import MenuItem, SelectList

LOAD = "Load"
UNLOAD = "Unload"
START = "Start Manually"
STOP = "Stop"
REMOVE = "Remove"
REFRESH = "Refresh"
ACTIONS = [LOAD, UNLOAD, START, STOP, REMOVE, REFRESH]


def is_disabled(action: str, status: Optional[LaunchdStatus]) -> bool:
    if status is None:
        return action != REFRESH
    if action == LOAD:
        return status.loaded
    if action == UNLOAD:
        return not status.loaded
    if action == START:
        return not status.loaded or status.running
    if action == STOP:
        return not status.running
    return False


def perform_action(launchd: LaunchdManager, action: str) -> str:
    """Run one action against launchd after re-checking its status.

    Returns:
        The success message.

    Raises:
        CloudSyncError: If the action does not apply to the current state or
            launchctl fails.
    """
    if action == REFRESH:
        return "Status refreshed"
    if action == REMOVE:
        launchd.remove()
        return "LaunchAgent removed successfully"

    status = launchd.get_status()
    if action == LOAD:
        if status.loaded:
            raise CloudSyncError("agent is already loaded")
        launchd.load()
        return "LaunchAgent loaded successfully"
    if action == UNLOAD:
        if not status.loaded:
            raise CloudSyncError("agent is not loaded")
        launchd.unload()
        return "LaunchAgent unloaded successfully"
    if action == START:
        if not status.loaded:
            raise CloudSyncError("agent must be loaded first")
        if status.running:
            raise CloudSyncError("agent is already running")
        launchd.start()
        return "LaunchAgent started successfully"
    if action == STOP:
        if not status.running:
            raise CloudSyncError("agent is not running")
        launchd.stop()
        return "LaunchAgent stopped successfully"
    raise CloudSyncError(f"unknown action: {action}")


class LaunchdManagerScreen(Screen):
    title = "LaunchAgent Manager"

    def __init__(self, services):
        super().__init__(services)
        self.status: Optional[LaunchdStatus] = None
        self.plist_exists = False
        self.actions = SelectList([])
        self.message: Optional[str] = None
        self.busy = False
        self._refresh_items()

    def init(self) -> Optional[Cmd]:
        return self._load_status()

    def _load_status(self) -> Cmd:
        return self.task("status", self._status)

    def _status(self):
        launchd = self.services.launchd
        return launchd.get_status(), os.path.exists(launchd.get_plist_path())

    def _refresh_items(self) -> None:
        self.actions.set_items([
            MenuItem(action, disabled=is_disabled(action, self.status), value=action) for action in ACTIONS
        ])

    def on_key(self, key: str) -> Optional[Cmd]:
        if self.busy:
            return None
        if key.isdigit() and 1 <= int(key) <= len(ACTIONS):
            self.actions.cursor = int(key) - 1
            return self._run(self.actions.selected)
        if key == "enter" and self.actions.selected is not None:
            return self._run(self.actions.selected)
        if key == "r":
            return self._run(self.actions.items[-1])
        self.actions.handle_key(key)
        return None

    def _run(self, item: MenuItem) -> Optional[Cmd]:
        if item.disabled:
            self.message = None
            self.error = f"{item.title} is not available right now"
            return None
        self.busy = True
        self.message = None
        self.error = None
        return self.task("action", perform_action, self.services.launchd, item.value)

    def on_result(self, result: Result) -> Optional[Cmd]:
        if result.tag == "status":
            if result.ok:
                self.status, self.plist_exists = result.value
            else:
                self.error = result.error
            self._refresh_items()
            return None

        self.busy = False
        if result.ok:
            self.message = result.value
        else:
            self.error = result.error
        return self._load_status()

    def _status_box(self) -> str:
        launchd = self.services.launchd
        s = self.status
        if s is None:
            body = styles.render_muted("Checking status...")
        else:
            loaded = styles.render_success("Yes") if s.loaded else styles.render_error("No")
            running = styles.render_success("Yes") if s.running else styles.render_muted("No")
            pid = str(s.pid) if s.pid > 0 else "-"
            plist = launchd.get_plist_path() if self.plist_exists else styles.render_warning("not generated")
            body = "\n".join([
                f"Label:           {s.label}",
                f"Loaded:          {loaded}",
                f"Running:         {running}",
                f"PID:             {pid}",
                f"Last exit code:  {s.last_exit_code}",
                f"Plist:           {plist}",
            ])
        return styles.render_box(body, width=min(76, self.width), title="Status")

    def view(self) -> str:
        lines = [self._status_box(), "", styles.render_info("  Actions"), ""]
        for i, item in enumerate(self.actions.items):
            title = f"{i + 1}. {item.title}" + (" (disabled)" if item.disabled else "")
            lines.append(styles.render_menu_item(title, i == self.actions.cursor, item.disabled))
        if self.busy:
            lines += ["", "  " + styles.render_info("Working...")]
        if self.message:
            lines += ["", "  " + styles.render_success(f"✓ {self.message}")]
        if self.error:
            lines += ["", "  " + styles.render_error(f"Error: {self.error}")]
        return "\n".join(lines)

    def footer(self) -> str:
        return "↑/↓: Navigate • enter: Run • r: Refresh • q: Back • esc: Main menu"
