"""Maintenance tasks, each behind a y/n confirmation."""

import os
from datetime import timedelta
from typing import Callable, Dict, Optional

from ..utils.formatters import format_duration
from . import styles
from .messages import Cmd, Result
from .screen import Screen
from .widgets import MenuItem, SelectList


def remove_lockfile(services) -> str:
    if not services.backup.remove_lockfile(services.stale_lock_age):
        return "No lockfile present"
    return f"Removed {services.lockfile.get_path()}"


def reset_timestamp(services) -> str:
    path = services.timestamp_path
    if not os.path.exists(path):
        return "No monthly timestamp recorded"
    os.remove(path)
    return "Monthly timestamp reset; the next scheduled check will run the backup"


def clear_old_logs(services) -> str:
    days = services.log_retention_days
    removed = services.logs.clear_old_logs(timedelta(days=days))
    return f"Removed {removed} log lines older than {days} days"


def regenerate_rclone_config(services) -> str:
    return f"Wrote {services.config.generate_rclone_config()}"


def regenerate_scripts(services) -> str:
    paths = services.backup.generate_scripts()
    return f"Generated {len(paths)} scripts in {os.path.dirname(paths[0])}" if paths else "No scripts generated"


def update_rclone(services) -> str:
    services.installer.update_rclone()
    return services.installer.get_rclone_version() or "rclone updated"


MAINTENANCE_ACTIONS: Dict[str, Callable] = {
    "Remove stale lockfile": remove_lockfile,
    "Reset monthly run timestamp": reset_timestamp,
    "Clear old log entries": clear_old_logs,
    "Regenerate rclone.conf": regenerate_rclone_config,
    "Regenerate backup scripts": regenerate_scripts,
    "Update rclone": update_rclone,
}


def describe_state(services) -> Dict[str, str]:
    """Short state hints shown under each action."""
    lockfile = services.lockfile
    if lockfile.exists():
        lock = (f"Lockfile present for {format_duration(lockfile.get_age())}, "
                f"removable once older than {format_duration(services.stale_lock_age)}")
    else:
        lock = "No lockfile present"

    timestamp = services.timestamp_path
    if os.path.exists(timestamp):
        with open(timestamp, 'r', encoding='utf-8') as f:
            month = f.read().strip()
        stamp = f"Last monthly run: {month or 'never'}"
    else:
        stamp = "Last monthly run: never"

    return {
        "Remove stale lockfile": lock,
        "Reset monthly run timestamp": stamp,
        "Clear old log entries": f"Keeps the last {services.log_retention_days} days of {services.logs.get_log_path()}",
        "Regenerate rclone.conf": f"Rewrites {services.rclone.get_config_path()} from saved remotes",
        "Regenerate backup scripts": "Renders the shell scripts from the saved configuration",
        "Update rclone": "Runs brew upgrade rclone",
    }


class MaintenanceScreen(Screen):
    title = "Maintenance"

    def __init__(self, services):
        super().__init__(services)
        self.menu = SelectList([MenuItem(name, value=name) for name in MAINTENANCE_ACTIONS])
        self.pending: Optional[str] = None
        self.busy = False
        self.message: Optional[str] = None

    def init(self) -> Optional[Cmd]:
        return self._describe()

    def _describe(self) -> Cmd:
        return self.task("describe", describe_state, self.services)

    def back(self) -> bool:
        if self.pending is not None:
            self.pending = None
            return True
        return False

    def on_key(self, key: str) -> Optional[Cmd]:
        if self.busy:
            return None
        if self.pending is not None:
            if key == "y":
                name, self.pending = self.pending, None
                self.busy = True
                return self.task("action", MAINTENANCE_ACTIONS[name], self.services)
            if key in ("n", "enter"):
                self.pending = None
            return None

        if key.isdigit() and 1 <= int(key) <= len(self.menu.items):
            self.menu.cursor = int(key) - 1
            key = "enter"
        if key == "enter" and self.menu.selected is not None:
            self.pending = self.menu.selected.value
            self.message = None
            self.error = None
            return None
        self.menu.handle_key(key)
        return None

    def on_result(self, result: Result) -> Optional[Cmd]:
        if result.tag == "describe":
            if result.ok:
                for item in self.menu.items:
                    item.description = result.value.get(item.value, "")
            return None

        self.busy = False
        if result.ok:
            self.message = result.value
        else:
            self.error = result.error
        return self._describe()

    def view(self) -> str:
        lines = [styles.render_info("  Maintenance tasks"), "", self.menu.view(numbered=True)]
        if self.pending is not None:
            lines += ["", "  " + styles.render_warning(f"{self.pending}? (y/n)")]
        if self.busy:
            lines += ["", "  " + styles.render_info("Working...")]
        if self.message:
            lines += ["", "  " + styles.render_success(f"✓ {self.message}")]
        if self.error:
            lines += ["", "  " + styles.render_error(f"Error: {self.error}")]
        return "\n".join(lines)

    def footer(self) -> str:
        if self.pending is not None:
            return "y: Confirm • n: Cancel • esc: Main menu"
        return "↑/↓: Navigate • enter: Run • q: Back • esc: Main menu"
