"""Configuration hub: remotes, sync pairs, sync settings and schedule."""

from typing import List, Optional

from ..core.models import AppConfig, SyncPair
from . import styles
from .messages import BACK, Cmd, Result
from .remote_config import RemoteConfigScreen
from .schedule import ScheduleScreen
from .screen import ParentScreen, Screen
from .sync_config import SyncConfigScreen
from .sync_pairs import SyncPairsScreen
from .widgets import MenuItem, SelectList, Viewport

CONFIG_MENU = [
    MenuItem("Add cloud remote", "Backblaze B2 or Scaleway credentials", value=RemoteConfigScreen),
    MenuItem("Manage sync pairs", "Local folders synced with cloud storage", value=SyncPairsScreen),
    MenuItem("Backup source and destination", "Remote to remote monthly backup", value=SyncConfigScreen),
    MenuItem("Backup schedule", "LaunchAgent time of day", value=ScheduleScreen),
    MenuItem("View configuration", "Current settings at a glance", value="summary"),
]


def describe_config(config: AppConfig, pairs: List[SyncPair], config_path: str) -> str:
    """Human readable summary of the saved configuration."""
    lines = [styles.render_info("Remotes"), ""]
    if config.remotes:
        for remote in config.remotes:
            kind = f"{remote.type} ({remote.provider})" if remote.provider else remote.type
            lines.append(f"  • {remote.name:<16} {kind}")
    else:
        lines.append("  " + styles.render_muted("none configured"))

    lines += ["", styles.render_info("Sync pairs"), ""]
    if pairs:
        for pair in pairs:
            state = "enabled" if pair.enabled else "disabled"
            lines.append(f"  • {pair.name:<16} {pair.local_path} ⇄ {pair.remote_spec} ({pair.direction}, {state})")
    else:
        lines.append("  " + styles.render_muted("none configured"))

    sync = config.sync_config
    lines += ["", styles.render_info("Monthly backup"), ""]
    if sync.is_complete():
        lines.append(f"  {sync.source_remote}:{sync.source_bucket} → {sync.dest_remote}:{sync.dest_bucket}")
    else:
        lines.append("  " + styles.render_muted("source and destination not set"))

    launch = config.launch_agent
    schedule = f"{launch.hour:02d}:{launch.minute:02d}"
    lines += [
        "",
        styles.render_info("Schedule"),
        "",
        f"  Enabled:      {'yes' if launch.enabled else 'no'}",
        f"  Label:        {launch.label}",
        f"  Time:         {schedule}",
        f"  Run at load:  {'yes' if launch.run_at_load else 'no'}",
        "",
        styles.render_info("Paths"),
        "",
        f"  Config:       {config_path}",
        f"  Scripts:      {config.bin_dir}",
        f"  Logs:         {config.log_dir}",
        f"  rclone:       {config.rclone_path}",
        f"  rclone.conf:  {config.rclone_config}",
    ]
    return "\n".join(lines)


class ConfigSummaryScreen(Screen):
    title = "Current Configuration"

    def __init__(self, services):
        super().__init__(services)
        self.viewport = Viewport(self.height - 8)

    def init(self) -> Optional[Cmd]:
        return self.task("load", self._load)

    def _load(self) -> str:
        config = self.services.config.load()
        pairs = self.services.sync_pairs.list()
        return describe_config(config, pairs, self.services.config.get_config_path())

    def resize(self, width: int, height: int) -> None:
        super().resize(width, height)
        self.viewport.set_height(height - 8)

    def on_key(self, key: str) -> Optional[Cmd]:
        if key == "enter":
            return BACK
        self.viewport.handle_key(key)
        return None

    def on_result(self, result: Result) -> Optional[Cmd]:
        if not result.ok:
            self.error = result.error
            return None
        self.viewport.set_content(result.value)
        return None

    def view(self) -> str:
        if self.error:
            return "  " + styles.render_error(f"Error: {self.error}")
        return self.viewport.view()

    def footer(self) -> str:
        return f"↑/↓: Scroll ({self.viewport.scroll_percent()}%) • q: Back • esc: Main menu"


class ConfigurationScreen(ParentScreen):
    """Menu leading to each configuration wizard."""

    title = "Configuration"

    def __init__(self, services):
        super().__init__(services)
        self.menu = SelectList(list(CONFIG_MENU))

    def _open(self, item: MenuItem) -> Optional[Cmd]:
        if item.value == "summary":
            return self.open_child(ConfigSummaryScreen(self.services))
        return self.open_child(item.value(self.services))

    def on_key(self, key: str) -> Optional[Cmd]:
        if key.isdigit() and 1 <= int(key) <= len(self.menu.items):
            self.menu.cursor = int(key) - 1
            return self._open(self.menu.selected)
        if key == "enter" and self.menu.selected is not None:
            return self._open(self.menu.selected)
        self.menu.handle_key(key)
        return None

    def view(self) -> str:
        if self.child is not None:
            return self._child_view()
        return "\n".join([
            styles.render_info("  What would you like to configure?"),
            "",
            self.menu.view(numbered=True),
        ])

    def _child_view(self) -> str:
        return styles.render_subtitle(self.child.title) + "\n\n" + self.child.view()

    def footer(self) -> str:
        if self.child is not None:
            return self.child.footer()
        return "↑/↓: Navigate • 1-5: Select • enter: Open • q: Back • esc: Main menu"
