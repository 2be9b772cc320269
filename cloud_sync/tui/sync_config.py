"""Source and destination of the scheduled remote to remote backup."""

from typing import List, Optional

from ..core.models import SyncConfig
from . import styles
from .messages import BACK, Cmd, Result
from .screen import Screen
from .widgets import Form, TextInput


def sync_config_form(current: Optional[SyncConfig] = None) -> Form:
    current = current or SyncConfig()
    return Form([
        TextInput("Source Remote: ", "b2", value=current.source_remote, char_limit=32),
        TextInput("Source Bucket: ", "my-source-bucket", value=current.source_bucket),
        TextInput("Dest Remote: ", "sw", value=current.dest_remote, char_limit=32),
        TextInput("Dest Bucket: ", "my-backup-bucket", value=current.dest_bucket),
    ])


def build_sync_config(values: List[str]) -> SyncConfig:
    source_remote, source_bucket, dest_remote, dest_bucket = values
    if not all(values):
        raise ValueError("all fields are required")
    return SyncConfig(
        source_remote=source_remote,
        source_bucket=source_bucket,
        dest_remote=dest_remote,
        dest_bucket=dest_bucket,
    )


class SyncConfigScreen(Screen):
    title = "Backup Source and Destination"

    def __init__(self, services):
        super().__init__(services)
        self.form = sync_config_form()
        self.loaded = False
        self.saving = False
        self.done = False

    def init(self) -> Optional[Cmd]:
        return self.task("load", lambda: self.services.config.load().sync_config)

    @property
    def captures_text(self) -> bool:
        return not self.done

    def on_key(self, key: str) -> Optional[Cmd]:
        if self.done:
            return BACK if key in ("enter", "q") else None
        if self.saving:
            return None
        if key == "enter":
            try:
                sync_config = build_sync_config(self.form.values())
            except ValueError as e:
                self.error = str(e)
                return None
            self.error = None
            self.saving = True
            return self.task("save", self.services.config.update_sync_config, sync_config)
        self.form.handle_key(key)
        return None

    def on_result(self, result: Result) -> Optional[Cmd]:
        if not result.ok:
            self.saving = False
            self.error = result.error
            return None
        if result.tag == "load":
            self.loaded = True
            self.form = sync_config_form(result.value)
        elif result.tag == "save":
            self.saving = False
            self.done = True
        return None

    def view(self) -> str:
        if self.done:
            content = styles.render_success("✓ Backup source and destination saved!")
            content += "\n\nRegenerate the backup scripts from Maintenance to apply the change."
            return styles.render_box(content, width=min(70, self.width))

        lines = [
            styles.render_info("  Remote to remote backup used by the scheduled scripts"),
            "",
            self.form.view(),
        ]
        if self.saving:
            lines += ["", "  " + styles.render_info("Saving...")]
        if self.error:
            lines += ["", "  " + styles.render_error(f"Error: {self.error}")]
        return "\n".join(lines)

    def footer(self) -> str:
        if self.done:
            return "enter: Continue • esc: Main menu"
        return "tab: Next field • enter: Save • esc: Main menu"
