"""Backup log viewer with five views over the parsed rclone log."""

from collections import OrderedDict
from datetime import datetime
from enum import Enum
from typing import List, Optional

from ..core.models import Stats, SyncSession, Transfer
from ..utils.formatters import format_bytes, format_date, format_duration, format_relative_time
from . import styles
from .messages import Cmd, Result
from .screen import Screen
from .widgets import Viewport

RECENT_COUNT = 50
RULE = "─" * 50


class LogMode(Enum):
    ALL = "1"
    TODAY = "2"
    RECENT = "3"
    SESSIONS = "4"
    STATS = "5"


MODE_DESCRIPTIONS = {
    LogMode.ALL: "All transfers",
    LogMode.TODAY: "Today's transfers",
    LogMode.RECENT: f"Recent {RECENT_COUNT} transfers",
    LogMode.SESSIONS: "Sync sessions",
    LogMode.STATS: "Statistics",
}


def render_all_transfers(transfers: List[Transfer]) -> str:
    if not transfers:
        return "No transfers found in logs."

    by_date = OrderedDict()
    for transfer in transfers:
        by_date.setdefault(transfer.timestamp.strftime('%Y-%m-%d'), []).append(transfer)

    lines = [styles.render_info(f"Total transfers: {len(transfers)}"), ""]
    for date, day in by_date.items():
        lines.append(styles.render_subtitle(f"📅 {date} ({len(day)} files)"))
        for transfer in day:
            lines.append(f"  {transfer.timestamp.strftime('%H:%M:%S')}  {transfer.filename}")
        lines.append("")
    return "\n".join(lines)


def render_todays_transfers(transfers: List[Transfer]) -> str:
    if not transfers:
        return "No transfers today."
    lines = [styles.render_info(f"Today's transfers: {len(transfers)}"), ""]
    for transfer in transfers:
        lines.append(f"{transfer.timestamp.strftime('%H:%M:%S')}  {styles.render_success('✓')}  {transfer.filename}")
    return "\n".join(lines)


def render_recent_transfers(transfers: List[Transfer], now: Optional[datetime] = None) -> str:
    if not transfers:
        return "No recent transfers found."
    now = now or datetime.now()
    lines = [styles.render_info(f"Recent transfers: {len(transfers)}"), ""]
    for transfer in reversed(transfers):
        when = format_relative_time(now - transfer.timestamp)
        lines.append(f"{when:<12}  {styles.render_success('✓')}  {transfer.filename}")
    return "\n".join(lines)


def _session_row(session: SyncSession) -> List[str]:
    started = session.start_time.strftime('%Y-%m-%d %H:%M') if session.start_time else "-"
    status = styles.render_success("✓ Success") if session.success else styles.render_error("✗ Failed")
    duration = format_duration(session.duration) if session.duration is not None else "In progress"
    if session.end_time is None:
        status = styles.render_warning("… Running")
    return [started, session.type, status, str(session.files_count), duration]


def render_sessions(sessions: List[SyncSession], width: int) -> str:
    if not sessions:
        return "No sync sessions found."
    rows = [_session_row(s) for s in reversed(sessions)]
    table = styles.render_table(["Date/Time", "Type", "Status", "Files", "Duration"], rows, width)
    return styles.render_info(f"Total sessions: {len(sessions)}") + "\n\n" + table


def render_stats(stats: Stats, sessions: List[SyncSession]) -> str:
    lines = [
        "📊 Overall Statistics",
        RULE,
        "",
        f"Total files backed up:  {stats.total_files}",
        f"Total size:             {format_bytes(stats.total_size)}",
        f"Last sync:              {format_date(stats.last_sync)}",
        f"Last successful sync:   {format_date(stats.last_success)}",
    ]
    if stats.success_rate > 0:
        render = styles.render_success
        if stats.success_rate < 50:
            render = styles.render_error
        elif stats.success_rate < 80:
            render = styles.render_warning
        lines.append(f"Success rate:           {render(f'{stats.success_rate:.1f}%')}")

    if sessions:
        lines += ["", "📈 Recent Activity (Last 5 sessions)", RULE, ""]
        for session in reversed(sessions[-5:]):
            icon = "✓" if session.success else "✗"
            started = session.start_time.strftime('%Y-%m-%d %H:%M') if session.start_time else "-"
            lines.append(f"{icon} {started} - {session.type} ({session.files_count} files)")
    return "\n".join(lines)


class LogViewerScreen(Screen):
    """Every mode switch or refresh re-parses the whole log."""

    title = "Log Viewer"

    def __init__(self, services, mode: LogMode = LogMode.ALL):
        super().__init__(services)
        self.mode = mode
        self.viewport = Viewport(self.height - 9)
        self.loading = False

    def init(self) -> Optional[Cmd]:
        return self._load()

    def _load(self) -> Cmd:
        self.loading = True
        return self.task(self.mode.value, self._render, self.mode, self.width)

    def _render(self, mode: LogMode, width: int) -> str:
        logs = self.services.logs
        if not logs.log_exists():
            return f"No log file yet at {logs.get_log_path()}"
        if mode == LogMode.ALL:
            return render_all_transfers(logs.get_all_transfers())
        if mode == LogMode.TODAY:
            return render_todays_transfers(logs.get_todays_transfers())
        if mode == LogMode.RECENT:
            return render_recent_transfers(logs.get_recent_transfers(RECENT_COUNT))
        if mode == LogMode.SESSIONS:
            return render_sessions(logs.get_sync_sessions(), width - 4)
        return render_stats(logs.get_stats(), logs.get_sync_sessions())

    def resize(self, width: int, height: int) -> None:
        super().resize(width, height)
        self.viewport.set_height(height - 9)

    def on_key(self, key: str) -> Optional[Cmd]:
        if key in ("1", "2", "3", "4", "5"):
            self.mode = LogMode(key)
            self.viewport.offset = 0
            return self._load()
        if key == "r":
            return self._load()
        self.viewport.handle_key(key)
        return None

    def on_result(self, result: Result) -> Optional[Cmd]:
        # only the latest requested mode is shown
        if result.tag != self.mode.value:
            return None
        self.loading = False
        if not result.ok:
            self.error = result.error
            self.viewport.set_content("")
            return None
        self.error = None
        self.viewport.set_content(result.value)
        return None

    def view(self) -> str:
        lines = [styles.render_info(f"  {MODE_DESCRIPTIONS[self.mode]}"), ""]
        if self.error:
            lines.append("  " + styles.render_error(f"Error: {self.error}"))
        elif self.loading and not self.viewport.lines:
            lines.append("  " + styles.render_muted("Loading..."))
        else:
            lines.append(self.viewport.view())
        return "\n".join(lines)

    def footer(self) -> str:
        return (f"1: All • 2: Today • 3: Recent • 4: Sessions • 5: Stats • r: Refresh • "
                f"↑/↓: Scroll ({self.viewport.scroll_percent()}%) • q: Back")
