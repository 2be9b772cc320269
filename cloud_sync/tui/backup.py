"""Live progress of a manual backup run."""

from typing import Optional

from ..core.models import BackupProgress, BackupStatus
from ..utils.formatters import format_bytes, format_duration
from . import styles
from .messages import BACK, Cmd, Result
from .screen import Screen

STATUS_STYLES = {
    BackupStatus.IDLE: styles.render_muted,
    BackupStatus.RUNNING: styles.render_info,
    BackupStatus.COMPLETED: styles.render_success,
    BackupStatus.FAILED: styles.render_error,
    BackupStatus.CANCELLED: styles.render_warning,
}


class BackupScreen(Screen):
    """Starts a sync on entry and polls the runner for snapshots.

    Snapshots from an earlier run (different ``run_id``) are dropped, and
    once a terminal snapshot has been shown later ones are ignored.
    """

    title = "Backup Operations"

    def __init__(self, services, dry_run: bool = False):
        super().__init__(services)
        self.runner = services.backup.new_runner(dry_run=dry_run)
        self.progress = BackupProgress()
        self.starting = False
        self.cancelling = False
        self.interval = float(services.settings.get('tui', {}).get('refresh_interval', 1.0))

    def init(self) -> Optional[Cmd]:
        return self._start()

    def _start(self) -> Cmd:
        self.starting = True
        self.cancelling = False
        self.error = None
        self.progress = BackupProgress()
        return self.task("start", self._begin)

    def _begin(self) -> BackupProgress:
        jobs = self.services.backup.backup_jobs()
        return self.runner.start(jobs)

    def _poll(self) -> Cmd:
        return self.tick("progress", self.interval, self.runner.snapshot)

    @property
    def running(self) -> bool:
        return self.starting or self.progress.status == BackupStatus.RUNNING

    def back(self) -> bool:
        # q is ignored mid-run; c cancels, esc leaves and cancels
        if self.running:
            self.error = "backup in progress, press c to cancel it first"
            return True
        return False

    def dispose(self) -> None:
        # a start task still queued must not launch rclone after this
        if self.runner.is_running():
            self.logger.info("Backup screen closed, cancelling run")
        self.runner.close()

    def on_key(self, key: str) -> Optional[Cmd]:
        if self.starting:
            return None
        if self.progress.status == BackupStatus.RUNNING:
            if key in ("c", "x") and not self.cancelling:
                self.cancelling = True
                return self.task("cancel", self.runner.cancel)
            return None
        if key == "enter":
            return BACK
        if key == "r":
            return self._start()
        return None

    def on_result(self, result: Result) -> Optional[Cmd]:
        if result.tag == "start":
            self.starting = False
            if not result.ok:
                self.error = result.error
                self.progress = BackupProgress(status=BackupStatus.FAILED, error=result.error)
                return None
            self.progress = result.value
            return self._poll()

        if not result.ok:
            self.error = result.error
            return None

        snapshot: BackupProgress = result.value
        if snapshot.run_id != self.progress.run_id or self.progress.status.is_terminal:
            return None
        self.progress = snapshot
        if snapshot.status.is_terminal:
            self.cancelling = False
            return None
        return self._poll()

    def _status_line(self) -> str:
        p = self.progress
        if self.starting:
            return styles.render_info("Starting backup...")
        if self.cancelling and p.status == BackupStatus.RUNNING:
            return styles.render_warning("Cancelling...")
        return STATUS_STYLES[p.status](p.status.value)

    def _details(self) -> str:
        p = self.progress
        eta = format_duration(p.eta) if p.eta is not None else "-"
        speed = f"{format_bytes(int(p.speed))}/s" if p.speed else "-"
        lines = [
            f"Status:       {self._status_line()}",
        ]
        if p.jobs_total:
            lines.append(f"Job:          {p.job} ({min(p.jobs_done + 1, p.jobs_total)}/{p.jobs_total})")
        lines += [
            f"Current file: {p.current_file or '-'}",
            f"Files:        {p.files_copied}/{p.files_total}",
            f"Transferred:  {format_bytes(p.bytes_copied)} / {format_bytes(p.bytes_total)}",
            "",
            styles.render_progress_bar(p.percent, width=max(10, min(50, self.width - 20))),
            "",
            f"Speed:        {speed}",
            f"Elapsed:      {format_duration(p.elapsed)}",
            f"ETA:          {eta}",
        ]
        return "\n".join(lines)

    def _summary(self) -> str:
        p = self.progress
        if p.status == BackupStatus.COMPLETED:
            head = styles.render_success("✓ Backup completed successfully!")
        elif p.status == BackupStatus.CANCELLED:
            head = styles.render_warning("Backup cancelled")
        else:
            head = styles.render_error("✗ Backup failed")
        lines = [
            head,
            "",
            f"Files copied: {p.files_copied}",
            f"Transferred:  {format_bytes(p.bytes_copied)}",
            f"Duration:     {format_duration(p.elapsed)}",
        ]
        if p.error and p.status != BackupStatus.CANCELLED:
            lines += ["", styles.render_error(p.error)]
        return "\n".join(lines)

    def view(self) -> str:
        width = min(76, self.width)
        if self.progress.status.is_terminal and not self.starting:
            return styles.render_box(self._summary(), width=width)
        lines = [styles.render_box(self._details(), width=width)]
        if self.error:
            lines += ["", "  " + styles.render_error(f"Error: {self.error}")]
        return "\n".join(lines)

    def footer(self) -> str:
        if self.starting:
            return "Please wait... • esc: Main menu"
        if self.progress.status == BackupStatus.RUNNING:
            return "c: Cancel backup • esc: Cancel and return to main menu"
        return "enter: Back • r: Run again • esc: Main menu"
