"""Backup orchestration: the high level manager and the progress tracking runner."""

import itertools
import json
import logging
import os
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from ..config.app_config import ConfigManager
from ..config.sync_pairs import SyncPairManager, validate_local_path
from ..utils.formatters import format_duration
from .errors import CloudSyncError, ValidationError
from .executor import CommandExecutor
from .installer import Installer
from .launchd import LaunchdManager, PlistConfig
from .lockfile import Lockfile, LockfileError
from .logs import LogManager
from .models import BackupProgress, BackupStatus, Stats, SyncDirection, SyncPair, Transfer
from .rclone import RcloneManager
from .scripts import MONTHLY_SCRIPT, ScriptConfig, ScriptGenerator

# rclone emits one JSON object per log line, with a "stats" object every second
PROGRESS_FLAGS = ["--use-json-log", "--stats", "1s", "--stats-log-level", "NOTICE"]


@dataclass
class SyncJob:
    """One ``rclone sync`` invocation."""
    name: str
    source: str
    dest: str


def jobs_for_pair(pair: SyncPair) -> List[SyncJob]:
    """rclone invocations needed for a sync pair.

    Bidirectional pairs upload first, then download.
    """
    upload = SyncJob(f"{pair.name} (upload)", pair.local_path, pair.remote_spec)
    download = SyncJob(f"{pair.name} (download)", pair.remote_spec, pair.local_path)
    if pair.direction == SyncDirection.UPLOAD.value:
        return [upload]
    if pair.direction == SyncDirection.DOWNLOAD.value:
        return [download]
    if pair.direction == SyncDirection.BIDIRECTIONAL.value:
        return [upload, download]
    raise ValidationError(f"invalid sync direction: {pair.direction}")


class BackupRunner:
    """Runs rclone for a list of jobs on a worker thread.

    The worker owns the child process and updates a progress snapshot from
    rclone's JSON stats lines. Callers on other threads only ever see
    copies of that snapshot. :meth:`cancel` terminates the child process.
    """

    _run_ids = itertools.count(1)

    def __init__(self, rclone: RcloneManager, lockfile: Lockfile, log: LogManager,
                 executor: Optional[CommandExecutor] = None, dry_run: bool = False):
        self.rclone = rclone
        self.lockfile = lockfile
        self.log = log
        self.executor = executor or rclone.executor
        self.dry_run = dry_run
        self.logger = logging.getLogger(__name__)

        self._lock = threading.Lock()
        # serialises start() against close()
        self._start_lock = threading.Lock()
        self._cancel = threading.Event()
        self._closed = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._proc = None
        self._progress = BackupProgress()
        self._finished_at: Optional[datetime] = None
        # totals of jobs that already finished
        self._base = {"bytes": 0, "totalBytes": 0, "transfers": 0, "totalTransfers": 0}
        self._job_stats: Dict[str, Any] = {}
        self._last_error = ""

    @property
    def run_id(self) -> int:
        return self._progress.run_id

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self, jobs: List[SyncJob]) -> BackupProgress:
        """Begin syncing ``jobs`` in the background.

        Returns:
            The initial Running snapshot.

        Raises:
            ValidationError: If there is nothing to sync.
            CloudSyncError: If a backup is already in progress or the
                runner has been closed.
        """
        if not jobs:
            raise ValidationError("no enabled sync pairs found")
        with self._start_lock:
            if self._closed.is_set():
                raise CloudSyncError("backup cancelled")
            if self.is_running():
                raise CloudSyncError("a backup is already running")
            try:
                self.lockfile.create()
            except LockfileError:
                raise CloudSyncError("backup already running (lockfile exists)")

            try:
                self.log.append("--- Manual Sync Requested ---")
            except OSError:
                self.lockfile.remove()
                raise
            self._cancel.clear()
            self._finished_at = None
            with self._lock:
                self._progress = BackupProgress(
                    status=BackupStatus.RUNNING,
                    run_id=next(self._run_ids),
                    start_time=datetime.now(),
                    jobs_total=len(jobs),
                )

            self.logger.info(f"Starting backup run {self._progress.run_id} with {len(jobs)} jobs")
            self._thread = threading.Thread(target=self._run, args=(list(jobs),), name="backup-runner", daemon=True)
            self._thread.start()
        return self.snapshot()

    def snapshot(self) -> BackupProgress:
        """Copy of the current progress with elapsed time filled in."""
        with self._lock:
            progress = replace(self._progress)
        if progress.start_time is not None:
            end = self._finished_at or datetime.now()
            progress.elapsed = (end - progress.start_time).total_seconds()
        return progress

    def cancel(self) -> BackupProgress:
        """Terminate the running rclone process and wait for the worker.

        Returns:
            The final snapshot, Cancelled unless the run had already ended.
        """
        self._cancel.set()
        with self._lock:
            proc = self._proc
        if proc is not None and proc.poll() is None:
            self.logger.info(f"Terminating rclone (pid {proc.pid})")
            proc.terminate()
        return self.wait()

    def close(self) -> BackupProgress:
        """Cancel any run in progress and refuse every later :meth:`start`."""
        with self._start_lock:
            self._closed.set()
        return self.cancel()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def wait(self) -> BackupProgress:
        if self._thread is not None:
            self._thread.join()
        return self.snapshot()

    def _run(self, jobs: List[SyncJob]) -> None:
        error = ""
        try:
            for index, job in enumerate(jobs):
                if self._cancel.is_set():
                    break
                with self._lock:
                    self._progress.job = job.name
                returncode = self._run_job(job)
                self._finish_job()
                with self._lock:
                    self._progress.jobs_done = index + 1
                if self._cancel.is_set():
                    break
                if returncode != 0:
                    error = f"{job.name}: rclone exited with status {returncode}"
                    if self._last_error:
                        error = f"{error}: {self._last_error}"
                    break
        except (CloudSyncError, OSError) as e:
            error = str(e)
            self.logger.error(f"Backup run failed: {e}")
        finally:
            self._finish_run(error)

    def _run_job(self, job: SyncJob) -> int:
        args = self.rclone.build_sync_args(job.source, job.dest, dry_run=self.dry_run, extra=PROGRESS_FLAGS)
        proc = self.executor.spawn(args)
        with self._lock:
            self._proc = proc
        # a cancel() that ran before _proc was stored found nothing to terminate
        if self._cancel.is_set():
            proc.terminate()
        self._job_stats = {}
        try:
            for line in proc.stdout:
                self.handle_line(line)
        except Exception:
            if proc.poll() is None:
                self.logger.warning(f"Terminating rclone (pid {proc.pid}) after an error")
                proc.terminate()
            raise
        finally:
            returncode = proc.wait()
            with self._lock:
                self._proc = None
        self.logger.info(f"{job.name} finished with status {returncode}")
        return returncode

    def handle_line(self, line: str) -> None:
        """Process one line of rclone output.

        Stats objects update the progress snapshot; every other entry is
        appended to the backup log in rclone's text format.
        """
        line = line.strip()
        if not line:
            return
        try:
            entry = json.loads(line)
        except ValueError:
            entry = None
        if not isinstance(entry, dict):
            self.log.append(f"NOTICE: {line}")
            return

        stats = entry.get("stats")
        if isinstance(stats, dict):
            self._update_stats(stats)
            return

        level = str(entry.get("level", "info")).upper()
        message = str(entry.get("msg", "")).strip()
        obj = entry.get("object")
        text = f"{obj}: {message}" if obj else message
        self.log.append(f"{level:<6}: {text}")

        if obj and message.startswith("Copied"):
            with self._lock:
                self._progress.current_file = str(obj)
        if level in ("ERROR", "CRITICAL"):
            self._last_error = text

    def _update_stats(self, stats: Dict[str, Any]) -> None:
        self._job_stats = stats
        self.lockfile.touch()
        transferring = stats.get("transferring") or []
        with self._lock:
            p = self._progress
            p.bytes_copied = self._base["bytes"] + int(stats.get("bytes") or 0)
            p.bytes_total = self._base["totalBytes"] + int(stats.get("totalBytes") or 0)
            p.files_copied = self._base["transfers"] + int(stats.get("transfers") or 0)
            p.files_total = self._base["totalTransfers"] + int(stats.get("totalTransfers") or 0)
            p.speed = float(stats.get("speed") or 0.0)
            eta = stats.get("eta")
            p.eta = float(eta) if eta is not None else None
            if transferring and isinstance(transferring[0], dict):
                p.current_file = str(transferring[0].get("name", p.current_file))

    def _finish_job(self) -> None:
        for key in self._base:
            self._base[key] += int(self._job_stats.get(key) or 0)
        self._job_stats = {}

    def _finish_run(self, error: str) -> None:
        if self._cancel.is_set():
            status = BackupStatus.CANCELLED
        elif error:
            status = BackupStatus.FAILED
        else:
            status = BackupStatus.COMPLETED

        self._finished_at = datetime.now()
        with self._lock:
            self._progress.status = status
            self._progress.error = "cancelled by user" if status == BackupStatus.CANCELLED else error
            self._progress.current_file = ""
            self._progress.speed = 0.0
            self._progress.eta = None
            self._proc = None

        try:
            self.lockfile.remove()
        except OSError as e:
            self.logger.error(f"Could not remove lockfile after backup run: {e}")
        outcome = "Success" if status == BackupStatus.COMPLETED else "Failed"
        try:
            self.log.append(f"--- Manual Sync Complete: {outcome} ---")
        except OSError as e:
            self.logger.error(f"Could not log the end of the backup run: {e}")
        self.logger.info(f"Backup run {self._progress.run_id} ended: {status.value}")


class BackupManager:
    """High level backup operations composed from the adapters."""

    def __init__(self, config_manager: ConfigManager, sync_pairs: SyncPairManager,
                 installer: Installer, rclone: RcloneManager, launchd: LaunchdManager,
                 lockfile: Lockfile, logs: LogManager, scripts: ScriptGenerator,
                 username: str):
        self.config_manager = config_manager
        self.sync_pairs = sync_pairs
        self.installer = installer
        self.rclone = rclone
        self.launchd = launchd
        self.lockfile = lockfile
        self.logs = logs
        self.scripts = scripts
        self.username = username
        self.logger = logging.getLogger(__name__)

    def verify_prerequisites(self) -> None:
        self.installer.verify_installation()

    def install_tools(self) -> str:
        """Install whatever of Homebrew and rclone is missing.

        Returns:
            Resolved path of the rclone binary, also stored in the config.
        """
        if not self.installer.check_homebrew_installed():
            self.installer.install_homebrew()
        if not self.installer.check_rclone_installed():
            self.installer.install_rclone()

        path = self.installer.get_rclone_path()
        config = self.config_manager.load()
        config.rclone_path = path
        self.config_manager.save(config)
        self.rclone.rclone_path = path
        return path

    def create_directories(self) -> List[str]:
        config = self.config_manager.load()
        created = []
        for directory in (config.bin_dir, config.log_dir, os.path.dirname(config.rclone_config)):
            os.makedirs(directory, mode=0o755, exist_ok=True)
            created.append(directory)
        return created

    def script_config(self) -> ScriptConfig:
        config = self.config_manager.load()
        sync = config.sync_config
        return ScriptConfig(
            home_dir=config.home_dir,
            username=self.username,
            rclone_path=config.rclone_path,
            rclone_config=config.rclone_config,
            source_remote=sync.source_remote,
            source_bucket=sync.source_bucket,
            dest_remote=sync.dest_remote,
            dest_bucket=sync.dest_bucket,
            log_dir=config.log_dir,
            bin_dir=config.bin_dir,
        )

    def generate_scripts(self) -> List[str]:
        """Render every backup script from the saved configuration.

        Raises:
            ValidationError: If the sync settings are incomplete.
        """
        return self.scripts.generate_all_scripts(self.script_config())

    def setup_launch_agent(self, hour: int, minute: int, run_at_load: bool = True) -> str:
        """Save the schedule, write the plist and (re)load the agent.

        Returns:
            Path of the plist.
        """
        config = self.config_manager.load()
        plist = PlistConfig(
            label=self.launchd.get_label(),
            script_path=os.path.join(config.bin_dir, MONTHLY_SCRIPT),
            hour=hour,
            minute=minute,
            run_at_load=run_at_load,
        )
        path = self.launchd.generate_plist(plist)
        if self.launchd.is_loaded():
            self.launchd.unload()
        self.launchd.load()

        # only a loaded agent is recorded as enabled
        launch = config.launch_agent
        launch.enabled = True
        launch.label = plist.label
        launch.hour = hour
        launch.minute = minute
        launch.run_at_load = run_at_load
        launch.script_path = plist.script_path
        self.config_manager.update_launch_agent_config(launch)
        return path

    def get_launch_agent_status(self):
        return self.launchd.get_status()

    def start_manual_backup(self) -> None:
        """Ask launchd to run the scheduled job now.

        Raises:
            CloudSyncError: If a backup already holds the lockfile.
        """
        if self.lockfile.exists():
            raise CloudSyncError("backup already running (lockfile exists)")
        self.launchd.start()

    def get_backup_stats(self) -> Stats:
        return self.logs.get_stats()

    def get_recent_transfers(self, count: int) -> List[Transfer]:
        return self.logs.get_recent_transfers(count)

    def remove_lockfile(self, max_age: timedelta) -> bool:
        """Remove the lockfile left behind by a run that died.

        Args:
            max_age: A lockfile younger than this may belong to a live run.

        Returns:
            False if there was no lockfile to remove.

        Raises:
            CloudSyncError: If the lockfile is not yet stale.
        """
        if not self.lockfile.exists():
            return False
        if not self.lockfile.is_stale(max_age):
            raise CloudSyncError(
                f"lockfile is younger than {format_duration(max_age)}, a backup may still be running"
            )
        self.lockfile.force_remove()
        self.logger.info(f"Removed stale lockfile {self.lockfile.get_path()}")
        return True

    def add_sync_pair(self, name: str, local_path: str, remote_name: str,
                      remote_path: str, direction: str) -> None:
        self.sync_pairs.add(SyncPair(
            name=name,
            local_path=local_path,
            remote_name=remote_name,
            remote_path=remote_path,
            direction=direction,
            enabled=True,
        ))

    def remove_sync_pair(self, name: str) -> None:
        self.sync_pairs.remove(name)

    def list_sync_pairs(self) -> List[SyncPair]:
        return self.sync_pairs.list()

    def toggle_sync_pair(self, name: str) -> bool:
        return self.sync_pairs.toggle_enabled(name)

    def sync_pair(self, name: str, progress: bool = False, dry_run: bool = False) -> None:
        """Run one sync pair to completion in the foreground.

        Raises:
            ValidationError: If the pair is disabled or its folder is unusable.
            CommandError: If rclone fails.
        """
        pair = self.sync_pairs.get(name)
        if not pair.enabled:
            raise ValidationError(f"sync pair '{name}' is disabled")
        validate_local_path(pair.local_path)

        if pair.direction in (SyncDirection.UPLOAD.value, SyncDirection.BIDIRECTIONAL.value):
            self.rclone.sync_local_to_remote(pair.local_path, pair.remote_name, pair.remote_path, progress, dry_run)
        if pair.direction in (SyncDirection.DOWNLOAD.value, SyncDirection.BIDIRECTIONAL.value):
            self.rclone.sync_remote_to_local(pair.remote_name, pair.remote_path, pair.local_path, progress, dry_run)

    def sync_all_enabled(self, progress: bool = False, dry_run: bool = False) -> None:
        pairs = self.sync_pairs.list_enabled()
        if not pairs:
            raise ValidationError("no enabled sync pairs found")
        for pair in pairs:
            self.logger.info(f"Syncing pair {pair.name}")
            self.sync_pair(pair.name, progress, dry_run)

    def backup_jobs(self) -> List[SyncJob]:
        """Jobs for a manual backup from the TUI.

        Enabled sync pairs are used when any exist, otherwise the remote to
        remote sync settings.

        Raises:
            ValidationError: If neither is configured or a pair's folder is
                unusable.
        """
        pairs = self.sync_pairs.list_enabled()
        if pairs:
            jobs: List[SyncJob] = []
            for pair in pairs:
                if pair.direction != SyncDirection.DOWNLOAD.value:
                    validate_local_path(pair.local_path)
                jobs.extend(jobs_for_pair(pair))
            return jobs

        sync = self.config_manager.load().sync_config
        if sync.is_complete():
            return [SyncJob(
                f"{sync.source_remote} -> {sync.dest_remote}",
                f"{sync.source_remote}:{sync.source_bucket}",
                f"{sync.dest_remote}:{sync.dest_bucket}",
            )]
        raise ValidationError("no enabled sync pairs found")

    def new_runner(self, dry_run: bool = False) -> BackupRunner:
        return BackupRunner(self.rclone, self.lockfile, self.logs, dry_run=dry_run)
