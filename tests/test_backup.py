"""Tests for backup orchestration and the progress tracking runner."""

import json
import os
import threading
import time
from datetime import timedelta

import pytest

from cloud_sync.core.backup import SyncJob, jobs_for_pair
from cloud_sync.core.errors import CloudSyncError, CommandError, ValidationError
from cloud_sync.core.models import BackupStatus, SyncConfig, SyncPair

from .conftest import FakeProcess


def stats_line(**stats):
    return json.dumps({"level": "notice", "msg": "stats", "stats": stats}) + "\n"


def log_line(level, msg, obj=None):
    entry = {"level": level, "msg": msg}
    if obj:
        entry["object"] = obj
    return json.dumps(entry) + "\n"


class BlockingProcess(FakeProcess):
    """Emits one stats line, then blocks until terminated."""

    def __init__(self):
        super().__init__([])
        self.stopped = threading.Event()
        self.stdout = self._lines()

    def _lines(self):
        yield stats_line(bytes=10, totalBytes=100, transfers=0, totalTransfers=4)
        self.stopped.wait(5)

    def terminate(self) -> None:
        super().terminate()
        self.stopped.set()


def wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached in time")
        time.sleep(0.01)


def add_pair(services, tmp_path, name="docs", direction="upload", enabled=True):
    local = tmp_path / name
    local.mkdir(exist_ok=True)
    services.sync_pairs.add(SyncPair(name, str(local), "b2", f"bucket/{name}", direction, enabled))
    return str(local)


class TestJobs:
    """Tests for turning sync pairs into rclone jobs."""

    def test_bidirectional_uploads_first(self) -> None:
        jobs = jobs_for_pair(SyncPair("docs", "/docs", "b2", "bucket", "bidirectional"))

        assert jobs == [
            SyncJob("docs (upload)", "/docs", "b2:bucket"),
            SyncJob("docs (download)", "b2:bucket", "/docs"),
        ]

    def test_download_only(self) -> None:
        jobs = jobs_for_pair(SyncPair("docs", "/docs", "b2", "bucket", "download"))

        assert [(j.source, j.dest) for j in jobs] == [("b2:bucket", "/docs")]

    def test_unknown_direction(self) -> None:
        with pytest.raises(ValidationError, match="invalid sync direction"):
            jobs_for_pair(SyncPair("docs", "/docs", "b2", "bucket", "sideways"))

    def test_enabled_pairs_win(self, services, tmp_path) -> None:
        add_pair(services, tmp_path, "docs")
        add_pair(services, tmp_path, "music", enabled=False)
        services.config.update_sync_config(SyncConfig("b2", "photos", "sw", "photos-backup"))

        assert [j.name for j in services.backup.backup_jobs()] == ["docs (upload)"]

    def test_falls_back_to_sync_config(self, services) -> None:
        services.config.update_sync_config(SyncConfig("b2", "photos", "sw", "photos-backup"))

        job, = services.backup.backup_jobs()
        assert (job.source, job.dest) == ("b2:photos", "sw:photos-backup")

    def test_nothing_configured(self, services) -> None:
        with pytest.raises(ValidationError, match="no enabled sync pairs found"):
            services.backup.backup_jobs()

    def test_missing_local_folder(self, services, tmp_path) -> None:
        local = add_pair(services, tmp_path)
        os.rmdir(local)

        with pytest.raises(ValidationError, match="path does not exist"):
            services.backup.backup_jobs()


class TestBackupRunner:
    """Tests for BackupRunner with fake rclone processes."""

    def test_completed_run(self, services, fake_executor) -> None:
        fake_executor.processes.append(FakeProcess([
            stats_line(bytes=50, totalBytes=100, transfers=1, totalTransfers=2, speed=25.0, eta=2,
                       transferring=[{"name": "b.txt"}]),
            log_line("info", "Copied (new)", "a.txt"),
            "not json at all\n",
        ]))
        runner = services.backup.new_runner()

        started = runner.start([SyncJob("docs (upload)", "/docs", "b2:bucket")])
        assert started.status == BackupStatus.RUNNING
        progress = runner.wait()

        assert progress.status == BackupStatus.COMPLETED
        assert progress.run_id == started.run_id
        assert (progress.files_copied, progress.files_total) == (1, 2)
        assert progress.percent == 50.0
        assert progress.jobs_done == 1
        assert not services.lockfile.exists()
        assert "--use-json-log" in fake_executor.spawned[0]

        tail = services.logs.tail_log(4)
        assert tail[0].endswith("--- Manual Sync Requested ---")
        assert tail[1].endswith("INFO  : a.txt: Copied (new)")
        assert tail[2].endswith("NOTICE: not json at all")
        assert tail[3].endswith("--- Manual Sync Complete: Success ---")
        assert [t.filename for t in services.logs.get_all_transfers()] == ["a.txt"]

    def test_totals_accumulate_across_jobs(self, services, fake_executor) -> None:
        fake_executor.processes.extend([
            FakeProcess([stats_line(bytes=100, totalBytes=100, transfers=1, totalTransfers=1)]),
            FakeProcess([stats_line(bytes=20, totalBytes=40, transfers=1, totalTransfers=2)]),
        ])
        runner = services.backup.new_runner()

        runner.start([SyncJob("up", "/docs", "b2:bucket"), SyncJob("down", "b2:bucket", "/docs")])
        progress = runner.wait()

        assert (progress.bytes_copied, progress.bytes_total) == (120, 140)
        assert (progress.files_copied, progress.files_total) == (2, 3)
        assert progress.jobs_done == progress.jobs_total == 2

    def test_failed_job_stops_the_run(self, services, fake_executor) -> None:
        fake_executor.processes.append(FakeProcess([log_line("error", "Failed to copy: denied", "x.txt")], 3))
        runner = services.backup.new_runner()

        runner.start([SyncJob("docs (upload)", "/docs", "b2:bucket"), SyncJob("other", "/o", "b2:o")])
        progress = runner.wait()

        assert progress.status == BackupStatus.FAILED
        assert progress.error == "docs (upload): rclone exited with status 3: x.txt: Failed to copy: denied"
        assert len(fake_executor.spawned) == 1
        assert services.logs.tail_log(1)[0].endswith("--- Manual Sync Complete: Failed ---")

    def test_cancel_kills_rclone(self, services, fake_executor) -> None:
        proc = BlockingProcess()
        fake_executor.processes.append(proc)
        runner = services.backup.new_runner()
        runner.start([SyncJob("docs (upload)", "/docs", "b2:bucket")])
        wait_for(lambda: runner.snapshot().bytes_total == 100)

        progress = runner.cancel()

        assert proc.terminated
        assert progress.status == BackupStatus.CANCELLED
        assert progress.error == "cancelled by user"
        assert not runner.is_running()
        assert not services.lockfile.exists()

    def test_dry_run_flag(self, services, fake_executor) -> None:
        fake_executor.processes.append(FakeProcess([]))
        runner = services.backup.new_runner(dry_run=True)

        runner.start([SyncJob("docs", "/docs", "b2:bucket")])
        runner.wait()

        assert "--dry-run" in fake_executor.spawned[0]

    def test_existing_lockfile_blocks_start(self, services) -> None:
        services.lockfile.create()

        with pytest.raises(CloudSyncError, match=r"backup already running \(lockfile exists\)"):
            services.backup.new_runner().start([SyncJob("docs", "/docs", "b2:bucket")])

    def test_no_jobs(self, services) -> None:
        with pytest.raises(ValidationError, match="no enabled sync pairs found"):
            services.backup.new_runner().start([])

    def test_run_ids_increase(self, services, fake_executor) -> None:
        fake_executor.processes.extend([FakeProcess([]), FakeProcess([])])
        first = services.backup.new_runner()
        first.start([SyncJob("docs", "/docs", "b2:bucket")])
        first.wait()
        second = services.backup.new_runner()
        second.start([SyncJob("docs", "/docs", "b2:bucket")])
        second.wait()

        assert second.run_id > first.run_id

    def test_closed_runner_refuses_to_start(self, services, fake_executor) -> None:
        fake_executor.processes.append(FakeProcess([]))
        runner = services.backup.new_runner()

        runner.close()

        with pytest.raises(CloudSyncError, match="backup cancelled"):
            runner.start([SyncJob("docs", "/docs", "b2:bucket")])
        assert fake_executor.spawned == []
        assert not services.lockfile.exists()

    def test_close_cancels_running_backup(self, services, fake_executor) -> None:
        proc = BlockingProcess()
        fake_executor.processes.append(proc)
        runner = services.backup.new_runner()
        runner.start([SyncJob("docs", "/docs", "b2:bucket")])

        progress = runner.close()

        assert proc.terminated
        assert progress.status == BackupStatus.CANCELLED
        assert runner.closed

    def test_cancel_before_process_recorded(self, services, fake_executor, monkeypatch) -> None:
        proc = BlockingProcess()
        fake_executor.processes.append(proc)
        runner = services.backup.new_runner()
        spawn = fake_executor.spawn

        def spawn_then_cancel(args):
            # cancel() lands while the worker has not stored the process yet
            runner._cancel.set()
            return spawn(args)

        monkeypatch.setattr(fake_executor, "spawn", spawn_then_cancel)
        runner.start([SyncJob("docs", "/docs", "b2:bucket")])
        progress = runner.wait()

        assert proc.terminated
        assert progress.status == BackupStatus.CANCELLED

    def test_log_failure_terminates_rclone(self, services, fake_executor, monkeypatch) -> None:
        proc = FakeProcess([log_line("info", "Copied (new)", "a.txt"), log_line("info", "Copied (new)", "b.txt")])
        fake_executor.processes.append(proc)
        append = services.logs.append

        def append_until_disk_full(message, when=None):
            if "Copied" in message:
                raise OSError(28, "No space left on device")
            append(message, when)

        monkeypatch.setattr(services.logs, "append", append_until_disk_full)
        runner = services.backup.new_runner()
        runner.start([SyncJob("docs", "/docs", "b2:bucket")])
        progress = runner.wait()

        assert proc.terminated
        assert progress.status == BackupStatus.FAILED
        assert "No space left on device" in progress.error
        assert services.logs.tail_log(1)[0].endswith("--- Manual Sync Complete: Failed ---")

    def test_end_marker_written_when_lock_removal_fails(self, services, fake_executor, monkeypatch) -> None:
        fake_executor.processes.append(FakeProcess([]))
        runner = services.backup.new_runner()

        def remove():
            raise PermissionError(13, "Permission denied")

        monkeypatch.setattr(services.lockfile, "remove", remove)
        runner.start([SyncJob("docs", "/docs", "b2:bucket")])
        progress = runner.wait()

        assert progress.status == BackupStatus.COMPLETED
        assert services.logs.tail_log(1)[0].endswith("--- Manual Sync Complete: Success ---")

    def test_stats_keep_lockfile_fresh(self, services) -> None:
        runner = services.backup.new_runner()
        services.lockfile.create()
        two_hours_ago = time.time() - 7200
        os.utime(services.lockfile.get_path(), (two_hours_ago, two_hours_ago))

        runner.handle_line(stats_line(bytes=1, totalBytes=2))

        assert not services.lockfile.is_stale(timedelta(hours=1))


class TestBackupManager:
    """Tests for the high level backup operations."""

    def test_install_tools_records_rclone_path(self, services, fake_executor) -> None:
        path = services.backup.install_tools()

        assert path == os.path.realpath("/opt/homebrew/bin/rclone")
        assert services.config.load().rclone_path == path
        assert fake_executor.calls == []

    def test_generate_scripts_needs_sync_config(self, services) -> None:
        with pytest.raises(ValidationError, match="source remote is required"):
            services.backup.generate_scripts()

        services.config.update_sync_config(SyncConfig("b2", "photos", "sw", "photos-backup"))
        paths = services.backup.generate_scripts()
        assert len(paths) == 4

    def test_setup_launch_agent(self, services, fake_executor) -> None:
        fake_executor.respond(["launchctl", "list"], 113, "Could not find service")

        path = services.backup.setup_launch_agent(2, 45)

        assert os.path.exists(path)
        agent = services.config.load().launch_agent
        assert (agent.enabled, agent.hour, agent.minute) == (True, 2, 45)
        assert agent.label == "com.tester.rclonebackup"
        assert fake_executor.calls[-1] == ["launchctl", "load", path]

    def test_setup_launch_agent_reloads(self, services, fake_executor) -> None:
        path = services.backup.setup_launch_agent(10, 5)

        assert fake_executor.calls[-2:] == [["launchctl", "unload", path], ["launchctl", "load", path]]

    def test_failed_agent_load_is_not_recorded(self, services, fake_executor) -> None:
        fake_executor.respond(["launchctl", "load"], 5, "Load failed: 5: Input/output error")

        with pytest.raises(CommandError, match="Input/output error"):
            services.backup.setup_launch_agent(2, 45)

        assert services.config.load().launch_agent.enabled is False

    def test_remove_lockfile_only_when_stale(self, services) -> None:
        assert services.backup.remove_lockfile(timedelta(hours=6)) is False

        services.lockfile.create()
        with pytest.raises(CloudSyncError, match="a backup may still be running"):
            services.backup.remove_lockfile(timedelta(hours=6))
        assert services.lockfile.exists()

        seven_hours_ago = time.time() - 7 * 3600
        os.utime(services.lockfile.get_path(), (seven_hours_ago, seven_hours_ago))
        assert services.backup.remove_lockfile(timedelta(hours=6)) is True
        assert not services.lockfile.exists()

    def test_live_run_keeps_its_lockfile(self, services, fake_executor) -> None:
        proc = BlockingProcess()
        fake_executor.processes.append(proc)
        first = services.backup.new_runner()
        first.start([SyncJob("docs", "/docs", "b2:bucket")])

        with pytest.raises(CloudSyncError, match="a backup may still be running"):
            services.backup.remove_lockfile(services.stale_lock_age)
        with pytest.raises(CloudSyncError, match="lockfile exists"):
            services.backup.new_runner().start([SyncJob("docs", "/docs", "b2:bucket")])

        first.cancel()
        assert len(fake_executor.spawned) == 1
        assert services.logs.tail_log(1)[0].endswith("--- Manual Sync Complete: Failed ---")

    def test_manual_backup_respects_lockfile(self, services, fake_executor) -> None:
        services.backup.start_manual_backup()
        assert fake_executor.calls[-1] == ["launchctl", "start", "com.tester.rclonebackup"]

        services.lockfile.create()
        with pytest.raises(CloudSyncError, match="lockfile exists"):
            services.backup.start_manual_backup()

    def test_disabled_pair_cannot_sync(self, services, tmp_path) -> None:
        add_pair(services, tmp_path, enabled=False)

        with pytest.raises(ValidationError, match="sync pair 'docs' is disabled"):
            services.backup.sync_pair("docs")

    def test_sync_all_enabled(self, services, fake_executor, tmp_path) -> None:
        local = add_pair(services, tmp_path, direction="bidirectional")

        services.backup.sync_all_enabled()

        syncs = [call[2:4] for call in fake_executor.calls if call[1] == "sync"]
        assert syncs == [[local, "b2:bucket/docs"], ["b2:bucket/docs", local]]
