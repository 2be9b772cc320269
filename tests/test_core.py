"""Tests for the external tool adapters and the backup log parser."""

import os
import plistlib
import stat
import time
from datetime import datetime, timedelta

import pytest

from cloud_sync.core.errors import CommandError, NotFoundError, ToolNotFoundError, ValidationError
from cloud_sync.core.installer import Installer, InstallerError, detect_homebrew_prefix
from cloud_sync.core.launchd import LaunchdManager, PlistConfig, parse_launchctl_list, render_plist
from cloud_sync.core.lockfile import Lockfile, LockfileError
from cloud_sync.core.logs import LogManager, parse_transfer_line
from cloud_sync.core.rclone import (
    RcloneManager,
    parse_rclone_config,
    validate_bucket_name,
    validate_remote_name,
)
from cloud_sync.core.scripts import ALL_SCRIPTS, ScriptConfig, ScriptGenerator

from .conftest import FakeExecutor


class TestLockfile:
    """Tests for the backup lockfile."""

    def test_create_and_remove(self, tmp_path) -> None:
        lock = Lockfile.in_log_dir(str(tmp_path / "logs"))
        lock.create()

        assert lock.exists()
        with open(lock.get_path()) as f:
            assert f.read().startswith("Created: ")
        lock.remove()
        assert not lock.exists()

    def test_second_create_fails(self, tmp_path) -> None:
        lock = Lockfile(str(tmp_path / "backup.lock"))
        lock.create()

        with pytest.raises(LockfileError, match="already exists"):
            lock.create()

    def test_missing_lockfile_is_not_stale(self, tmp_path) -> None:
        lock = Lockfile(str(tmp_path / "backup.lock"))

        assert lock.is_stale(0) is False
        with pytest.raises(LockfileError):
            lock.get_age()
        lock.remove()
        lock.force_remove()

    def test_old_lockfile_is_stale(self, tmp_path) -> None:
        lock = Lockfile(str(tmp_path / "backup.lock"))
        lock.create()
        two_hours_ago = time.time() - 7200
        os.utime(lock.get_path(), (two_hours_ago, two_hours_ago))

        assert lock.is_stale(timedelta(hours=1))
        assert not lock.is_stale(timedelta(hours=3))

    def test_touch_refreshes_age(self, tmp_path) -> None:
        lock = Lockfile(str(tmp_path / "backup.lock"))
        lock.create()
        two_hours_ago = time.time() - 7200
        os.utime(lock.get_path(), (two_hours_ago, two_hours_ago))

        lock.touch()

        assert not lock.is_stale(timedelta(hours=1))
        lock.remove()
        lock.touch()
        assert not lock.exists()


class TestRcloneValidation:
    """Tests for remote and bucket name rules."""

    @pytest.mark.parametrize("name", ["b2", "my-remote", "remote_2"])
    def test_valid_remote_names(self, name) -> None:
        validate_remote_name(name)

    @pytest.mark.parametrize("name, message", [
        ("", "remote name cannot be empty"),
        ("my remote", "invalid character:  "),
        ("b2:", "invalid character: :"),
    ])
    def test_invalid_remote_names(self, name, message) -> None:
        with pytest.raises(ValidationError, match=message):
            validate_remote_name(name)

    @pytest.mark.parametrize("name, message", [
        ("", "bucket name cannot be empty"),
        ("Photos", "uppercase"),
        ("my photos", "spaces"),
    ])
    def test_invalid_bucket_names(self, name, message) -> None:
        with pytest.raises(ValidationError, match=message):
            validate_bucket_name(name)

    def test_parse_config_skips_comments(self) -> None:
        text = "# header\n; note\n\n[b2]\ntype = b2\nkey = a=b\n\n[s3]\ntype=s3\n"

        assert parse_rclone_config(text) == {"b2": {"type": "b2", "key": "a=b"}, "s3": {"type": "s3"}}


class TestRcloneManager:
    """Tests for RcloneManager against a fake executor."""

    @pytest.fixture
    def rclone(self, fake_executor, tmp_path):
        return RcloneManager("/opt/homebrew/bin/rclone", str(tmp_path / "rclone.conf"), fake_executor)

    def test_list_remotes_strips_colons(self, rclone, fake_executor) -> None:
        fake_executor.respond(["/opt/homebrew/bin/rclone", "listremotes"], 0, "b2:\nsw:\n\n")

        assert rclone.list_remotes() == ["b2", "sw"]
        assert fake_executor.calls[-1][-2:] == ["--config", rclone.get_config_path()]

    def test_list_buckets_takes_last_column(self, rclone, fake_executor) -> None:
        fake_executor.respond(["/opt/homebrew/bin/rclone", "lsd"], 0, (
            "          -1 2024-01-01 12:00:00        -1 photos\n"
            "          -1 2024-01-02 12:00:00        -1 documents\n"
            "short line\n"
        ))

        assert rclone.list_buckets("b2") == ["photos", "documents"]

    def test_missing_binary(self, tmp_path) -> None:
        rclone = RcloneManager("rclone", str(tmp_path / "rclone.conf"), FakeExecutor())

        with pytest.raises(ToolNotFoundError):
            rclone.list_remotes()

    def test_build_sync_args(self, rclone) -> None:
        args = rclone.build_sync_args("/src", "b2:bucket", progress=True, dry_run=True, extra=["--use-json-log"])

        assert args == [
            "/opt/homebrew/bin/rclone", "sync", "/src", "b2:bucket",
            "--config", rclone.get_config_path(), "--fast-list", "-v",
            "-P", "--dry-run", "--use-json-log",
        ]

    def test_test_remote_failure_carries_output(self, rclone, fake_executor) -> None:
        fake_executor.respond(["/opt/homebrew/bin/rclone", "lsd"], 1, "couldn't connect")

        with pytest.raises(CommandError, match="remote test failed: couldn't connect"):
            rclone.test_remote("b2")

    def test_configure_remote_runs_interactively(self, rclone, fake_executor) -> None:
        rclone.configure_remote()
        assert fake_executor.interactive[-1][1] == "config"

        fake_executor.interactive_status = 1
        with pytest.raises(CommandError, match="failed to configure remote"):
            rclone.configure_remote()

    def test_remote_type_lookup(self, rclone) -> None:
        with pytest.raises(NotFoundError, match="config file not found"):
            rclone.get_remote_type("b2")

        with open(rclone.get_config_path(), "w") as f:
            f.write("[b2]\ntype = b2\n\n[bare]\naccount = x\n")
        assert rclone.get_remote_type("b2") == "b2"
        with pytest.raises(NotFoundError, match="has no type"):
            rclone.get_remote_type("bare")
        with pytest.raises(NotFoundError, match="not found in config"):
            rclone.get_remote_type("missing")

    def test_sync_local_path_must_exist(self, rclone, tmp_path) -> None:
        with pytest.raises(ValidationError, match="local path does not exist"):
            rclone.sync_local_to_remote(str(tmp_path / "missing"), "b2", "bucket")

    def test_sync_remote_to_local_creates_folder(self, rclone, fake_executor, tmp_path) -> None:
        local = tmp_path / "restore" / "docs"

        rclone.sync_remote_to_local("b2", "bucket/docs", str(local))

        assert local.is_dir()
        assert fake_executor.calls[-1][1:4] == ["sync", "b2:bucket/docs", str(local)]

    def test_sync_failure(self, rclone, fake_executor, tmp_path) -> None:
        fake_executor.respond(["/opt/homebrew/bin/rclone", "sync"], 1, "directory not found")

        with pytest.raises(CommandError, match="directory not found"):
            rclone.sync_remote_to_local("b2", "bucket", str(tmp_path / "out"))

    def test_list_local_files(self, rclone, fake_executor) -> None:
        fake_executor.respond(["/opt/homebrew/bin/rclone", "ls"], 0, (
            "     1024 notes.txt\n"
            "   204800 photos/summer trip.jpg\n"
            "\n"
        ))

        assert rclone.list_local_files("/docs", max_depth=2) == ["notes.txt", "photos/summer trip.jpg"]
        assert fake_executor.calls[-1][1:] == ["ls", "/docs", "--max-depth", "2"]

    def test_list_local_files_without_depth(self, rclone, fake_executor) -> None:
        rclone.list_local_files("/docs")

        assert fake_executor.calls[-1][1:] == ["ls", "/docs"]

    def test_local_dir_size(self, rclone, fake_executor) -> None:
        fake_executor.respond(["/opt/homebrew/bin/rclone", "size"], 0, '{"count": 3, "bytes": 4096}')

        assert rclone.get_local_dir_size("/docs") == 4096
        assert fake_executor.calls[-1][1:] == ["size", "/docs", "--json"]

    @pytest.mark.parametrize("output", ["Total size: 4 KiB", '{"count": 3}', "[]"])
    def test_local_dir_size_bad_output(self, rclone, fake_executor, output) -> None:
        fake_executor.respond(["/opt/homebrew/bin/rclone", "size"], 0, output)

        with pytest.raises(ValueError, match="failed to parse size output"):
            rclone.get_local_dir_size("/docs")


class TestLaunchd:
    """Tests for the LaunchAgent adapter."""

    @pytest.fixture
    def launchd(self, fake_executor, tmp_path):
        return LaunchdManager("tester", str(tmp_path / "LaunchAgents"), fake_executor)

    def test_label_and_path(self, launchd, tmp_path) -> None:
        assert launchd.get_label() == "com.tester.rclonebackup"
        assert launchd.get_plist_path() == str(tmp_path / "LaunchAgents" / "com.tester.rclonebackup.plist")

    def test_render_plist(self) -> None:
        agent = plistlib.loads(render_plist(PlistConfig("com.tester.rclonebackup", "/bin/monthly.sh", 10, 5)))

        assert agent["ProgramArguments"] == ["/bin/zsh", "/bin/monthly.sh"]
        assert agent["StartCalendarInterval"] == {"Hour": 10, "Minute": 5}
        assert agent["RunAtLoad"] is True

    def test_generate_plist(self, launchd) -> None:
        path = launchd.generate_plist(PlistConfig(launchd.get_label(), "/bin/monthly.sh", 3, 30, run_at_load=False))

        assert stat.S_IMODE(os.stat(path).st_mode) == 0o644
        with open(path, "rb") as f:
            assert "RunAtLoad" not in plistlib.load(f)

    @pytest.mark.parametrize("hour, minute, message", [
        (24, 0, "hour must be between 0 and 23"),
        (0, 60, "minute must be between 0 and 59"),
    ])
    def test_generate_plist_rejects_bad_time(self, launchd, hour, minute, message) -> None:
        with pytest.raises(ValidationError, match=message):
            launchd.generate_plist(PlistConfig(launchd.get_label(), "/bin/monthly.sh", hour, minute))

    def test_parse_running_agent(self) -> None:
        status = parse_launchctl_list("label", '{\n\t"PID" = 812;\n\t"LastExitStatus" = 256;\n};')

        assert status.loaded and status.running
        assert status.pid == 812
        assert status.last_exit_code == 256

    def test_parse_idle_agent(self) -> None:
        status = parse_launchctl_list("label", '{\n\t"LastExitStatus" = 0;\n};')

        assert status.loaded and not status.running
        assert status.pid == -1

    def test_status_of_unknown_agent(self, launchd, fake_executor) -> None:
        fake_executor.respond(["launchctl", "list"], 113, 'Could not find service "com.tester.rclonebackup"')

        assert launchd.get_status().loaded is False

    def test_status_failure(self, launchd, fake_executor) -> None:
        fake_executor.respond(["launchctl", "list"], 1, "boom")

        with pytest.raises(CommandError, match="failed to get status: boom"):
            launchd.get_status()

    def test_load_requires_plist(self, launchd) -> None:
        with pytest.raises(NotFoundError, match="plist file does not exist"):
            launchd.load()

    def test_load_and_unload(self, launchd, fake_executor) -> None:
        launchd.generate_plist(PlistConfig(launchd.get_label(), "/bin/monthly.sh", 10, 5))
        launchd.load()
        fake_executor.respond(["launchctl", "unload"], 1, "Could not find specified service")
        launchd.unload()

        assert fake_executor.calls == [
            ["launchctl", "load", launchd.get_plist_path()],
            ["launchctl", "unload", launchd.get_plist_path()],
        ]

    def test_remove_unloads_and_deletes(self, launchd, fake_executor) -> None:
        launchd.generate_plist(PlistConfig(launchd.get_label(), "/bin/monthly.sh", 10, 5))
        fake_executor.respond(["launchctl", "list"], 0, '"LastExitStatus" = 0;')

        launchd.remove()

        assert ["launchctl", "unload", launchd.get_plist_path()] in fake_executor.calls
        assert not os.path.exists(launchd.get_plist_path())


SAMPLE_LOG = """\
2024/11/01 09:00:00 --- Manual Sync Requested ---
2024/11/01 09:00:05 INFO  : photos/a.jpg: Copied (new)
2024/11/01 09:00:06 INFO  : photos/b.jpg: Copied (replaced existing)
2024/11/01 09:01:00 --- Manual Sync Complete: Success ---
2024/11/03 10:05:00 --- Automated Check Started ---
2024/11/03 10:05:10 INFO  : docs/report.pdf: Copied (new)
2024/11/03 10:06:00 ERROR: Rclone sync failed
no timestamp here
"""


class TestLogManager:
    """Tests for log parsing."""

    @pytest.fixture
    def logs(self, tmp_path):
        path = tmp_path / "rclone_backup.log"
        path.write_text(SAMPLE_LOG)
        return LogManager(str(path))

    def test_parse_transfer_line(self) -> None:
        transfer = parse_transfer_line("2024/11/03 14:30:45 INFO  : file.txt: Copied (new)")

        assert transfer.timestamp == datetime(2024, 11, 3, 14, 30, 45)
        assert transfer.filename == "file.txt"
        assert parse_transfer_line("2024/11/03 14:30:45 INFO  : file.txt: Deleted") is None

    def test_missing_log_is_empty(self, tmp_path) -> None:
        logs = LogManager(str(tmp_path / "none.log"))

        assert logs.get_all_transfers() == []
        assert logs.get_sync_sessions() == []
        assert logs.clear_old_logs(timedelta(days=1)) == 0

    def test_transfers(self, logs) -> None:
        assert [t.filename for t in logs.get_all_transfers()] == ["photos/a.jpg", "photos/b.jpg", "docs/report.pdf"]
        assert [t.filename for t in logs.get_todays_transfers(datetime(2024, 11, 3))] == ["docs/report.pdf"]
        assert [t.filename for t in logs.get_recent_transfers(2)] == ["photos/b.jpg", "docs/report.pdf"]
        assert logs.get_recent_transfers(0) == []

    def test_sessions(self, logs) -> None:
        manual, automated = logs.get_sync_sessions()

        assert (manual.type, manual.success, manual.files_count) == ("Manual", True, 2)
        assert manual.duration == 60
        assert (automated.type, automated.success, automated.files_count) == ("Automated", False, 1)
        assert automated.end_time == datetime(2024, 11, 3, 10, 6)

    def test_stats(self, logs) -> None:
        stats = logs.get_stats()

        assert stats.total_files == 3
        assert stats.last_sync == datetime(2024, 11, 3, 10, 6)
        assert stats.last_success == datetime(2024, 11, 1, 9, 1)
        assert stats.success_rate == 50.0

    def test_tail(self, logs) -> None:
        assert logs.tail_log(1) == ["no timestamp here"]
        assert logs.tail_log(0) == []

    def test_clear_old_logs_keeps_untimestamped_lines(self, logs) -> None:
        removed = logs.clear_old_logs(timedelta(days=1))

        assert removed == 7
        assert logs.tail_log(10) == ["no timestamp here"]

    def test_append(self, tmp_path) -> None:
        logs = LogManager(str(tmp_path / "new" / "rclone_backup.log"))
        logs.append("--- Manual Sync Requested ---", when=datetime(2024, 1, 2, 3, 4, 5))

        assert logs.tail_log(1) == ["2024/01/02 03:04:05 --- Manual Sync Requested ---"]


def script_config(tmp_path, **overrides):
    values = dict(
        home_dir=str(tmp_path), username="tester",
        rclone_path="/opt/homebrew/bin/rclone", rclone_config=str(tmp_path / "rclone.conf"),
        source_remote="b2", source_bucket="photos", dest_remote="sw", dest_bucket="photos-backup",
        log_dir=str(tmp_path / "logs"), bin_dir=str(tmp_path / "bin"),
    )
    values.update(overrides)
    return ScriptConfig(**values)


class TestScriptGenerator:
    """Tests for shell script generation."""

    def test_render_substitutes_values(self, tmp_path) -> None:
        text = ScriptGenerator().render("run_rclone_sync.sh", script_config(tmp_path))

        assert '"b2:photos" "sw:photos-backup"' in text
        assert "stamp() { date" in text
        assert "{log_dir}" not in text

    def test_generate_all_scripts(self, tmp_path) -> None:
        paths = ScriptGenerator().generate_all_scripts(script_config(tmp_path))

        assert [os.path.basename(p) for p in paths] == ALL_SCRIPTS
        for path in paths:
            assert stat.S_IMODE(os.stat(path).st_mode) == 0o755
        assert os.path.isdir(str(tmp_path / "logs"))

    def test_missing_value_rejected(self, tmp_path) -> None:
        with pytest.raises(ValidationError, match="dest bucket is required"):
            ScriptGenerator().generate_all_scripts(script_config(tmp_path, dest_bucket=""))
        assert not os.path.exists(str(tmp_path / "bin"))


class TestInstaller:
    """Tests for Homebrew based installation."""

    @pytest.mark.parametrize("machine, prefix", [("arm64", "/opt/homebrew"), ("x86_64", "/usr/local")])
    def test_homebrew_prefix(self, machine, prefix) -> None:
        assert detect_homebrew_prefix(machine) == prefix

    def test_verify_lists_missing_tools(self) -> None:
        with pytest.raises(InstallerError) as excinfo:
            Installer(FakeExecutor()).verify_installation()

        assert str(excinfo.value) == (
            "installation verification failed: homebrew is not installed, rclone is not installed"
        )

    def test_verify_passes(self, fake_executor) -> None:
        Installer(fake_executor).verify_installation()

    def test_install_rclone_preconditions(self, fake_executor) -> None:
        with pytest.raises(InstallerError, match="homebrew must be installed first"):
            Installer(FakeExecutor()).install_rclone()
        with pytest.raises(InstallerError, match="rclone is already installed"):
            Installer(fake_executor).install_rclone()

    def test_install_rclone(self) -> None:
        executor = FakeExecutor({"brew": "/opt/homebrew/bin/brew"})
        executor.respond(["brew", "install", "rclone"], 0, "==> Pouring rclone")

        result = Installer(executor).install_rclone()

        assert result.output == "==> Pouring rclone"
        assert executor.calls == [["brew", "install", "rclone"]]

    def test_install_rclone_failure(self) -> None:
        executor = FakeExecutor({"brew": "/opt/homebrew/bin/brew"})
        executor.respond(["brew", "install"], 1, "Error: no bottle")

        with pytest.raises(CommandError, match="failed to install rclone: Error: no bottle"):
            Installer(executor).install_rclone()

    def test_install_homebrew_is_non_interactive(self) -> None:
        executor = FakeExecutor()
        Installer(executor).install_homebrew()

        assert executor.calls[0][:2] == ["bash", "-c"]
        assert executor.envs[0] == {"NONINTERACTIVE": "1"}

    def test_rclone_version(self, fake_executor) -> None:
        fake_executor.respond(["rclone", "version"], 0, "rclone v1.68.1\n- os/version: darwin\n")

        assert Installer(fake_executor).get_rclone_version() == "rclone v1.68.1"

    def test_update_rclone(self, fake_executor) -> None:
        Installer(fake_executor).update_rclone()

        assert fake_executor.calls == [["brew", "upgrade", "rclone"]]

    def test_update_rclone_requires_rclone(self) -> None:
        with pytest.raises(InstallerError, match="rclone is not installed"):
            Installer(FakeExecutor({"brew": "/opt/homebrew/bin/brew"})).update_rclone()

    def test_update_rclone_failure(self, fake_executor) -> None:
        fake_executor.respond(["brew", "upgrade"], 1, "Error: rclone not installed by brew")

        with pytest.raises(CommandError, match="failed to upgrade rclone: Error: rclone not installed"):
            Installer(fake_executor).update_rclone()

    def test_rsync_detection(self) -> None:
        assert not Installer(FakeExecutor()).check_rsync_installed()
        assert Installer(FakeExecutor({"rsync": "/usr/bin/rsync"})).check_rsync_installed()

    def test_rsync_version(self) -> None:
        executor = FakeExecutor({"rsync": "/usr/bin/rsync"})
        executor.respond(["rsync", "--version"], 0, "rsync  version 3.3.0  protocol version 31\nCopyright\n")

        assert Installer(executor).get_rsync_version() == "rsync  version 3.3.0  protocol version 31"

    def test_rsync_version_requires_rsync(self) -> None:
        with pytest.raises(ToolNotFoundError):
            Installer(FakeExecutor()).get_rsync_version()

    def test_install_rsync(self) -> None:
        executor = FakeExecutor({"brew": "/opt/homebrew/bin/brew", "rsync": "/usr/bin/rsync"})
        executor.respond(["brew", "list", "rsync"], 1, "Error: No such keg")

        Installer(executor).install_rsync()

        assert executor.calls[-1] == ["brew", "install", "rsync"]

    def test_install_rsync_already_from_homebrew(self) -> None:
        executor = FakeExecutor({"brew": "/opt/homebrew/bin/brew", "rsync": "/opt/homebrew/bin/rsync"})

        with pytest.raises(InstallerError, match="rsync is already installed via homebrew"):
            Installer(executor).install_rsync()
        assert ["brew", "install", "rsync"] not in executor.calls

    def test_install_rsync_requires_homebrew(self) -> None:
        with pytest.raises(InstallerError, match="homebrew must be installed first"):
            Installer(FakeExecutor({"rsync": "/usr/bin/rsync"})).install_rsync()

    def test_update_rsync(self) -> None:
        executor = FakeExecutor({"brew": "/opt/homebrew/bin/brew", "rsync": "/opt/homebrew/bin/rsync"})

        Installer(executor).update_rsync()

        assert executor.calls[-1] == ["brew", "upgrade", "rsync"]

    def test_update_system_rsync_refused(self) -> None:
        executor = FakeExecutor({"brew": "/opt/homebrew/bin/brew", "rsync": "/usr/bin/rsync"})
        executor.respond(["brew", "list", "rsync"], 1, "Error: No such keg")

        with pytest.raises(InstallerError, match="is the system version, install it via homebrew first"):
            Installer(executor).update_rsync()
        assert ["brew", "upgrade", "rsync"] not in executor.calls
