"""Tests for settings loading and formatting helpers."""

import os
from datetime import datetime, timedelta

import pytest
import yaml

from cloud_sync.config.settings import SettingsManager
from cloud_sync.utils.formatters import (
    format_bytes,
    format_date,
    format_duration,
    format_relative_time,
    truncate_string,
)


@pytest.fixture
def no_default_locations(monkeypatch, tmp_path):
    monkeypatch.setattr(SettingsManager, "DEFAULT_SETTINGS_LOCATIONS", [])
    monkeypatch.setenv("HOME", str(tmp_path))


def write_settings(tmp_path, data):
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.safe_dump(data))
    return str(path)


class TestSettingsManager:
    """Tests for SettingsManager."""

    def test_defaults_without_file(self, no_default_locations, tmp_path) -> None:
        settings = SettingsManager().load_settings()

        assert settings['paths']['bin_dir'] == os.path.join(str(tmp_path), "bin")
        assert settings['paths']['rclone_path'].endswith(os.path.join("bin", "rclone"))
        assert settings['paths']['homebrew_prefix'] in ("/opt/homebrew", "/usr/local")
        assert settings['tui'] == {'alt_screen': True, 'mouse': False, 'refresh_interval': 1.0}
        assert settings['logging']['level'] == 'WARNING'
        assert settings['maintenance']['log_retention_days'] == 30
        assert settings['maintenance']['stale_lock_hours'] == 6

    def test_file_values_override_defaults(self, no_default_locations, tmp_path) -> None:
        path = write_settings(tmp_path, {
            'paths': {'log_dir': '~/backup-logs', 'homebrew_prefix': '/usr/local'},
            'tui': {'mouse': True},
        })

        manager = SettingsManager(path)
        settings = manager.load_settings()

        assert manager.loaded_from == path
        assert settings['paths']['log_dir'] == os.path.join(str(tmp_path), "backup-logs")
        assert settings['paths']['rclone_path'] == "/usr/local/bin/rclone"
        assert manager.get_tui_config()['mouse'] is True
        assert manager.get_tui_config()['alt_screen'] is True

    def test_missing_explicit_file(self, no_default_locations, tmp_path) -> None:
        with pytest.raises(FileNotFoundError, match="Settings file not found"):
            SettingsManager(str(tmp_path / "nope.yaml")).load_settings()

    def test_invalid_yaml(self, no_default_locations, tmp_path) -> None:
        path = tmp_path / "settings.yaml"
        path.write_text("paths: [unclosed\n")

        with pytest.raises(ValueError, match="Invalid YAML"):
            SettingsManager(str(path)).load_settings()

    @pytest.mark.parametrize("data, message", [
        (["not", "a", "mapping"], "mapping at the top level"),
        ({'email': {}}, "Unknown settings sections"),
        ({'paths': {'scan_dir': '/tmp'}}, "Unknown path settings"),
        ({'paths': {'bin_dir': 3}}, "must be a string"),
        ({'tui': {'mouse': 'yes'}}, "must be true or false"),
        ({'tui': {'refresh_interval': 0}}, "positive number"),
        ({'logging': {'level': 'LOUD'}}, "Invalid logging level"),
        ({'maintenance': {'log_retention_days': 0}}, "positive integer"),
        ({'maintenance': {'stale_lock_hours': -1}}, "stale_lock_hours must be a positive number"),
        ({'maintenance': {'stale_lock_hours': 'soon'}}, "stale_lock_hours must be a positive number"),
    ])
    def test_invalid_settings(self, no_default_locations, tmp_path, data, message) -> None:
        with pytest.raises(ValueError, match=message):
            SettingsManager(write_settings(tmp_path, data)).load_settings()


class TestFormatters:
    """Tests for display formatting."""

    @pytest.mark.parametrize("size, expected", [
        (0, "0 B"),
        (1023, "1023 B"),
        (1536, "1.5 KB"),
        (5 * 1024 ** 3, "5.0 GB"),
    ])
    def test_format_bytes(self, size, expected) -> None:
        assert format_bytes(size) == expected

    def test_format_date(self) -> None:
        dt = datetime(2024, 11, 3, 14, 30, 45)

        assert format_date(dt) == "2024-11-03 14:30:45"
        assert format_date(dt, short=True) == "2024-11-03 14:30"
        assert format_date(None) == "Never"

    @pytest.mark.parametrize("duration, expected", [
        (5, "5s"),
        (125, "2m 5s"),
        (timedelta(hours=1, minutes=2, seconds=3), "1h 2m 3s"),
        (-4, "0s"),
    ])
    def test_format_duration(self, duration, expected) -> None:
        assert format_duration(duration) == expected

    @pytest.mark.parametrize("delta, expected", [
        (timedelta(seconds=30), "just now"),
        (timedelta(minutes=1), "1 min ago"),
        (timedelta(minutes=5), "5 mins ago"),
        (timedelta(hours=3), "3 hours ago"),
        (timedelta(days=1), "1 day ago"),
    ])
    def test_format_relative_time(self, delta, expected) -> None:
        assert format_relative_time(delta) == expected

    def test_truncate_string(self) -> None:
        assert truncate_string("short", 10) == "short"
        assert truncate_string("a long file name.txt", 10) == "a long ..."
