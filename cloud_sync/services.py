"""The service container shared by every screen."""

import logging
import os
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, Optional

from .config.app_config import ConfigManager
from .config.sync_pairs import SyncPairManager
from .core.backup import BackupManager
from .core.executor import CommandExecutor
from .core.installer import Installer
from .core.launchd import LaunchdManager, current_username
from .core.lockfile import Lockfile
from .core.logs import LogManager
from .core.rclone import RcloneManager
from .core.scripts import ScriptGenerator


@dataclass
class Services:
    """Every persistence manager and tool adapter, built once at startup."""
    settings: Dict[str, Any]
    executor: CommandExecutor
    config: ConfigManager
    sync_pairs: SyncPairManager
    installer: Installer
    rclone: RcloneManager
    launchd: LaunchdManager
    lockfile: Lockfile
    logs: LogManager
    scripts: ScriptGenerator
    backup: BackupManager
    username: str

    @property
    def log_retention_days(self) -> int:
        return int(self.settings.get('maintenance', {}).get('log_retention_days', 30))

    @property
    def stale_lock_age(self) -> timedelta:
        return timedelta(hours=float(self.settings.get('maintenance', {}).get('stale_lock_hours', 6)))

    @property
    def timestamp_path(self) -> str:
        return os.path.join(os.path.dirname(self.lockfile.get_path()), "rclone_last_run_timestamp")


def build_services(settings: Dict[str, Any], executor: Optional[CommandExecutor] = None,
                   username: Optional[str] = None) -> Services:
    """Wire the managers together from loaded settings.

    Paths stored in an existing config.json win over the settings defaults,
    so the log and binary directories follow whatever was saved last.

    Args:
        settings: Output of :meth:`SettingsManager.load_settings`.
        executor: Process shim shared by every adapter.
        username: Overrides ``$USER`` for the LaunchAgent label.

    Returns:
        The service container.
    """
    logger = logging.getLogger(__name__)
    executor = executor or CommandExecutor()
    username = username or current_username()
    paths = settings['paths']

    config = ConfigManager(paths['config_dir'], defaults=paths)
    app_config = config.load()
    logger.debug(f"Using config {config.get_config_path()} (exists: {config.config_exists()})")

    rclone = RcloneManager(app_config.rclone_path, app_config.rclone_config, executor)
    installer = Installer(executor, homebrew_prefix=paths.get('homebrew_prefix'))
    launchd = LaunchdManager(username, paths['launch_agents_dir'], executor)
    lockfile = Lockfile.in_log_dir(app_config.log_dir)
    logs = LogManager.in_log_dir(app_config.log_dir)
    scripts = ScriptGenerator()
    sync_pairs = SyncPairManager(paths['config_dir'])

    backup = BackupManager(
        config_manager=config,
        sync_pairs=sync_pairs,
        installer=installer,
        rclone=rclone,
        launchd=launchd,
        lockfile=lockfile,
        logs=logs,
        scripts=scripts,
        username=username,
    )

    return Services(
        settings=settings,
        executor=executor,
        config=config,
        sync_pairs=sync_pairs,
        installer=installer,
        rclone=rclone,
        launchd=launchd,
        lockfile=lockfile,
        logs=logs,
        scripts=scripts,
        backup=backup,
        username=username,
    )
