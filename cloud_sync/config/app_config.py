"""Persistence of the application configuration (config.json)."""

import json
import logging
import os
from typing import Any, Dict, List, Optional

from ..core.errors import DuplicateError, NotFoundError
from ..core.models import AppConfig, LaunchAgentConfig, RemoteConfig, SyncConfig


class ConfigManager:
    """Loads and saves :class:`AppConfig` as a JSON document.

    Every mutating operation reads the whole file, changes it in memory and
    writes it back. There is no locking; the last writer wins.
    """

    CONFIG_FILENAME = "config.json"

    def __init__(self, config_dir: str, defaults: Optional[Dict[str, Any]] = None):
        """Initialize configuration manager.

        Args:
            config_dir: Directory holding ``config.json``.
            defaults: Path defaults (``home_dir``, ``bin_dir``, ``log_dir``,
                     ``rclone_path``, ``rclone_config``) used when no file
                     exists yet.
        """
        self.config_path = os.path.join(config_dir, self.CONFIG_FILENAME)
        self.defaults = defaults or {}
        self.logger = logging.getLogger(__name__)

    def config_exists(self) -> bool:
        return os.path.exists(self.config_path)

    def get_config_path(self) -> str:
        return self.config_path

    def default_config(self) -> AppConfig:
        """Build the configuration used before anything has been saved."""
        home = self.defaults.get('home_dir') or os.path.expanduser("~")
        return AppConfig(
            version="1.0",
            remotes=[],
            launch_agent=LaunchAgentConfig(
                enabled=False,
                label="com.cloud-sync.backup",
                hour=10,
                minute=5,
                run_at_load=True,
            ),
            home_dir=home,
            bin_dir=self.defaults.get('bin_dir') or os.path.join(home, "bin"),
            log_dir=self.defaults.get('log_dir') or os.path.join(home, "logs"),
            rclone_path=self.defaults.get('rclone_path') or "/opt/homebrew/bin/rclone",
            rclone_config=self.defaults.get('rclone_config')
            or os.path.join(home, ".config", "rclone", "rclone.conf"),
        )

    def load(self) -> AppConfig:
        """Load the configuration.

        Returns:
            The stored configuration, or the defaults when no file exists.

        Raises:
            ValueError: If the file is not valid JSON.
            OSError: If the file cannot be read.
        """
        if not self.config_exists():
            return self.default_config()

        with open(self.config_path, 'r', encoding='utf-8') as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise ValueError(f"failed to parse config file {self.config_path}: {e}")

        return AppConfig.from_dict(data)

    def save(self, config: AppConfig) -> None:
        """Write the configuration with owner-only permissions.

        Raises:
            OSError: If the directory or file cannot be written.
        """
        os.makedirs(os.path.dirname(self.config_path), mode=0o755, exist_ok=True)
        with open(self.config_path, 'w', encoding='utf-8') as f:
            json.dump(config.to_dict(), f, indent=2)
        os.chmod(self.config_path, 0o600)
        self.logger.debug(f"Saved configuration to {self.config_path}")

    def add_remote(self, remote: RemoteConfig) -> None:
        """Append a remote.

        Raises:
            DuplicateError: If a remote with the same name exists.
        """
        config = self.load()
        if any(r.name == remote.name for r in config.remotes):
            raise DuplicateError(f"remote with name '{remote.name}' already exists")

        config.remotes.append(remote)
        self.save(config)
        self.logger.info(f"Added remote {remote.name} ({remote.type})")

    def update_remote(self, name: str, remote: RemoteConfig) -> None:
        """Replace the remote called ``name``.

        Raises:
            NotFoundError: If no remote has that name.
        """
        config = self.load()
        for i, existing in enumerate(config.remotes):
            if existing.name == name:
                config.remotes[i] = remote
                self.save(config)
                return
        raise NotFoundError(f"remote '{name}' not found")

    def remove_remote(self, name: str) -> None:
        """Delete the remote called ``name``.

        Raises:
            NotFoundError: If no remote has that name.
        """
        config = self.load()
        remaining = [r for r in config.remotes if r.name != name]
        if len(remaining) == len(config.remotes):
            raise NotFoundError(f"remote '{name}' not found")

        config.remotes = remaining
        self.save(config)
        self.logger.info(f"Removed remote {name}")

    def get_remote(self, name: str) -> RemoteConfig:
        """Look up a remote by name.

        Raises:
            NotFoundError: If no remote has that name.
        """
        for remote in self.load().remotes:
            if remote.name == name:
                return remote
        raise NotFoundError(f"remote '{name}' not found")

    def list_remotes(self) -> List[RemoteConfig]:
        return self.load().remotes

    def update_sync_config(self, sync_config: SyncConfig) -> None:
        config = self.load()
        config.sync_config = sync_config
        self.save(config)

    def update_launch_agent_config(self, launch_config: LaunchAgentConfig) -> None:
        config = self.load()
        config.launch_agent = launch_config
        self.save(config)

    def render_rclone_config(self, remotes: List[RemoteConfig]) -> str:
        """Serialize remotes into rclone's INI-like configuration format.

        Args:
            remotes: Remotes to serialize.

        Returns:
            One ``[name]`` section per remote followed by a blank line.
        """
        lines: List[str] = []
        for remote in remotes:
            lines.append(f"[{remote.name}]")
            lines.append(f"type = {remote.type}")
            if remote.type == "b2":
                lines.append(f"account = {remote.account_id}")
                lines.append(f"key = {remote.application_key}")
            elif remote.type == "s3":
                lines.append(f"provider = {remote.provider}")
                lines.append(f"access_key_id = {remote.account_id}")
                lines.append(f"secret_access_key = {remote.application_key}")
                if remote.region:
                    lines.append(f"region = {remote.region}")
                if remote.endpoint:
                    lines.append(f"endpoint = {remote.endpoint}")
            lines.append("")
        return "\n".join(lines) + ("\n" if lines else "")

    def add_remote_with_rclone_config(self, remote: RemoteConfig) -> str:
        """Append a remote and rewrite ``rclone.conf`` to include it.

        ``config.json`` is saved only after ``rclone.conf`` has been written,
        so a failed write leaves no half-added remote behind.

        Returns:
            Path of the written rclone.conf.

        Raises:
            DuplicateError: If a remote with the same name exists.
            OSError: If either file cannot be written.
        """
        config = self.load()
        if any(r.name == remote.name for r in config.remotes):
            raise DuplicateError(f"remote with name '{remote.name}' already exists")

        config.remotes.append(remote)
        path = self._write_rclone_config(config)
        self.save(config)
        self.logger.info(f"Added remote {remote.name} ({remote.type})")
        return path

    def generate_rclone_config(self) -> str:
        """Write ``rclone.conf`` for every configured remote.

        Returns:
            Path of the written file.

        Raises:
            OSError: If the file cannot be written.
        """
        return self._write_rclone_config(self.load())

    def _write_rclone_config(self, config: AppConfig) -> str:
        path = config.rclone_config
        os.makedirs(os.path.dirname(path), mode=0o755, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            f.write(self.render_rclone_config(config.remotes))
        os.chmod(path, 0o600)
        self.logger.info(f"Generated rclone config with {len(config.remotes)} remotes at {path}")
        return path
