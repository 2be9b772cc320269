"""Thin adapter over the rclone command line."""

import json
import logging
import os
import re
from typing import Dict, List, Optional

from .errors import CommandError, NotFoundError, ToolNotFoundError, ValidationError
from .executor import CommandExecutor

_REMOTE_NAME_CHAR = re.compile(r"[A-Za-z0-9_-]")


def validate_remote_name(name: str) -> None:
    """Check that ``name`` is usable as an rclone remote name.

    Raises:
        ValidationError: If the name is empty or contains a character other
            than letters, digits, ``-`` and ``_``.
    """
    if not name:
        raise ValidationError("remote name cannot be empty")
    for char in name:
        if not _REMOTE_NAME_CHAR.fullmatch(char):
            raise ValidationError(f"remote name contains invalid character: {char}")


def validate_bucket_name(name: str) -> None:
    """Reject bucket names most providers refuse.

    Raises:
        ValidationError: If the name is empty, has upper case or spaces.
    """
    if not name:
        raise ValidationError("bucket name cannot be empty")
    for char in name:
        if "A" <= char <= "Z":
            raise ValidationError("bucket name cannot contain uppercase letters")
        if char == " ":
            raise ValidationError("bucket name cannot contain spaces")


def parse_rclone_config(text: str) -> Dict[str, Dict[str, str]]:
    """Parse rclone's INI-like configuration.

    Blank lines and ``#`` / ``;`` comments are skipped, ``[name]`` opens a
    section and ``key = value`` lines are split on the first ``=``.

    Args:
        text: Configuration file content.

    Returns:
        Mapping of section name to its key/value pairs.
    """
    sections: Dict[str, Dict[str, str]] = {}
    current: Optional[str] = None

    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or line.startswith(";"):
            continue
        if line.startswith("[") and line.endswith("]"):
            current = line[1:-1].strip()
            sections.setdefault(current, {})
            continue
        if current is not None and "=" in line:
            key, value = line.split("=", 1)
            sections[current][key.strip()] = value.strip()

    return sections


class RcloneManager:
    """Builds rclone argument lists and parses rclone output."""

    def __init__(self, rclone_path: str, config_path: str, executor: Optional[CommandExecutor] = None):
        """Initialize rclone adapter.

        Args:
            rclone_path: rclone binary. A bare name is resolved through PATH
                        when the configured path does not exist.
            config_path: rclone.conf used for every invocation.
            executor: Process shim.
        """
        self.rclone_path = rclone_path
        self.config_path = config_path
        self.executor = executor or CommandExecutor()
        self.logger = logging.getLogger(__name__)

    def get_config_path(self) -> str:
        return self.config_path

    def config_exists(self) -> bool:
        return os.path.exists(self.config_path)

    def binary(self) -> str:
        """The rclone executable to run.

        Raises:
            ToolNotFoundError: If neither the configured path nor PATH has rclone.
        """
        if os.path.isabs(self.rclone_path) and os.path.exists(self.rclone_path):
            return self.rclone_path
        found = self.executor.look_path(os.path.basename(self.rclone_path) or "rclone")
        if found is None:
            raise ToolNotFoundError("rclone")
        return found

    def _run(self, *args: str) -> str:
        return self.executor.check_output([self.binary(), *args])

    def list_remotes(self) -> List[str]:
        output = self._run("listremotes", "--config", self.config_path)
        return [line.strip().rstrip(":") for line in output.splitlines() if line.strip()]

    def list_buckets(self, remote_name: str) -> List[str]:
        """Top level directories (buckets) of a remote.

        ``rclone lsd`` rows look like ``-1 2023-01-01 12:00:00 -1 bucket``;
        the last column of rows with at least four fields is the name.
        """
        output = self._run("lsd", f"{remote_name}:", "--config", self.config_path)
        buckets = []
        for line in output.splitlines():
            parts = line.split()
            if len(parts) >= 4:
                buckets.append(parts[-1])
        return buckets

    def test_remote(self, remote_name: str) -> None:
        """Check that a remote answers a shallow listing.

        Raises:
            CommandError: With rclone's output if the remote is unreachable.
        """
        args = [self.binary(), "lsd", f"{remote_name}:", "--config", self.config_path, "--max-depth", "1"]
        result = self.executor.run(args)
        if not result.ok:
            raise CommandError(args, result.returncode, result.output, "remote test failed")

    def configure_remote(self) -> None:
        """Run the interactive ``rclone config`` on the current terminal."""
        args = [self.binary(), "config", "--config", self.config_path]
        status = self.executor.run_interactive(args)
        if status != 0:
            raise CommandError(args, status, "", "failed to configure remote")

    def parse_config(self) -> Dict[str, Dict[str, str]]:
        """Parse the rclone configuration file.

        Raises:
            NotFoundError: If the file does not exist.
        """
        if not self.config_exists():
            raise NotFoundError(f"config file not found: {self.config_path}")
        with open(self.config_path, 'r', encoding='utf-8') as f:
            return parse_rclone_config(f.read())

    def get_remote_type(self, remote_name: str) -> str:
        sections = self.parse_config()
        if remote_name not in sections:
            raise NotFoundError(f"remote '{remote_name}' not found in config")
        remote_type = sections[remote_name].get("type")
        if not remote_type:
            raise NotFoundError(f"remote '{remote_name}' has no type specified")
        return remote_type

    def build_sync_args(self, source: str, dest: str, progress: bool = False,
                        dry_run: bool = False, extra: Optional[List[str]] = None) -> List[str]:
        """Argument vector for ``rclone sync``."""
        args = [self.binary(), "sync", source, dest, "--config", self.config_path, "--fast-list", "-v"]
        if progress:
            args.append("-P")
        if dry_run:
            args.append("--dry-run")
        if extra:
            args.extend(extra)
        return args

    def sync(self, source: str, dest: str, progress: bool = False, dry_run: bool = False) -> str:
        """Run ``rclone sync`` to completion.

        With ``progress`` the command is attached to the terminal so rclone
        can draw its own progress display.

        Returns:
            Captured output (empty when attached to the terminal).

        Raises:
            CommandError: If the sync fails.
        """
        args = self.build_sync_args(source, dest, progress, dry_run)
        self.logger.info(f"Syncing {source} -> {dest}{' (dry run)' if dry_run else ''}")
        if progress:
            status = self.executor.run_interactive(args)
            if status != 0:
                raise CommandError(args, status, "", "sync failed")
            return ""
        return self.executor.check_output(args)

    def sync_local_to_remote(self, local_path: str, remote_name: str, remote_path: str,
                             progress: bool = False, dry_run: bool = False) -> str:
        if not os.path.exists(local_path):
            raise ValidationError(f"local path does not exist: {local_path}")
        return self.sync(local_path, f"{remote_name}:{remote_path}", progress, dry_run)

    def sync_remote_to_local(self, remote_name: str, remote_path: str, local_path: str,
                             progress: bool = False, dry_run: bool = False) -> str:
        os.makedirs(local_path, mode=0o755, exist_ok=True)
        return self.sync(f"{remote_name}:{remote_path}", local_path, progress, dry_run)

    def list_local_files(self, local_path: str, max_depth: int = 0) -> List[str]:
        """Files under ``local_path`` as listed by ``rclone ls``."""
        args = ["ls", local_path]
        if max_depth > 0:
            args.extend(["--max-depth", str(max_depth)])
        files = []
        for line in self._run(*args).splitlines():
            parts = line.split()
            if len(parts) >= 2:
                files.append(" ".join(parts[1:]))
        return files

    def get_local_dir_size(self, local_path: str) -> int:
        """Total size in bytes reported by ``rclone size --json``.

        Raises:
            ValueError: If rclone's output is not the expected JSON.
        """
        output = self._run("size", local_path, "--json")
        try:
            return int(json.loads(output)["bytes"])
        except (ValueError, KeyError, TypeError) as e:
            raise ValueError(f"failed to parse size output: {e}")
