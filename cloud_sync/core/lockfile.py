"""Marker file that prevents overlapping backup runs."""

import logging
import os
import time
from datetime import datetime, timedelta
from typing import Union

from .errors import CloudSyncError

LOCKFILE_NAME = "rclone_backup.lock"


class LockfileError(CloudSyncError):
    """The lockfile is in the wrong state for the requested operation."""


class Lockfile:
    """A backup is considered in progress while the lockfile exists.

    The content is a human readable creation timestamp; only the
    modification time is used for staleness checks.
    """

    def __init__(self, path: str):
        self.path = path
        self.logger = logging.getLogger(__name__)

    @classmethod
    def in_log_dir(cls, log_dir: str) -> "Lockfile":
        return cls(os.path.join(log_dir, LOCKFILE_NAME))

    def get_path(self) -> str:
        return self.path

    def exists(self) -> bool:
        return os.path.exists(self.path)

    def create(self) -> None:
        """Create the lockfile.

        Raises:
            LockfileError: If the lockfile already exists.
            OSError: If it cannot be written.
        """
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        try:
            with open(self.path, 'x', encoding='utf-8') as f:
                f.write(f"Created: {datetime.now().astimezone().isoformat(timespec='seconds')}\n")
        except FileExistsError:
            raise LockfileError(f"lockfile already exists at {self.path}")
        self.logger.debug(f"Created lockfile {self.path}")

    def remove(self) -> None:
        """Remove the lockfile if present."""
        if not self.exists():
            return
        os.remove(self.path)
        self.logger.debug(f"Removed lockfile {self.path}")

    def force_remove(self) -> None:
        """Remove the lockfile, ignoring a concurrent removal."""
        try:
            os.remove(self.path)
        except FileNotFoundError:
            pass

    def touch(self) -> None:
        """Refresh the modification time while a run is alive."""
        try:
            os.utime(self.path)
        except FileNotFoundError:
            self.logger.warning(f"Lockfile {self.path} disappeared during a backup run")

    def get_age(self) -> timedelta:
        """Time elapsed since the lockfile was last modified.

        Raises:
            LockfileError: If the lockfile does not exist.
        """
        try:
            mtime = os.stat(self.path).st_mtime
        except FileNotFoundError:
            raise LockfileError("lockfile does not exist")
        return timedelta(seconds=time.time() - mtime)

    def is_stale(self, max_age: Union[timedelta, float]) -> bool:
        """Whether the lockfile is older than ``max_age``.

        Args:
            max_age: Threshold as a timedelta or in seconds.

        Returns:
            True iff the lockfile exists and its age exceeds ``max_age``.
        """
        if not isinstance(max_age, timedelta):
            max_age = timedelta(seconds=max_age)
        try:
            return self.get_age() > max_age
        except LockfileError:
            return False
