"""Parsing of the rclone backup log.

Every query re-reads the whole file; nothing is cached between calls.
"""

import logging
import os
import re
from datetime import datetime, timedelta
from typing import Iterator, List, Optional

from .models import Stats, SyncSession, Transfer

LOG_FILENAME = "rclone_backup.log"
TIMESTAMP_FORMAT = "%Y/%m/%d %H:%M:%S"

TRANSFER_PATTERN = re.compile(r"(\d{4}/\d{2}/\d{2} \d{2}:\d{2}:\d{2}).*INFO\s+:\s+(.+?):\s+Copied")
TIMESTAMP_PATTERN = re.compile(r"(\d{4}/\d{2}/\d{2} \d{2}:\d{2}:\d{2})")

MANUAL_START = "Manual Sync Requested"
AUTOMATED_START = "Automated Check Started"
SUCCESS_MARKERS = ("Manual Sync Complete: Success", "Backup successful")
FAILURE_MARKERS = ("Manual Sync Complete: Failed", "ERROR: Rclone sync failed")


def parse_timestamp(line: str) -> Optional[datetime]:
    """Extract the first ``YYYY/MM/DD HH:MM:SS`` timestamp from a line."""
    match = TIMESTAMP_PATTERN.search(line)
    if not match:
        return None
    try:
        return datetime.strptime(match.group(1), TIMESTAMP_FORMAT)
    except ValueError:
        return None


def parse_transfer_line(line: str) -> Optional[Transfer]:
    """Parse a line such as ``2024/11/03 14:30:45 INFO  : file.txt: Copied (new)``."""
    match = TRANSFER_PATTERN.search(line)
    if not match:
        return None
    try:
        timestamp = datetime.strptime(match.group(1), TIMESTAMP_FORMAT)
    except ValueError:
        return None
    return Transfer(timestamp=timestamp, filename=match.group(2).strip(), action="Copied")


def _is_transfer_line(line: str) -> bool:
    return "INFO" in line and "Copied" in line


class LogManager:
    """Reads transfers, sessions and statistics out of the backup log."""

    def __init__(self, log_path: str):
        self.log_path = log_path
        self.logger = logging.getLogger(__name__)

    @classmethod
    def in_log_dir(cls, log_dir: str) -> "LogManager":
        return cls(os.path.join(log_dir, LOG_FILENAME))

    def get_log_path(self) -> str:
        return self.log_path

    def log_exists(self) -> bool:
        return os.path.exists(self.log_path)

    def _lines(self) -> Iterator[str]:
        if not self.log_exists():
            return
        with open(self.log_path, 'r', encoding='utf-8', errors='replace') as f:
            for line in f:
                yield line.rstrip("\n")

    def get_all_transfers(self) -> List[Transfer]:
        transfers = []
        for line in self._lines():
            if _is_transfer_line(line):
                transfer = parse_transfer_line(line)
                if transfer:
                    transfers.append(transfer)
        return transfers

    def get_todays_transfers(self, today: Optional[datetime] = None) -> List[Transfer]:
        """Transfers logged on the current local date."""
        day = (today or datetime.now()).strftime("%Y/%m/%d")
        transfers = []
        for line in self._lines():
            if day in line and _is_transfer_line(line):
                transfer = parse_transfer_line(line)
                if transfer:
                    transfers.append(transfer)
        return transfers

    def get_recent_transfers(self, count: int) -> List[Transfer]:
        """The last ``count`` transfers, oldest first."""
        transfers = self.get_all_transfers()
        if count <= 0:
            return []
        return transfers[-count:]

    def get_sync_sessions(self) -> List[SyncSession]:
        """Reconstruct sync sessions from start and end markers.

        A start marker closes any open session. Copied lines are counted
        against the session that is open when they appear.
        """
        sessions: List[SyncSession] = []
        current: Optional[SyncSession] = None

        for line in self._lines():
            if MANUAL_START in line or AUTOMATED_START in line:
                if current is not None:
                    sessions.append(current)
                current = SyncSession(
                    type="Manual" if MANUAL_START in line else "Automated",
                    start_time=parse_timestamp(line),
                )

            if current is None:
                continue

            if any(marker in line for marker in SUCCESS_MARKERS):
                current.end_time = parse_timestamp(line)
                current.success = True
            elif any(marker in line for marker in FAILURE_MARKERS):
                current.end_time = parse_timestamp(line)
                current.success = False

            if _is_transfer_line(line):
                current.files_count += 1
                transfer = parse_transfer_line(line)
                if transfer:
                    current.transfers.append(transfer)

        if current is not None:
            sessions.append(current)
        return sessions

    def get_stats(self) -> Stats:
        """Totals over the whole log.

        Sessions are walked newest first: the first one with an end time is
        the last sync and the first successful one is the last success.
        """
        sessions = self.get_sync_sessions()
        transfers = self.get_all_transfers()

        stats = Stats(total_files=len(transfers), total_size=sum(t.size for t in transfers))

        success_count = 0
        for session in reversed(sessions):
            if session.end_time is not None and stats.last_sync is None:
                stats.last_sync = session.end_time
            if session.success:
                if stats.last_success is None:
                    stats.last_success = session.end_time
                success_count += 1

        if sessions:
            stats.success_rate = success_count / len(sessions) * 100
        return stats

    def tail_log(self, lines: int) -> List[str]:
        """The last ``lines`` lines of the log."""
        if lines <= 0:
            return []
        return list(self._lines())[-lines:]

    def clear_old_logs(self, older_than: timedelta) -> int:
        """Drop timestamped lines older than ``older_than``.

        Lines without a timestamp are kept.

        Returns:
            Number of lines removed.
        """
        if not self.log_exists():
            return 0

        cutoff = datetime.now() - older_than
        kept = []
        removed = 0
        for line in self._lines():
            timestamp = parse_timestamp(line)
            if timestamp is None or timestamp > cutoff:
                kept.append(line)
            else:
                removed += 1

        with open(self.log_path, 'w', encoding='utf-8') as f:
            f.write("\n".join(kept) + "\n")
        self.logger.info(f"Cleared {removed} log lines older than {older_than.days} days")
        return removed

    def append(self, message: str, when: Optional[datetime] = None) -> None:
        """Append a timestamped line in rclone's log format."""
        os.makedirs(os.path.dirname(self.log_path) or ".", exist_ok=True)
        stamp = (when or datetime.now()).strftime(TIMESTAMP_FORMAT)
        with open(self.log_path, 'a', encoding='utf-8') as f:
            f.write(f"{stamp} {message}\n")
