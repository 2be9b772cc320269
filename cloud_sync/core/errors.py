"""Exception hierarchy for cloud-sync."""

from typing import List, Optional


class CloudSyncError(Exception):
    """Base class for every error raised by cloud-sync."""


class ToolNotFoundError(CloudSyncError):
    """An external tool (brew, rclone, launchctl) is not available."""

    def __init__(self, tool: str, message: Optional[str] = None):
        self.tool = tool
        super().__init__(message or f"{tool} is not installed")


class CommandError(CloudSyncError):
    """An external command exited with a non-zero status.

    The message carries the command's combined stdout and stderr verbatim.
    """

    def __init__(self, args: List[str], returncode: int, output: str = "", message: Optional[str] = None):
        self.cmd = list(args)
        self.returncode = returncode
        self.output = output
        if message is None:
            message = f"{args[0] if args else 'command'} exited with status {returncode}"
        if output.strip():
            message = f"{message}: {output.strip()}"
        super().__init__(message)


class ValidationError(CloudSyncError, ValueError):
    """User supplied or persisted data failed validation."""


class DuplicateError(ValidationError):
    """A record with the same unique key already exists."""


class NotFoundError(CloudSyncError, KeyError):
    """A named record does not exist."""

    def __str__(self) -> str:
        # KeyError quotes its argument, keep the plain message instead
        return str(self.args[0]) if self.args else ""
