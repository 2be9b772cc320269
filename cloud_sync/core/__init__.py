"""Core functionality: external tool adapters, persistence helpers and models."""

from .errors import (
    CloudSyncError,
    CommandError,
    DuplicateError,
    NotFoundError,
    ToolNotFoundError,
    ValidationError,
)
from .executor import CommandExecutor, CommandResult
from .installer import Installer
from .launchd import LaunchdManager
from .lockfile import Lockfile
from .logs import LogManager
from .rclone import RcloneManager
from .scripts import ScriptGenerator

__all__ = [
    "CloudSyncError",
    "CommandError",
    "CommandExecutor",
    "CommandResult",
    "DuplicateError",
    "Installer",
    "LaunchdManager",
    "Lockfile",
    "LogManager",
    "NotFoundError",
    "RcloneManager",
    "ScriptGenerator",
    "ToolNotFoundError",
    "ValidationError",
]
