"""
Cloud Sync - a terminal UI for rclone backups on macOS.

This package installs rclone through Homebrew, manages cloud remotes and
local sync pairs, generates the backup shell scripts and schedules them
with a launchd LaunchAgent.
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
