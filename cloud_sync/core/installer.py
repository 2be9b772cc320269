"""Homebrew based installation of rclone and rsync."""

import logging
import os
import platform
from typing import List, Optional

from .errors import CloudSyncError, CommandError, ToolNotFoundError
from .executor import CommandExecutor, CommandResult

HOMEBREW_INSTALL_SCRIPT = (
    '/bin/bash -c "$(curl -fsSL https://raw.githubusercontent.com/Homebrew/install/HEAD/install.sh)"'
)
SYSTEM_RSYNC_PATH = "/usr/bin/rsync"


def detect_homebrew_prefix(machine: Optional[str] = None) -> str:
    """Guess the Homebrew prefix from the CPU architecture.

    Args:
        machine: Architecture name, defaults to ``platform.machine()``.

    Returns:
        ``/opt/homebrew`` on Apple Silicon, ``/usr/local`` otherwise.
    """
    machine = machine or platform.machine()
    return "/opt/homebrew" if machine == "arm64" else "/usr/local"


class InstallerError(CloudSyncError):
    """An installation precondition is not met."""


class Installer:
    """Checks for and installs the external tools cloud-sync relies on."""

    def __init__(self, executor: Optional[CommandExecutor] = None, homebrew_prefix: Optional[str] = None):
        """Initialize installer.

        Args:
            executor: Process shim, a real :class:`CommandExecutor` by default.
            homebrew_prefix: Homebrew prefix override. Detected from the CPU
                            architecture when omitted.
        """
        self.executor = executor or CommandExecutor()
        self.homebrew_prefix = homebrew_prefix
        self.logger = logging.getLogger(__name__)

    # Homebrew

    def check_homebrew_installed(self) -> bool:
        return self.executor.look_path("brew") is not None

    def get_brew_path(self) -> str:
        path = self.executor.look_path("brew")
        if path is None:
            raise ToolNotFoundError("homebrew", "homebrew not found in PATH")
        return path

    def install_homebrew(self) -> CommandResult:
        """Run the official Homebrew install script non-interactively.

        Raises:
            InstallerError: If Homebrew is already installed.
            CommandError: If the install script fails.
        """
        if self.check_homebrew_installed():
            raise InstallerError("homebrew is already installed")

        self.logger.info("Installing Homebrew")
        args = ["bash", "-c", HOMEBREW_INSTALL_SCRIPT]
        result = self.executor.run(args, env={"NONINTERACTIVE": "1"})
        if not result.ok:
            raise CommandError(args, result.returncode, result.output, "failed to install homebrew")
        return result

    def get_architecture(self) -> str:
        return platform.machine()

    def get_homebrew_prefix(self) -> str:
        return self.homebrew_prefix or detect_homebrew_prefix(self.get_architecture())

    def is_installed_via_homebrew(self, formula: str) -> bool:
        """Whether ``formula`` is installed through Homebrew (``brew list``)."""
        if not self.check_homebrew_installed():
            return False
        return self.executor.run(["brew", "list", formula]).ok

    def _brew(self, action: str, formula: str) -> CommandResult:
        if not self.check_homebrew_installed():
            raise InstallerError("homebrew must be installed first")

        args = ["brew", action, formula]
        self.logger.info(f"Running brew {action} {formula}")
        result = self.executor.run(args)
        if not result.ok:
            raise CommandError(args, result.returncode, result.output, f"failed to {action} {formula}")
        return result

    # rclone

    def check_rclone_installed(self) -> bool:
        return self.executor.look_path("rclone") is not None

    def install_rclone(self) -> CommandResult:
        """Install rclone with ``brew install rclone``.

        Returns:
            The brew command result, whose output is shown to the user.

        Raises:
            InstallerError: If Homebrew is missing or rclone already installed.
            CommandError: If brew fails.
        """
        if not self.check_homebrew_installed():
            raise InstallerError("homebrew must be installed first")
        if self.check_rclone_installed():
            raise InstallerError("rclone is already installed")
        return self._brew("install", "rclone")

    def update_rclone(self) -> CommandResult:
        """Upgrade rclone with ``brew upgrade rclone``.

        Raises:
            InstallerError: If rclone is not installed.
            CommandError: If brew fails.
        """
        if not self.check_rclone_installed():
            raise InstallerError("rclone is not installed")
        return self._brew("upgrade", "rclone")

    def get_rclone_path(self) -> str:
        """Absolute path of the rclone binary with symlinks resolved.

        Raises:
            ToolNotFoundError: If rclone is not on PATH.
        """
        path = self.executor.look_path("rclone")
        if path is None:
            raise ToolNotFoundError("rclone", "rclone not found in PATH")
        return os.path.realpath(path)

    def get_rclone_version(self) -> str:
        """First line of ``rclone version``.

        Raises:
            ToolNotFoundError: If rclone is not installed.
            CommandError: If the command fails.
        """
        if not self.check_rclone_installed():
            raise ToolNotFoundError("rclone")
        output = self.executor.check_output(["rclone", "version"])
        lines = output.strip().splitlines()
        return lines[0].strip() if lines else ""

    def list_rclone_remotes(self) -> List[str]:
        """Remote names known to rclone, without the trailing colon."""
        if not self.check_rclone_installed():
            raise ToolNotFoundError("rclone")
        output = self.executor.check_output(["rclone", "listremotes"])
        return [line.strip().rstrip(":") for line in output.splitlines() if line.strip()]

    def test_rclone_remote(self, name: str) -> str:
        """List the top level of a remote to check that it is reachable.

        Returns:
            The listing output.

        Raises:
            CommandError: If rclone cannot reach the remote.
        """
        if not self.check_rclone_installed():
            raise ToolNotFoundError("rclone")
        return self.executor.check_output(["rclone", "lsd", f"{name}:"])

    # rsync

    def check_rsync_installed(self) -> bool:
        return self.executor.look_path("rsync") is not None

    def get_rsync_version(self) -> str:
        """First line of ``rsync --version``."""
        if not self.check_rsync_installed():
            raise ToolNotFoundError("rsync")
        output = self.executor.check_output(["rsync", "--version"])
        lines = output.strip().splitlines()
        return lines[0].strip() if lines else ""

    def install_rsync(self) -> CommandResult:
        """Install a current rsync from Homebrew alongside the system one.

        Raises:
            InstallerError: If Homebrew is missing or rsync is already a
                Homebrew formula.
        """
        if self.is_installed_via_homebrew("rsync"):
            raise InstallerError("rsync is already installed via homebrew")
        return self._brew("install", "rsync")

    def update_rsync(self) -> CommandResult:
        """Upgrade the Homebrew rsync.

        Raises:
            InstallerError: If only the system rsync is present.
        """
        if not self.is_installed_via_homebrew("rsync"):
            raise InstallerError(
                f"rsync at {SYSTEM_RSYNC_PATH} is the system version, install it via homebrew first"
            )
        return self._brew("upgrade", "rsync")

    def verify_installation(self) -> None:
        """Check that every required tool is present.

        Raises:
            InstallerError: Listing each missing tool.
        """
        errors = []
        if not self.check_homebrew_installed():
            errors.append("homebrew is not installed")
        if not self.check_rclone_installed():
            errors.append("rclone is not installed")

        if errors:
            raise InstallerError(f"installation verification failed: {', '.join(errors)}")
