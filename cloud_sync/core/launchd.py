"""macOS LaunchAgent management through plist files and launchctl."""

import getpass
import logging
import os
import plistlib
import re
from dataclasses import dataclass
from typing import Optional

from .errors import CommandError, NotFoundError, ValidationError
from .executor import CommandExecutor
from .models import LaunchdStatus

_STATUS_LINE = re.compile(r'^"(?P<key>PID|LastExitStatus)"\s*=\s*(?P<value>-?\d+);?$')


def current_username() -> str:
    """``$USER``, falling back to the login name."""
    return os.environ.get("USER") or getpass.getuser()


@dataclass
class PlistConfig:
    """Values rendered into the LaunchAgent plist."""
    label: str
    script_path: str
    hour: int
    minute: int
    run_at_load: bool = True


def validate_plist_config(config: PlistConfig) -> None:
    """Check a schedule before it is written.

    Raises:
        ValidationError: If label or script path is missing, or the time is
            out of range.
    """
    if not config.label:
        raise ValidationError("label is required")
    if not config.script_path:
        raise ValidationError("script path is required")
    if not 0 <= config.hour <= 23:
        raise ValidationError("hour must be between 0 and 23")
    if not 0 <= config.minute <= 59:
        raise ValidationError("minute must be between 0 and 59")


def render_plist(config: PlistConfig) -> bytes:
    """Serialize a LaunchAgent definition as an XML property list."""
    agent = {
        "Label": config.label,
        "ProgramArguments": ["/bin/zsh", config.script_path],
        "StartCalendarInterval": {"Hour": config.hour, "Minute": config.minute},
    }
    if config.run_at_load:
        agent["RunAtLoad"] = True
    return plistlib.dumps(agent, fmt=plistlib.FMT_XML, sort_keys=False)


def parse_launchctl_list(label: str, output: str) -> LaunchdStatus:
    """Parse ``launchctl list <label>`` output for a loaded agent.

    Lines of interest look like ``"PID" = 123;`` and
    ``"LastExitStatus" = 0;``. A positive PID means the job is running.
    """
    status = LaunchdStatus(label=label, loaded=True)
    for line in output.splitlines():
        match = _STATUS_LINE.match(line.strip())
        if not match:
            continue
        value = int(match.group("value"))
        if match.group("key") == "PID":
            if value > 0:
                status.pid = value
                status.running = True
        else:
            status.last_exit_code = value
    return status


class LaunchdManager:
    """Generates, loads and controls the per-user backup LaunchAgent."""

    def __init__(self, username: Optional[str] = None, agents_dir: Optional[str] = None,
                 executor: Optional[CommandExecutor] = None):
        """Initialize launchd adapter.

        Args:
            username: Used to build the job label, ``$USER`` by default.
            agents_dir: Directory for plist files, ``~/Library/LaunchAgents``
                       by default.
            executor: Process shim.
        """
        self.username = username or current_username()
        self.agents_dir = agents_dir or os.path.expanduser("~/Library/LaunchAgents")
        self.executor = executor or CommandExecutor()
        self.logger = logging.getLogger(__name__)

    def get_label(self) -> str:
        return f"com.{self.username}.rclonebackup"

    def get_plist_path(self) -> str:
        return os.path.join(self.agents_dir, f"{self.get_label()}.plist")

    def generate_plist(self, config: PlistConfig) -> str:
        """Write the plist file.

        Returns:
            Path of the written plist.

        Raises:
            ValidationError: If the schedule is invalid.
            OSError: If the file cannot be written.
        """
        validate_plist_config(config)
        os.makedirs(self.agents_dir, mode=0o755, exist_ok=True)
        path = self.get_plist_path()
        with open(path, 'wb') as f:
            f.write(render_plist(config))
        os.chmod(path, 0o644)
        self.logger.info(f"Wrote LaunchAgent plist {path} ({config.hour:02d}:{config.minute:02d})")
        return path

    def _launchctl(self, *args: str, what: str) -> str:
        cmd = ["launchctl", *args]
        result = self.executor.run(cmd)
        if not result.ok:
            raise CommandError(cmd, result.returncode, result.output, f"failed to {what} agent")
        return result.output

    def load(self) -> None:
        """Load the agent into launchd.

        Raises:
            NotFoundError: If the plist has not been generated.
            CommandError: With launchctl's output on failure.
        """
        plist_path = self.get_plist_path()
        if not os.path.exists(plist_path):
            raise NotFoundError(f"plist file does not exist: {plist_path}")
        self._launchctl("load", plist_path, what="load")
        self.logger.info(f"Loaded {self.get_label()}")

    def unload(self) -> None:
        """Unload the agent. An agent that is not loaded is not an error."""
        cmd = ["launchctl", "unload", self.get_plist_path()]
        result = self.executor.run(cmd)
        if not result.ok and "Could not find specified service" not in result.output:
            raise CommandError(cmd, result.returncode, result.output, "failed to unload agent")
        self.logger.info(f"Unloaded {self.get_label()}")

    def start(self) -> None:
        self._launchctl("start", self.get_label(), what="start")

    def stop(self) -> None:
        self._launchctl("stop", self.get_label(), what="stop")

    def get_status(self) -> LaunchdStatus:
        """Query launchd for the agent's state.

        Returns:
            Status with ``loaded`` False when launchd does not know the label.

        Raises:
            CommandError: If launchctl fails for any other reason.
        """
        label = self.get_label()
        cmd = ["launchctl", "list", label]
        result = self.executor.run(cmd)
        if not result.ok:
            if "Could not find service" in result.output:
                return LaunchdStatus(label=label)
            raise CommandError(cmd, result.returncode, result.output, "failed to get status")
        return parse_launchctl_list(label, result.output)

    def is_loaded(self) -> bool:
        return self.get_status().loaded

    def remove(self) -> None:
        """Unload the agent if needed and delete its plist."""
        if self.is_loaded():
            self.unload()
        try:
            os.remove(self.get_plist_path())
        except FileNotFoundError:
            pass
        self.logger.info(f"Removed {self.get_label()}")
