"""Process execution shim used by every external tool adapter."""

import logging
import os
import shutil
import subprocess
from dataclasses import dataclass
from typing import Dict, List, Optional

from .errors import CommandError, ToolNotFoundError


@dataclass
class CommandResult:
    """Outcome of a finished external command."""
    args: List[str]
    returncode: int
    output: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandExecutor:
    """Runs external commands.

    Adapters never call :mod:`subprocess` directly, so tests can swap this
    class for a fake that records invocations and returns canned output.
    """

    def __init__(self, env: Optional[Dict[str, str]] = None):
        self.env = env
        self.logger = logging.getLogger(__name__)

    def look_path(self, name: str) -> Optional[str]:
        """Locate an executable on ``PATH``.

        Args:
            name: Program name or absolute path.

        Returns:
            Absolute path of the executable, or None if it cannot be found.
        """
        return shutil.which(name)

    def command(self, name: str, *args: str) -> List[str]:
        """Build the argument vector for ``name``, resolved through ``PATH``."""
        return [self.look_path(name) or name, *args]

    def _environment(self, extra: Optional[Dict[str, str]]) -> Optional[Dict[str, str]]:
        if not self.env and not extra:
            return None
        env = dict(os.environ)
        env.update(self.env or {})
        env.update(extra or {})
        return env

    def run(self, args: List[str], env: Optional[Dict[str, str]] = None) -> CommandResult:
        """Run a command to completion, capturing stdout and stderr together.

        Args:
            args: Argument vector.
            env: Extra environment variables.

        Returns:
            The command result. A non-zero exit status is not an error here.

        Raises:
            ToolNotFoundError: If the program does not exist.
        """
        self.logger.debug(f"Running: {' '.join(args)}")
        try:
            proc = subprocess.run(
                args,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                stdin=subprocess.DEVNULL,
                env=self._environment(env),
                text=True,
            )
        except FileNotFoundError as e:
            raise ToolNotFoundError(args[0]) from e

        if proc.returncode != 0:
            self.logger.warning(f"{args[0]} exited with status {proc.returncode}")
        return CommandResult(list(args), proc.returncode, proc.stdout or "")

    def check_output(self, args: List[str], env: Optional[Dict[str, str]] = None) -> str:
        """Run a command and return its output, raising on failure.

        Raises:
            ToolNotFoundError: If the program does not exist.
            CommandError: If the command exits with a non-zero status.
        """
        result = self.run(args, env=env)
        if not result.ok:
            raise CommandError(args, result.returncode, result.output)
        return result.output

    def run_interactive(self, args: List[str]) -> int:
        """Run a command attached to the current terminal.

        Returns:
            The exit status.
        """
        self.logger.debug(f"Running interactively: {' '.join(args)}")
        try:
            return subprocess.call(args, env=self._environment(None))
        except FileNotFoundError as e:
            raise ToolNotFoundError(args[0]) from e

    def spawn(self, args: List[str]) -> subprocess.Popen:
        """Start a long running command whose output is read line by line.

        stdout and stderr are merged into ``proc.stdout``.
        """
        self.logger.debug(f"Spawning: {' '.join(args)}")
        try:
            return subprocess.Popen(
                args,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                stdin=subprocess.DEVNULL,
                env=self._environment(None),
                text=True,
                bufsize=1,
            )
        except FileNotFoundError as e:
            raise ToolNotFoundError(args[0]) from e
