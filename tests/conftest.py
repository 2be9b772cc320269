"""Shared test fixtures for cloud-sync."""

import os
from typing import Dict, List, Optional, Tuple

import pytest

from cloud_sync.core.executor import CommandExecutor, CommandResult
from cloud_sync.services import build_services


class FakeProcess:
    """Stands in for a spawned rclone process."""

    def __init__(self, lines: List[str], returncode: int = 0):
        self.stdout = iter(lines)
        self.returncode = returncode
        self.pid = 4242
        self.terminated = False

    def poll(self) -> Optional[int]:
        return self.returncode if self.terminated else None

    def wait(self) -> int:
        return self.returncode

    def terminate(self) -> None:
        self.terminated = True
        self.returncode = -15


class FakeExecutor(CommandExecutor):
    """Records commands and answers them from canned responses.

    ``responses`` maps an argument prefix to ``(returncode, output)``; the
    longest matching prefix wins and unknown commands succeed silently.
    """

    def __init__(self, paths: Optional[Dict[str, str]] = None):
        super().__init__()
        self.paths = dict(paths or {})
        self.responses: Dict[Tuple[str, ...], Tuple[int, str]] = {}
        self.calls: List[List[str]] = []
        self.envs: List[Optional[Dict[str, str]]] = []
        self.interactive: List[List[str]] = []
        self.interactive_status = 0
        self.processes: List[FakeProcess] = []
        self.spawned: List[List[str]] = []

    def respond(self, prefix, returncode: int = 0, output: str = "") -> None:
        self.responses[tuple(prefix)] = (returncode, output)

    def look_path(self, name: str) -> Optional[str]:
        if os.path.isabs(name):
            return name if name in self.paths.values() else None
        return self.paths.get(name)

    def run(self, args, env=None) -> CommandResult:
        self.calls.append(list(args))
        self.envs.append(env)
        best: Optional[Tuple[str, ...]] = None
        for prefix in self.responses:
            if tuple(args[:len(prefix)]) == prefix and (best is None or len(prefix) > len(best)):
                best = prefix
        returncode, output = self.responses[best] if best is not None else (0, "")
        return CommandResult(list(args), returncode, output)

    def run_interactive(self, args) -> int:
        self.interactive.append(list(args))
        return self.interactive_status

    def spawn(self, args):
        self.spawned.append(list(args))
        return self.processes.pop(0)


@pytest.fixture
def fake_executor():
    return FakeExecutor({"brew": "/opt/homebrew/bin/brew", "rclone": "/opt/homebrew/bin/rclone"})


@pytest.fixture
def settings(tmp_path):
    home = tmp_path / "home"
    home.mkdir()
    return {
        'paths': {
            'home_dir': str(home),
            'config_dir': str(home / ".config" / "cloud-sync"),
            'bin_dir': str(home / "bin"),
            'log_dir': str(home / "logs"),
            'launch_agents_dir': str(home / "Library" / "LaunchAgents"),
            'homebrew_prefix': "/opt/homebrew",
            'rclone_path': "/opt/homebrew/bin/rclone",
            'rclone_config': str(home / ".config" / "rclone" / "rclone.conf"),
        },
        'tui': {'alt_screen': False, 'mouse': False, 'refresh_interval': 0.5},
        'logging': {'level': 'WARNING', 'file': str(tmp_path / "cloud-sync.log")},
        'maintenance': {'log_retention_days': 30, 'stale_lock_hours': 6},
    }


@pytest.fixture
def services(settings, fake_executor):
    return build_services(settings, executor=fake_executor, username="tester")
