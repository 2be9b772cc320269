"""Data models for cloud-sync."""

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


def _known_fields(cls, data: Dict[str, Any]) -> Dict[str, Any]:
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


@dataclass
class RemoteConfig:
    """A named rclone remote and its credentials."""
    name: str
    type: str
    provider: str = ""
    account_id: str = ""
    application_key: str = ""
    region: str = ""
    endpoint: str = ""
    bucket: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        # region and endpoint are omitted when empty
        for key in ("region", "endpoint"):
            if not data[key]:
                del data[key]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RemoteConfig":
        return cls(**_known_fields(cls, data))


@dataclass
class SyncConfig:
    """Remote to remote backup used by the generated shell scripts."""
    source_remote: str = ""
    source_bucket: str = ""
    dest_remote: str = ""
    dest_bucket: str = ""

    def is_complete(self) -> bool:
        return all([self.source_remote, self.source_bucket, self.dest_remote, self.dest_bucket])

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SyncConfig":
        return cls(**_known_fields(cls, data or {}))


@dataclass
class LaunchAgentConfig:
    """Schedule of the monthly backup LaunchAgent."""
    enabled: bool = False
    label: str = "com.cloud-sync.backup"
    hour: int = 10
    minute: int = 5
    run_at_load: bool = True
    script_path: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LaunchAgentConfig":
        return cls(**_known_fields(cls, data or {}))


@dataclass
class AppConfig:
    """Whole application configuration as persisted in config.json."""
    version: str = "1.0"
    remotes: List[RemoteConfig] = field(default_factory=list)
    sync_config: SyncConfig = field(default_factory=SyncConfig)
    launch_agent: LaunchAgentConfig = field(default_factory=LaunchAgentConfig)
    home_dir: str = ""
    bin_dir: str = ""
    log_dir: str = ""
    rclone_path: str = ""
    rclone_config: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "remotes": [r.to_dict() for r in self.remotes],
            "sync_config": self.sync_config.to_dict(),
            "launch_agent": self.launch_agent.to_dict(),
            "home_dir": self.home_dir,
            "bin_dir": self.bin_dir,
            "log_dir": self.log_dir,
            "rclone_path": self.rclone_path,
            "rclone_config": self.rclone_config,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppConfig":
        return cls(
            version=data.get("version", "1.0"),
            remotes=[RemoteConfig.from_dict(r) for r in data.get("remotes") or []],
            sync_config=SyncConfig.from_dict(data.get("sync_config") or {}),
            launch_agent=LaunchAgentConfig.from_dict(data.get("launch_agent") or {}),
            home_dir=data.get("home_dir", ""),
            bin_dir=data.get("bin_dir", ""),
            log_dir=data.get("log_dir", ""),
            rclone_path=data.get("rclone_path", ""),
            rclone_config=data.get("rclone_config", ""),
        )


class SyncDirection(str, Enum):
    UPLOAD = "upload"
    DOWNLOAD = "download"
    BIDIRECTIONAL = "bidirectional"


@dataclass
class SyncPair:
    """A local folder bound to a remote path."""
    name: str
    local_path: str
    remote_name: str
    remote_path: str
    direction: str = SyncDirection.UPLOAD.value
    enabled: bool = True

    @property
    def remote_spec(self) -> str:
        """The ``remote:path`` string rclone expects."""
        return f"{self.remote_name}:{self.remote_path}"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SyncPair":
        return cls(**_known_fields(cls, data))


class BackupStatus(str, Enum):
    IDLE = "Idle"
    RUNNING = "Running"
    COMPLETED = "Completed"
    FAILED = "Failed"
    CANCELLED = "Cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (BackupStatus.COMPLETED, BackupStatus.FAILED, BackupStatus.CANCELLED)


@dataclass
class BackupProgress:
    """Snapshot of a running sync. Never persisted."""
    status: BackupStatus = BackupStatus.IDLE
    run_id: int = 0
    current_file: str = ""
    files_total: int = 0
    files_copied: int = 0
    bytes_total: int = 0
    bytes_copied: int = 0
    speed: float = 0.0
    start_time: Optional[datetime] = None
    elapsed: float = 0.0
    eta: Optional[float] = None
    job: str = ""
    jobs_done: int = 0
    jobs_total: int = 0
    error: str = ""

    @property
    def percent(self) -> float:
        if self.bytes_total <= 0:
            return 0.0
        return min(100.0, self.bytes_copied * 100.0 / self.bytes_total)


@dataclass
class Transfer:
    """A single file copy parsed from the rclone log."""
    timestamp: datetime
    filename: str
    size: int = 0
    action: str = "Copied"


@dataclass
class SyncSession:
    """A manual or automated sync reconstructed from session markers."""
    type: str
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    success: bool = False
    files_count: int = 0
    transfers: List[Transfer] = field(default_factory=list)

    @property
    def duration(self) -> Optional[float]:
        if self.start_time is None or self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds()


@dataclass
class Stats:
    """Aggregate statistics over the whole log."""
    total_files: int = 0
    total_size: int = 0
    last_sync: Optional[datetime] = None
    last_success: Optional[datetime] = None
    success_rate: float = 0.0


@dataclass
class LaunchdStatus:
    """State of the LaunchAgent as reported by launchctl."""
    label: str
    loaded: bool = False
    running: bool = False
    pid: int = -1
    last_exit_code: int = 0
