"""Configuration management for cloud-sync."""

from .app_config import ConfigManager
from .settings import SettingsManager
from .settings_validator import SettingsValidator
from .sync_pairs import SyncPairManager, validate_local_path, validate_sync_pair

__all__ = [
    "ConfigManager",
    "SettingsManager",
    "SettingsValidator",
    "SyncPairManager",
    "validate_local_path",
    "validate_sync_pair",
]
