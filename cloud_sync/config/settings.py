"""Application settings: filesystem locations, TUI and logging knobs."""

import os
import yaml
from typing import Dict, Any, Optional
from ..core.installer import detect_homebrew_prefix
from .settings_validator import SettingsValidator


class SettingsManager:
    """Loads the optional YAML settings file and fills in defaults."""

    DEFAULT_SETTINGS_LOCATIONS = [
        "cloud-sync.yaml",
        "cloud-sync.yml",
        os.path.expanduser("~/.config/cloud-sync/settings.yaml"),
        os.path.expanduser("~/.config/cloud-sync/settings.yml"),
        "/etc/cloud-sync/settings.yaml",
    ]

    def __init__(self, settings_path: Optional[str] = None):
        """Initialize settings manager.

        Args:
            settings_path: Optional path to a settings file. If not provided,
                          the default locations are searched and built-in
                          defaults are used when none exists.
        """
        self.settings_path = settings_path
        self.settings_data: Dict[str, Any] = {}
        self.loaded_from: Optional[str] = None
        self.validator = SettingsValidator()

    def load_settings(self) -> Dict[str, Any]:
        """Load settings from file, falling back to defaults.

        Returns:
            Dictionary containing settings.

        Raises:
            FileNotFoundError: If an explicit settings path does not exist.
            ValueError: If the settings file is invalid.
        """
        settings_file = self._find_settings_file()
        self.settings_data = {}

        if settings_file:
            try:
                with open(settings_file, 'r', encoding='utf-8') as f:
                    self.settings_data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in settings file {settings_file}: {e}")
            except OSError as e:
                raise ValueError(f"Error reading settings file {settings_file}: {e}")
            self.loaded_from = settings_file

        self.validator.validate(self.settings_data)
        self._set_defaults()
        self._expand_paths()

        return self.settings_data

    def _find_settings_file(self) -> Optional[str]:
        """Find the settings file.

        Returns:
            Path to the settings file, or None when defaults should be used.

        Raises:
            FileNotFoundError: If an explicit settings path does not exist.
        """
        if self.settings_path:
            if os.path.exists(self.settings_path):
                return self.settings_path
            raise FileNotFoundError(f"Settings file not found: {self.settings_path}")

        for location in self.DEFAULT_SETTINGS_LOCATIONS:
            if os.path.exists(location):
                return location
        return None

    def _set_defaults(self):
        """Set default values for every optional setting."""
        home = os.path.expanduser("~")
        defaults = {
            'paths': {
                'home_dir': home,
                'config_dir': os.path.join(home, ".config", "cloud-sync"),
                'bin_dir': os.path.join(home, "bin"),
                'log_dir': os.path.join(home, "logs"),
                'launch_agents_dir': os.path.join(home, "Library", "LaunchAgents"),
                'homebrew_prefix': '',
                'rclone_path': '',
                'rclone_config': os.path.join(home, ".config", "rclone", "rclone.conf"),
            },
            'tui': {
                'alt_screen': True,
                'mouse': False,
                'refresh_interval': 1.0,
            },
            'logging': {
                'level': 'WARNING',
                'file': os.path.join(home, ".config", "cloud-sync", "cloud-sync.log"),
            },
            'maintenance': {
                'log_retention_days': 30,
                'stale_lock_hours': 6,
            },
        }

        for section, section_defaults in defaults.items():
            if not self.settings_data.get(section):
                self.settings_data[section] = {}
            for key, value in section_defaults.items():
                if self.settings_data[section].get(key) is None:
                    self.settings_data[section][key] = value

        paths = self.settings_data['paths']
        if not paths['homebrew_prefix']:
            paths['homebrew_prefix'] = detect_homebrew_prefix()
        if not paths['rclone_path']:
            paths['rclone_path'] = os.path.join(paths['homebrew_prefix'], "bin", "rclone")

    def _expand_paths(self):
        """Expand ``~`` in every configured path."""
        for key, value in self.settings_data['paths'].items():
            if isinstance(value, str):
                self.settings_data['paths'][key] = os.path.expanduser(value)
        log_file = self.settings_data['logging'].get('file')
        if log_file:
            self.settings_data['logging']['file'] = os.path.expanduser(log_file)

    def get_paths_config(self) -> Dict[str, Any]:
        """Get filesystem path settings.

        Returns:
            Paths settings dictionary.
        """
        return self.settings_data.get('paths', {})

    def get_tui_config(self) -> Dict[str, Any]:
        """Get terminal rendering settings.

        Returns:
            TUI settings dictionary.
        """
        return self.settings_data.get('tui', {})

    def get_logging_config(self) -> Dict[str, Any]:
        """Get logging settings.

        Returns:
            Logging settings dictionary.
        """
        return self.settings_data.get('logging', {})

    def get_maintenance_config(self) -> Dict[str, Any]:
        """Get maintenance settings.

        Returns:
            Maintenance settings dictionary.
        """
        return self.settings_data.get('maintenance', {})
