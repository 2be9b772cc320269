"""Validation of the YAML settings file."""

from typing import Dict, Any


class SettingsValidator:
    """Validates cloud-sync settings."""

    KNOWN_SECTIONS = ['paths', 'tui', 'logging', 'maintenance']
    PATH_KEYS = [
        'home_dir', 'config_dir', 'bin_dir', 'log_dir', 'launch_agents_dir',
        'homebrew_prefix', 'rclone_path', 'rclone_config',
    ]
    LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']

    def validate(self, settings: Dict[str, Any]) -> None:
        """Validate settings data.

        Args:
            settings: Settings dictionary to validate.

        Raises:
            ValueError: If settings are invalid.
        """
        if not isinstance(settings, dict):
            raise ValueError("Settings file must contain a mapping at the top level")

        self._validate_structure(settings)
        if settings.get('paths'):
            self._validate_paths(settings['paths'])
        if settings.get('tui'):
            self._validate_tui(settings['tui'])
        if settings.get('logging'):
            self._validate_logging(settings['logging'])
        if settings.get('maintenance'):
            self._validate_maintenance(settings['maintenance'])

    def _validate_structure(self, settings: Dict[str, Any]) -> None:
        """Reject unknown sections and sections that are not mappings.

        Raises:
            ValueError: If the structure is invalid.
        """
        unknown = [section for section in settings if section not in self.KNOWN_SECTIONS]
        if unknown:
            raise ValueError(f"Unknown settings sections: {unknown}")

        for section, value in settings.items():
            if value is not None and not isinstance(value, dict):
                raise ValueError(f"Settings section '{section}' must be a mapping")

    def _validate_paths(self, paths: Dict[str, Any]) -> None:
        unknown = [key for key in paths if key not in self.PATH_KEYS]
        if unknown:
            raise ValueError(f"Unknown path settings: {unknown}")
        for key, value in paths.items():
            if value is not None and not isinstance(value, str):
                raise ValueError(f"Path setting '{key}' must be a string")

    def _validate_tui(self, tui: Dict[str, Any]) -> None:
        """Validate terminal rendering settings.

        Raises:
            ValueError: If a flag is not a boolean or the refresh interval
                is not a positive number.
        """
        for key in ('alt_screen', 'mouse'):
            if key in tui and not isinstance(tui[key], bool):
                raise ValueError(f"TUI setting '{key}' must be true or false")

        if 'refresh_interval' in tui:
            interval = tui['refresh_interval']
            if isinstance(interval, bool) or not isinstance(interval, (int, float)) or interval <= 0:
                raise ValueError(f"TUI refresh_interval must be a positive number: {interval}")

    def _validate_logging(self, logging_config: Dict[str, Any]) -> None:
        level = logging_config.get('level')
        if level is not None and str(level).upper() not in self.LOG_LEVELS:
            raise ValueError(f"Invalid logging level: {level}")

    def _validate_maintenance(self, maintenance: Dict[str, Any]) -> None:
        if 'log_retention_days' in maintenance:
            try:
                days = int(maintenance['log_retention_days'])
                if days < 1:
                    raise ValueError()
            except (ValueError, TypeError):
                raise ValueError(
                    f"Maintenance log_retention_days must be a positive integer: "
                    f"{maintenance['log_retention_days']}"
                )
        if 'stale_lock_hours' in maintenance:
            value = maintenance['stale_lock_hours']
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                raise ValueError(f"Maintenance stale_lock_hours must be a positive number: {value}")
