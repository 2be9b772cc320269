"""Generation of the shell scripts run by launchd and by hand."""

import logging
import os
from dataclasses import asdict, dataclass, fields
from typing import List

from .errors import ValidationError

TEMPLATES_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "templates")

ENGINE_SCRIPT = "run_rclone_sync.sh"
MONTHLY_SCRIPT = "monthly_backup.sh"
MANUAL_SCRIPT = "sync_now.sh"
SHOW_TRANSFERS_SCRIPT = "show_transfers.sh"
ALL_SCRIPTS = [ENGINE_SCRIPT, MONTHLY_SCRIPT, MANUAL_SCRIPT, SHOW_TRANSFERS_SCRIPT]


@dataclass
class ScriptConfig:
    """Values substituted into the script templates."""
    home_dir: str
    username: str
    rclone_path: str
    rclone_config: str
    source_remote: str
    source_bucket: str
    dest_remote: str
    dest_bucket: str
    log_dir: str
    bin_dir: str


def validate_script_config(config: ScriptConfig) -> None:
    """Every template value is required.

    Raises:
        ValidationError: Naming the first empty field.
    """
    for f in fields(config):
        if not getattr(config, f.name):
            raise ValidationError(f"{f.name.replace('_', ' ')} is required")


class ScriptGenerator:
    """Renders the templates shipped in ``cloud_sync/templates``."""

    def __init__(self, templates_dir: str = TEMPLATES_DIR):
        self.templates_dir = templates_dir
        self.logger = logging.getLogger(__name__)

    def create_directories(self, config: ScriptConfig) -> None:
        for directory in (config.bin_dir, config.log_dir):
            os.makedirs(directory, mode=0o755, exist_ok=True)
            self.logger.debug(f"Ensured directory {directory}")

    def render(self, script_name: str, config: ScriptConfig) -> str:
        """Fill a template with ``config``.

        Raises:
            FileNotFoundError: If no template exists for ``script_name``.
        """
        template_path = os.path.join(self.templates_dir, script_name)
        with open(template_path, 'r', encoding='utf-8') as f:
            template = f.read()
        return template.format(**asdict(config))

    def generate_script(self, script_name: str, config: ScriptConfig) -> str:
        """Render one script into ``bin_dir`` and make it executable.

        Returns:
            Path of the written script.
        """
        content = self.render(script_name, config)
        path = os.path.join(config.bin_dir, script_name)
        with open(path, 'w', encoding='utf-8') as f:
            f.write(content)
        os.chmod(path, 0o755)
        self.logger.info(f"Generated {path}")
        return path

    def generate_all_scripts(self, config: ScriptConfig) -> List[str]:
        """Validate the config, create directories and write every script.

        Returns:
            Paths of the written scripts.

        Raises:
            ValidationError: If a template value is missing.
        """
        validate_script_config(config)
        self.create_directories(config)
        return [self.generate_script(name, config) for name in ALL_SCRIPTS]
