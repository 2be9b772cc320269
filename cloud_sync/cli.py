"""Command-line entry point: loads settings and launches the TUI."""

import logging
import os
import sys
from typing import Optional

import click

from . import __version__
from .config.settings import SettingsManager
from .services import build_services
from .tui.app import TuiApp
from .tui.root import RootModel


def setup_logging(level: str, log_file: Optional[str] = None):
    """Set up logging configuration.

    The TUI owns the terminal, so records only go to ``log_file``.
    """
    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f'Invalid log level: {level}')

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if log_file:
        try:
            os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
        except OSError as e:
            click.echo(f"Warning: Could not set up file logging: {e}", err=True)
    else:
        root_logger.addHandler(logging.NullHandler())


@click.command()
@click.option('--config', '-c', 'config_path',
              help='Path to settings file')
@click.option('--log-level',
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
              help='Logging level (default from settings: WARNING)')
@click.option('--log-file',
              help='Log file path')
@click.option('--alt-screen/--no-alt-screen', default=None,
              help='Use the alternate screen buffer')
@click.option('--mouse/--no-mouse', default=None,
              help='Enable mouse support')
@click.option('--refresh-interval', type=click.FloatRange(min=0.05), default=None,
              help='Seconds between screen refreshes and progress polls')
@click.version_option(__version__, prog_name='cloud-sync')
def main(config_path: Optional[str], log_level: Optional[str], log_file: Optional[str],
         alt_screen: Optional[bool], mouse: Optional[bool], refresh_interval: Optional[float]):
    """Cloud Sync - manage rclone backups, sync pairs and the backup LaunchAgent."""
    try:
        settings = SettingsManager(config_path).load_settings()
    except (FileNotFoundError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    logging_config = settings['logging']
    setup_logging(log_level or logging_config['level'], log_file or logging_config['file'])
    logger = logging.getLogger(__name__)

    tui = settings['tui']
    if alt_screen is not None:
        tui['alt_screen'] = alt_screen
    if mouse is not None:
        tui['mouse'] = mouse
    if refresh_interval is not None:
        tui['refresh_interval'] = refresh_interval

    if not sys.stdin.isatty() or not sys.stdout.isatty():
        click.echo("Error: cloud-sync needs an interactive terminal", err=True)
        sys.exit(1)

    try:
        services = build_services(settings)
    except (OSError, ValueError) as e:
        logger.error(f"Could not load configuration: {e}")
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    app = TuiApp(
        RootModel(services),
        alt_screen=tui['alt_screen'],
        mouse=tui['mouse'],
        refresh_interval=tui['refresh_interval'],
    )
    try:
        app.run()
    except (EOFError, OSError) as e:
        logger.error(f"Terminal error: {e}")
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


if __name__ == '__main__':
    main()
