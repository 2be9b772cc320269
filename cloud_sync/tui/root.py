"""Root navigation model: main menu plus one active screen."""

import logging
from enum import Enum
from typing import Any, Callable, Dict, Optional

from .. import __version__
from . import styles
from .backup import BackupScreen
from .configuration import ConfigurationScreen
from .help import HelpScreen
from .installation import InstallationScreen
from .launchd_manager import LaunchdManagerScreen
from .log_viewer import LogViewerScreen
from .maintenance import MaintenanceScreen
from .messages import BACK, QUIT, Cmd, KeyMsg, ResizeMsg, Result
from .screen import Screen
from .widgets import MenuItem, SelectList


class AppState(Enum):
    MAIN_MENU = "main_menu"
    INSTALLATION = "installation"
    CONFIGURATION = "configuration"
    BACKUP_RUNNING = "backup_running"
    LOG_VIEWER = "log_viewer"
    LAUNCHD_MANAGER = "launchd_manager"
    MAINTENANCE = "maintenance"
    HELP = "help"
    EXITING = "exiting"


MENU_ITEMS = [
    MenuItem("Installation & Setup", "Install tools and set up new locations", value=AppState.INSTALLATION),
    MenuItem("Configuration", "Remotes, sync pairs and the backup schedule", value=AppState.CONFIGURATION),
    MenuItem("Backup Operations", "Run a backup now and watch its progress", value=AppState.BACKUP_RUNNING),
    MenuItem("Log Viewer", "Transfers, sessions and statistics", value=AppState.LOG_VIEWER),
    MenuItem("LaunchAgent Management", "Load, start and stop the scheduled agent", value=AppState.LAUNCHD_MANAGER),
    MenuItem("Maintenance", "Lockfile, timestamps, logs and regeneration", value=AppState.MAINTENANCE),
    MenuItem("Help", "Keyboard shortcuts and screen overview", value=AppState.HELP),
    MenuItem("Exit", "Quit cloud-sync", value=AppState.EXITING),
]

# MAIN_MENU and EXITING have no screen
SCREEN_FACTORIES: Dict[AppState, Optional[Callable[[Any], Screen]]] = {
    AppState.MAIN_MENU: None,
    AppState.INSTALLATION: InstallationScreen,
    AppState.CONFIGURATION: ConfigurationScreen,
    AppState.BACKUP_RUNNING: BackupScreen,
    AppState.LOG_VIEWER: LogViewerScreen,
    AppState.LAUNCHD_MANAGER: LaunchdManagerScreen,
    AppState.MAINTENANCE: MaintenanceScreen,
    AppState.HELP: HelpScreen,
    AppState.EXITING: None,
}


class RootModel:
    """Owns the navigation state and forwards messages to the active screen.

    The root never touches the filesystem or runs processes itself. Every
    side effect is a command returned from :meth:`update`.
    """

    def __init__(self, services):
        self.services = services
        self.state = AppState.MAIN_MENU
        self.screen: Optional[Screen] = None
        self.menu = SelectList(list(MENU_ITEMS))
        self.width = 80
        self.height = 24
        self.logger = logging.getLogger(__name__)

    @property
    def exiting(self) -> bool:
        return self.state == AppState.EXITING

    def update(self, msg: Any) -> Optional[Cmd]:
        if isinstance(msg, ResizeMsg):
            self.width, self.height = msg.width, msg.height
            if self.screen is not None:
                self.screen.update(ResizeMsg(msg.width, msg.height - 6))
            return None

        if isinstance(msg, Result):
            if self.screen is None or msg.owner not in self.screen.owner_ids():
                self.logger.debug(f"Dropping stale result {msg.tag} for screen {msg.owner}")
                return None
            return self._from_screen(self.screen.update(msg))

        if isinstance(msg, KeyMsg):
            return self._on_key(msg.key)
        return None

    def _on_key(self, key: str) -> Optional[Cmd]:
        if key == "ctrl+c":
            return self.quit()
        if self.state == AppState.MAIN_MENU:
            return self._on_menu_key(key)
        if key == "esc":
            return self.go_to_main_menu()
        if key == "q" and not self.screen.captures_text:
            if self.screen.back():
                return None
            return self.go_to_main_menu()
        return self._from_screen(self.screen.update(KeyMsg(key)))

    def _on_menu_key(self, key: str) -> Optional[Cmd]:
        if key == "q":
            return self.quit()
        if key == "?":
            return self.navigate(AppState.HELP)
        if key.isdigit() and 1 <= int(key) <= len(self.menu.items):
            self.menu.cursor = int(key) - 1
            return self.navigate(self.menu.selected.value)
        if key == "enter":
            return self.navigate(self.menu.selected.value)
        self.menu.handle_key(key)
        return None

    def _from_screen(self, cmd: Optional[Cmd]) -> Optional[Cmd]:
        if cmd is BACK:
            return self.go_to_main_menu()
        if cmd is QUIT:
            return self.quit()
        return cmd

    def navigate(self, state: AppState) -> Optional[Cmd]:
        """Enter ``state`` with a freshly built screen."""
        if state == AppState.EXITING:
            return self.quit()
        if state == AppState.MAIN_MENU:
            return self.go_to_main_menu()

        factory = SCREEN_FACTORIES[state]
        self.logger.debug(f"Entering {state.value}")
        self.state = state
        self.screen = factory(self.services)
        self.screen.resize(self.width, self.height - 6)
        return self.screen.init()

    def go_to_main_menu(self) -> Optional[Cmd]:
        """Discard the active screen.

        Returns:
            The screen's ``dispose`` hook as a command, so cleanup such as
            cancelling a backup runs off the event loop.
        """
        old, self.screen = self.screen, None
        self.state = AppState.MAIN_MENU
        if old is None:
            return None
        return old.dispose

    def quit(self) -> Cmd:
        self.state = AppState.EXITING
        return QUIT

    def shutdown(self) -> None:
        """Dispose of the active screen once the event loop has stopped."""
        if self.screen is not None:
            self.screen.dispose()
            self.screen = None

    def _header(self) -> str:
        if self.screen is None:
            return (styles.render_title(f"☁  Cloud Sync v{__version__}") + "\n"
                    + styles.render_subtitle("Backups with rclone and launchd"))
        return styles.render_title(self.screen.title)

    def _main_menu(self) -> str:
        return self.menu.view(numbered=True)

    def view(self) -> str:
        if self.exiting:
            return ""
        body = self._main_menu() if self.screen is None else self.screen.view()
        if self.screen is None:
            footer = "↑/↓: Navigate • 1-8: Select • enter: Open • ?: Help • q: Quit"
        else:
            footer = self.screen.footer()
        return "\n".join([self._header(), "", body, styles.render_help(footer)])
