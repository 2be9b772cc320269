"""Installation and setup: tools, new locations and an overview of both."""

from enum import Enum
from typing import List, Optional, Tuple

from ..core.errors import CloudSyncError
from . import styles
from .messages import BACK, Cmd, Result, Suspend
from .remote_config import PROVIDER_B2, PROVIDER_SCALEWAY, RemoteConfigScreen
from .screen import ParentScreen, Screen
from .sync_pairs import SyncPairsScreen
from .widgets import MenuItem, SelectList, Viewport

PROVIDERS = [
    MenuItem("Backblaze B2", "High-performance cloud storage", value=PROVIDER_B2),
    MenuItem("Amazon S3", "AWS Simple Storage Service", value="s3"),
    MenuItem("Google Cloud Storage", "GCS object storage", value="gcs"),
    MenuItem("Microsoft Azure Blob Storage", "Azure cloud storage", value="azureblob"),
    MenuItem("Dropbox", "Cloud file storage and sharing", value="dropbox"),
    MenuItem("Google Drive", "Google's cloud storage service", value="drive"),
    MenuItem("OneDrive", "Microsoft cloud storage", value="onedrive"),
    MenuItem("Scaleway Object Storage", "European cloud storage provider", value=PROVIDER_SCALEWAY),
    MenuItem("DigitalOcean Spaces", "S3-compatible object storage", value="spaces"),
    MenuItem("Wasabi", "Hot cloud storage", value="wasabi"),
    MenuItem("SFTP", "SSH File Transfer Protocol", value="sftp"),
    MenuItem("FTP", "File Transfer Protocol", value="ftp"),
    MenuItem("WebDAV", "Web Distributed Authoring and Versioning", value="webdav"),
    MenuItem("Other / Custom", "Configure any other rclone-supported provider", value="other"),
]

LOCATION_TYPES = [
    MenuItem("Local folder", "Configure a local directory for syncing", value="local"),
    MenuItem("Remote storage (B2, S3, etc.)", "Configure cloud storage provider", value="remote"),
]

INSTALL_MENU = [
    MenuItem("Install and set up required tools",
             "Install Homebrew, rclone, and create necessary directories", value="tools"),
    MenuItem("Set up a new location", "Configure a local folder or remote storage location", value="location"),
    MenuItem("View existing locations", "See all configured remote and local sync locations", value="view"),
]


class ToolStep(Enum):
    CHECK_HOMEBREW = "Check Homebrew"
    INSTALL_HOMEBREW = "Install Homebrew"
    CHECK_RCLONE = "Check rclone"
    INSTALL_RCLONE = "Install rclone"
    CREATE_DIRECTORIES = "Create directories"
    GENERATE_SCRIPTS = "Generate scripts"
    COMPLETE = "Complete"


TOOL_STEPS = list(ToolStep)[:-1]


class InstallToolsScreen(Screen):
    """Runs each installation step as a background task, in order.

    A step failure stops the sequence and leaves the error on screen.
    """

    title = "Install Required Tools"

    def __init__(self, services):
        super().__init__(services)
        self.step = ToolStep.CHECK_HOMEBREW
        self.done: List[ToolStep] = []
        self.skipped: List[ToolStep] = []
        self.notes: List[str] = []
        self.rclone_version = ""
        self.failed = False
        self.complete = False

    def init(self) -> Optional[Cmd]:
        return self._run(ToolStep.CHECK_HOMEBREW)

    def _run(self, step: ToolStep) -> Optional[Cmd]:
        self.step = step
        installer = self.services.installer
        backup = self.services.backup
        if step == ToolStep.CHECK_HOMEBREW:
            return self.task(step.name, installer.check_homebrew_installed)
        if step == ToolStep.INSTALL_HOMEBREW:
            return self.task(step.name, installer.install_homebrew)
        if step == ToolStep.CHECK_RCLONE:
            return self.task(step.name, installer.check_rclone_installed)
        if step == ToolStep.INSTALL_RCLONE:
            return self.task(step.name, installer.install_rclone)
        if step == ToolStep.CREATE_DIRECTORIES:
            return self.task(step.name, backup.create_directories)
        if step == ToolStep.GENERATE_SCRIPTS:
            return self.task(step.name, self._generate_scripts)
        return self.task(step.name, self._finish)

    def _generate_scripts(self) -> Optional[List[str]]:
        if not self.services.config.load().sync_config.is_complete():
            return None
        return self.services.backup.generate_scripts()

    def _finish(self) -> str:
        path = self.services.installer.get_rclone_path()
        config = self.services.config.load()
        if config.rclone_path != path:
            config.rclone_path = path
            self.services.config.save(config)
            self.services.rclone.rclone_path = path
        return self.services.installer.get_rclone_version()

    def on_result(self, result: Result) -> Optional[Cmd]:
        if not result.ok:
            self.failed = True
            self.error = result.error
            return None

        step = ToolStep[result.tag]
        if step == ToolStep.CHECK_HOMEBREW:
            self.done.append(step)
            if result.value:
                self.skipped.append(ToolStep.INSTALL_HOMEBREW)
                self.notes.append("✓ Homebrew is already installed")
                return self._run(ToolStep.CHECK_RCLONE)
            return self._run(ToolStep.INSTALL_HOMEBREW)
        if step == ToolStep.INSTALL_HOMEBREW:
            self.done.append(step)
            self.notes.append("✓ Homebrew installed")
            return self._run(ToolStep.CHECK_RCLONE)
        if step == ToolStep.CHECK_RCLONE:
            self.done.append(step)
            if result.value:
                self.skipped.append(ToolStep.INSTALL_RCLONE)
                self.notes.append("✓ rclone is already installed")
                return self._run(ToolStep.CREATE_DIRECTORIES)
            return self._run(ToolStep.INSTALL_RCLONE)
        if step == ToolStep.INSTALL_RCLONE:
            self.done.append(step)
            self.notes.append("✓ rclone installed")
            return self._run(ToolStep.CREATE_DIRECTORIES)
        if step == ToolStep.CREATE_DIRECTORIES:
            self.done.append(step)
            self.notes.append("✓ Directories created:\n    " + "\n    ".join(result.value))
            return self._run(ToolStep.GENERATE_SCRIPTS)
        if step == ToolStep.GENERATE_SCRIPTS:
            if result.value is None:
                self.skipped.append(step)
                self.notes.append("○ Scripts not generated: set the backup source and destination first")
            else:
                self.done.append(step)
                self.notes.append(f"✓ Generated {len(result.value)} scripts")
            return self._run(ToolStep.COMPLETE)

        self.rclone_version = result.value
        self.complete = True
        return None

    @property
    def finished(self) -> bool:
        return self.failed or self.complete

    def on_key(self, key: str) -> Optional[Cmd]:
        if self.finished and key == "enter":
            return BACK
        return None

    def _checklist(self) -> str:
        lines = []
        for step in TOOL_STEPS:
            if step in self.done or step in self.skipped:
                lines.append(styles.render_success(f"✓ {step.value}"))
            elif step == self.step and self.failed:
                lines.append(styles.render_error(f"✗ {step.value}"))
            elif step == self.step:
                lines.append(styles.render_warning(f"… {step.value}"))
            else:
                lines.append(styles.render_info(f"○ {step.value}"))
        return "\n".join(lines)

    def view(self) -> str:
        lines = [self._checklist(), ""]
        for note in self.notes:
            lines.append("  " + note)
        if self.complete:
            lines += ["", styles.render_success("✓ Installation complete!")]
            if self.rclone_version:
                lines.append(f"  {self.rclone_version}")
        elif self.failed:
            lines += ["", styles.render_error(f"Error: {self.error}")]
            if self.step == ToolStep.INSTALL_HOMEBREW:
                lines.append(styles.render_muted(
                    "  Install Homebrew from https://brew.sh and restart cloud-sync."))
        else:
            lines += ["", styles.render_info(f"{self.step.value}... this may take a few minutes")]
        return "\n".join(lines)

    def footer(self) -> str:
        if self.finished:
            return "enter: Continue • q: Back • esc: Main menu"
        return "Please wait... • esc: Main menu"


def describe_locations(remotes: List[Tuple[str, str]], pairs) -> str:
    lines = [styles.render_info("Remote storage"), ""]
    if remotes:
        for name, kind in remotes:
            lines.append(f"  • {name:<16} {kind}")
    else:
        lines.append("  " + styles.render_muted("No remotes configured"))

    lines += ["", styles.render_info("Local folders"), ""]
    if pairs:
        for pair in pairs:
            marker = "✓" if pair.enabled else "○"
            lines.append(f"  {marker} {pair.name:<16} {pair.local_path} → {pair.remote_spec} ({pair.direction})")
    else:
        lines.append("  " + styles.render_muted("No sync pairs configured"))
    return "\n".join(lines)


class InstallStep(Enum):
    MENU = "menu"
    LOCATION_TYPE = "location_type"
    PROVIDERS = "providers"
    VIEW_LOCATIONS = "view_locations"


class InstallationScreen(ParentScreen):
    """Installation menu. Each flow runs as a child screen or a local step."""

    title = "Installation & Setup"

    def __init__(self, services):
        super().__init__(services)
        self.step = InstallStep.MENU
        self.menu = SelectList(list(INSTALL_MENU))
        self.location_types = SelectList(list(LOCATION_TYPES))
        self.providers = SelectList(list(PROVIDERS))
        self.locations = Viewport(self.height - 8)
        self.message: Optional[str] = None

    def resize(self, width: int, height: int) -> None:
        super().resize(width, height)
        self.locations.set_height(height - 8)

    def back(self) -> bool:
        if super().back():
            return True
        if self.step == InstallStep.PROVIDERS:
            self.step = InstallStep.LOCATION_TYPE
            return True
        if self.step != InstallStep.MENU:
            self.step = InstallStep.MENU
            return True
        return False

    def on_key(self, key: str) -> Optional[Cmd]:
        self.message = None
        if self.step == InstallStep.MENU:
            return self._select(self.menu, key, self._on_menu)
        if self.step == InstallStep.LOCATION_TYPE:
            return self._select(self.location_types, key, self._on_location_type)
        if self.step == InstallStep.PROVIDERS:
            return self._select(self.providers, key, self._on_provider)
        self.locations.handle_key(key)
        return None

    def _select(self, menu: SelectList, key: str, action) -> Optional[Cmd]:
        if key.isdigit() and 1 <= int(key) <= min(9, len(menu.items)):
            menu.cursor = int(key) - 1
            return action(menu.selected.value)
        if key == "enter" and menu.selected is not None:
            return action(menu.selected.value)
        menu.handle_key(key)
        return None

    def _on_menu(self, choice: str) -> Optional[Cmd]:
        self.error = None
        if choice == "tools":
            return self.open_child(InstallToolsScreen(self.services))
        if choice == "location":
            self.step = InstallStep.LOCATION_TYPE
            return None
        self.step = InstallStep.VIEW_LOCATIONS
        return self.task("locations", self._load_locations)

    def _on_location_type(self, choice: str) -> Optional[Cmd]:
        if choice == "local":
            self.step = InstallStep.MENU
            return self.open_child(SyncPairsScreen(self.services, start_adding=True))
        self.step = InstallStep.PROVIDERS
        return None

    def _on_provider(self, provider: str) -> Optional[Cmd]:
        if provider in (PROVIDER_B2, PROVIDER_SCALEWAY):
            self.step = InstallStep.MENU
            return self.open_child(RemoteConfigScreen(self.services, provider=provider))
        return Suspend(self.task("configure", self.services.rclone.configure_remote))

    def _load_locations(self) -> str:
        remotes = []
        for remote in self.services.config.list_remotes():
            remotes.append((remote.name, remote.provider or remote.type))
        known = {name for name, _ in remotes}
        try:
            for name in self.services.rclone.list_remotes():
                if name not in known:
                    remotes.append((name, self.services.rclone.get_remote_type(name) or "rclone"))
        except (CloudSyncError, OSError) as e:
            self.logger.debug(f"Skipping rclone remotes: {e}")
        return describe_locations(remotes, self.services.sync_pairs.list())

    def on_result(self, result: Result) -> Optional[Cmd]:
        if not result.ok:
            self.error = result.error
            return None
        self.error = None
        if result.tag == "locations":
            self.locations.set_content(result.value)
        elif result.tag == "configure":
            self.message = "✓ rclone configuration finished"
            self.step = InstallStep.MENU
        return None

    def view(self) -> str:
        if self.child is not None:
            return styles.render_subtitle(self.child.title) + "\n\n" + self.child.view()

        lines = []
        if self.step == InstallStep.MENU:
            lines += [styles.render_info("  Installation Menu"), "", self.menu.view(numbered=True)]
        elif self.step == InstallStep.LOCATION_TYPE:
            lines += [styles.render_info("  Set Up a New Location"), "", self.location_types.view(numbered=True)]
        elif self.step == InstallStep.PROVIDERS:
            lines += [styles.render_info("  Configure Remote Storage"), "", self.providers.view(numbered=True)]
            lines += ["", "  " + styles.render_muted(
                "Providers other than B2 and Scaleway open the interactive rclone config.")]
        else:
            lines += [styles.render_info("  Existing Locations"), "", self.locations.view()]

        if self.message:
            lines += ["", "  " + styles.render_success(self.message)]
        if self.error:
            lines += ["", "  " + styles.render_error(f"Error: {self.error}")]
        return "\n".join(lines)

    def footer(self) -> str:
        if self.child is not None:
            return self.child.footer()
        if self.step == InstallStep.VIEW_LOCATIONS:
            return "↑/↓: Scroll • q: Back to menu • esc: Main menu"
        return "↑/↓: Navigate • enter: Select • q: Back • esc: Main menu"
