"""Wizard for entering cloud remote credentials."""

from enum import Enum
from typing import List, Optional

from ..core.models import RemoteConfig
from ..core.rclone import validate_remote_name
from . import styles
from .messages import BACK, Cmd, Result
from .screen import Screen
from .widgets import Form, MenuItem, SelectList, TextInput


class RemoteStep(Enum):
    SELECT_TYPE = "select_type"
    B2_CONFIG = "b2_config"
    SCALEWAY_CONFIG = "scaleway_config"
    COMPLETE = "complete"


PROVIDER_B2 = "b2"
PROVIDER_SCALEWAY = "scaleway"


def b2_form() -> Form:
    return Form([
        TextInput("Remote Name: ", "b2", char_limit=32),
        TextInput("Account ID: ", "Your B2 Account ID"),
        TextInput("App Key: ", "Your B2 Application Key", masked=True),
    ])


def scaleway_form() -> Form:
    return Form([
        TextInput("Remote Name: ", "sw", char_limit=32),
        TextInput("Access Key: ", "Your Scaleway Access Key"),
        TextInput("Secret Key: ", "Your Scaleway Secret Key", masked=True),
        TextInput("Region: ", "nl-ams", value="nl-ams", char_limit=32),
        TextInput("Endpoint: ", "s3.nl-ams.scw.cloud", value="s3.nl-ams.scw.cloud"),
    ])


def build_remote(provider: str, values: List[str]) -> RemoteConfig:
    """Turn form values into a remote, validating required fields.

    Raises:
        ValueError: With the message shown under the form.
    """
    if provider == PROVIDER_B2:
        name, account_id, app_key = values
        if not name or not account_id or not app_key:
            raise ValueError("all fields are required")
        validate_remote_name(name)
        return RemoteConfig(name=name, type="b2", account_id=account_id, application_key=app_key)

    name, access_key, secret_key, region, endpoint = values
    if not name or not access_key or not secret_key:
        raise ValueError("name, access key, and secret key are required")
    validate_remote_name(name)
    return RemoteConfig(
        name=name,
        type="s3",
        provider="Scaleway",
        account_id=access_key,
        application_key=secret_key,
        region=region or "nl-ams",
        endpoint=endpoint or "s3.nl-ams.scw.cloud",
    )


class RemoteConfigScreen(Screen):
    """Select a provider, enter credentials, save and regenerate rclone.conf."""

    title = "Configure Rclone Remote"

    def __init__(self, services, provider: Optional[str] = None):
        super().__init__(services)
        self.menu = SelectList([
            MenuItem("Backblaze B2", "Account ID and application key", value=PROVIDER_B2),
            MenuItem("Scaleway Object Storage", "S3 compatible access and secret key", value=PROVIDER_SCALEWAY),
        ])
        self.step = RemoteStep.SELECT_TYPE
        self.form: Optional[Form] = None
        self.saving = False
        self.remote: Optional[RemoteConfig] = None
        if provider is not None:
            self._choose(provider)

    def _choose(self, provider: str) -> None:
        if provider == PROVIDER_B2:
            self.step = RemoteStep.B2_CONFIG
            self.form = b2_form()
        else:
            self.step = RemoteStep.SCALEWAY_CONFIG
            self.form = scaleway_form()
        self.error = None

    @property
    def provider(self) -> str:
        return PROVIDER_B2 if self.step == RemoteStep.B2_CONFIG else PROVIDER_SCALEWAY

    @property
    def captures_text(self) -> bool:
        return self.step in (RemoteStep.B2_CONFIG, RemoteStep.SCALEWAY_CONFIG)

    def back(self) -> bool:
        if self.step in (RemoteStep.B2_CONFIG, RemoteStep.SCALEWAY_CONFIG):
            self.step = RemoteStep.SELECT_TYPE
            self.form = None
            self.error = None
            return True
        return False

    def on_key(self, key: str) -> Optional[Cmd]:
        if self.step == RemoteStep.SELECT_TYPE:
            if key in ("1", "2"):
                self._choose(PROVIDER_B2 if key == "1" else PROVIDER_SCALEWAY)
            elif key == "enter" and self.menu.selected is not None:
                self._choose(self.menu.selected.value)
            else:
                self.menu.handle_key(key)
            return None

        if self.step == RemoteStep.COMPLETE:
            if key in ("enter", "q"):
                return BACK
            return None

        if self.saving:
            return None
        if key == "enter":
            return self._save()
        self.form.handle_key(key)
        return None

    def _save(self) -> Optional[Cmd]:
        try:
            remote = build_remote(self.provider, self.form.values())
        except ValueError as e:
            self.error = str(e)
            return None

        self.error = None
        self.saving = True
        self.remote = remote
        return self.task("save", self._persist, remote)

    def _persist(self, remote: RemoteConfig) -> str:
        return self.services.config.add_remote_with_rclone_config(remote)

    def on_result(self, result: Result) -> Optional[Cmd]:
        if result.tag != "save":
            return None
        self.saving = False
        if not result.ok:
            self.error = result.error
            return None
        self.step = RemoteStep.COMPLETE
        return None

    def view(self) -> str:
        lines = []
        if self.step == RemoteStep.SELECT_TYPE:
            lines.append(styles.render_info("  Select a cloud provider:"))
            lines.append("")
            lines.append(self.menu.view(numbered=True))
        elif self.step == RemoteStep.B2_CONFIG:
            lines.append(styles.render_info("  Backblaze B2 Configuration"))
            lines.append("")
            lines.append(self.form.view())
            lines.append("")
            lines.append("  " + styles.render_muted(
                "Get your credentials from: https://www.backblaze.com/b2/cloud-storage.html"))
        elif self.step == RemoteStep.SCALEWAY_CONFIG:
            lines.append(styles.render_info("  Scaleway Object Storage Configuration"))
            lines.append("")
            lines.append(self.form.view())
            lines.append("")
            lines.append("  " + styles.render_muted("Get your credentials from: https://console.scaleway.com/"))
        else:
            content = styles.render_success(f"✓ Remote '{self.remote.name}' configured successfully!")
            content += "\n\nConfiguration saved and rclone.conf regenerated."
            lines.append(styles.render_box(content, width=min(70, self.width)))

        if self.saving:
            lines.append("")
            lines.append("  " + styles.render_info("Saving..."))
        if self.error:
            lines.append("")
            lines.append("  " + styles.render_error(f"Error: {self.error}"))
        return "\n".join(lines)

    def footer(self) -> str:
        if self.step == RemoteStep.SELECT_TYPE:
            return "1: Backblaze B2 • 2: Scaleway • enter: Select • q: Back • esc: Main menu"
        if self.step == RemoteStep.COMPLETE:
            return "enter: Continue • esc: Main menu"
        return "tab: Next field • enter: Save • esc: Main menu"
