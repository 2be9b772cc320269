"""Sync pair list and the wizard that adds new pairs."""

from enum import Enum
from typing import Dict, List, Optional

from ..core.models import SyncDirection, SyncPair
from . import styles
from .messages import BACK, Cmd, Result
from .screen import Screen
from .widgets import MenuItem, SelectList, TextInput


class PairStep(Enum):
    LIST = "list"
    NAME = "name"
    LOCAL_PATH = "local_path"
    REMOTE_NAME = "remote_name"
    REMOTE_PATH = "remote_path"
    DIRECTION = "direction"
    CONFIRM = "confirm"
    COMPLETE = "complete"


TEXT_STEPS = {
    PairStep.NAME: ("Name: ", "documents", "sync pair name cannot be empty"),
    PairStep.LOCAL_PATH: ("Local Path: ", "~/Documents", "local path cannot be empty"),
    PairStep.REMOTE_NAME: ("Remote Name: ", "b2", "remote name cannot be empty"),
    PairStep.REMOTE_PATH: ("Remote Path: ", "my-bucket/documents", "remote path cannot be empty"),
}
STEP_ORDER = [PairStep.NAME, PairStep.LOCAL_PATH, PairStep.REMOTE_NAME, PairStep.REMOTE_PATH, PairStep.DIRECTION]
DIRECTION_KEYS = {
    "1": SyncDirection.UPLOAD.value,
    "2": SyncDirection.DOWNLOAD.value,
    "3": SyncDirection.BIDIRECTIONAL.value,
}
DIRECTION_ARROWS = {
    SyncDirection.UPLOAD.value: "→",
    SyncDirection.DOWNLOAD.value: "←",
    SyncDirection.BIDIRECTIONAL.value: "↔",
}


class SyncPairsScreen(Screen):
    """List sync pairs (``a`` add, ``d`` delete, ``t`` toggle) and add new ones."""

    title = "Sync Pairs Management"

    def __init__(self, services, start_adding: bool = False):
        super().__init__(services)
        self.pairs: List[SyncPair] = []
        self.remote_names: List[str] = []
        self.list = SelectList([])
        self.step = PairStep.LIST
        self.values: Dict[PairStep, str] = {}
        self.direction = ""
        self.input: Optional[TextInput] = None
        # tag of the write in flight; keys are ignored until its result arrives
        self.busy: Optional[str] = None
        self.message: Optional[str] = None
        self.start_adding = start_adding

    def init(self) -> Optional[Cmd]:
        if self.start_adding:
            self._begin_add()
        return self._reload()

    def _reload(self) -> Cmd:
        return self.task("load", self._load)

    def _load(self):
        pairs = self.services.sync_pairs.list()
        remotes = [r.name for r in self.services.config.list_remotes()]
        return pairs, remotes

    def _begin_add(self) -> None:
        self.values = {}
        self.direction = ""
        self.error = None
        self.message = None
        self._goto(PairStep.NAME)

    def _goto(self, step: PairStep) -> None:
        self.step = step
        if step in TEXT_STEPS:
            prompt, placeholder, _ = TEXT_STEPS[step]
            self.input = TextInput(prompt, placeholder, value=self.values.get(step, ""))
            self.input.focused = True
        else:
            self.input = None

    @property
    def captures_text(self) -> bool:
        return self.step in TEXT_STEPS

    def back(self) -> bool:
        if self.step == PairStep.LIST:
            return False
        self.step = PairStep.LIST
        self.input = None
        self.error = None
        return True

    def _list_items(self) -> List[MenuItem]:
        items = []
        for pair in self.pairs:
            state = "enabled" if pair.enabled else "disabled"
            arrow = DIRECTION_ARROWS.get(pair.direction, "?")
            items.append(MenuItem(
                f"{pair.name}  {pair.local_path} {arrow} {pair.remote_spec}",
                f"{pair.direction}, {state}",
                disabled=not pair.enabled,
                value=pair.name,
            ))
        return items

    def on_key(self, key: str) -> Optional[Cmd]:
        if self.busy:
            return None

        if self.step == PairStep.LIST:
            return self._on_list_key(key)

        if self.step in TEXT_STEPS:
            if key == "enter":
                value = self.input.value.strip()
                if not value:
                    self.error = TEXT_STEPS[self.step][2]
                    return None
                self.values[self.step] = value
                self.error = None
                self._goto(STEP_ORDER[STEP_ORDER.index(self.step) + 1])
            else:
                self.input.handle_key(key)
            return None

        if self.step == PairStep.DIRECTION:
            if key in DIRECTION_KEYS:
                self.direction = DIRECTION_KEYS[key]
                self.error = None
                self._goto(PairStep.CONFIRM)
            elif key == "enter":
                self.error = "choose a direction: 1, 2 or 3"
            return None

        if self.step == PairStep.CONFIRM:
            if key in ("y", "enter"):
                pair = SyncPair(
                    name=self.values[PairStep.NAME],
                    local_path=self.values[PairStep.LOCAL_PATH],
                    remote_name=self.values[PairStep.REMOTE_NAME],
                    remote_path=self.values[PairStep.REMOTE_PATH],
                    direction=self.direction,
                    enabled=True,
                )
                self.busy = "add"
                return self.task("add", self.services.sync_pairs.add, pair)
            if key == "n":
                self.step = PairStep.LIST
            return None

        if self.step == PairStep.COMPLETE and key == "enter":
            if self.start_adding:
                return BACK
            self.step = PairStep.LIST
            return self._reload()
        return None

    def _on_list_key(self, key: str) -> Optional[Cmd]:
        selected = self.list.selected
        if key == "a":
            self._begin_add()
            return None
        if key == "d" and selected is not None:
            self.busy = "delete"
            return self.task("delete", self.services.sync_pairs.remove, selected.value)
        if key == "t" and selected is not None:
            self.busy = "toggle"
            return self.task("toggle", self.services.sync_pairs.toggle_enabled, selected.value)
        self.list.handle_key(key)
        return None

    def on_result(self, result: Result) -> Optional[Cmd]:
        if result.tag == self.busy:
            self.busy = None
        if not result.ok:
            self.error = result.error
            return None
        self.error = None

        if result.tag == "load":
            self.pairs, self.remote_names = result.value
            self.list.set_items(self._list_items())
        elif result.tag == "add":
            self.step = PairStep.COMPLETE
            self.message = "✓ Sync pair added successfully!"
        elif result.tag == "delete":
            self.message = "Sync pair deleted"
            return self._reload()
        elif result.tag == "toggle":
            self.message = "Sync pair enabled" if result.value else "Sync pair disabled"
            return self._reload()
        return None

    def _summary(self) -> str:
        rows = [
            ("Name", self.values.get(PairStep.NAME, "")),
            ("Local Path", self.values.get(PairStep.LOCAL_PATH, "")),
            ("Remote", f"{self.values.get(PairStep.REMOTE_NAME, '')}:{self.values.get(PairStep.REMOTE_PATH, '')}"),
            ("Direction", self.direction),
        ]
        return "\n".join(f"{label + ':':<12} {value}" for label, value in rows)

    def view(self) -> str:
        lines = []
        if self.step == PairStep.LIST:
            if self.pairs:
                lines.append(self.list.view())
            else:
                lines.append("  " + styles.render_muted("No sync pairs configured yet. Press 'a' to add one."))
        elif self.step in TEXT_STEPS:
            number = STEP_ORDER.index(self.step) + 1
            lines.append(styles.render_info(f"  Step {number} of {len(STEP_ORDER)}"))
            lines.append("")
            lines.append("  " + self.input.view())
            if self.step == PairStep.REMOTE_NAME and self.remote_names:
                lines.append("")
                lines.append("  " + styles.render_muted(f"Configured remotes: {', '.join(self.remote_names)}"))
        elif self.step == PairStep.DIRECTION:
            lines.append(styles.render_info(f"  Step {len(STEP_ORDER)} of {len(STEP_ORDER)}: sync direction"))
            lines.append("")
            lines.append("  1. upload         local → remote")
            lines.append("  2. download       remote → local")
            lines.append("  3. bidirectional  upload, then download")
        elif self.step == PairStep.CONFIRM:
            content = self._summary() + "\n\n" + styles.render_warning("Save this sync pair? (y/n)")
            lines.append(styles.render_box(content, width=min(72, self.width)))
        else:
            lines.append(styles.render_box(styles.render_success(self.message or ""), width=min(72, self.width)))

        if self.message and self.step == PairStep.LIST:
            lines.append("")
            lines.append("  " + styles.render_success(self.message))
        if self.error:
            lines.append("")
            lines.append("  " + styles.render_error(f"Error: {self.error}"))
        return "\n".join(lines)

    def footer(self) -> str:
        if self.step == PairStep.LIST:
            if self.pairs:
                return "a: Add • d: Delete • t: Toggle • q: Back • esc: Main menu"
            return "a: Add new sync pair • q: Back • esc: Main menu"
        if self.step == PairStep.DIRECTION:
            return "1/2/3: Choose direction • q: Cancel • esc: Main menu"
        if self.step == PairStep.CONFIRM:
            return "y: Save • n: Cancel • esc: Main menu"
        if self.step == PairStep.COMPLETE:
            return "enter: Continue • esc: Main menu"
        return "enter: Continue • esc: Main menu"
