"""Colours and rendering helpers built on rich.

Screens produce plain strings containing ANSI escapes; the prompt_toolkit
driver turns them into formatted text.
"""

import io
import os
from typing import List, Optional, Sequence

from rich import box
from rich.color import ColorSystem
from rich.console import Console, RenderableType
from rich.panel import Panel
from rich.style import Style
from rich.table import Table
from rich.text import Text

PRIMARY = "#00ADD8"
SECONDARY = "#5DC9E2"
SUCCESS = "#00D787"
WARNING = "#FFA500"
ERROR = "#FF5555"
MUTED = "#888888"
BORDER = "#3C3C3C"

TITLE = Style(color=PRIMARY, bold=True)
SUBTITLE = Style(color=SECONDARY)
SELECTED = Style(color="#FFFFFF", bgcolor=PRIMARY, bold=True)
NORMAL = Style(color="#CCCCCC")
DIMMED = Style(color=MUTED)
SUCCESS_STYLE = Style(color=SUCCESS, bold=True)
ERROR_STYLE = Style(color=ERROR, bold=True)
WARNING_STYLE = Style(color=WARNING, bold=True)
INFO_STYLE = Style(color=SECONDARY)
MUTED_STYLE = Style(color=MUTED)
FOCUSED = Style(color=PRIMARY)
BAR_STYLE = Style(color=PRIMARY)


def _color_system() -> Optional[ColorSystem]:
    if os.environ.get("NO_COLOR"):
        return None
    return ColorSystem.TRUECOLOR


def styled(text: str, style: Style) -> str:
    return style.render(text, color_system=_color_system())


def render_title(text: str) -> str:
    return "  " + styled(text, TITLE)


def render_subtitle(text: str) -> str:
    return "  " + styled(text, SUBTITLE)


def render_success(text: str) -> str:
    return styled(text, SUCCESS_STYLE)


def render_error(text: str) -> str:
    return styled(text, ERROR_STYLE)


def render_warning(text: str) -> str:
    return styled(text, WARNING_STYLE)


def render_info(text: str) -> str:
    return styled(text, INFO_STYLE)


def render_muted(text: str) -> str:
    return styled(text, MUTED_STYLE)


def render_help(text: str) -> str:
    return "\n  " + styled(text, MUTED_STYLE)


def render_menu_item(text: str, selected: bool, disabled: bool = False) -> str:
    if selected:
        return styled(f"  {text}  ", SELECTED)
    if disabled:
        return styled(f"  {text}  ", DIMMED)
    return styled(f"  {text}  ", NORMAL)


def render_renderable(renderable: RenderableType, width: int) -> str:
    """Render any rich renderable to an ANSI string of the given width."""
    console = Console(
        file=io.StringIO(),
        width=max(20, width),
        force_terminal=True,
        color_system="truecolor" if _color_system() else None,
        legacy_windows=False,
    )
    with console.capture() as capture:
        console.print(renderable)
    return capture.get().rstrip("\n")


def render_box(content: str, width: int = 60, border_color: str = BORDER, title: Optional[str] = None) -> str:
    """Draw ``content`` (which may contain ANSI escapes) in a rounded box."""
    panel = Panel(
        Text.from_ansi(content),
        box=box.ROUNDED,
        border_style=Style(color=border_color),
        padding=(1, 2),
        width=width,
        title=title,
    )
    return render_renderable(panel, width)


def render_table(headers: Sequence[str], rows: List[Sequence[str]], width: int) -> str:
    table = Table(box=box.SIMPLE_HEAD, header_style=TITLE, show_edge=False, pad_edge=False)
    for header in headers:
        table.add_column(header, no_wrap=True)
    for row in rows:
        table.add_row(*[Text.from_ansi(cell) for cell in row])
    return render_renderable(table, width)


def render_progress_bar(percent: float, width: int = 40) -> str:
    filled = int(round(max(0.0, min(100.0, percent)) / 100.0 * width))
    bar = styled("█" * filled, BAR_STYLE) + render_muted("░" * (width - filled))
    return f"{bar} {percent:5.1f}%"
