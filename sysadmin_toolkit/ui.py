"""Nord-themed terminal output shared by the scripts."""

import shutil
from typing import List, Optional

import pyfiglet
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.style import Style
from rich.table import Table
from rich.text import Text
from rich.theme import Theme


# ----------------------------------------------------------------
# Nord-Themed Colors
# ----------------------------------------------------------------
class NordColors:
    """Nord color palette for consistent theming throughout the application."""

    POLAR_NIGHT_4 = "#4C566A"

    SNOW_STORM_1 = "#D8DEE9"
    SNOW_STORM_2 = "#E5E9F0"

    FROST_1 = "#8FBCBB"
    FROST_2 = "#88C0D0"
    FROST_3 = "#81A1C1"
    FROST_4 = "#5E81AC"

    RED = "#BF616A"
    YELLOW = "#EBCB8B"
    GREEN = "#A3BE8C"


# Everything goes to stderr; stdout stays free for command output.
console = Console(
    stderr=True,
    theme=Theme(
        {
            "info": f"bold {NordColors.FROST_2}",
            "warning": f"bold {NordColors.YELLOW}",
            "error": f"bold {NordColors.RED}",
            "success": f"bold {NordColors.GREEN}",
            "step": f"{NordColors.FROST_2}",
            "path": f"italic {NordColors.FROST_1}",
        }
    ),
)


# ----------------------------------------------------------------
# Banner and Report Helpers
# ----------------------------------------------------------------
def create_header(title: str, subtitle: str = "", version: str = "") -> Panel:
    """
    Create an ASCII art header using Pyfiglet with a Frost gradient.

    Args:
        title: Text rendered as ASCII art.
        subtitle: Optional subtitle under the panel.
        version: Optional version shown in the panel title.

    Returns:
        Panel: A Rich Panel containing the styled header.
    """
    width = min(shutil.get_terminal_size((80, 24)).columns - 10, 80)
    ascii_art = ""
    for font in ("slant", "small", "standard"):
        try:
            ascii_art = pyfiglet.Figlet(font=font, width=width).renderText(title)
        except pyfiglet.FontNotFound:
            continue
        if ascii_art.strip():
            break
    if not ascii_art.strip():
        ascii_art = f"=== {title} ===\n"

    colors = [
        NordColors.FROST_1,
        NordColors.FROST_2,
        NordColors.FROST_3,
        NordColors.FROST_4,
    ]
    lines = [line for line in ascii_art.splitlines() if line.strip()]
    styled = Text()
    for i, line in enumerate(lines):
        styled.append(line + "\n", style=f"bold {colors[i % len(colors)]}")

    return Panel(
        styled,
        border_style=Style(color=NordColors.FROST_1),
        box=box.ROUNDED,
        padding=(1, 2),
        title=f"[bold {NordColors.SNOW_STORM_2}]v{version}[/]" if version else None,
        title_align="right",
        subtitle=f"[bold {NordColors.SNOW_STORM_1}]{subtitle}[/]" if subtitle else None,
        subtitle_align="center",
    )


def status_table(rows: List[List[str]], title: Optional[str] = None) -> Table:
    """
    Build a table reporting the status of each task.

    Args:
        rows: ``[task, status, message]`` triples; status is one of
            ``success``, ``failed`` or ``pending``.
        title: Optional table title.
    """
    icons = {"success": "✓", "failed": "✗", "pending": "?"}
    styles = {"success": "success", "failed": "error", "pending": "step"}

    table = Table(
        show_header=True,
        header_style=f"bold {NordColors.FROST_1}",
        border_style=NordColors.FROST_3,
        box=box.ROUNDED,
        title=f"[bold {NordColors.FROST_2}]{title}[/]" if title else None,
        expand=True,
    )
    table.add_column("Task", style=f"bold {NordColors.FROST_2}")
    table.add_column("Status", justify="center")
    table.add_column("Message", style=NordColors.SNOW_STORM_1, ratio=3)

    for task, status, message in rows:
        style = styles.get(status, "step")
        table.add_row(
            task, f"[{style}]{icons.get(status, '?')} {status.upper()}[/]", message
        )
    return table
