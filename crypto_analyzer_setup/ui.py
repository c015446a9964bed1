# ----------------------------------------------------------------
# Dependencies and Imports
# ----------------------------------------------------------------
import shutil
from typing import Dict, List, Optional

import pyfiglet
from rich import box
from rich.align import Align
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.theme import Theme

from crypto_analyzer_setup import APP_NAME, VERSION


# ----------------------------------------------------------------
# Nord-Themed Colors and Theme Setup
# ----------------------------------------------------------------
class NordColors:
    """Nord color palette definitions for consistent UI styling."""

    POLAR_NIGHT_3: str = "#434C5E"
    SNOW_STORM_1: str = "#D8DEE9"
    SNOW_STORM_2: str = "#E5E9F0"
    FROST_1: str = "#8FBCBB"
    FROST_2: str = "#88C0D0"
    FROST_3: str = "#81A1C1"
    FROST_4: str = "#5E81AC"
    RED: str = "#BF616A"
    YELLOW: str = "#EBCB8B"
    GREEN: str = "#A3BE8C"

    @classmethod
    def get_frost_gradient(cls, steps: int = 4) -> List[str]:
        """Returns a gradient using the frost color palette."""
        frosts = [cls.FROST_1, cls.FROST_2, cls.FROST_3, cls.FROST_4]
        return frosts[:steps]


nord_theme = Theme(
    {
        "banner": f"bold {NordColors.FROST_2}",
        "header": f"bold {NordColors.FROST_2}",
        "info": NordColors.GREEN,
        "warning": NordColors.YELLOW,
        "error": NordColors.RED,
        "debug": NordColors.POLAR_NIGHT_3,
        "success": NordColors.GREEN,
    }
)

console = Console(theme=nord_theme)

# ----------------------------------------------------------------
# Status Tracking
# ----------------------------------------------------------------
PHASES: List[str] = [
    "preflight",
    "system_packages",
    "docker",
    "docker_compose",
    "nodejs",
    "app_directory",
    "systemd_service",
    "firewall",
    "redis",
    "app_files",
    "logrotate",
    "monitoring",
    "cron",
    "final",
]

SETUP_STATUS: Dict[str, Dict[str, str]] = {}


def reset_status() -> None:
    """Mark every phase as pending."""
    SETUP_STATUS.clear()
    for phase in PHASES:
        SETUP_STATUS[phase] = {"status": "pending", "message": ""}


def set_status(task_name: str, status: str, message: str = "") -> None:
    SETUP_STATUS[task_name] = {"status": status, "message": message}


reset_status()


# ----------------------------------------------------------------
# UI Helper Functions
# ----------------------------------------------------------------
def create_header(title: str = APP_NAME) -> Panel:
    """
    Generate an ASCII art header with dynamic gradient styling using Pyfiglet.
    The banner is built line-by-line into a Rich Text object to avoid stray markup tokens.
    """
    term_width, _ = shutil.get_terminal_size((80, 24))
    fonts: List[str] = ["slant", "small", "mini"]
    if term_width < 60:
        fonts = fonts[1:]

    ascii_art = ""
    for font in fonts:
        try:
            fig = pyfiglet.Figlet(font=font, width=min(term_width - 10, 120))
            ascii_art = fig.renderText(title)
            if ascii_art.strip():
                break
        except pyfiglet.FontNotFound:
            continue

    ascii_lines = [line for line in ascii_art.splitlines() if line.strip()]
    colors = NordColors.get_frost_gradient(len(ascii_lines)) or [NordColors.FROST_2]
    combined_text = Text()

    for i, line in enumerate(ascii_lines):
        color = colors[i % len(colors)]
        combined_text.append(Text(line, style=f"bold {color}"))
        if i < len(ascii_lines) - 1:
            combined_text.append("\n")

    return Panel(
        Align.center(combined_text),
        border_style=NordColors.FROST_1,
        padding=(1, 2),
        title=Text(f"{APP_NAME} v{VERSION}", style=f"bold {NordColors.SNOW_STORM_2}"),
        title_align="right",
        subtitle=Text("VPS Provisioning Tool", style=f"bold {NordColors.SNOW_STORM_1}"),
        subtitle_align="center",
        box=box.ROUNDED,
    )


def print_message(
    text: str, style: str = NordColors.FROST_2, prefix: str = "•"
) -> None:
    """Print a styled message with a prefix."""
    console.print(f"[{style}]{prefix} {text}[/{style}]")


def print_success(message: str) -> None:
    print_message(message, NordColors.GREEN, "✓")


def print_warning(message: str) -> None:
    print_message(message, NordColors.YELLOW, "⚠")


def print_error(message: str) -> None:
    print_message(message, NordColors.RED, "✗")


def display_panel(
    message: str, style: str = NordColors.FROST_2, title: Optional[str] = None
) -> None:
    """Display a styled panel with a message."""
    panel = Panel(
        Text.from_markup(f"[{style}]{message}[/]"),
        border_style=f"{style}",
        padding=(1, 2),
        title=f"[bold {style}]{title}[/]" if title else None,
        box=box.ROUNDED,
    )
    console.print(panel)


def print_status_report() -> None:
    """Print a status report table for all setup phases."""
    table = Table(title="Setup Status Report", style="banner", box=box.ROUNDED)
    table.add_column("Task", style="header")
    table.add_column("Status", style="info")
    table.add_column("Message", style="info")

    for key, data in SETUP_STATUS.items():
        status_color = {
            "pending": "debug",
            "skipped": "debug",
            "in_progress": "warning",
            "success": "success",
            "failed": "error",
        }.get(data["status"].lower(), "info")

        table.add_row(
            key.replace("_", " ").title(),
            f"[{status_color}]{data['status'].upper()}[/{status_color}]",
            data["message"],
        )

    console.print(
        Panel(
            table,
            title="[banner]Crypto Analyzer Setup Status[/banner]",
            border_style=NordColors.FROST_3,
            box=box.ROUNDED,
        )
    )
