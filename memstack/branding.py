"""
Shared console and leveled status output for memstack commands.
"""

from rich.console import Console
from rich.panel import Panel

console = Console()

_LEVEL_STYLES = {
    "info": ("blue", "[INFO]"),
    "success": ("green", "[SUCCESS]"),
    "warning": ("yellow", "[WARN]"),
    "error": ("red", "[ERROR]"),
}


def cx_print(message: str, status: str = "info") -> None:
    """Print a single leveled status line.

    Args:
        message: Text to print.
        status: One of ``info``, ``success``, ``warning`` or ``error``.
    """
    style, tag = _LEVEL_STYLES.get(status, _LEVEL_STYLES["info"])
    console.print(f"[bold {style}]{tag}[/bold {style}] {message}", highlight=False)


def cx_header(title: str, subtitle: str = "") -> None:
    body = f"[bold]{title}[/bold]"
    if subtitle:
        body += f"\n[dim]{subtitle}[/dim]"
    console.print(Panel(body, expand=False, border_style="blue"))
