"""reclaim errors - structured display of fatal startup errors."""

from typing import Dict, Optional

from rich.markup import escape
from rich.panel import Panel

from reclaim.exceptions import (
    ConfigurationError,
    PrivilegeError,
    ReclaimError,
    RegistryError,
    UnknownTaskError,
)

from .console import console
from .theme import PANEL_STYLES, SYMBOLS

ERROR_HINTS = {
    UnknownTaskError: ("Unknown Task", "Run `reclaim --list` to see valid task names."),
    PrivilegeError: ("Insufficient Privileges", "Re-run with sudo: `sudo reclaim ...`"),
    ConfigurationError: ("Invalid Configuration", "Check the config file and keep/remove inputs."),
    RegistryError: ("Invalid Task Catalog", "This is a bug in reclaim; please report it."),
}


def show_error(
    title: str,
    message: str,
    context: Optional[Dict[str, str]] = None,
    hint: Optional[str] = None,
) -> None:
    lines = [
        f"[error]{SYMBOLS['error']} FAILED:[/] [primary]{escape(title)}[/]",
        "",
        f"  [error]Error:[/] {escape(message)}",
    ]
    if context:
        lines.append("")
        for key, value in context.items():
            display_value = value if len(value) < 60 else value[:57] + "..."
            lines.append(f"  [secondary]{escape(key)}:[/] {escape(display_value)}")
    if hint:
        lines.append("")
        lines.append(f"  [command]{SYMBOLS['command']} {escape(hint)}[/]")
    console.rich_err.print(Panel("\n".join(lines), **PANEL_STYLES["error"]))


def show_exception(error: ReclaimError) -> None:
    """Render a startup error with the hint registered for its type."""
    title, hint = "Error", None
    for error_type, (error_title, error_hint) in ERROR_HINTS.items():
        if isinstance(error, error_type):
            title, hint = error_title, error_hint
            break
    show_error(title, str(error), hint=hint)
