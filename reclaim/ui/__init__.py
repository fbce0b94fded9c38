"""reclaim UI - themed terminal output and run reports."""

from .console import ReclaimConsole, console
from .errors import show_error, show_exception
from .report import (
    print_report,
    print_task_list,
    print_task_result,
    render_markdown,
    write_step_summary,
)
from .theme import COLORS, PANEL_STYLES, RECLAIM_THEME, STATUS_STYLES, SYMBOLS

__all__ = [
    "console", "ReclaimConsole", "COLORS", "SYMBOLS", "RECLAIM_THEME", "PANEL_STYLES", "STATUS_STYLES",
    "show_error", "show_exception",
    "print_report", "print_task_list", "print_task_result", "render_markdown", "write_step_summary",
]
