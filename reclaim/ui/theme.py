"""
reclaim UI theme - color constants and per-status styling.
"""

from rich.style import Style
from rich.theme import Theme

COLORS = {
    "success": "#22c55e",
    "error": "#ef4444",
    "warning": "#eab308",
    "info": "#3b82f6",
    "command": "#06b6d4",
    "secondary": "#6b7280",
    "primary": "#ffffff",
    "accent": "#8b5cf6",
    "panel_border": "#4b5563",
    "highlight": "#fbbf24",
    "muted": "#9ca3af",
}

SYMBOLS = {
    "success": "✓",
    "error": "✗",
    "warning": "⚠",
    "info": "●",
    "command": "→",
    "kept": "○",
}

RECLAIM_THEME = Theme({
    "success": Style(color=COLORS["success"], bold=True),
    "error": Style(color=COLORS["error"], bold=True),
    "warning": Style(color=COLORS["warning"], bold=True),
    "info": Style(color=COLORS["info"]),
    "command": Style(color=COLORS["command"], dim=True),
    "secondary": Style(color=COLORS["secondary"], dim=True),
    "primary": Style(color=COLORS["primary"]),
    "accent": Style(color=COLORS["accent"], bold=True),
    "highlight": Style(color=COLORS["highlight"], bold=True),
    "muted": Style(color=COLORS["muted"]),
    "panel_border": Style(color=COLORS["panel_border"]),
    "success_symbol": Style(color=COLORS["success"]),
    "error_symbol": Style(color=COLORS["error"]),
    "warning_symbol": Style(color=COLORS["warning"]),
    "info_symbol": Style(color=COLORS["info"]),
})

# TaskStatus.name -> (symbol key, style)
STATUS_STYLES = {
    "REMOVED": ("success", "success"),
    "SKIPPED_KEPT": ("kept", "secondary"),
    "ALREADY_ABSENT": ("info", "info"),
    "FAILED_UNEXPECTED": ("error", "error"),
    "PLANNED": ("command", "command"),
}

PANEL_STYLES = {
    "error": {"border_style": "error", "title_align": "left", "padding": (1, 2)},
}
