"""reclaim console - themed console singleton with semantic message methods."""

from typing import Optional

from rich.console import Console as RichConsole

from .theme import RECLAIM_THEME, SYMBOLS


class ReclaimConsole:
    """Themed console with semantic message methods."""

    _instance: Optional["ReclaimConsole"] = None

    def __new__(cls) -> "ReclaimConsole":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._console = RichConsole(theme=RECLAIM_THEME, highlight=False)
            cls._instance._err_console = RichConsole(
                theme=RECLAIM_THEME, highlight=False, stderr=True
            )
        return cls._instance

    @property
    def rich(self) -> RichConsole:
        return self._console

    @property
    def rich_err(self) -> RichConsole:
        return self._err_console

    def print(self, *args, **kwargs) -> None:
        self._console.print(*args, **kwargs)

    def success(self, message: str) -> None:
        self._console.print(f"[success_symbol]{SYMBOLS['success']}[/] [success]{message}[/]")

    def error(self, message: str, details: Optional[str] = None) -> None:
        self._err_console.print(f"[error_symbol]{SYMBOLS['error']}[/] [error]{message}[/]")
        if details:
            self._err_console.print(f"  [secondary]{details}[/]")

    def info(self, message: str) -> None:
        self._console.print(f"[info_symbol]{SYMBOLS['info']}[/] [info]{message}[/]")

    def secondary(self, message: str) -> None:
        self._console.print(f"  [secondary]{message}[/]")

    def blank(self) -> None:
        self._console.print()

    def rule(self, title: str = "") -> None:
        self._console.rule(title, style="panel_border")


console = ReclaimConsole()
