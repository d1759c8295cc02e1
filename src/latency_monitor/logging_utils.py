from __future__ import annotations

import traceback
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel


@dataclass(slots=True)
class RichLogger:
    """Wrapper around Rich console logging with an optional persistent log file."""

    log_file: Optional[Path] = None
    console: Console = field(default_factory=Console)
    verbose: bool = False

    def log_text(self, message: str) -> None:
        self.console.print(message)
        self._write_line(message)

    def log_panel(self, message: str, title: str, style: str) -> None:
        panel = Panel(escape(message), border_style=style, title=title)
        self.console.print(panel)
        self._write_line(f"{title}: {message}")

    def info(self, message: str) -> None:
        self.log_panel(message, "INFO", "cyan")

    def warn(self, message: str) -> None:
        self.log_panel(message, "WARN", "yellow")

    def debug(self, message: str) -> None:
        if not self.verbose:
            return
        self.console.print(f"[dim]{escape(message)}[/dim]")
        self._write_line(f"DEBUG: {message}")

    def log_exception(self, error: BaseException, title: str = "ERROR") -> None:
        self.log_panel(str(error) or type(error).__name__, title, "red")
        tb = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        self._write_line(tb)

    def _write_line(self, message: str) -> None:
        if self.log_file is None:
            return
        timestamp = datetime.now().isoformat(timespec="seconds")
        with self.log_file.open("a", encoding="utf-8") as handle:
            handle.write(f"{timestamp} - {message}\n")
