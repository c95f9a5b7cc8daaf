"""Console and JSON output for pycloudflow commands."""

import json
import threading
from typing import Any, Optional

from rich.console import Console


class OutputFormatter:
    """Writes progress lines either to the console or into a JSON document.

    The transfer executor calls :meth:`write_line` from several worker threads,
    so collected lines are guarded by a lock.
    """

    def __init__(
        self,
        json_output: bool = False,
        quiet: bool = False,
        console: Optional[Console] = None,
        err_console: Optional[Console] = None,
    ):
        self.json_output = json_output
        self.quiet = quiet
        self.console = console or Console(highlight=False)
        self.err_console = err_console or Console(stderr=True, highlight=False)
        self.lines: list[str] = []
        self._lock = threading.Lock()

    def write_line(self, text: str) -> None:
        """Record a progress line, one per decided action."""
        if self.json_output:
            with self._lock:
                self.lines.append(text)
            return
        if not self.quiet:
            self.console.print(text, markup=False)

    def print(self, text: str = "") -> None:
        if self.json_output or self.quiet:
            return
        self.console.print(text, markup=False)

    def info(self, message: str) -> None:
        if self.json_output:
            self.write_line(message)
        elif not self.quiet:
            self.console.print(message, markup=False)

    def success(self, message: str) -> None:
        if self.json_output:
            self.write_line(message)
        elif not self.quiet:
            self.console.print(f"[green]✓[/green] {message}")

    def warning(self, message: str) -> None:
        if self.json_output:
            self.write_line(message)
        else:
            self.err_console.print(f"[yellow]Warning:[/yellow] {message}")

    def error(self, message: str) -> None:
        if self.json_output:
            self.write_line(message)
        else:
            self.err_console.print(f"[red]Error:[/red] {message}")

    def output_json(self, data: Any) -> None:
        self.console.print_json(json.dumps(data))

    def flush_json(self, error: Optional[Exception] = None) -> None:
        """Print the collected lines, plus the error if there is one."""
        document: dict[str, Any] = {"lines": list(self.lines)}
        if error is not None:
            document["error"] = {
                "message": str(error),
                "code": getattr(error, "error_code", None),
            }
        self.output_json(document)
