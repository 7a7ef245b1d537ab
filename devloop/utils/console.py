"""devloop console design system - consistent styling for operator output.

All output goes to stderr by default so the supervised command keeps
exclusive use of stdout.

Color Palette:
- Gold: headers and the restart banner
- Muted Red: errors and failures
- Bright Black: secondary/dimmed information
"""

from __future__ import annotations

import logging
import traceback

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

GOLD = "rgb(192,150,12)"
RED = "rgb(220,50,47)"
DIM = "bright_black"
YELLOW = "yellow"
TEXT = "bright_white"
SECONDARY = "rgb(108,113,196)"


class DevConsole:
    """Design system for devloop CLI output."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        """Initialize the design system.

        Args:
            logger: Logger to check for log levels. If None, uses the root logger.
        """
        self._stdout_console = Console(stderr=False)
        self._stderr_console = Console(stderr=True)
        self._logger = logger or logging.getLogger()

    def _console(self, stderr: bool) -> Console:
        return self._stderr_console if stderr else self._stdout_console

    def header(self, title: str, icon: str = "👀", stderr: bool = True) -> None:
        """Print a header panel with gold border."""
        self._console(stderr).print(Panel.fit(f"{icon} [bold]{title}[/bold]", border_style=GOLD))

    def error(self, message: str, stderr: bool = True) -> None:
        """Print an error message, with the active traceback when there is one."""
        tb = traceback.format_exc()
        if "NoneType: None" not in tb and self._logger.isEnabledFor(logging.DEBUG):
            self._console(stderr).print(
                f"[{RED} not bold]❌ {escape(message)}\n{escape(tb)}[/{RED} not bold]"
            )
        else:
            self._console(stderr).print(f"[{RED} not bold]❌ {escape(message)}[/{RED} not bold]")

    def warning(self, message: str, stderr: bool = True) -> None:
        """Print a warning message."""
        self._console(stderr).print(f"⚠️  [{YELLOW} not bold]{escape(message)}[/{YELLOW} not bold]")

    def info(self, message: str, stderr: bool = True) -> None:
        """Print an info message."""
        self._console(stderr).print(f"[{TEXT} not bold]{escape(message)}[/{TEXT} not bold]")

    def dim_info(self, label: str, value: str, stderr: bool = True) -> None:
        """Print dimmed info with a label."""
        self._console(stderr).print(
            f"[{DIM} not bold]{escape(label)}[/{DIM} not bold] [default]{escape(value)}[/default]"
        )

    def progress_message(self, message: str, stderr: bool = True) -> None:
        """Print a progress message."""
        self._console(stderr).print(f"[{DIM}]{escape(message)}[/{DIM}]")

    def command(self, cmd: list[str], stderr: bool = True) -> None:
        """Print a command being executed."""
        self._console(stderr).print(f"[bold {TEXT}]$ {escape(' '.join(cmd))}[/bold {TEXT}]")

    def command_example(
        self, command: str, description: str | None = None, stderr: bool = True
    ) -> None:
        """Print a command example, optionally followed by a description."""
        if description:
            self._console(stderr).print(
                f"  [{SECONDARY}]{escape(command)}[/{SECONDARY}]  "
                f"[bright_black]# {escape(description)}[/bright_black]"
            )
        else:
            self._console(stderr).print(f"  [{SECONDARY}]{escape(command)}[/{SECONDARY}]")

    def hint(self, hint: str, stderr: bool = True) -> None:
        """Print a hint message."""
        self._console(stderr).print(f"[rgb(181,137,0)]💡 Hint: {escape(hint)}[/rgb(181,137,0)]")

    def key_value_table(
        self, data: dict[str, str | int | float], show_header: bool = False, stderr: bool = True
    ) -> None:
        """Print a key-value table."""
        table = Table(show_header=show_header, box=None, padding=(0, 1))
        table.add_column("Key", style=DIM, no_wrap=True)
        table.add_column("Value")

        for key, value in data.items():
            table.add_row(escape(key), escape(str(value)))

        self._console(stderr).print(table)

    def render_exception(self, error: BaseException, *, stderr: bool = True) -> None:
        """Render exceptions consistently.

        Shows the exception type and message, then any structured hints
        attached to the exception (see ``DevloopException.hints``).
        """
        ex_type = type(error).__name__
        message = getattr(error, "message", "") or str(error) or ex_type
        self.error(f"{ex_type}: {message}", stderr=stderr)

        hints = getattr(error, "hints", None)
        if hints:
            try:
                from devloop.shared.hints import render_hints  # lazy import

                render_hints(hints, design=self)
            except Exception as render_error:
                self.debug_log(f"Failed to render hints: {render_error}")

    def set_verbose(self, verbose: bool) -> None:
        """Show DEBUG output when verbose, only warnings otherwise."""
        self._logger.setLevel(logging.DEBUG if verbose else logging.WARNING)

    def debug_log(self, message: str, stderr: bool = True) -> None:
        """Print a debug message only if DEBUG logging is enabled."""
        if self._logger.isEnabledFor(logging.DEBUG):
            self.dim_info(message, "", stderr=stderr)


dev_console = DevConsole()
