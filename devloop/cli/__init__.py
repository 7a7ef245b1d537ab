"""devloop CLI - restart a command whenever watched sources change."""

from __future__ import annotations

import logging
import sys

import typer
from rich.console import Console

from devloop.config import load_specs
from devloop.loop import SupervisorLoop
from devloop.settings import get_settings
from devloop.shared.exceptions import ConfigError, WatchError
from devloop.utils.console import dev_console

app = typer.Typer(
    name="devloop",
    help="👀 Watch source trees and restart a command when they change",
    add_completion=False,
    rich_markup_mode="rich",
    pretty_exceptions_enable=False,
)

console = Console()


def configure_logging(verbose: bool) -> None:
    """Library logs go to stderr; only warnings unless verbose."""
    if verbose:
        logging.basicConfig(
            stream=sys.stderr,
            level=logging.DEBUG,
            format="[%(levelname)s] %(name)s: %(message)s",
            force=True,
        )
    else:
        logging.basicConfig(
            stream=sys.stderr, level=logging.WARNING, format="%(message)s", force=True
        )
    dev_console.set_verbose(verbose)


@app.command()
def run(
    command: list[str] = typer.Argument(  # type: ignore[arg-type]  # noqa: B008
        None,
        help="Command to run and restart, given after '--' (e.g. -- cargo run)",
    ),
    watch: list[str] = typer.Option(  # noqa: B008
        None,
        "--watch",
        "-w",
        help="Directory to watch, repeatable (default: current directory)",
    ),
    exts: list[str] = typer.Option(  # noqa: B008
        None,
        "--exts",
        "-e",
        help="File extensions that trigger a restart, comma separated or repeated",
    ),
    debounce: int | None = typer.Option(
        None,
        "--debounce",
        "-d",
        help="Quiet period in milliseconds before restarting (default: 200)",
    ),
    grace: float | None = typer.Option(
        None,
        "--grace",
        help="Seconds to wait for a graceful exit before killing (default: 5)",
    ),
    stop_signal: str | None = typer.Option(
        None,
        "--signal",
        "-s",
        help="Signal used to stop the process group (default: SIGTERM)",
    ),
    ignore: list[str] = typer.Option(  # noqa: B008
        None,
        "--ignore",
        "-i",
        help="Extra path component pattern to ignore, repeatable",
    ),
    no_default_ignore: bool = typer.Option(
        False,
        "--no-default-ignore",
        help="Do not ignore VCS and cache directories",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show detailed logs"),
) -> None:
    """🔁 Run a command and restart it whenever watched files change.

    Examples:
        devloop run -w src -w templates -w static -e rs,html,css,js -- cargo run
        devloop run -e py -- python -m myapp
        devloop run -e go --grace 2 --signal INT -- go run .
    """
    configure_logging(verbose)

    if not command:
        dev_console.error("No command given")
        dev_console.hint("Put the command after '--', e.g. devloop run -e rs -- cargo run")
        raise typer.Exit(1)

    settings = get_settings()
    try:
        watch_spec, run_spec = load_specs(
            command,
            watch=watch,
            exts=exts,
            debounce_ms=debounce,
            grace_period=grace,
            stop_signal=stop_signal,
            ignore=ignore,
            use_default_ignore=not no_default_ignore,
            settings=settings,
        )
    except ConfigError as e:
        dev_console.render_exception(e)
        raise typer.Exit(1) from None

    loop = SupervisorLoop(watch_spec, run_spec, poll_interval=settings.poll_interval)
    try:
        exit_code = loop.run()
    except WatchError as e:
        dev_console.render_exception(e)
        raise typer.Exit(1) from None
    raise typer.Exit(exit_code)


@app.command()
def version() -> None:
    """Show devloop version."""
    from devloop import __version__

    console.print(f"devloop version: [cyan]{__version__}[/cyan]")


def main() -> None:
    """Main entry point for the CLI."""
    if "--version" in sys.argv:
        from devloop import __version__

        console.print(f"devloop version: [cyan]{__version__}[/cyan]")
        return
    app()


if __name__ == "__main__":
    main()
