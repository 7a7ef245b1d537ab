from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable
logger = logging.getLogger(__name__)


@dataclass
class Hint:
    """Structured hint for operator guidance.

    Attributes:
        title: Short title describing the hint.
        message: Main explanatory message.
        tips: Optional list of short actionable tips.
        command_examples: Optional list of command examples to show.
        code: Optional machine-readable code (e.g., "WATCH_ROOT_MISSING").
    """

    title: str
    message: str
    tips: list[str] | None = None
    command_examples: list[str] | None = None
    code: str | None = None


INVALID_CONFIG = Hint(
    title="Invalid configuration",
    message="The watch configuration could not be used.",
    tips=[
        "Check that every --watch path exists and is a directory",
        "Pass at least one extension with --exts (e.g. --exts rs,html)",
        "Debounce and grace period must be positive",
    ],
    command_examples=["devloop run --watch src --exts rs -- cargo run"],
    code="INVALID_CONFIG",
)

WATCH_FAILED = Hint(
    title="File watching failed",
    message="The operating system refused or dropped a file watch.",
    tips=[
        "Make sure the watched directories still exist",
        "On Linux, raise fs.inotify.max_user_watches if many files are watched",
    ],
    code="WATCH_FAILED",
)

SPAWN_FAILED = Hint(
    title="Command could not be started",
    message="The executable was not found or is not runnable.",
    tips=[
        "Check that the command is on PATH",
        "Check file permissions of the executable",
        "devloop keeps watching; fix the problem and save a file to retry",
    ],
    code="SPAWN_FAILED",
)


def render_hints(hints: Iterable[Hint] | None, *, design: Any | None = None) -> None:
    """Render a collection of hints using the console design system.

    If no design is given, the shared ``dev_console`` is used.
    """
    if not hints:
        return

    if design is None:
        from devloop.utils.console import dev_console  # lazy import

        design = dev_console

    for hint in hints:
        try:
            # Compact rendering - skip title if same as message
            if hint.title and hint.title != hint.message:
                design.warning(f"{hint.title}: {hint.message}")
            else:
                design.warning(hint.message)

            if hint.tips:
                for tip in hint.tips:
                    design.info(f"  • {tip}")

            if hint.command_examples:
                for cmd in hint.command_examples:
                    design.command_example(cmd)
        except Exception:
            logger.warning("Failed to render hint: %s", hint)
            continue
