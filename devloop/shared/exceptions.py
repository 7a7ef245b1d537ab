"""devloop exception taxonomy.

Only ``ConfigError`` and an unrecoverable ``WatchError`` end the supervisor.
Everything else is reported and the supervisor keeps waiting for the next
change.

Example:
    try:
        supervisor.start(["cargo", "run"])
    except SpawnError as e:
        dev_console.render_exception(e)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, ClassVar

from devloop.shared.hints import INVALID_CONFIG, SPAWN_FAILED, WATCH_FAILED, Hint

if TYPE_CHECKING:
    from devloop.types import ExitStatus

logger = logging.getLogger(__name__)


class DevloopException(Exception):
    """Base exception class for all devloop errors."""

    # Subclasses can override this class attribute
    default_hints: ClassVar[list[Hint]] = []

    def __init__(self, message: str = "", *, hints: list[Hint] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.hints: list[Hint] = hints if hints is not None else list(self.default_hints)

    def __str__(self) -> str:
        return self.message or self.__class__.__name__


class ConfigError(DevloopException):
    """Invalid or missing configuration (watch roots, extensions, timings)."""

    default_hints: ClassVar[list[Hint]] = [INVALID_CONFIG]


class WatchError(DevloopException):
    """The file notification subsystem failed for one or more roots."""

    default_hints: ClassVar[list[Hint]] = [WATCH_FAILED]

    def __init__(
        self,
        message: str = "",
        *,
        root: str | None = None,
        fatal: bool = False,
        hints: list[Hint] | None = None,
    ) -> None:
        super().__init__(message, hints=hints)
        self.root = root
        self.fatal = fatal


class SpawnError(DevloopException):
    """The managed command could not be launched."""

    default_hints: ClassVar[list[Hint]] = [SPAWN_FAILED]

    def __init__(
        self, message: str = "", *, command: Any = None, hints: list[Hint] | None = None
    ) -> None:
        super().__init__(message, hints=hints)
        self.command = list(command) if command is not None else []


class ChildExitError(DevloopException):
    """A successfully spawned child exited with a failure status.

    Informational only: the supervisor itself stays alive.
    """

    def __init__(self, status: ExitStatus, *, command: Any = None) -> None:
        super().__init__(f"Process {status.describe()}", hints=[])
        self.status = status
        self.command = list(command) if command is not None else []


class TerminationTimeoutError(DevloopException):
    """A graceful stop did not finish within the grace period."""

    def __init__(self, pid: int, grace_period: float) -> None:
        super().__init__(
            f"Process {pid} did not exit within {grace_period:g}s, forcing", hints=[]
        )
        self.pid = pid
        self.grace_period = grace_period


class SupervisorClosedError(DevloopException):
    """A start was requested after shutdown began."""
