from __future__ import annotations

import enum
import signal
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from devloop.shared.exceptions import ConfigError

DEFAULT_DEBOUNCE = 0.2
DEFAULT_GRACE_PERIOD = 5.0

# Allow-list entry that admits files without any extension
NO_EXTENSION = ""


class WatchSpec(BaseModel):
    """
    What to watch and how eagerly to react.

    Roots are resolved to absolute directories when the model is created and
    must exist. Extensions are compared case-insensitively without the
    leading dot; ``""`` (or ``"."``) admits files that have no extension.

    Example:
        WatchSpec(roots=["src", "templates"], extensions="rs,html", debounce=0.2)
    """

    model_config = ConfigDict(frozen=True)

    roots: tuple[Path, ...]
    extensions: frozenset[str]
    debounce: float = DEFAULT_DEBOUNCE
    ignore_patterns: tuple[str, ...] = ()

    @field_validator("roots", mode="before")
    @classmethod
    def resolve_roots(cls, v: Any) -> tuple[Path, ...]:
        """Resolve roots to existing absolute directories, dropping duplicates."""
        if isinstance(v, (str, Path)):
            v = [v]
        if not v:
            raise ConfigError("At least one watch root is required")

        resolved: list[Path] = []
        for item in v:
            path = Path(item).expanduser().resolve()
            if not path.exists():
                raise ConfigError(f"Watch root does not exist: {item}")
            if not path.is_dir():
                raise ConfigError(f"Watch root is not a directory: {item}")
            if path not in resolved:
                resolved.append(path)
        return tuple(resolved)

    @field_validator("extensions", mode="before")
    @classmethod
    def normalize_extensions(cls, v: Any) -> frozenset[str]:
        """Lower-case extensions and strip leading dots."""
        if isinstance(v, str):
            # Empty pieces from "rs," are typos, not the no-extension marker
            v = [part for part in v.split(",") if part.strip()]
        if v is None:
            v = []

        normalized = frozenset(str(ext).strip().lstrip(".").lower() for ext in v)
        if not normalized:
            raise ConfigError("At least one file extension is required")
        return normalized

    @field_validator("debounce")
    @classmethod
    def check_debounce(cls, v: float) -> float:
        if v <= 0:
            raise ConfigError(f"Debounce window must be positive, got {v}")
        return v

    @field_validator("ignore_patterns", mode="before")
    @classmethod
    def normalize_ignore(cls, v: Any) -> tuple[str, ...]:
        if v is None:
            return ()
        if isinstance(v, str):
            v = v.split(",")
        return tuple(p.strip() for p in v if p and p.strip())


def parse_signal(value: str | int) -> int:
    """Turn ``"SIGINT"``, ``"int"``, ``"2"`` or ``2`` into a signal number."""
    if isinstance(value, int):
        try:
            return int(signal.Signals(value))
        except ValueError as e:
            raise ConfigError(f"Unknown signal number: {value}") from e

    name = value.strip().upper()
    if name.isdigit():
        return parse_signal(int(name))
    if not name.startswith("SIG"):
        name = f"SIG{name}"
    sig = getattr(signal.Signals, name, None)
    if sig is None:
        raise ConfigError(f"Unknown signal: {value}")
    return int(sig)


class RunSpec(BaseModel):
    """The command to supervise and how to stop it."""

    model_config = ConfigDict(frozen=True)

    command: tuple[str, ...]
    grace_period: float = DEFAULT_GRACE_PERIOD
    stop_signal: int = int(signal.SIGTERM)
    cwd: Path | None = None
    env: dict[str, str] | None = None

    @field_validator("command", mode="before")
    @classmethod
    def check_command(cls, v: Any) -> tuple[str, ...]:
        if isinstance(v, str):
            raise ConfigError("Command must be a sequence of arguments, not a string")
        if not v:
            raise ConfigError("A command to run is required")
        return tuple(str(arg) for arg in v)

    @field_validator("grace_period")
    @classmethod
    def check_grace_period(cls, v: float) -> float:
        if v <= 0:
            raise ConfigError(f"Grace period must be positive, got {v}")
        return v

    @field_validator("stop_signal", mode="before")
    @classmethod
    def convert_signal(cls, v: Any) -> int:
        return parse_signal(v)


class ChangeKind(str, enum.Enum):
    CREATED = "created"
    MODIFIED = "modified"
    REMOVED = "removed"
    RENAMED = "renamed"


@dataclass(frozen=True)
class ChangeEvent:
    """A single file system notification.

    For renames ``path`` is the destination and ``previous_path`` the source.
    """

    path: str
    kind: ChangeKind
    timestamp: float
    previous_path: str | None = None


@dataclass(frozen=True)
class RestartTrigger:
    """Raised once a debounce window closes without further changes."""

    raised_at: float
    coalesced: int = 1


class ProcessState(str, enum.Enum):
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    EXITED = "exited"


@dataclass(frozen=True)
class ExitStatus:
    """How a managed process ended."""

    returncode: int | None
    signal: int | None = None
    forced: bool = False

    @classmethod
    def from_returncode(cls, returncode: int, *, forced: bool = False) -> ExitStatus:
        """Build a status from a ``Popen.returncode`` (negative means signalled)."""
        if returncode < 0:
            return cls(returncode=None, signal=-returncode, forced=forced)
        return cls(returncode=returncode, signal=None, forced=forced)

    @property
    def success(self) -> bool:
        return self.returncode == 0

    def describe(self) -> str:
        if self.signal is not None:
            try:
                name = signal.Signals(self.signal).name
            except ValueError:
                name = str(self.signal)
            text = f"killed by {name}"
        else:
            text = f"exited with code {self.returncode}"
        if self.forced:
            text += " (forced)"
        return text
