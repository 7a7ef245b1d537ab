"""Build validated specs from CLI options and settings."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import ValidationError

from devloop.settings import get_settings
from devloop.shared.exceptions import ConfigError
from devloop.types import RunSpec, WatchSpec

if TYPE_CHECKING:
    from collections.abc import Sequence

    from devloop.settings import Settings

logger = logging.getLogger(__name__)


def split_extensions(values: Sequence[str] | None) -> list[str]:
    """Flatten ``["rs,html", "css"]`` into ``["rs", "html", "css"]``.

    A lone ``"."`` survives as the no-extension marker.
    """
    result: list[str] = []
    for value in values or []:
        result.extend(part.strip() for part in value.split(",") if part.strip())
    return result


def _describe(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg', 'invalid value')}" if location else str(error)


def load_specs(
    command: Sequence[str] | None,
    *,
    watch: Sequence[str] | None = None,
    exts: Sequence[str] | None = None,
    debounce_ms: int | None = None,
    grace_period: float | None = None,
    stop_signal: str | None = None,
    ignore: Sequence[str] | None = None,
    use_default_ignore: bool = True,
    settings: Settings | None = None,
) -> tuple[WatchSpec, RunSpec]:
    """Merge options over settings and validate them.

    Raises:
        ConfigError: any value is missing or invalid.
    """
    settings = settings or get_settings()

    ignore_patterns = list(settings.ignore_patterns) if use_default_ignore else []
    ignore_patterns.extend(ignore or [])
    debounce = (debounce_ms if debounce_ms is not None else settings.debounce_ms) / 1000

    try:
        watch_spec = WatchSpec(
            roots=list(watch) if watch else ["."],
            extensions=split_extensions(exts),
            debounce=debounce,
            ignore_patterns=ignore_patterns,
        )
        run_spec = RunSpec(
            command=list(command or []),
            grace_period=grace_period if grace_period is not None else settings.grace_period,
            stop_signal=stop_signal or settings.stop_signal,
        )
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {_describe(e)}") from e

    logger.debug("Watch spec: %s", watch_spec)
    logger.debug("Run spec: %s", run_spec)
    return watch_spec, run_spec
