"""File system change notifications on top of watchdog."""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from devloop.shared.exceptions import WatchError
from devloop.types import ChangeEvent, ChangeKind

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from typing import Self

    from watchdog.observers.api import BaseObserver, ObservedWatch

logger = logging.getLogger(__name__)

_KINDS = {
    "created": ChangeKind.CREATED,
    "modified": ChangeKind.MODIFIED,
    "deleted": ChangeKind.REMOVED,
    "moved": ChangeKind.RENAMED,
}


def _fspath(value: Any) -> str:
    return os.fsdecode(value) if value else ""


class _EventForwarder(FileSystemEventHandler):
    """Converts watchdog events to ChangeEvents and hands them on."""

    def __init__(
        self, on_event: Callable[[ChangeEvent], None], clock: Callable[[], float]
    ) -> None:
        self.on_event = on_event
        self.clock = clock

    def on_any_event(self, event: FileSystemEvent) -> None:
        try:
            change = self.convert(event)
            if change is not None:
                self.on_event(change)
        except Exception:
            # One bad notification must not take the observer thread down
            logger.exception("Error handling file system event: %r", event)

    def convert(self, event: FileSystemEvent) -> ChangeEvent | None:
        if event.is_directory:
            return None
        kind = _KINDS.get(event.event_type)
        if kind is None:
            # opened/closed notifications
            return None

        src = _fspath(event.src_path)
        if kind is ChangeKind.RENAMED:
            dest = _fspath(getattr(event, "dest_path", ""))
            return ChangeEvent(
                path=dest or src, kind=kind, timestamp=self.clock(), previous_path=src
            )
        return ChangeEvent(path=src, kind=kind, timestamp=self.clock())


class ChangeEventSource:
    """
    Recursive watches over a set of root directories.

    Holds the OS watch handles between ``start()`` and ``stop()``; use it as a
    context manager to tie them to a block. Delivery is best-effort: a failing
    notification is logged and dropped.
    """

    def __init__(
        self,
        roots: Iterable[str | Path],
        on_event: Callable[[ChangeEvent], None],
        *,
        observer_factory: Callable[[], BaseObserver] = Observer,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.roots = [Path(root) for root in roots]
        self.on_event = on_event
        self._observer_factory = observer_factory
        self._handler = _EventForwarder(self._forward, clock)
        self._observer: BaseObserver | None = None
        self._watches: dict[Path, ObservedWatch] = {}
        self._enabled = False

    @property
    def is_running(self) -> bool:
        return self._observer is not None

    @property
    def active_roots(self) -> list[Path]:
        return list(self._watches)

    def start(self) -> None:
        """Acquire watch handles for every root.

        Raises:
            WatchError: if any root cannot be watched; nothing stays acquired.
        """
        if self._observer is not None:
            logger.warning("Change event source already running")
            return

        observer = self._observer_factory()
        try:
            for root in self.roots:
                if not root.is_dir():
                    raise WatchError(
                        f"Cannot watch {root}: not a directory", root=str(root), fatal=True
                    )
                self._watches[root] = observer.schedule(self._handler, str(root), recursive=True)
            observer.start()
        except WatchError:
            self._watches.clear()
            raise
        except Exception as e:
            self._watches.clear()
            raise WatchError(f"Failed to start file watching: {e}", fatal=True) from e

        self._observer = observer
        self._enabled = True
        logger.info("Watching %s", ", ".join(str(root) for root in self.roots))

    def disable(self) -> None:
        """Stop forwarding events without releasing the handles yet."""
        self._enabled = False

    def stop(self) -> None:
        """Release all watch handles. Safe to call more than once."""
        self._enabled = False
        observer, self._observer = self._observer, None
        self._watches.clear()
        if observer is None:
            return
        observer.stop()
        observer.join(timeout=5)
        logger.info("Stopped watching")

    def check_health(self) -> list[WatchError]:
        """Drop roots that disappeared and report them.

        Returns:
            One non-fatal WatchError per root that was dropped.

        Raises:
            WatchError: (fatal) when the observer died or no root is left.
        """
        if self._observer is None:
            return []

        dropped: list[WatchError] = []
        for root, watch in list(self._watches.items()):
            if root.is_dir():
                continue
            try:
                self._observer.unschedule(watch)
            except Exception as e:
                logger.debug("Unscheduling %s failed: %s", root, e)
            del self._watches[root]
            error = WatchError(f"Watch root disappeared, no longer watching {root}", root=str(root))
            logger.warning("%s", error)
            dropped.append(error)

        if not self._watches:
            raise WatchError("No watch roots remain", fatal=True)
        if not self._observer.is_alive():
            raise WatchError("File watcher thread stopped unexpectedly", fatal=True)
        return dropped

    def _forward(self, event: ChangeEvent) -> None:
        if self._enabled:
            self.on_event(event)

    def __enter__(self) -> Self:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()
