"""File watching: change notifications, path filtering and debouncing."""

from __future__ import annotations

from .debounce import Debouncer, ManualScheduler, Scheduler, ThreadingScheduler, TriggerSlot
from .filter import PathFilter, extension_of
from .source import ChangeEventSource

__all__ = [
    "ChangeEventSource",
    "Debouncer",
    "ManualScheduler",
    "PathFilter",
    "Scheduler",
    "ThreadingScheduler",
    "TriggerSlot",
    "extension_of",
]
