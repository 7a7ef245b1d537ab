"""devloop.

Watch source trees and restart a long-running command when they change.
"""

from __future__ import annotations

from .loop import SupervisorLoop
from .process import ManagedProcess, ProcessSupervisor
from .types import ChangeEvent, ChangeKind, ExitStatus, RestartTrigger, RunSpec, WatchSpec

__all__ = [
    "ChangeEvent",
    "ChangeKind",
    "ExitStatus",
    "ManagedProcess",
    "ProcessSupervisor",
    "RestartTrigger",
    "RunSpec",
    "SupervisorLoop",
    "WatchSpec",
]

__version__ = "0.1.0"
