from __future__ import annotations

from .supervisor import ManagedProcess, ProcessSupervisor

__all__ = [
    "ManagedProcess",
    "ProcessSupervisor",
]
