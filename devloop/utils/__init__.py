from __future__ import annotations

from .console import DevConsole, dev_console

__all__ = [
    "DevConsole",
    "dev_console",
]
