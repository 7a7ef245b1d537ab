"""Decide which change notifications are worth a restart."""

from __future__ import annotations

import fnmatch
import os
from pathlib import PurePath
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from devloop.types import ChangeEvent, WatchSpec


def extension_of(path: str) -> str:
    """Return the lower-cased text after the last ``.`` of the file name.

    ``"main.RS"`` gives ``"rs"``, ``"Makefile"`` gives ``""``.
    """
    name = PurePath(path).name
    if "." not in name:
        return ""
    return name.rpartition(".")[2].lower()


class PathFilter:
    """Accept events under a watch root whose extension is allowed.

    Purely lexical: the event path is never touched on disk.
    """

    def __init__(
        self,
        roots: Iterable[str | PurePath],
        extensions: Iterable[str],
        ignore_patterns: Iterable[str] = (),
    ) -> None:
        self.roots = tuple(PurePath(os.path.normpath(root)) for root in roots)
        self.extensions = frozenset(ext.lstrip(".").lower() for ext in extensions)
        self.ignore_patterns = tuple(ignore_patterns)

    @classmethod
    def from_spec(cls, spec: WatchSpec) -> PathFilter:
        return cls(spec.roots, spec.extensions, spec.ignore_patterns)

    def __call__(self, event: ChangeEvent) -> bool:
        return self.accepts(event.path)

    def accepts(self, path: str) -> bool:
        candidate = PurePath(os.path.normpath(path))
        root = self._root_of(candidate)
        if root is None:
            return False
        if extension_of(path) not in self.extensions:
            return False
        return not self._is_ignored(candidate.relative_to(root))

    def _root_of(self, path: PurePath) -> PurePath | None:
        for root in self.roots:
            if path != root and path.is_relative_to(root):
                return root
        return None

    def _is_ignored(self, relative: PurePath) -> bool:
        if not self.ignore_patterns:
            return False
        for part in relative.parts:
            for pattern in self.ignore_patterns:
                if fnmatch.fnmatch(part, pattern):
                    return True
        return False
