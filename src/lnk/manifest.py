"""Manifest persistence for lnk.

A manifest is a plaintext file at the repository root (``.lnk`` for the
common configuration, ``.lnk.<host>`` per host) holding one home-relative
POSIX path per line, sorted, unique and newline-terminated.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Iterable, Iterator

from .errors import FilesystemOperationError

logger = logging.getLogger(__name__)

ENCODING = "utf-8"


def canonical(entries: Iterable[str]) -> list[str]:
    """Sorted, de-duplicated, blank-free form of ``entries``."""

    return sorted({entry.strip() for entry in entries if entry.strip()})


def render(entries: Iterable[str]) -> str:
    items = canonical(entries)
    if not items:
        return ""
    return "\n".join(items) + "\n"


class Manifest:
    """Tracks the relative paths managed under one configuration."""

    def __init__(self, path: Path, entries: Iterable[str] | None = None) -> None:
        self.path = path
        self._entries: list[str] = canonical(entries or [])

    @classmethod
    def load(cls, path: Path) -> "Manifest":
        if not path.exists():
            return cls(path, [])

        try:
            text = path.read_text(encoding=ENCODING)
        except OSError as exc:
            raise FilesystemOperationError("read manifest", path=str(path), detail=exc.strerror) from exc

        # Keep file order here; canonical form is only enforced on write.
        manifest = cls(path)
        manifest._entries = [line.strip() for line in text.splitlines() if line.strip()]
        return manifest

    def save(self) -> None:
        """Write the canonical manifest atomically through a sibling temp file."""

        self._entries = canonical(self._entries)
        payload = render(self._entries)
        self.path.parent.mkdir(parents=True, exist_ok=True)

        fd, temp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent)
        temp_path = Path(temp_name)
        try:
            with os.fdopen(fd, "w", encoding=ENCODING, newline="\n") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.chmod(temp_path, 0o644)
            os.replace(temp_path, self.path)
        except OSError as exc:
            temp_path.unlink(missing_ok=True)
            raise FilesystemOperationError("write manifest", path=str(self.path), detail=exc.strerror) from exc
        logger.debug("Wrote %d entries to %s", len(self._entries), self.path)

    def contains(self, relative_path: str) -> bool:
        return relative_path in self._entries

    def add(self, relative_path: str) -> bool:
        """Record ``relative_path``; returns ``False`` if it was already present."""

        if self.contains(relative_path):
            return False
        self._entries.append(relative_path)
        self._entries = canonical(self._entries)
        return True

    def remove(self, relative_path: str) -> bool:
        """Drop every occurrence of ``relative_path``; returns ``True`` if any existed."""

        before = len(self._entries)
        self._entries = [entry for entry in self._entries if entry != relative_path]
        return len(self._entries) != before

    def replace(self, entries: Iterable[str]) -> None:
        self._entries = canonical(entries)

    def entries(self) -> list[str]:
        return list(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)
