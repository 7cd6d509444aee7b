"""Translation between user paths, home-relative names and repository storage."""

from __future__ import annotations

import os
from pathlib import Path, PurePosixPath

from .config import BOOTSTRAP_SCRIPT, COMMON_MANIFEST, HOST_STORAGE_SUFFIX, Settings, validate_host
from .errors import InvalidPathError
from .models import ManagedEntry


class PathResolver:
    """Maps between the home view and the repository layout for one host."""

    def __init__(self, settings: Settings, host: str = "") -> None:
        self.settings = settings
        self.host = validate_host(host)

    @property
    def home(self) -> Path:
        return self.settings.home

    @property
    def repo_root(self) -> Path:
        return self.settings.repo_root

    def for_host(self, host: str) -> "PathResolver":
        return PathResolver(self.settings, host)

    def storage_root(self) -> Path:
        """Directory that holds this host's payloads."""

        if not self.host:
            return self.repo_root
        return self.repo_root / f"{self.host}{HOST_STORAGE_SUFFIX}"

    def manifest_name(self) -> str:
        if not self.host:
            return COMMON_MANIFEST
        return f"{COMMON_MANIFEST}.{self.host}"

    def manifest_path(self) -> Path:
        return self.repo_root / self.manifest_name()

    def absolute(self, raw: str | os.PathLike[str]) -> Path:
        """Absolute, normalised form of ``raw`` without following the final symlink."""

        text = os.fspath(raw)
        if not text:
            raise InvalidPathError(path=text, suggestion="provide a file or directory path")
        try:
            return Path(os.path.abspath(os.path.expanduser(text)))
        except (OSError, ValueError) as exc:
            raise InvalidPathError(path=text) from exc

    def relative(self, absolute: Path) -> str:
        """Home-relative POSIX name for ``absolute``.

        Paths outside the home directory keep their absolute form with the
        leading separator stripped so they still nest under the repository.
        """

        absolute = Path(os.path.abspath(absolute))
        rel = os.path.relpath(absolute, self.home)
        if rel == ".." or rel.startswith(".." + os.sep):
            rel = absolute.as_posix().lstrip("/")
        elif rel == ".":
            raise InvalidPathError("Cannot manage the home directory itself", path=str(absolute))
        return PurePosixPath(rel).as_posix()

    def git_path(self, relative_path: str) -> str:
        """Path of a payload relative to the repository root, as Git sees it."""

        if not self.host:
            return relative_path
        return f"{self.host}{HOST_STORAGE_SUFFIX}/{relative_path}"

    def payload_location(self, relative_path: str) -> Path:
        return self.storage_root() / relative_path

    def symlink_location(self, relative_path: str) -> Path:
        return self.home / relative_path

    def entry(self, relative_path: str) -> ManagedEntry:
        return ManagedEntry(
            host=self.host,
            relative_path=relative_path,
            payload_location=self.payload_location(relative_path),
            symlink_location=self.symlink_location(relative_path),
        )


def is_safe_relative(relative_path: str) -> bool:
    """``True`` when ``relative_path`` stays inside its storage root."""

    if not relative_path:
        return False
    candidate = PurePosixPath(relative_path)
    if candidate.is_absolute():
        return False
    return ".." not in candidate.parts


def is_reserved(relative_path: str, host: str = "") -> bool:
    """``True`` when storing ``relative_path`` would collide with a file lnk owns.

    Git metadata, manifests and host storage directories live at the top of
    the repository, and so does ``bootstrap.sh`` for the common configuration.
    """

    parts = PurePosixPath(relative_path).parts
    if not parts:
        return False
    top = parts[0]
    if top == ".git" or top == COMMON_MANIFEST or top.startswith(f"{COMMON_MANIFEST}."):
        return True
    if top.endswith(HOST_STORAGE_SUFFIX):
        return True
    return not host and relative_path == BOOTSTRAP_SCRIPT
