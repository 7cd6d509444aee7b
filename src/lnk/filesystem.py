"""Filesystem helpers for lnk."""

from __future__ import annotations

import errno
import logging
import os
import shutil
import stat
from pathlib import Path
from typing import Iterator

from .errors import FileNotFoundLnkError, FilesystemOperationError, NotManagedError, UnsupportedTypeError
from .models import EntryKind

logger = logging.getLogger(__name__)

DIRECTORY_MODE = 0o755


def ensure_parent(path: Path) -> None:
    """Ensure the parent directory exists."""

    try:
        path.parent.mkdir(mode=DIRECTORY_MODE, parents=True, exist_ok=True)
    except OSError as exc:
        raise FilesystemOperationError("create directory", path=str(path.parent), detail=exc.strerror) from exc


def lexists(path: Path) -> bool:
    return path.exists() or path.is_symlink()


def detect_kind(path: Path) -> EntryKind:
    """Determine the ``EntryKind`` for ``path``, following symlinks."""

    try:
        mode = path.stat().st_mode
    except FileNotFoundError as exc:
        raise FileNotFoundLnkError(path=str(path)) from exc
    except OSError as exc:
        raise FilesystemOperationError("stat", path=str(path), detail=exc.strerror) from exc

    if stat.S_ISDIR(mode):
        return EntryKind.DIRECTORY
    if stat.S_ISREG(mode):
        return EntryKind.FILE
    raise UnsupportedTypeError(path=str(path), suggestion="lnk can only manage regular files and directories")


def validate_for_add(path: Path) -> EntryKind:
    """Check that ``path`` exists and is a regular file or directory."""

    return detect_kind(path)


def validate_for_release(path: Path, repo_root: Path) -> Path:
    """Check that ``path`` is a symlink into ``repo_root`` and return its absolute target."""

    if not lexists(path):
        raise FileNotFoundLnkError(path=str(path))
    if not path.is_symlink():
        raise NotManagedError(path=str(path), suggestion="use 'lnk add' to manage this file first")

    target = read_link_absolute(path)
    root = Path(os.path.normpath(repo_root))
    if target != root and root not in target.parents:
        raise NotManagedError(path=str(path), suggestion="use 'lnk add' to manage this file first")
    return target


def read_link_absolute(link: Path) -> Path:
    """Return the target of ``link`` as an absolute, lexically normalised path."""

    try:
        raw = os.readlink(link)
    except OSError as exc:
        raise FilesystemOperationError("read symlink", path=str(link), detail=exc.strerror) from exc
    if not os.path.isabs(raw):
        raw = os.path.join(os.path.dirname(os.path.abspath(link)), raw)
    return Path(os.path.normpath(raw))


def move(source: Path, destination: Path) -> None:
    """Move ``source`` to ``destination``.

    Uses ``rename`` and falls back to copy-then-delete across devices. A
    repeated call after a completed move is a no-op: if only the destination
    exists nothing happens. An occupied destination is never replaced.
    """

    if not lexists(source) and lexists(destination):
        logger.debug("Move %s -> %s already complete", source, destination)
        return
    if lexists(destination):
        raise FilesystemOperationError("move", path=str(source), detail=f"destination exists: {destination}")

    ensure_parent(destination)
    try:
        os.rename(source, destination)
    except OSError as exc:
        if exc.errno != errno.EXDEV:
            raise FilesystemOperationError("move", path=str(source), detail=exc.strerror) from exc
        logger.debug("Cross-device move of %s, copying instead", source)
        _copy_then_remove(source, destination)
    else:
        logger.debug("Moved %s -> %s", source, destination)


def _copy_then_remove(source: Path, destination: Path) -> None:
    try:
        if source.is_dir() and not source.is_symlink():
            shutil.copytree(source, destination, symlinks=True, copy_function=shutil.copy2)
        else:
            shutil.copy2(source, destination, follow_symlinks=False)
    except OSError as exc:
        # Drop the partial copy so the source stays the only complete one.
        remove_path(destination)
        raise FilesystemOperationError("copy", path=str(source), detail=str(exc)) from exc
    remove_path(source)


def create_symlink(target: Path, link: Path) -> None:
    """Create ``link`` pointing at ``target`` through a relative path."""

    ensure_parent(link)
    relative_target = os.path.relpath(os.path.abspath(target), start=os.path.dirname(os.path.abspath(link)))
    try:
        link.symlink_to(relative_target)
    except OSError as exc:
        raise FilesystemOperationError("create symlink", path=str(link), detail=exc.strerror) from exc
    logger.debug("Linked %s -> %s", link, relative_target)


def is_valid_symlink(link: Path, expected_target: Path) -> bool:
    """Return ``True`` if ``link`` is a symlink whose target is ``expected_target``."""

    if not link.is_symlink():
        return False
    try:
        current = read_link_absolute(link)
    except FilesystemOperationError:
        return False
    return current == Path(os.path.normpath(os.path.abspath(expected_target)))


def ensure_symlink(link: Path, target: Path) -> bool:
    """Make ``link`` a relative symlink to ``target``, replacing whatever is there.

    Returns ``True`` if a change was made.
    """

    if is_valid_symlink(link, target):
        return False
    remove_path(link)
    create_symlink(target, link)
    return True


def walk_files(directory: Path) -> list[Path]:
    """Every regular file and symlink below ``directory``, sorted by full path."""

    return sorted(_iter_files(directory), key=lambda item: item.as_posix())


def _iter_files(directory: Path) -> Iterator[Path]:
    for dirpath, dirnames, filenames in os.walk(directory):
        base = Path(dirpath)
        for name in dirnames:
            candidate = base / name
            if candidate.is_symlink():
                yield candidate
        for name in filenames:
            candidate = base / name
            if candidate.is_symlink() or candidate.is_file():
                yield candidate


def remove_path(path: Path) -> None:
    """Delete ``path`` whether it is a file, directory, or symlink."""

    if not lexists(path):
        return
    try:
        if path.is_symlink() or not path.is_dir():
            path.unlink()
        else:
            shutil.rmtree(path)
    except OSError as exc:
        raise FilesystemOperationError("remove", path=str(path), detail=exc.strerror) from exc
