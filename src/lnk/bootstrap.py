"""Locate and execute the repository bootstrap script."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import IO

from .config import BOOTSTRAP_SCRIPT
from .errors import BootstrapError, FilesystemOperationError

logger = logging.getLogger(__name__)

SCRIPT_MODE = 0o755


def find_script(repo_root: Path) -> Path | None:
    """Return the bootstrap script path, or ``None`` if the repository has none."""

    candidate = repo_root / BOOTSTRAP_SCRIPT
    return candidate if candidate.is_file() else None


def _interpreter() -> str:
    return shutil.which("bash") or shutil.which("sh") or "/bin/sh"


def run_script(
    script: Path,
    *,
    cwd: Path,
    stdin: IO[bytes] | IO[str] | None = None,
    stdout: IO[bytes] | IO[str] | None = None,
    stderr: IO[bytes] | IO[str] | None = None,
) -> None:
    """Run ``script`` with a POSIX shell, inheriting the standard streams by default."""

    try:
        os.chmod(script, SCRIPT_MODE)
    except OSError as exc:
        raise FilesystemOperationError("make bootstrap script executable", path=str(script), detail=exc.strerror) from exc

    logger.debug("Running %s in %s", script, cwd)
    try:
        completed = subprocess.run(
            [_interpreter(), str(script)],
            cwd=cwd,
            stdin=stdin,
            stdout=stdout,
            stderr=stderr,
            check=False,
        )
    except OSError as exc:
        raise BootstrapError(path=script.name, suggestion=str(exc)) from exc

    if completed.returncode != 0:
        error = BootstrapError(f"Bootstrap script exited with status {completed.returncode}", path=script.name)
        error.returncode = completed.returncode
        raise error
