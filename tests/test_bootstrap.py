from __future__ import annotations

from pathlib import Path

import pytest

from lnk.bootstrap import find_script, run_script
from lnk.errors import BootstrapError
from lnk.manager import LnkManager


def _script(repo_root: Path, body: str) -> Path:
    script = repo_root / "bootstrap.sh"
    script.write_text("#!/bin/sh\n" + body)
    return script


def test_find_script(tmp_path: Path) -> None:
    assert find_script(tmp_path) is None

    script = _script(tmp_path, "true\n")

    assert find_script(tmp_path) == script


def test_run_bootstrap_without_script(initialized: LnkManager) -> None:
    assert initialized.find_bootstrap() is None
    assert initialized.run_bootstrap() is False


def test_run_bootstrap_runs_in_repository(initialized: LnkManager) -> None:
    _script(initialized.repo_root, "echo ran > marker\n")

    assert initialized.run_bootstrap() is True
    assert (initialized.repo_root / "marker").read_text() == "ran\n"


def test_run_script_streams_output(tmp_path: Path) -> None:
    script = _script(tmp_path, "echo hello from bootstrap\n")
    output = tmp_path / "output.log"

    with output.open("w") as handle:
        run_script(script, cwd=tmp_path, stdout=handle)

    assert output.read_text() == "hello from bootstrap\n"
    assert script.stat().st_mode & 0o111


def test_run_script_failure_carries_exit_code(tmp_path: Path) -> None:
    script = _script(tmp_path, "exit 3\n")

    with pytest.raises(BootstrapError) as excinfo:
        run_script(script, cwd=tmp_path)

    assert excinfo.value.returncode == 3
