from __future__ import annotations

from pathlib import Path

import pytest

from lnk.config import Settings
from lnk.errors import NoRemoteError
from lnk.manager import LnkManager
from lnk.models import InitOutcome


def _machine(tmp_path: Path, name: str) -> LnkManager:
    home = tmp_path / name
    home.mkdir()
    return LnkManager(Settings(home=home, repo_root=home / ".config" / "lnk"))


@pytest.fixture
def first(tmp_path: Path, fake_home: Path, bare_remote: Path) -> LnkManager:
    manager = _machine(tmp_path, "first")
    manager.init()
    manager.add_remote(str(bare_remote))
    bashrc = manager.settings.home / ".bashrc"
    bashrc.write_text("export PS1='$ '\n")
    manager.add(bashrc)
    manager.push()
    return manager


def test_push_without_remote(initialized: LnkManager, fake_home: Path) -> None:
    (fake_home / ".bashrc").write_text("x\n")
    initialized.add(fake_home / ".bashrc")

    with pytest.raises(NoRemoteError):
        initialized.push()


def test_status_without_remote(initialized: LnkManager) -> None:
    with pytest.raises(NoRemoteError):
        initialized.status()


def test_push_reports_up_to_date(first: LnkManager, bare_remote: Path) -> None:
    status = first.status()

    assert status.up_to_date
    assert not status.dirty
    assert status.remote_url == str(bare_remote)


def test_clone_and_pull_restores_links(tmp_path: Path, first: LnkManager, bare_remote: Path) -> None:
    second = _machine(tmp_path, "second")

    assert second.init(remote_url=str(bare_remote)) is InitOutcome.CLONED
    restored = second.pull()

    link = second.settings.home / ".bashrc"
    assert restored == [".bashrc"]
    assert link.is_symlink()
    assert link.read_text() == "export PS1='$ '\n"


def test_push_commits_pending_edits(tmp_path: Path, first: LnkManager, bare_remote: Path) -> None:
    second = _machine(tmp_path, "second")
    second.init(remote_url=str(bare_remote))
    second.pull()

    (first.settings.home / ".bashrc").write_text("export PS1='# '\n")
    assert first.status().dirty
    assert first.push("tweak prompt") is True
    assert first.git.commits()[0] == "tweak prompt"
    assert first.push() is False

    second.git.repo.remotes.origin.fetch()
    assert second.status().behind == 1

    assert second.pull() == []
    assert (second.settings.home / ".bashrc").read_text() == "export PS1='# '\n"


def test_push_uses_default_message(first: LnkManager) -> None:
    (first.settings.home / ".bashrc").write_text("changed\n")

    first.push()

    assert first.git.commits()[0] == "lnk: sync configuration files"


def test_diff_shows_pending_changes(first: LnkManager) -> None:
    assert first.diff() == ""

    (first.settings.home / ".bashrc").write_text("changed\n")

    assert "changed" in first.diff()
