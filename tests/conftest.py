from __future__ import annotations

from pathlib import Path

import pytest
from git import Repo

from lnk.config import Settings
from lnk.manager import LnkManager


@pytest.fixture
def fake_home(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("USERPROFILE", str(home))
    monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test User")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test User")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "test@example.com")
    return home


@pytest.fixture
def lnk_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path, fake_home: Path) -> Settings:
    config_home = tmp_path / "xdg"
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_home))
    return Settings.from_env()


@pytest.fixture
def manager(lnk_env: Settings) -> LnkManager:
    return LnkManager(lnk_env)


@pytest.fixture
def initialized(manager: LnkManager) -> LnkManager:
    manager.init()
    return manager


@pytest.fixture
def bare_remote(tmp_path: Path) -> Path:
    remote = tmp_path / "remote.git"
    Repo.init(str(remote), bare=True, initial_branch="main")
    return remote
