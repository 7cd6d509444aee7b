from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from lnk.cli import app
from lnk.config import Settings

runner = CliRunner()


@pytest.fixture
def repo(lnk_env: Settings) -> Settings:
    result = runner.invoke(app, ["init"])
    assert result.exit_code == 0
    return lnk_env


def test_cli_version() -> None:
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert result.stdout.startswith("lnk ")


def test_cli_init_reports_creation(lnk_env: Settings) -> None:
    result = runner.invoke(app, ["init"])
    assert result.exit_code == 0
    assert "Initialized empty lnk repository" in result.stdout

    again = runner.invoke(app, ["init"])
    assert again.exit_code == 0
    assert "already initialized" in again.stdout


def test_cli_requires_init(lnk_env: Settings, fake_home: Path) -> None:
    (fake_home / ".bashrc").write_text("x\n")

    result = runner.invoke(app, ["add", str(fake_home / ".bashrc")])

    assert result.exit_code == 1
    assert "not initialized" in result.stdout
    assert "lnk init" in result.stdout


def test_cli_add_list_rm_flow(repo: Settings, fake_home: Path) -> None:
    bashrc = fake_home / ".bashrc"
    bashrc.write_text("alias g=git\n")

    add_result = runner.invoke(app, ["add", str(bashrc)])
    assert add_result.exit_code == 0
    assert "Added" in add_result.stdout
    assert bashrc.is_symlink()

    list_result = runner.invoke(app, ["list"])
    assert list_result.exit_code == 0
    assert ".bashrc" in list_result.stdout

    rm_result = runner.invoke(app, ["rm", str(bashrc)])
    assert rm_result.exit_code == 0
    assert "Removed" in rm_result.stdout
    assert not bashrc.is_symlink()
    assert bashrc.read_text() == "alias g=git\n"


def test_cli_add_dry_run(repo: Settings, fake_home: Path) -> None:
    vimrc = fake_home / ".vimrc"
    vimrc.write_text("set nu\n")

    result = runner.invoke(app, ["add", "--dry-run", str(vimrc)])

    assert result.exit_code == 0
    assert "Would add 1 file" in result.stdout
    assert not vimrc.is_symlink()


def test_cli_add_recursive(repo: Settings, fake_home: Path) -> None:
    directory = fake_home / ".config" / "tmux"
    directory.mkdir(parents=True)
    (directory / "tmux.conf").write_text("set -g mouse on\n")
    (directory / "theme.conf").write_text("\n")

    result = runner.invoke(app, ["add", "--recursive", str(directory)])

    assert result.exit_code == 0
    assert "Added 2 items" in result.stdout
    assert (directory / "tmux.conf").is_symlink()


def test_cli_host_and_list_all(repo: Settings, fake_home: Path) -> None:
    (fake_home / ".bashrc").write_text("x\n")
    (fake_home / ".gitconfig").write_text("y\n")
    assert runner.invoke(app, ["add", str(fake_home / ".bashrc")]).exit_code == 0
    host_add = runner.invoke(app, ["add", "--host", "work", str(fake_home / ".gitconfig")])
    assert host_add.exit_code == 0
    assert "(host: work)" in host_add.stdout

    host_result = runner.invoke(app, ["list", "--host", "work"])
    assert ".gitconfig" in host_result.stdout
    assert ".bashrc" not in host_result.stdout

    all_result = runner.invoke(app, ["list", "--all"])
    assert all_result.exit_code == 0
    assert "common" in all_result.stdout
    assert "host: work" in all_result.stdout


def test_cli_rejects_invalid_host(repo: Settings) -> None:
    result = runner.invoke(app, ["list", "--host", "../etc"])

    assert result.exit_code == 1
    assert "Invalid host name" in result.stdout


def test_cli_rm_unmanaged(repo: Settings, fake_home: Path) -> None:
    (fake_home / ".profile").write_text("x\n")

    result = runner.invoke(app, ["rm", str(fake_home / ".profile")])

    assert result.exit_code == 1
    assert "not managed" in result.stdout


def test_cli_status_without_remote(repo: Settings) -> None:
    result = runner.invoke(app, ["status"])

    assert result.exit_code == 1
    assert "No remote repository is configured" in result.stdout


def test_cli_doctor_dry_run_exit_code(repo: Settings, fake_home: Path) -> None:
    (fake_home / ".bashrc").write_text("x\n")
    runner.invoke(app, ["add", str(fake_home / ".bashrc")])
    (repo.repo_root / ".bashrc").unlink()

    dry = runner.invoke(app, ["doctor", "--dry-run"])
    assert dry.exit_code == 1
    assert "Found 1 issue" in dry.stdout

    fix = runner.invoke(app, ["doctor"])
    assert fix.exit_code == 0
    assert "Fixed 1 issue" in fix.stdout

    clean = runner.invoke(app, ["doctor", "--dry-run"])
    assert clean.exit_code == 0
    assert "healthy" in clean.stdout


def test_cli_bootstrap_exit_code(repo: Settings) -> None:
    (repo.repo_root / "bootstrap.sh").write_text("#!/bin/sh\nexit 4\n")

    result = runner.invoke(app, ["bootstrap"])

    assert result.exit_code == 4
    assert "Bootstrap script exited with status 4" in result.stdout


def test_cli_bootstrap_missing(repo: Settings) -> None:
    result = runner.invoke(app, ["bootstrap"])

    assert result.exit_code == 0
    assert "No bootstrap script found" in result.stdout


def test_cli_diff_clean(repo: Settings) -> None:
    result = runner.invoke(app, ["diff"])

    assert result.exit_code == 0
    assert "No uncommitted changes" in result.stdout
