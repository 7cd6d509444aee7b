from __future__ import annotations

from pathlib import Path

import pytest

from lnk.errors import FilesystemOperationError
from lnk.manifest import Manifest, canonical, render


def test_canonical_sorts_and_deduplicates() -> None:
    assert canonical(["b", "a", "b", "", "  ", "c "]) == ["a", "b", "c"]


def test_render_empty_and_populated() -> None:
    assert render([]) == ""
    assert render(["b", "a"]) == "a\nb\n"


def test_load_missing_manifest_is_empty(tmp_path: Path) -> None:
    manifest = Manifest.load(tmp_path / ".lnk")

    assert manifest.entries() == []
    assert len(manifest) == 0


def test_load_tolerates_blank_lines_and_keeps_order(tmp_path: Path) -> None:
    path = tmp_path / ".lnk"
    path.write_text(".zshrc\n\n.bashrc\n   \n")

    manifest = Manifest.load(path)

    assert manifest.entries() == [".zshrc", ".bashrc"]


def test_save_writes_canonical_form(tmp_path: Path) -> None:
    path = tmp_path / ".lnk"
    path.write_text(".zshrc\n.bashrc\n.zshrc\n")

    manifest = Manifest.load(path)
    manifest.save()

    assert path.read_text() == ".bashrc\n.zshrc\n"
    assert not list(tmp_path.glob(".lnk.*.tmp"))


def test_add_and_remove(tmp_path: Path) -> None:
    manifest = Manifest(tmp_path / ".lnk")

    assert manifest.add(".vimrc") is True
    assert manifest.add(".vimrc") is False
    assert manifest.contains(".vimrc")
    assert manifest.remove(".vimrc") is True
    assert manifest.remove(".vimrc") is False


def test_save_empty_manifest_is_zero_bytes(tmp_path: Path) -> None:
    path = tmp_path / ".lnk"
    manifest = Manifest(path, [".vimrc"])
    manifest.save()
    manifest.remove(".vimrc")
    manifest.save()

    assert path.exists()
    assert path.read_bytes() == b""


def test_save_round_trips(tmp_path: Path) -> None:
    path = tmp_path / ".lnk.work"
    Manifest(path, [".ssh/config", ".gitconfig"]).save()

    assert list(Manifest.load(path)) == [".gitconfig", ".ssh/config"]


def test_save_failure_leaves_original(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / ".lnk"
    path.write_text(".bashrc\n")

    def fail_replace(*_args: object, **_kwargs: object) -> None:
        raise OSError(28, "No space left on device")

    monkeypatch.setattr("lnk.manifest.os.replace", fail_replace)
    manifest = Manifest.load(path)
    manifest.add(".zshrc")

    with pytest.raises(FilesystemOperationError):
        manifest.save()

    assert path.read_text() == ".bashrc\n"
    assert not list(tmp_path.glob(".lnk.*.tmp"))
