"""High level orchestration for lnk operations."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import IO, Callable, Iterable, Mapping, Sequence

from . import bootstrap as bootstrap_runner
from .config import COMMON_MANIFEST, CommandOptions, Settings
from .errors import (
    AlreadyManagedError,
    ExistingRepositoryError,
    GitOperationError,
    InvalidPathError,
    LnkError,
    ManagedFilesExistError,
    NotInitializedError,
    NotManagedError,
    NothingToAddError,
)
from .filesystem import (
    create_symlink,
    detect_kind,
    ensure_parent,
    ensure_symlink,
    is_valid_symlink,
    lexists,
    move,
    read_link_absolute,
    remove_path,
    validate_for_add,
    validate_for_release,
    walk_files,
)
from .git import GitBackend
from .manifest import Manifest
from .models import (
    AddCandidate,
    DoctorResult,
    HostListing,
    InitOutcome,
    ManagedEntry,
    SyncStatus,
)
from .paths import PathResolver, is_reserved, is_safe_relative
from .rollback import Rollback

logger = logging.getLogger(__name__)

DEFAULT_PUSH_MESSAGE = "lnk: sync configuration files"
PROGRESS_THRESHOLD = 10

ProgressCallback = Callable[[int, int, str], None]


def _plural(count: int, singular: str, plural: str) -> str:
    return singular if count == 1 else plural


def _prune_empty(directories: Sequence[Path]) -> None:
    """Remove directories created for a payload, deepest first, while they are empty."""

    for directory in directories:
        try:
            directory.rmdir()
        except OSError:
            return


class LnkManager:
    """Coordinates the manifest, the filesystem and Git for one host."""

    def __init__(self, settings: Settings, *, host: str = "", git: GitBackend | None = None) -> None:
        self.settings = settings
        self.paths = PathResolver(settings, host)
        self.git = git or GitBackend(settings.repo_root)

    @classmethod
    def from_options(
        cls,
        options: CommandOptions | None = None,
        *,
        environ: Mapping[str, str] | None = None,
    ) -> "LnkManager":
        options = options or CommandOptions()
        return cls(Settings.from_env(environ), host=options.host_label)

    @property
    def host(self) -> str:
        return self.paths.host

    @property
    def repo_root(self) -> Path:
        return self.settings.repo_root

    def manifest(self) -> Manifest:
        return Manifest.load(self.paths.manifest_path())

    def entry(self, relative_path: str) -> ManagedEntry:
        return self.paths.entry(relative_path)

    def _require_repository(self) -> None:
        if not self.git.is_repository():
            raise NotInitializedError(path=str(self.repo_root))

    # ------------------------------------------------------------------
    # Initialisation

    def has_user_content(self) -> bool:
        """``True`` when the repository already holds a manifest."""

        if (self.repo_root / COMMON_MANIFEST).exists():
            return True
        if self.host:
            return self.paths.manifest_path().exists()
        return any(self.repo_root.glob(f"{COMMON_MANIFEST}.*"))

    def init(self, *, remote_url: str | None = None, force: bool = False) -> InitOutcome:
        if remote_url:
            if self.has_user_content() and not force:
                raise ManagedFilesExistError(
                    path=str(self.repo_root),
                    suggestion="use 'lnk pull' to update from remote instead of 'lnk init -r'",
                )
            self.git.clone(remote_url)
            return InitOutcome.CLONED

        self.repo_root.mkdir(parents=True, exist_ok=True)
        if self.git.is_repository():
            if force or self.has_user_content() or self.git.is_lnk_repository():
                logger.debug("Repository at %s already initialised", self.repo_root)
                return InitOutcome.EXISTING
            raise ExistingRepositoryError(
                path=str(self.repo_root),
                suggestion="backup or move the existing repository before initializing lnk",
            )

        self.git.init()
        return InitOutcome.CREATED

    def add_remote(self, url: str, name: str = "origin") -> None:
        self._require_repository()
        self.git.add_remote(name, url)

    # ------------------------------------------------------------------
    # Adoption

    def add(self, path: str | os.PathLike[str]) -> ManagedEntry:
        """Adopt a single file or directory and commit it."""

        self._require_repository()
        manifest = self.manifest()
        candidate = self._prepare(path, manifest, pending=set())

        with Rollback() as rollback:
            self._guard_manifest(manifest, rollback)
            self._adopt(candidate, manifest, rollback)
            self._commit_adopted([candidate], f"lnk: added {Path(candidate.relative_path).name}", rollback)

        return self.entry(candidate.relative_path)

    def add_batch(
        self,
        paths: Sequence[str | os.PathLike[str]],
        *,
        recursive: bool = False,
        progress: ProgressCallback | None = None,
    ) -> list[ManagedEntry]:
        """Adopt every path in one commit; nothing changes unless all succeed."""

        self._require_repository()
        if not paths:
            return []

        manifest = self.manifest()
        candidates = self._prepare_all(paths, manifest)
        report = progress if progress is not None and len(candidates) > PROGRESS_THRESHOLD else None

        message = f"lnk: added {len(candidates)} files"
        if recursive:
            message += " recursively"

        with Rollback() as rollback:
            self._guard_manifest(manifest, rollback)
            for index, candidate in enumerate(candidates, start=1):
                if report is not None:
                    report(index, len(candidates), candidate.source.name)
                self._adopt(candidate, manifest, rollback)
            self._commit_adopted(candidates, message, rollback)

        return [self.entry(candidate.relative_path) for candidate in candidates]

    def add_recursive(
        self,
        paths: Sequence[str | os.PathLike[str]],
        *,
        progress: ProgressCallback | None = None,
    ) -> list[ManagedEntry]:
        """Adopt the files inside each directory individually."""

        self._require_repository()
        files = self._expand(paths, recursive=True)
        if not files:
            raise NothingToAddError(suggestion="the given directories contain no files")
        return self.add_batch(files, recursive=True, progress=progress)

    def add_paths(
        self,
        paths: Sequence[str | os.PathLike[str]],
        *,
        recursive: bool = False,
        progress: ProgressCallback | None = None,
    ) -> list[ManagedEntry]:
        """Dispatch to single, batch or recursive adoption."""

        if recursive:
            return self.add_recursive(paths, progress=progress)
        if len(paths) == 1:
            return [self.add(paths[0])]
        return self.add_batch(paths, progress=progress)

    def preview_add(self, paths: Sequence[str | os.PathLike[str]], *, recursive: bool = False) -> list[Path]:
        """Validate an add without side effects and return what would be adopted."""

        self._require_repository()
        files = self._expand(paths, recursive=recursive)
        if recursive and not files:
            raise NothingToAddError(suggestion="the given directories contain no files")
        candidates = self._prepare_all(files, self.manifest())
        return [candidate.source for candidate in candidates]

    def _expand(self, paths: Iterable[str | os.PathLike[str]], *, recursive: bool) -> list[Path]:
        expanded: list[Path] = []
        for raw in paths:
            absolute = self.paths.absolute(raw)
            if not (recursive and absolute.is_dir() and not absolute.is_symlink()):
                expanded.append(absolute)
                continue
            for candidate in walk_files(absolute):
                if candidate.is_symlink() and self._points_into_repo(candidate):
                    logger.debug("Skipping %s, already linked into the repository", candidate)
                    continue
                expanded.append(candidate)
        return expanded

    def _points_into_repo(self, link: Path) -> bool:
        target = read_link_absolute(link)
        root = Path(os.path.normpath(self.repo_root))
        return target == root or root in target.parents

    def _prepare_all(self, paths: Iterable[str | os.PathLike[str]], manifest: Manifest) -> list[AddCandidate]:
        pending: set[str] = set()
        candidates: list[AddCandidate] = []
        for raw in paths:
            candidate = self._prepare(raw, manifest, pending=pending)
            pending.add(candidate.relative_path)
            candidates.append(candidate)
        return candidates

    def _prepare(self, raw: str | os.PathLike[str], manifest: Manifest, *, pending: set[str]) -> AddCandidate:
        source = self.paths.absolute(raw)
        kind = validate_for_add(source)

        root = Path(os.path.normpath(self.repo_root))
        if source == root or root in source.parents:
            raise InvalidPathError("Cannot manage files inside the lnk repository", path=str(source))

        relative_path = self.paths.relative(source)
        if is_reserved(relative_path, self.host):
            raise InvalidPathError(
                "Path collides with a file lnk keeps in its repository",
                path=relative_path,
                suggestion="rename or move the file before adding it",
            )
        if manifest.contains(relative_path) or relative_path in pending:
            raise AlreadyManagedError(path=relative_path)

        payload_location = self.paths.payload_location(relative_path)
        if lexists(payload_location):
            raise InvalidPathError(
                "Repository already holds an unmanaged file at this location",
                path=str(payload_location),
                suggestion="run 'lnk doctor' or move the stray file out of the repository",
            )

        return AddCandidate(
            source=source,
            relative_path=relative_path,
            payload_location=payload_location,
            kind=kind,
        )

    def _guard_manifest(self, manifest: Manifest, rollback: Rollback) -> None:
        """Register a compensation that puts the manifest file back byte for byte."""

        path = manifest.path
        original = path.read_bytes() if path.exists() else None
        entries = manifest.entries()

        def restore() -> None:
            manifest.replace(entries)
            if original is None:
                path.unlink(missing_ok=True)
            else:
                path.write_bytes(original)

        rollback.push(f"restore {path.name}", restore)

    def _adopt(self, candidate: AddCandidate, manifest: Manifest, rollback: Rollback) -> None:
        source = candidate.source
        payload = candidate.payload_location

        created = [parent for parent in payload.parents if not parent.exists() and self.repo_root in parent.parents]
        ensure_parent(payload)
        rollback.push(f"prune directories for {payload}", lambda: _prune_empty(created))

        move(source, payload)
        rollback.push(f"move {payload} back to {source}", lambda: move(payload, source))

        create_symlink(payload, source)
        rollback.push(f"remove symlink {source}", lambda: source.unlink() if source.is_symlink() else None)

        manifest.add(candidate.relative_path)
        manifest.save()
        logger.debug("Adopted %s as %s", source, candidate.relative_path)

    @staticmethod
    def _forget(manifest: Manifest, relative_path: str) -> None:
        manifest.remove(relative_path)
        manifest.save()

    def _commit_adopted(self, candidates: Sequence[AddCandidate], message: str, rollback: Rollback) -> None:
        for candidate in candidates:
            git_path = self.paths.git_path(candidate.relative_path)
            self.git.add(git_path)
            rollback.push(f"unstage {git_path}", lambda git_path=git_path: self.git.unstage(git_path))

        manifest_name = self.paths.manifest_name()
        self.git.add(manifest_name)
        rollback.push(f"unstage {manifest_name}", lambda: self.git.unstage(manifest_name))

        self.git.commit(message)

    # ------------------------------------------------------------------
    # Release

    def remove(self, path: str | os.PathLike[str], *, force: bool = False) -> str:
        """Release a managed path, restoring the original in place.

        With ``force`` the symlink may already be gone; the entry is still
        dropped from the manifest and Git.
        """

        self._require_repository()
        absolute = self.paths.absolute(path)

        if force and not self._is_managed_link(absolute):
            return self._remove_forced(absolute)

        target = validate_for_release(absolute, self.repo_root)
        relative_path = self.paths.relative(absolute)
        manifest = self.manifest()
        if not manifest.contains(relative_path) and not force:
            raise NotManagedError(path=relative_path)

        detect_kind(target)
        git_path = self.paths.git_path(relative_path)
        manifest_name = self.paths.manifest_name()

        with Rollback() as rollback:
            absolute.unlink()
            rollback.push(f"relink {absolute}", lambda: create_symlink(target, absolute))

            self._forget(manifest, relative_path)
            rollback.push(f"re-add {relative_path}", lambda: self._remember(manifest, relative_path))

            self.git.remove(git_path)
            rollback.push(f"restage {git_path}", lambda: self.git.unstage(git_path))
            self.git.add(manifest_name)
            rollback.push(f"unstage {manifest_name}", lambda: self.git.unstage(manifest_name))

            self.git.commit(f"lnk: removed {Path(relative_path).name}")

        move(target, absolute)
        logger.debug("Released %s", relative_path)
        return relative_path

    @staticmethod
    def _remember(manifest: Manifest, relative_path: str) -> None:
        manifest.add(relative_path)
        manifest.save()

    def _is_managed_link(self, absolute: Path) -> bool:
        """A symlink into the repository whose payload is still present."""

        try:
            target = validate_for_release(absolute, self.repo_root)
        except LnkError:
            return False
        return lexists(target)

    def _remove_forced(self, absolute: Path) -> str:
        relative_path = self.paths.relative(absolute)
        manifest = self.manifest()
        payload = self.paths.payload_location(relative_path)
        if not manifest.contains(relative_path) and not lexists(payload):
            raise NotManagedError(path=relative_path)

        if absolute.is_symlink() and not absolute.exists():
            absolute.unlink()

        self._forget(manifest, relative_path)
        git_path = self.paths.git_path(relative_path)
        try:
            self.git.remove(git_path)
        except GitOperationError as exc:
            logger.debug("Payload %s was not tracked: %s", git_path, exc)
        self.git.add(self.paths.manifest_name())
        self.git.commit(f"lnk: force removed {Path(relative_path).name}")

        if lexists(payload):
            if lexists(absolute):
                remove_path(payload)
            else:
                move(payload, absolute)
        return relative_path

    # ------------------------------------------------------------------
    # Listing

    def list_entries(self) -> list[str]:
        self._require_repository()
        return self.manifest().entries()

    def hosts(self) -> list[str]:
        """Hosts that have a manifest at the repository root."""

        prefix = f"{COMMON_MANIFEST}."
        found = {
            path.name[len(prefix):]
            for path in self.repo_root.glob(f"{COMMON_MANIFEST}.*")
            if path.is_file() and path.name[len(prefix):]
        }
        return sorted(found)

    def list_all(self) -> list[HostListing]:
        self._require_repository()
        listings = [HostListing(host="", entries=tuple(self.manifest_for("").entries()))]
        for host in self.hosts():
            listings.append(HostListing(host=host, entries=tuple(self.manifest_for(host).entries())))
        return listings

    def manifest_for(self, host: str) -> Manifest:
        return Manifest.load(self.paths.for_host(host).manifest_path())

    # ------------------------------------------------------------------
    # Sync

    def restore(self) -> list[str]:
        """Point every manifest entry's home path at its payload again."""

        restored: list[str] = []
        for relative_path in self.manifest():
            if not is_safe_relative(relative_path):
                continue
            payload = self.paths.payload_location(relative_path)
            if not lexists(payload):
                logger.debug("Skipping %s, payload missing", relative_path)
                continue
            link = self.paths.symlink_location(relative_path)
            if ensure_symlink(link, payload):
                logger.debug("Restored symlink for %s", relative_path)
                restored.append(relative_path)
        return restored

    def status(self) -> SyncStatus:
        self._require_repository()
        return self.git.status()

    def diff(self, *, color: bool = False) -> str:
        self._require_repository()
        return self.git.diff(color=color)

    def push(self, message: str | None = None) -> bool:
        """Commit pending changes (if any) and push; returns whether a commit was made."""

        self._require_repository()
        committed = False
        if self.git.has_changes():
            self.git.add_all()
            self.git.commit(message or DEFAULT_PUSH_MESSAGE)
            committed = True
        self.git.push()
        return committed

    def pull(self) -> list[str]:
        self._require_repository()
        self.git.pull()
        return self.restore()

    # ------------------------------------------------------------------
    # Doctor

    def scan(self) -> DoctorResult:
        """Report invalid manifest entries and broken symlinks without changing anything."""

        self._require_repository()
        invalid: list[str] = []
        broken: list[str] = []
        for relative_path in self.manifest():
            if not is_safe_relative(relative_path):
                invalid.append(relative_path)
                continue
            payload = self.paths.payload_location(relative_path)
            if not lexists(payload):
                invalid.append(relative_path)
                continue
            if not is_valid_symlink(self.paths.symlink_location(relative_path), payload):
                broken.append(relative_path)
        return DoctorResult(invalid_entries=tuple(invalid), broken_symlinks=tuple(broken))

    def doctor(self, *, dry_run: bool = False) -> DoctorResult:
        result = self.scan()
        if dry_run or not result.has_issues:
            return result

        if result.broken_symlinks:
            self.restore()

        if result.invalid_entries:
            self._clean_invalid(result.invalid_entries)

        return DoctorResult(
            invalid_entries=result.invalid_entries,
            broken_symlinks=result.broken_symlinks,
            repaired=True,
        )

    def _clean_invalid(self, invalid: Sequence[str]) -> None:
        manifest = self.manifest()
        previous = manifest.entries()
        dropped = set(invalid)
        manifest_name = self.paths.manifest_name()

        with Rollback() as rollback:
            manifest.replace(entry for entry in previous if entry not in dropped)
            manifest.save()
            rollback.push(f"restore {manifest_name}", lambda: self._rewrite(manifest, previous))

            self.git.add(manifest_name)
            rollback.push(f"unstage {manifest_name}", lambda: self.git.unstage(manifest_name))

            count = len(invalid)
            self.git.commit(f"lnk: cleaned {count} invalid {_plural(count, 'entry', 'entries')}")

    @staticmethod
    def _rewrite(manifest: Manifest, entries: Sequence[str]) -> None:
        manifest.replace(entries)
        manifest.save()

    # ------------------------------------------------------------------
    # Bootstrap

    def find_bootstrap(self) -> Path | None:
        self._require_repository()
        return bootstrap_runner.find_script(self.repo_root)

    def run_bootstrap(
        self,
        *,
        stdin: IO[bytes] | IO[str] | None = None,
        stdout: IO[bytes] | IO[str] | None = None,
        stderr: IO[bytes] | IO[str] | None = None,
    ) -> bool:
        """Run ``bootstrap.sh`` if present; returns ``False`` when there is none."""

        script = self.find_bootstrap()
        if script is None:
            return False
        bootstrap_runner.run_script(script, cwd=self.repo_root, stdin=stdin, stdout=stdout, stderr=stderr)
        return True

