"""Git backend for lnk, built on GitPython."""

from __future__ import annotations

import logging
from pathlib import Path

from git import GitCommandError, InvalidGitRepositoryError, NoSuchPathError, Repo

from .errors import GitOperationError, NoRemoteError, NotInitializedError
from .filesystem import remove_path
from .models import SyncStatus

logger = logging.getLogger(__name__)

DEFAULT_BRANCH = "main"
DEFAULT_REMOTE = "origin"
COMMIT_PREFIX = "lnk:"
FALLBACK_IDENTITY = {
    "user.name": "Lnk User",
    "user.email": "lnk@localhost",
}


def _stderr(exc: GitCommandError) -> str:
    text = exc.stderr or exc.stdout or str(exc)
    if isinstance(text, bytes):
        text = text.decode("utf-8", errors="replace")
    return text.strip()


class GitBackend:
    """Thin handle over the repository at ``repo_root``."""

    def __init__(self, repo_root: Path) -> None:
        self.repo_root = repo_root
        self._repo: Repo | None = None

    # ------------------------------------------------------------------
    # Discovery

    def is_repository(self) -> bool:
        return (self.repo_root / ".git").exists()

    @property
    def repo(self) -> Repo:
        if self._repo is None:
            try:
                self._repo = Repo(str(self.repo_root))
            except (InvalidGitRepositoryError, NoSuchPathError) as exc:
                raise NotInitializedError(path=str(self.repo_root)) from exc
        return self._repo

    def has_commits(self) -> bool:
        return self.repo.head.is_valid()

    def commits(self) -> list[str]:
        """Commit subjects, newest first."""

        if not self.is_repository() or not self.has_commits():
            return []
        output = self._run("log", "--format=%s")
        return [line for line in output.splitlines() if line]

    def is_lnk_repository(self) -> bool:
        """A fresh repository, or one whose history was written entirely by lnk."""

        if not self.is_repository():
            return False
        return all(subject.startswith(COMMIT_PREFIX) for subject in self.commits())

    # ------------------------------------------------------------------
    # Setup

    def init(self) -> None:
        self.repo_root.mkdir(parents=True, exist_ok=True)
        try:
            self._repo = Repo.init(str(self.repo_root), initial_branch=DEFAULT_BRANCH)
        except GitCommandError:
            # git < 2.28 has no --initial-branch
            logger.debug("git init --initial-branch unsupported, pointing HEAD manually")
            try:
                self._repo = Repo.init(str(self.repo_root))
                self._repo.git.symbolic_ref("HEAD", f"refs/heads/{DEFAULT_BRANCH}")
            except GitCommandError as exc:
                raise GitOperationError("init", _stderr(exc), suggestion="ensure git is installed") from exc
        logger.debug("Initialised repository at %s", self.repo_root)

    def clone(self, url: str) -> None:
        remove_path(self.repo_root)
        self.repo_root.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._repo = Repo.clone_from(url, str(self.repo_root))
        except GitCommandError as exc:
            raise GitOperationError(
                "clone", _stderr(exc), suggestion="check the repository URL and your network connection"
            ) from exc
        logger.debug("Cloned %s into %s", url, self.repo_root)

        for branch in (DEFAULT_BRANCH, "master"):
            try:
                self.repo.git.branch(f"--set-upstream-to={DEFAULT_REMOTE}/{branch}", branch)
                return
            except GitCommandError:
                continue
        logger.debug("No upstream branch configured after clone")

    def add_remote(self, name: str, url: str) -> None:
        existing = {remote.name: remote for remote in self.repo.remotes}
        if name in existing:
            current = existing[name].url
            if current == url:
                return
            raise GitOperationError(
                "remote", f"Remote '{name}' is already configured with a different repository",
                suggestion=f"existing: {current}, new: {url}",
            )
        try:
            self.repo.create_remote(name, url)
        except GitCommandError as exc:
            raise GitOperationError("remote", _stderr(exc)) from exc

    # ------------------------------------------------------------------
    # Index and history

    def add(self, path: str) -> None:
        self._run("add", "--", path)

    def add_all(self) -> None:
        self._run("add", "-A")

    def remove(self, path: str) -> None:
        """Stop tracking ``path`` without touching the working tree."""

        self._run("rm", "-r", "--cached", "-q", "--", path)

    def unstage(self, path: str) -> None:
        if self.has_commits():
            self._run("reset", "-q", "HEAD", "--", path)
        else:
            self._run("rm", "-r", "--cached", "-q", "--ignore-unmatch", "--", path)

    def commit(self, message: str) -> None:
        self._ensure_identity()
        self._run("commit", "-m", message)
        logger.debug("Committed '%s'", message)

    def _ensure_identity(self) -> None:
        for key, fallback in FALLBACK_IDENTITY.items():
            try:
                value = self.repo.git.config("--get", key)
            except GitCommandError:
                value = ""
            if not value.strip():
                self._run("config", key, fallback)

    def has_changes(self) -> bool:
        return bool(self._run("status", "--porcelain").strip())

    def diff(self, *, color: bool = False) -> str:
        args = ["--color=always"] if color else ["--color=never"]
        return self._run("diff", *args)

    # ------------------------------------------------------------------
    # Remote interaction

    def remote_name(self) -> str:
        names = [remote.name for remote in self.repo.remotes]
        if not names:
            raise NoRemoteError()
        return DEFAULT_REMOTE if DEFAULT_REMOTE in names else names[0]

    def remote_url(self) -> str:
        return self.repo.remote(self.remote_name()).url

    def current_branch(self) -> str | None:
        try:
            return self.repo.active_branch.name
        except TypeError:
            return None

    def upstream(self) -> str | None:
        try:
            return self.repo.git.rev_parse("--abbrev-ref", "--symbolic-full-name", "@{u}").strip() or None
        except GitCommandError:
            return None

    def status(self) -> SyncStatus:
        url = self.remote_url()
        dirty = self.has_changes()
        branch = self.current_branch()
        upstream = self.upstream()

        if upstream is None:
            remote_branch = f"{self.remote_name()}/{branch or DEFAULT_BRANCH}"
            return SyncStatus(
                ahead=self._ahead(remote_branch),
                behind=0,
                dirty=dirty,
                remote_url=url,
                branch=branch,
                remote_branch=remote_branch,
            )

        return SyncStatus(
            ahead=self._ahead(upstream),
            behind=self._count(f"HEAD..{upstream}"),
            dirty=dirty,
            remote_url=url,
            branch=branch,
            remote_branch=upstream,
        )

    def _ahead(self, remote_branch: str) -> int:
        if not self.has_commits():
            return 0
        try:
            return int(self.repo.git.rev_list("--count", f"{remote_branch}..HEAD"))
        except GitCommandError:
            # Remote branch unknown: every local commit is unpushed.
            return self._count("HEAD")

    def _count(self, revision: str) -> int:
        try:
            return int(self.repo.git.rev_list("--count", revision))
        except (GitCommandError, ValueError):
            return 0

    def push(self) -> None:
        remote = self.remote_name()
        try:
            self.repo.git.push("-u", remote, "HEAD")
        except GitCommandError as exc:
            raise GitOperationError(
                "push", _stderr(exc), suggestion="check your network connection and repository permissions"
            ) from exc
        logger.debug("Pushed to %s", remote)

    def pull(self) -> None:
        remote = self.remote_name()
        args = ["--no-rebase"]
        if self.upstream() is None:
            args += [remote, self.current_branch() or DEFAULT_BRANCH]
        try:
            self.repo.git.pull(*args)
        except GitCommandError as exc:
            raise GitOperationError(
                "pull", _stderr(exc), suggestion="check your network connection and resolve any conflicts"
            ) from exc
        logger.debug("Pulled from %s", remote)

    # ------------------------------------------------------------------

    def _run(self, command: str, *args: str) -> str:
        try:
            return getattr(self.repo.git, command)(*args)
        except GitCommandError as exc:
            raise GitOperationError(command, _stderr(exc)) from exc
