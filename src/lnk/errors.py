"""Exception hierarchy for lnk."""

from __future__ import annotations


class LnkError(RuntimeError):
    """Base class for every error raised by lnk.

    ``path`` and ``suggestion`` are optional display context; the rendered
    message reads ``<message>: <path> (<suggestion>)``.
    """

    default_message = "lnk operation failed"

    def __init__(
        self,
        message: str | None = None,
        *,
        path: str | None = None,
        suggestion: str | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.path = path
        self.suggestion = suggestion
        super().__init__(self._render())

    def _render(self) -> str:
        text = self.message
        if self.path:
            text += f": {self.path}"
        if self.suggestion:
            text += f" ({self.suggestion})"
        return text


class HomeNotFoundError(LnkError):
    default_message = "Unable to determine the home directory"


class InvalidPathError(LnkError):
    default_message = "Invalid path"


class InvalidHostError(LnkError):
    default_message = "Invalid host name"


class FileNotFoundLnkError(LnkError):
    default_message = "File or directory not found"


class UnsupportedTypeError(LnkError):
    default_message = "Cannot manage this type of file"


class AlreadyManagedError(LnkError):
    default_message = "File is already managed by lnk"


class NotManagedError(LnkError):
    default_message = "File is not managed by lnk"


class NotInitializedError(LnkError):
    default_message = "Lnk repository not initialized"

    def __init__(self, message: str | None = None, *, path: str | None = None, suggestion: str | None = None) -> None:
        super().__init__(message, path=path, suggestion=suggestion or "run 'lnk init' first")


class ExistingRepositoryError(LnkError):
    default_message = "Directory contains an existing Git repository"


class ManagedFilesExistError(LnkError):
    default_message = "Directory already contains managed files"


class NothingToAddError(LnkError):
    default_message = "No files found to add"


class BootstrapError(LnkError):
    default_message = "Bootstrap script failed"
    returncode: int | None = None


class FilesystemOperationError(LnkError):
    """Residual filesystem failure (move, symlink, stat) with the failing operation."""

    default_message = "Filesystem operation failed"

    def __init__(
        self,
        operation: str,
        *,
        path: str | None = None,
        detail: str | None = None,
    ) -> None:
        self.operation = operation
        self.detail = detail
        message = f"Failed to {operation}"
        if detail:
            message += f" [{detail}]"
        super().__init__(message, path=path)


class GitOperationError(LnkError):
    """A Git backend call failed; ``operation`` names the git verb."""

    default_message = "Git operation failed"

    def __init__(
        self,
        operation: str,
        upstream: str | None = None,
        *,
        suggestion: str | None = None,
    ) -> None:
        self.operation = operation
        self.upstream = (upstream or "").strip()
        message = f"git {operation} failed"
        if self.upstream:
            message += f": {self.upstream.splitlines()[-1]}"
        super().__init__(message, suggestion=suggestion)


class NoRemoteError(GitOperationError):
    def __init__(self, operation: str = "remote") -> None:
        super().__init__(operation, "No remote repository is configured", suggestion="add a remote repository first")
