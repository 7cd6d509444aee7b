"""Shared models and enums for lnk."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class EntryKind(str, Enum):
    """Kinds of payloads lnk can adopt."""

    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True, slots=True)
class ManagedEntry:
    """One adopted path, keyed by host and home-relative path."""

    host: str
    relative_path: str
    payload_location: Path
    symlink_location: Path

    @property
    def is_common(self) -> bool:
        return self.host == ""


@dataclass(frozen=True, slots=True)
class AddCandidate:
    """A validated input for adoption, produced before anything touches disk."""

    source: Path
    relative_path: str
    payload_location: Path
    kind: EntryKind


@dataclass(frozen=True, slots=True)
class SyncStatus:
    """Repository sync state relative to its remote."""

    ahead: int
    behind: int
    dirty: bool
    remote_url: str
    branch: str | None = None
    remote_branch: str | None = None

    @property
    def up_to_date(self) -> bool:
        return self.ahead == 0 and self.behind == 0


@dataclass(frozen=True, slots=True)
class DoctorResult:
    """Issues found (and possibly repaired) by ``lnk doctor``."""

    invalid_entries: tuple[str, ...] = ()
    broken_symlinks: tuple[str, ...] = ()
    repaired: bool = False

    @property
    def has_issues(self) -> bool:
        return bool(self.invalid_entries or self.broken_symlinks)

    @property
    def total_issues(self) -> int:
        return len(self.invalid_entries) + len(self.broken_symlinks)


@dataclass(frozen=True, slots=True)
class HostListing:
    """Manifest contents for one configuration."""

    host: str
    entries: tuple[str, ...] = field(default_factory=tuple)

    @property
    def label(self) -> str:
        return f"host: {self.host}" if self.host else "common"


class InitOutcome(str, Enum):
    """What ``lnk init`` did."""

    CREATED = "created"
    EXISTING = "existing"
    CLONED = "cloned"
