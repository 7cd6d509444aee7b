"""Core package for the lnk project."""

from .cli import app, run
from .config import CommandOptions, Settings
from .errors import LnkError
from .manager import LnkManager
from .manifest import Manifest
from .models import (
    DoctorResult,
    EntryKind,
    HostListing,
    InitOutcome,
    ManagedEntry,
    SyncStatus,
)

__version__ = "0.6.0"

__all__ = [
    "CommandOptions",
    "Settings",
    "LnkManager",
    "LnkError",
    "Manifest",
    "DoctorResult",
    "EntryKind",
    "HostListing",
    "InitOutcome",
    "ManagedEntry",
    "SyncStatus",
    "app",
    "run",
    "__version__",
]
