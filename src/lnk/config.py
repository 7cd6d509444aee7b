"""Environment-derived settings and per-command options for lnk."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping

from pydantic import BaseModel, ConfigDict, field_validator

from .errors import HomeNotFoundError, InvalidHostError

REPO_DIR_NAME = "lnk"
COMMON_MANIFEST = ".lnk"
HOST_STORAGE_SUFFIX = ".lnk"
BOOTSTRAP_SCRIPT = "bootstrap.sh"
LOG_LEVEL_ENV = "LNK_LOG_LEVEL"


def _expand_path(raw: str | os.PathLike[str]) -> Path:
    """Return an absolute ``Path`` with ``~`` expanded but symlinks left alone."""

    expanded = Path(raw).expanduser()
    return Path(os.path.abspath(expanded))


def validate_host(host: str | None) -> str:
    """Normalise a host label; the empty string selects the common configuration."""

    if not host:
        return ""
    if "/" in host or "\\" in host or host in {".", ".."} or host.startswith("."):
        raise InvalidHostError(path=host, suggestion="host names must be plain labels such as 'work' or 'laptop'")
    return host


class Settings(BaseModel):
    """Locations resolved once per invocation."""

    model_config = ConfigDict(frozen=True)

    home: Path
    repo_root: Path

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ

        home_raw = env.get("HOME", "")
        if not home_raw:
            raise HomeNotFoundError(suggestion="set the HOME environment variable")
        home = _expand_path(home_raw)

        xdg = env.get("XDG_CONFIG_HOME", "")
        config_home = _expand_path(xdg) if xdg else home / ".config"
        return cls(home=home, repo_root=config_home / REPO_DIR_NAME)


class CommandOptions(BaseModel):
    """Explicit configuration record handed from the CLI to the manager."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    host: str | None = None
    recursive: bool = False
    dry_run: bool = False
    force: bool = False
    no_bootstrap: bool = False
    remote_url: str | None = None
    message: str | None = None

    @field_validator("host")
    @classmethod
    def _check_host(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return validate_host(value) or None

    @property
    def host_label(self) -> str:
        return self.host or ""
