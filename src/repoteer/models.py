"""Pydantic models for Repoteer manifest and configuration data."""

from __future__ import annotations

from fnmatch import fnmatchcase
from pathlib import Path
from typing import Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
)

from .paths import display_path

DEFAULT_CONCURRENCY = 8
DEFAULT_TIMEOUT_SECONDS = 300.0
DEFAULT_LOG_LEVEL = "info"

VCService = Literal["git"]


class RepoSpec(BaseModel):
    """A single repository declared in the manifest.

    Attributes:
        url: Remote address (http(s), ssh, scp-style or local path).
        path: Absolute location of the working copy.
        service: Version control service; only ``git`` is supported.
        include_branches: Glob patterns of branches in scope (empty = all).
        exclude_branches: Glob patterns of branches out of scope.

    Example:
        >>> repo = RepoSpec(url="git@github.com:org/repo.git", path="/src/repo")
        >>> repo.branch_in_scope("main")
        True
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    url: str
    path: Path
    service: VCService = "git"
    include_branches: frozenset[str] = frozenset()
    exclude_branches: frozenset[str] = frozenset()

    @field_validator("url", mode="before")
    @classmethod
    def normalize_url(cls, value: object) -> object:
        if isinstance(value, str):
            normalized = value.strip()
            if not normalized:
                raise ValueError("url must not be empty")
            return normalized
        return value

    @field_validator("service", mode="before")
    @classmethod
    def normalize_service(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("path", mode="before")
    @classmethod
    def resolve_path(cls, value: object, info: ValidationInfo) -> object:
        if isinstance(value, str):
            if not value.strip():
                raise ValueError("path must not be empty")
            value = Path(value.strip())
        if not isinstance(value, Path):
            return value
        path = value.expanduser()
        if not path.is_absolute():
            base_dir = (info.context or {}).get("base_dir")
            if base_dir is None:
                raise ValueError(f"path must be absolute: {value}")
            path = Path(base_dir) / path
        return path.resolve()

    @property
    def key(self) -> str:
        """Stable identity used to route events for this repository."""
        return str(self.path)

    @property
    def name(self) -> str:
        return display_path(self.path)

    @property
    def has_branch_filter(self) -> bool:
        return bool(self.include_branches or self.exclude_branches)

    def branch_in_scope(self, branch: str) -> bool:
        """Return whether a branch is covered by this repo's include/exclude filters."""
        if self.include_branches and not any(
            fnmatchcase(branch, pattern) for pattern in self.include_branches
        ):
            return False
        return not any(fnmatchcase(branch, pattern) for pattern in self.exclude_branches)


class Manifest(BaseModel):
    """The record of which repositories Repoteer manages."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    repos: tuple[RepoSpec, ...] = Field(min_length=1)


class SyncPolicy(BaseModel):
    """Rules governing which operations run for a given repository state.

    Attributes:
        allow_pull_when_dirty: Pull even when the working tree has unmerged paths.
        force_push: Push over uncommitted changes and diverged branches.
        divergence_blocks_pull: Skip pull when an in-scope branch has diverged.

    Example:
        >>> SyncPolicy().force_push
        False
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    allow_pull_when_dirty: bool = False
    force_push: bool = False
    divergence_blocks_pull: bool = False


class PolicySection(BaseModel):
    """``[policy]`` table of the user config file."""

    model_config = ConfigDict(extra="forbid")

    allow_pull_when_dirty: bool | None = None
    force_push: bool | None = None
    divergence_blocks_pull: bool | None = None


class UserConfig(BaseModel):
    """Values read from ``config.toml``; unset keys fall back to defaults."""

    model_config = ConfigDict(extra="forbid")

    manifest: str | None = None
    concurrency: int | None = Field(default=None, ge=1)
    timeout: float | None = Field(default=None, gt=0)
    log_level: str | None = None
    color: bool | None = None
    git_path: str | None = None
    policy: PolicySection = Field(default_factory=PolicySection)

    @field_validator("manifest", "log_level", "git_path", mode="before")
    @classmethod
    def normalize_optional_strings(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip() or None
        return value


class RuntimeConfig(BaseModel):
    """Fully merged configuration for one run.

    Built once at process start and passed explicitly to everything that
    needs it.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    manifest_path: Path
    concurrency: int = Field(default=DEFAULT_CONCURRENCY, ge=1)
    timeout: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)
    log_level: str = DEFAULT_LOG_LEVEL
    color: bool | None = None
    git_path: str = "git"
    policy: SyncPolicy = Field(default_factory=SyncPolicy)
