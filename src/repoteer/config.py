"""Configuration loading for Repoteer.

Settings come from three layers, later layers winning: built-in defaults, the
per-user ``config.toml`` and command line flags. The merged result is a frozen
``RuntimeConfig`` built once per process and passed explicitly to the
dispatcher, scheduler and policy evaluator.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, replace
from pathlib import Path

from pydantic import ValidationError

from . import log, paths
from .errors import ConfigError
from .models import (
    DEFAULT_CONCURRENCY,
    DEFAULT_LOG_LEVEL,
    DEFAULT_TIMEOUT_SECONDS,
    RuntimeConfig,
    SyncPolicy,
    UserConfig,
)


@dataclass(frozen=True)
class ConfigOverrides:
    """Values supplied on the command line; ``None`` means not given."""

    manifest: Path | None = None
    concurrency: int | None = None
    timeout: float | None = None
    log_level: str | None = None
    color: bool | None = None
    allow_pull_when_dirty: bool | None = None
    force_push: bool | None = None


def load_user_config(path: Path) -> UserConfig:
    """Load and validate the user config file.

    A missing file yields an empty ``UserConfig``.

    Raises:
        ConfigError: The file exists but is unreadable or invalid.
    """
    if not path.exists():
        return UserConfig()
    try:
        payload = tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"could not read config {path}: {exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"invalid config TOML at {path}: {exc}") from exc
    try:
        return UserConfig.model_validate(payload)
    except ValidationError as exc:
        raise ConfigError(f"invalid config at {path}:\n{exc}") from exc


def _first(*values: object) -> object:
    for value in values:
        if value is not None:
            return value
    return None


def merge_config(user: UserConfig, overrides: ConfigOverrides) -> RuntimeConfig:
    """Merge config file values with command line overrides (flags win)."""
    log_level = _first(overrides.log_level, user.log_level, DEFAULT_LOG_LEVEL)
    if not log.is_level_name(str(log_level)):
        raise ConfigError(
            f"log_level must be one of: {', '.join(log.LEVEL_NAMES)} (got {log_level!r})"
        )
    if overrides.manifest is not None:
        manifest_path = overrides.manifest.expanduser()
    elif user.manifest:
        manifest_path = Path(user.manifest).expanduser()
    else:
        manifest_path = paths.default_manifest_path()
    policy = SyncPolicy(
        allow_pull_when_dirty=bool(
            _first(overrides.allow_pull_when_dirty, user.policy.allow_pull_when_dirty, False)
        ),
        force_push=bool(_first(overrides.force_push, user.policy.force_push, False)),
        divergence_blocks_pull=bool(_first(user.policy.divergence_blocks_pull, False)),
    )
    try:
        return RuntimeConfig(
            manifest_path=manifest_path,
            concurrency=_first(overrides.concurrency, user.concurrency, DEFAULT_CONCURRENCY),
            timeout=_first(overrides.timeout, user.timeout, DEFAULT_TIMEOUT_SECONDS),
            log_level=str(log_level).strip().lower(),
            color=_first(overrides.color, user.color),
            git_path=user.git_path or "git",
            policy=policy,
        )
    except ValidationError as exc:
        raise ConfigError(f"invalid settings:\n{exc}") from exc


def load_config(overrides: ConfigOverrides | None = None) -> RuntimeConfig:
    """Build the runtime configuration for this process.

    ``REPOTEER_LOG_LEVEL`` sits between the config file and the flags.
    """
    active = overrides or ConfigOverrides()
    env_level = os.environ.get(log.LOG_LEVEL_ENV, "").strip()
    if active.log_level is None and env_level:
        active = replace(active, log_level=env_level)
    config_path = paths.config_file_path()
    user = load_user_config(config_path)
    log.trace(f"config file: {config_path} ({'found' if config_path.exists() else 'missing'})")
    return merge_config(user, active)
