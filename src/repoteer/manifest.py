"""Manifest loading for Repoteer.

The manifest is a TOML file listing the repositories to manage::

    [[repos]]
    url = "git@github.com:someone/dotfiles.git"
    service = "Git"
    path = "~/src/dotfiles"
    exclude_branches = ["wip/*"]

Relative paths are resolved against the manifest's directory.
"""

from __future__ import annotations

import tomllib
from collections import Counter
from pathlib import Path

from pydantic import ValidationError

from .errors import ManifestNotFoundError, ManifestParseError
from .models import Manifest, RepoSpec


def parse_manifest(text: str, *, base_dir: Path, source: Path | str | None = None) -> Manifest:
    """Parse and validate manifest TOML text.

    Args:
        text: TOML document.
        base_dir: Directory used to resolve relative repository paths.
        source: Optional location used in error messages.

    Returns:
        Validated ``Manifest``.

    Example:
        >>> manifest = parse_manifest(
        ...     '[[repos]]\\nurl = "git@github.com:o/r.git"\\npath = "/src/r"\\n',
        ...     base_dir=Path("/"),
        ... )
        >>> [str(repo.path) for repo in manifest.repos]
        ['/src/r']
    """
    location = f" at {source}" if source else ""
    try:
        payload = tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise ManifestParseError(f"invalid manifest TOML{location}: {exc}") from exc
    if not payload.get("repos"):
        raise ManifestParseError(
            f"manifest declares no repositories{location}",
            recovery_hint="add at least one [[repos]] table with url and path",
        )
    try:
        manifest = Manifest.model_validate(payload, context={"base_dir": base_dir})
    except ValidationError as exc:
        raise ManifestParseError(f"invalid manifest{location}:\n{exc}") from exc
    duplicates = sorted(
        key for key, count in Counter(repo.key for repo in manifest.repos).items() if count > 1
    )
    if duplicates:
        raise ManifestParseError(
            f"manifest lists the same path more than once{location}: " + ", ".join(duplicates)
        )
    return manifest


def load_manifest(path: Path) -> list[RepoSpec]:
    """Load the repositories declared in a manifest file.

    Raises:
        ManifestNotFoundError: The file does not exist.
        ManifestParseError: The file could not be read, parsed or validated.
    """
    manifest_path = path.expanduser()
    if not manifest_path.is_file():
        raise ManifestNotFoundError(
            f"manifest not found: {manifest_path}",
            recovery_hint="create it or pass --manifest PATH",
        )
    try:
        text = manifest_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ManifestParseError(f"could not read manifest {manifest_path}: {exc}") from exc
    manifest = parse_manifest(text, base_dir=manifest_path.resolve().parent, source=manifest_path)
    return list(manifest.repos)
