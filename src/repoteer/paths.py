"""Path helpers for locating Repoteer configuration files."""

import os
from pathlib import Path

from platformdirs import user_config_dir

REPOTEER_APP_NAME = "repoteer"
MANIFEST_FILENAME = "manifest.toml"
CONFIG_FILENAME = "config.toml"
CONFIG_PATH_ENV = "REPOTEER_CONFIG"


def repoteer_config_dir() -> Path:
    """Return the per-user Repoteer configuration directory.

    Returns:
        Path to the user config directory for Repoteer.

    Example:
        >>> repoteer_config_dir().name == REPOTEER_APP_NAME
        True
    """
    return Path(user_config_dir(REPOTEER_APP_NAME))


def default_manifest_path() -> Path:
    """Return the manifest location used when no override is given.

    Example:
        >>> default_manifest_path().name
        'manifest.toml'
    """
    return repoteer_config_dir() / MANIFEST_FILENAME


def config_file_path() -> Path:
    """Return the config file path, honouring ``REPOTEER_CONFIG``."""
    override = os.environ.get(CONFIG_PATH_ENV, "").strip()
    if override:
        return Path(override).expanduser()
    return repoteer_config_dir() / CONFIG_FILENAME


def display_path(path: Path) -> str:
    """Render a path for humans, abbreviating the home directory as ``~``.

    Example:
        >>> display_path(Path.home() / "src" / "repo")
        '~/src/repo'
    """
    home = Path.home()
    try:
        relative = path.relative_to(home)
    except ValueError:
        return str(path)
    if str(relative) == ".":
        return "~"
    return f"~/{relative.as_posix()}"
