"""Per-user .env storage and file permission helpers."""

import logging
import os
import sys
from pathlib import Path
from typing import Optional

from dotenv import dotenv_values, set_key

from icsfeed.config.constants import USER_CONFIG_DIR_NAME

logger = logging.getLogger(__name__)


def get_user_config_dir() -> Path:
    """Return a per-user config directory that works across platforms.

    Returns:
        Path to the user's config directory for this application.
    """
    if sys.platform.startswith("win"):
        base_str = os.environ.get("APPDATA") or os.environ.get("LOCALAPPDATA")
        base = Path(base_str) if base_str else (Path.home() / "AppData" / "Roaming")
        return base / USER_CONFIG_DIR_NAME

    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / USER_CONFIG_DIR_NAME

    base_str = os.environ.get("XDG_CONFIG_HOME")
    base = Path(base_str) if base_str else (Path.home() / ".config")
    return base / USER_CONFIG_DIR_NAME


def get_env_file_path() -> Path:
    """Managed .env path under the user config directory."""
    return get_user_config_dir() / ".env"


def get_default_token_dir() -> Path:
    """Vault directory used by the export command when none is given."""
    return get_user_config_dir() / "tokens"


def harden_file_permissions(path: Path) -> None:
    """Restrict a file to its owner on POSIX.

    Raises:
        OSError: If the permissions cannot be changed.
    """
    if os.name != "posix":
        return
    path.chmod(0o600)


def harden_directory_permissions(path: Path) -> None:
    """Best-effort: restrict directory permissions to the current user on POSIX."""
    if os.name != "posix":
        return
    try:
        path.chmod(0o700)
    except OSError as e:
        logger.warning("Could not tighten permissions on %s: %s", path, e)


def load_from_env_file(name: str, path: Optional[Path] = None) -> Optional[str]:
    """Read one variable from an .env file without touching os.environ.

    Args:
        name: Variable name.
        path: File to read; defaults to the per-user .env.

    Returns:
        The stripped value, or None if the file or variable is absent.
    """
    path = path or get_env_file_path()
    if not path.exists():
        return None

    value = dotenv_values(path).get(name)
    if not value:
        return None
    return str(value).strip().strip("'\"").strip()


def store_in_env_file(name: str, value: str, path: Optional[Path] = None) -> Path:
    """Write one variable to the per-user .env with owner-only permissions.

    Returns:
        The path written to.
    """
    env_path = path or get_env_file_path()

    env_path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
    harden_directory_permissions(env_path.parent)

    if not env_path.exists():
        try:
            fd = os.open(str(env_path), os.O_CREAT | os.O_WRONLY | os.O_EXCL, 0o600)
            os.close(fd)
        except FileExistsError:
            pass

    harden_file_permissions(env_path)
    set_key(str(env_path), name, value)
    harden_file_permissions(env_path)
    return env_path
