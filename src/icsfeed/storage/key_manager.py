"""Resolution of process secrets: the vault crypt secret and OAuth client settings."""

import logging
import os
from typing import Optional, Tuple

from icsfeed.config.constants import ENV_CRYPT_SECRET
from icsfeed.exceptions.errors import ConfigurationError
from icsfeed.storage.env_storage import (
    get_env_file_path,
    load_from_env_file,
    store_in_env_file,
)
from icsfeed.storage.keyring_storage import load_from_keyring, save_to_keyring
from icsfeed.utils.masking import mask_key

logger = logging.getLogger(__name__)


def lookup_setting(name: str, default: Optional[str] = None) -> Optional[str]:
    """Look a setting up in the environment, then in the per-user .env."""
    value = os.environ.get(name)
    if value:
        return value
    value = load_from_env_file(name)
    if value:
        return value
    return default


def get_crypt_secret_source(explicit: Optional[str] = None) -> Tuple[Optional[str], str]:
    """Determine where the crypt secret comes from.

    Priority:
        1. Explicit value (command-line flag)
        2. CRYPT_SECRET environment variable
        3. OS keyring
        4. User config .env

    Returns:
        Tuple of (secret, source_description).
    """
    if explicit:
        return explicit, "Command Line"

    env_secret = os.environ.get(ENV_CRYPT_SECRET)
    if env_secret:
        return env_secret, f"Environment Variable ({ENV_CRYPT_SECRET})"

    keyring_secret = load_from_keyring()
    if keyring_secret:
        return keyring_secret, "OS Keyring"

    file_secret = load_from_env_file(ENV_CRYPT_SECRET)
    if file_secret:
        return file_secret, f"User Config: {get_env_file_path()}"

    return None, "No Crypt Secret Found"


def load_crypt_secret(explicit: Optional[str] = None) -> str:
    """Return the vault crypt secret.

    Raises:
        ConfigurationError: If no secret is configured anywhere.
    """
    secret, source = get_crypt_secret_source(explicit)
    if not secret:
        raise ConfigurationError(
            "crypt secret is missing; pass --crypt-secret, set CRYPT_SECRET "
            "or run `icsfeed secret`",
            field="crypt_secret",
        )
    logger.debug("Using crypt secret %s from %s", mask_key(secret), source)
    return secret


def save_crypt_secret(secret: str) -> str:
    """Store the crypt secret, preferring the OS keyring.

    Returns:
        Description of where the secret was stored.

    Raises:
        ConfigurationError: If the secret is empty.
    """
    secret = secret.strip().strip("'\"").strip()
    if not secret:
        raise ConfigurationError("crypt secret must not be empty", field="crypt_secret")

    if save_to_keyring(secret):
        logger.info("Crypt secret saved to keyring")
        return "OS Keyring"

    logger.warning("Keyring unavailable, using file storage instead")
    path = store_in_env_file(ENV_CRYPT_SECRET, secret)
    return f"User Config: {path}"
