"""Keyring-based storage for the vault crypt secret."""

import logging
from typing import Optional

import keyring
from keyring.errors import KeyringError

from icsfeed.config.constants import KEYRING_SERVICE_NAME, KEYRING_ACCOUNT_NAME

logger = logging.getLogger(__name__)


def load_from_keyring() -> Optional[str]:
    """Load the crypt secret from the OS keyring.

    Returns:
        The secret if found, None if absent or the keyring is unusable.
    """
    try:
        return keyring.get_password(KEYRING_SERVICE_NAME, KEYRING_ACCOUNT_NAME)
    except (KeyringError, RuntimeError) as e:
        logger.debug("Keyring lookup failed: %s", e)
        return None


def save_to_keyring(secret: str) -> bool:
    """Persist the crypt secret to the OS keyring.

    Returns:
        True if saved, False if no usable keyring backend exists.
    """
    try:
        keyring.set_password(KEYRING_SERVICE_NAME, KEYRING_ACCOUNT_NAME, secret)
        return True
    except (KeyringError, RuntimeError) as e:
        logger.warning("Keyring save failed: %s", e)
        return False
