"""Credential and secret storage for icsfeed."""

from icsfeed.storage.credentials import CredentialRecord
from icsfeed.storage.crypto import NONCE_SIZE, open_sealed, seal
from icsfeed.storage.env_storage import get_default_token_dir, get_user_config_dir
from icsfeed.storage.key_manager import (
    get_crypt_secret_source,
    load_crypt_secret,
    lookup_setting,
    save_crypt_secret,
)
from icsfeed.storage.vault import CredentialVault

__all__ = [
    "CredentialRecord",
    "CredentialVault",
    "NONCE_SIZE",
    "open_sealed",
    "seal",
    "get_default_token_dir",
    "get_user_config_dir",
    "get_crypt_secret_source",
    "load_crypt_secret",
    "lookup_setting",
    "save_crypt_secret",
]
