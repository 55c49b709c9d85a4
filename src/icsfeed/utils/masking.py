"""Helpers that keep secrets and account identities out of logs."""

import hashlib
from typing import Optional


def mask_key(secret: Optional[str]) -> str:
    """Mask a secret (client secret, token, passphrase) for safe logging.

    Args:
        secret: The value to mask.

    Returns:
        Masked value showing only the first and last 4 characters.
    """
    if not secret:
        return "<empty>"
    if len(secret) <= 8:
        return "***"
    return f"{secret[:4]}...{secret[-4:]}"


def account_digest(account: str) -> str:
    """Return the hex SHA-256 digest of an account identity.

    The digest names the account's vault file and is what log lines refer
    to instead of the raw identity.
    """
    return hashlib.sha256(account.encode("utf-8")).hexdigest()


def mask_account(account: Optional[str]) -> str:
    """Short, stable tag for an account identity in log output."""
    if not account:
        return "<empty>"
    return account_digest(account)[:12]
