"""
Authenticated encryption for vault files.

The key is the SHA-256 digest of a passphrase; the cipher is AES-256-GCM.
Each sealed payload is a fresh 12-byte nonce followed by ciphertext + tag.
"""

import hashlib
import secrets
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

NONCE_SIZE = 12


def derive_key(passphrase: str) -> bytes:
    """Derive the 32-byte cipher key from a passphrase."""
    return hashlib.sha256(passphrase.encode("utf-8")).digest()


def seal(passphrase: str, plaintext: bytes) -> bytes:
    """Encrypt plaintext. Returns nonce (12 bytes) + ciphertext + tag (16 bytes)."""
    nonce = secrets.token_bytes(NONCE_SIZE)
    return nonce + AESGCM(derive_key(passphrase)).encrypt(nonce, plaintext or b"", None)


def open_sealed(passphrase: str, data: bytes) -> Optional[bytes]:
    """Authenticate and decrypt a sealed payload.

    Returns:
        The plaintext, or None when the payload is shorter than a nonce or
        fails authentication (wrong passphrase or corruption).
    """
    if data is None or len(data) < NONCE_SIZE:
        return None
    nonce, ciphertext = data[:NONCE_SIZE], data[NONCE_SIZE:]
    try:
        return AESGCM(derive_key(passphrase)).decrypt(nonce, ciphertext, None)
    except InvalidTag:
        return None
