"""
Credential Vault: one encrypted OAuth2 token per account.

Files live under a single directory and are named by the SHA-256 digest of
the account identity, so raw identities never reach the filesystem. Every
call reads or writes storage directly; there is no in-memory cache, so a
token rotated by another process is picked up on the next load.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

from icsfeed.exceptions.errors import DecryptionError, VaultIOError
from icsfeed.storage.credentials import CredentialRecord
from icsfeed.storage.crypto import open_sealed, seal
from icsfeed.storage.env_storage import (
    harden_directory_permissions,
    harden_file_permissions,
)
from icsfeed.utils.masking import account_digest, mask_account

logger = logging.getLogger(__name__)


class CredentialVault:
    """Read/write-through encrypted token store keyed by hashed account."""

    def __init__(self, directory: Union[str, Path], secret: str, create: bool = False):
        """
        Args:
            directory: Directory holding the token files.
            secret: Passphrase the cipher key is derived from.
            create: Create the directory (owner-only) if it does not exist;
                otherwise it must already exist.

        Raises:
            VaultIOError: If the directory is missing or not a directory.
        """
        self.directory = Path(directory)
        self._secret = secret

        if create and not self.directory.exists():
            try:
                self.directory.mkdir(parents=True, mode=0o700)
            except OSError as e:
                raise VaultIOError(str(self.directory), "unable to create", e) from e
            harden_directory_permissions(self.directory)

        if not self.directory.exists():
            raise VaultIOError(str(self.directory), "unable to stat")
        if not self.directory.is_dir():
            raise VaultIOError(str(self.directory), "not a directory")

    def __repr__(self) -> str:
        return f"CredentialVault(directory={str(self.directory)!r})"

    def path_for(self, account: str) -> Path:
        return self.directory / account_digest(account)

    def load(self, account: str) -> Optional[CredentialRecord]:
        """Load and decrypt the account's token.

        Returns:
            The record, or None if the account has never been stored.

        Raises:
            DecryptionError: If the file fails authentication or does not
                hold a token record.
            VaultIOError: If the file exists but cannot be read.
        """
        path = self.path_for(account)
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            logger.debug("No token stored for account %s", mask_account(account))
            return None
        except OSError as e:
            raise VaultIOError(str(path), "unable to open", e) from e

        plaintext = open_sealed(self._secret, data)
        if plaintext is None:
            raise DecryptionError(str(path))

        try:
            record = CredentialRecord.from_json(plaintext)
        except ValueError as e:
            raise DecryptionError(str(path), "unable to decode token") from e

        logger.debug("Loaded token for account %s", mask_account(account))
        return record

    def store(self, account: str, record: CredentialRecord) -> None:
        """Encrypt and atomically replace the account's token file.

        Raises:
            VaultIOError: If the file cannot be written.
        """
        path = self.path_for(account)
        payload = seal(self._secret, record.to_json())

        tmp_name = None
        try:
            # mkstemp creates the file 0600 in the same directory, so the rename is atomic.
            fd, tmp_name = tempfile.mkstemp(prefix=".tmp-", dir=str(self.directory))
            with os.fdopen(fd, "wb") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
            tmp_name = None
            harden_file_permissions(path)
        except OSError as e:
            raise VaultIOError(str(path), "unable to write", e) from e
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    logger.warning("Could not remove temporary file %s", tmp_name)

        logger.debug("Stored token for account %s", mask_account(account))

    def delete(self, account: str) -> bool:
        """Remove the account's token. Returns True if a file was deleted."""
        path = self.path_for(account)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise VaultIOError(str(path), "unable to delete", e) from e
        return True
