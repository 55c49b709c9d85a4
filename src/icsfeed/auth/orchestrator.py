"""Authorization Orchestrator.

Tracks authorizations that are waiting on the user's browser. Each one is
keyed by an unguessable state token and lives for a short window:

    begin()   -> entry created, authorization URL returned
    resolve() -> entry removed (whatever the outcome), code exchanged,
                 token stored, original request target returned

Removal happens before any check, so the same callback URL can never be
exchanged twice. Expired entries are discarded when they are looked up,
and swept whenever a new authorization begins.
"""

import logging
import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from icsfeed.config.constants import PENDING_AUTHORIZATION_TTL_SECONDS
from icsfeed.core.timezone_utils import utc_now
from icsfeed.exceptions.errors import (
    AuthorizationDeniedError,
    MissingCodeError,
    StateExpiredError,
    StateMismatchError,
    TokenExchangeError,
)
from icsfeed.utils.masking import mask_account

logger = logging.getLogger(__name__)

STATE_TOKEN_BYTES = 32


@dataclass(frozen=True)
class PendingAuthorization:
    state: str
    original_target: str
    account: str
    flow: object
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class PendingAuthorizations:
    """Lock-protected map of state token to pending authorization."""

    def __init__(self):
        self._entries: Dict[str, PendingAuthorization] = {}
        self._lock = threading.Lock()

    def put(self, entry: PendingAuthorization) -> bool:
        """Insert ``entry``; False if its state token is already pending."""
        with self._lock:
            if entry.state in self._entries:
                return False
            self._entries[entry.state] = entry
            return True

    def take(self, state: str) -> Optional[PendingAuthorization]:
        """Atomically remove and return the entry for ``state``."""
        with self._lock:
            return self._entries.pop(state, None)

    def discard_expired(self, now: datetime) -> int:
        with self._lock:
            expired = [state for state, entry in self._entries.items() if entry.is_expired(now)]
            for state in expired:
                del self._entries[state]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, state: str) -> bool:
        with self._lock:
            return state in self._entries


class AuthorizationOrchestrator:
    """Issues authorization redirects and completes them on callback."""

    def __init__(
        self,
        broker,
        vault,
        clock: Callable[[], datetime] = utc_now,
        ttl: Optional[timedelta] = None,
        pending: Optional[PendingAuthorizations] = None,
    ):
        self.broker = broker
        self.vault = vault
        self.clock = clock
        self.ttl = ttl if ttl is not None else timedelta(seconds=PENDING_AUTHORIZATION_TTL_SECONDS)
        self.pending = pending if pending is not None else PendingAuthorizations()

    def begin(self, account: str, original_target: str) -> str:
        """Park a request for ``account`` and return the URL the user must visit."""
        now = self.clock()
        swept = self.pending.discard_expired(now)
        if swept:
            logger.debug("Discarded %d expired authorizations", swept)

        while True:
            state = secrets.token_urlsafe(STATE_TOKEN_BYTES)
            flow = self.broker.begin(state)
            entry = PendingAuthorization(
                state=state,
                original_target=original_target,
                account=account,
                flow=flow,
                expires_at=now + self.ttl,
            )
            if self.pending.put(entry):
                break

        logger.info("Authorization pending for account %s", mask_account(account))
        return flow.url

    def resolve(self, state: Optional[str], code: Optional[str], error: Optional[str] = None) -> str:
        """Complete the authorization named by ``state``.

        Returns:
            The original request target to redirect the caller to.

        Raises:
            StateMismatchError: No pending entry for ``state`` (unknown or used).
            StateExpiredError: The entry outlived its window.
            AuthorizationDeniedError: The provider reported ``error``.
            MissingCodeError: No authorization code on the callback.
            TokenExchangeError: The exchange failed or returned an invalid token.
            VaultIOError: The token could not be stored.
        """
        entry = self.pending.take(state) if state else None
        if entry is None:
            raise StateMismatchError()
        if entry.is_expired(self.clock()):
            raise StateExpiredError()
        if error:
            raise AuthorizationDeniedError(error)
        if not code:
            raise MissingCodeError()

        record = entry.flow.exchange(code)
        if not record.is_valid(self.clock(), timedelta(0)):
            raise TokenExchangeError("got the token, but it is invalid")

        self.vault.store(entry.account, record)
        logger.info("Authorized account %s", mask_account(entry.account))
        return entry.original_target
