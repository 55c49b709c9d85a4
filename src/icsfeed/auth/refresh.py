"""Token Refresh Gate: hands out a Calendar Source bound to a current token."""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional, Tuple

from icsfeed.config.constants import TOKEN_REFRESH_SKEW_SECONDS
from icsfeed.core.timezone_utils import utc_now
from icsfeed.exceptions.errors import TokenRefreshError
from icsfeed.storage.credentials import CredentialRecord
from icsfeed.utils.masking import mask_account

logger = logging.getLogger(__name__)

RefreshCallback = Callable[[CredentialRecord], None]


class TokenRefreshGate:
    """Refreshes stale tokens and reports rotations to ``on_refresh``.

    A token is refreshed up front when it is missing or within ``skew`` of
    expiry. The source may still rotate it lazily while an export runs;
    ``settle`` catches that after use. A failed refresh is always a
    ``TokenRefreshError``, never "not authorized yet", so callers can tell a
    revoked grant from a first visit.
    """

    def __init__(
        self,
        broker,
        clock: Callable[[], datetime] = utc_now,
        skew: Optional[timedelta] = None,
    ):
        self.broker = broker
        self.clock = clock
        self.skew = skew if skew is not None else timedelta(seconds=TOKEN_REFRESH_SKEW_SECONDS)

    def ensure_fresh(
        self,
        account: str,
        record: CredentialRecord,
        on_refresh: Optional[RefreshCallback] = None,
    ) -> Tuple[object, bool]:
        """Return a Calendar Source for ``account`` and whether the token changed.

        Raises:
            TokenRefreshError: If a required refresh fails or yields an
                unusable token.
        """
        changed = False
        now = self.clock()
        if not record.is_valid(now, self.skew):
            logger.debug("Refreshing token for account %s", mask_account(account))
            refreshed = self.broker.refresh(record, account)
            if not refreshed.is_valid(now, timedelta(0)):
                raise TokenRefreshError(account, "refreshed token is invalid")
            changed = refreshed.access_token != record.access_token
            if changed and on_refresh is not None:
                on_refresh(refreshed)
            record = refreshed

        return self.broker.calendar_source(record, account), changed

    def settle(self, source, on_refresh: Optional[RefreshCallback] = None) -> bool:
        """Report a rotation that happened while ``source`` was in use."""
        current = source.record
        if not current.access_token or current.access_token == source.issued_token:
            return False
        logger.debug("Token rotated during use for account %s", mask_account(source.account))
        if on_refresh is not None:
            on_refresh(current)
        return True
