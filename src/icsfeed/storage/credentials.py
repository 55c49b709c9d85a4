"""OAuth2 credential record persisted by the vault."""

import json
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Dict, Optional

import pytz
from dateutil import parser as dateutil_parser

from icsfeed.config.constants import TOKEN_REFRESH_SKEW_SECONDS


@dataclass(frozen=True)
class CredentialRecord:
    """One account's OAuth2 token.

    ``expiry`` is a timezone-aware UTC datetime, or None when the provider
    did not report one.
    """

    access_token: str
    refresh_token: Optional[str] = None
    expiry: Optional[datetime] = None
    token_type: str = "Bearer"

    def __post_init__(self):
        if self.expiry is not None and self.expiry.tzinfo is None:
            object.__setattr__(self, "expiry", pytz.utc.localize(self.expiry))

    def __repr__(self) -> str:
        # Tokens never end up in logs or tracebacks.
        return (
            f"CredentialRecord(token_type={self.token_type!r}, expiry={self.expiry!r}, "
            f"has_refresh_token={bool(self.refresh_token)})"
        )

    def is_valid(self, now: Optional[datetime] = None, skew: Optional[timedelta] = None) -> bool:
        """True if the access token is present and not within ``skew`` of expiry."""
        if not self.access_token:
            return False
        if self.expiry is None:
            return True
        now = now or datetime.now(pytz.utc)
        if skew is None:
            skew = timedelta(seconds=TOKEN_REFRESH_SKEW_SECONDS)
        return now < self.expiry - skew

    def with_refresh_token(self, refresh_token: Optional[str]) -> "CredentialRecord":
        """Keep a previously issued refresh token when a refresh omits it."""
        if self.refresh_token or not refresh_token:
            return self
        return replace(self, refresh_token=refresh_token)

    def to_dict(self) -> Dict:
        return {
            "access_token": self.access_token,
            "token_type": self.token_type,
            "refresh_token": self.refresh_token,
            "expiry": self.expiry.isoformat() if self.expiry else None,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "CredentialRecord":
        """Build a record from its serialized form.

        Raises:
            ValueError: If the payload is not a token record.
        """
        if not isinstance(data, dict) or not isinstance(data.get("access_token"), str):
            raise ValueError("payload is not a token record")
        expiry = data.get("expiry")
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token") or None,
            expiry=dateutil_parser.isoparse(expiry) if expiry else None,
            token_type=data.get("token_type") or "Bearer",
        )

    @classmethod
    def from_credentials(cls, credentials) -> "CredentialRecord":
        """Snapshot google-auth style credentials (``token``, ``refresh_token``, ``expiry``)."""
        return cls(
            access_token=credentials.token or "",
            refresh_token=credentials.refresh_token or None,
            expiry=credentials.expiry,
        )

    def to_json(self) -> bytes:
        return json.dumps(self.to_dict()).encode("utf-8")

    @classmethod
    def from_json(cls, payload: bytes) -> "CredentialRecord":
        try:
            data = json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ValueError(f"unable to decode token: {e}") from e
        return cls.from_dict(data)
