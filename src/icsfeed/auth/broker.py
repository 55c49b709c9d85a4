"""Google implementation of the Token Broker.

A Token Broker performs the OAuth2 exchanges the rest of the package
orchestrates:

    begin(state) -> AuthorizationFlow   (flow.url, flow.exchange(code))
    refresh(record, account) -> CredentialRecord
    calendar_source(record, account) -> Calendar Source for that token
"""

import logging
from typing import List, Optional

import pytz
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow, InstalledAppFlow
from oauthlib.oauth2.rfc6749.errors import OAuth2Error
from requests.exceptions import RequestException

from icsfeed.config.constants import (
    GOOGLE_AUTH_URI,
    GOOGLE_SCOPES,
    GOOGLE_TOKEN_URI,
    MSG_AUTHORIZED,
    PROVIDER_CALL_TIMEOUT_SECONDS,
)
from icsfeed.config.settings import OAuthSettings
from icsfeed.core.calendar_source import GoogleCalendarSource
from icsfeed.exceptions.errors import TokenExchangeError, TokenRefreshError
from icsfeed.storage.credentials import CredentialRecord

logger = logging.getLogger(__name__)


def credentials_from_record(
    record: CredentialRecord,
    oauth: OAuthSettings,
    scopes: Optional[List[str]] = None,
) -> Credentials:
    """Wrap a stored record in self-refreshing google-auth credentials."""
    expiry = None
    if record.expiry is not None:
        # google-auth compares against naive UTC.
        expiry = record.expiry.astimezone(pytz.utc).replace(tzinfo=None)
    return Credentials(
        token=record.access_token,
        refresh_token=record.refresh_token,
        token_uri=GOOGLE_TOKEN_URI,
        client_id=oauth.client_id,
        client_secret=oauth.client_secret,
        scopes=scopes or GOOGLE_SCOPES,
        expiry=expiry,
    )


class LoopbackFlow(InstalledAppFlow):
    """InstalledAppFlow whose token request is bounded like every other provider call.

    ``run_local_server`` calls ``fetch_token`` itself without a timeout.
    """

    def fetch_token(self, **kwargs):
        kwargs.setdefault("timeout", PROVIDER_CALL_TIMEOUT_SECONDS)
        return super().fetch_token(**kwargs)


class AuthorizationFlow:
    """One in-flight authorization: its URL and the parameters to finish it."""

    def __init__(self, flow: Flow, url: str):
        self._flow = flow
        self.url = url

    def exchange(self, code: str) -> CredentialRecord:
        """Exchange the authorization code for a token.

        Raises:
            TokenExchangeError: If the provider rejects the code or is unreachable.
        """
        try:
            self._flow.fetch_token(code=code.strip(), timeout=PROVIDER_CALL_TIMEOUT_SECONDS)
        except (OAuth2Error, RequestException, GoogleAuthError, ValueError) as e:
            raise TokenExchangeError(f"unable to exchange token: {e}") from e
        return CredentialRecord.from_credentials(self._flow.credentials)


class GoogleTokenBroker:
    """OAuth2 exchanges against Google's authorization server."""

    def __init__(self, oauth: OAuthSettings, redirect_uri: Optional[str] = None, scopes=None):
        self.oauth = oauth
        self.redirect_uri = redirect_uri
        self.scopes = list(scopes or GOOGLE_SCOPES)

    def _client_config(self, kind: str = "web") -> dict:
        config = {
            "client_id": self.oauth.client_id,
            "client_secret": self.oauth.client_secret,
            "auth_uri": GOOGLE_AUTH_URI,
            "token_uri": GOOGLE_TOKEN_URI,
        }
        if self.redirect_uri:
            config["redirect_uris"] = [self.redirect_uri]
        return {kind: config}

    def begin(self, state: str) -> AuthorizationFlow:
        """Start an authorization bound to ``state``; offline access is requested."""
        flow = Flow.from_client_config(
            self._client_config(),
            scopes=self.scopes,
            state=state,
            redirect_uri=self.redirect_uri,
        )
        url, _ = flow.authorization_url(access_type="offline", prompt="consent")
        return AuthorizationFlow(flow, url)

    def refresh(self, record: CredentialRecord, account: str = "") -> CredentialRecord:
        """Obtain a new access token with the record's refresh token.

        Raises:
            TokenRefreshError: If the refresh token is missing, revoked or
                the provider is unreachable.
        """
        if not record.refresh_token:
            raise TokenRefreshError(account, "no refresh token stored")
        credentials = credentials_from_record(record, self.oauth, self.scopes)
        try:
            credentials.refresh(Request())
        except GoogleAuthError as e:
            raise TokenRefreshError(account, f"unable to refresh token ({e})") from e
        refreshed = CredentialRecord.from_credentials(credentials)
        return refreshed.with_refresh_token(record.refresh_token)

    def calendar_source(self, record: CredentialRecord, account: str = "") -> GoogleCalendarSource:
        return GoogleCalendarSource(
            credentials_from_record(record, self.oauth, self.scopes), account=account
        )

    def authorize_local(self, host: str, port: int) -> CredentialRecord:
        """Run the consent flow against a loopback server (CLI export).

        Prints the authorization URL and blocks until the browser returns.

        Raises:
            TokenExchangeError: If the flow fails or yields an invalid token.
        """
        flow = LoopbackFlow.from_client_config(
            self._client_config("installed"), scopes=self.scopes
        )
        logger.debug("Starting loopback authorization on %s:%d", host, port)
        try:
            credentials = flow.run_local_server(
                host=host,
                port=port,
                open_browser=False,
                authorization_prompt_message="Please open {url}",
                success_message=MSG_AUTHORIZED,
                access_type="offline",
                prompt="consent",
            )
        except (OAuth2Error, RequestException, GoogleAuthError, ValueError, OSError) as e:
            raise TokenExchangeError(f"unable to exchange token: {e}") from e

        record = CredentialRecord.from_credentials(credentials)
        if not record.is_valid():
            raise TokenExchangeError("got the token, but it is invalid")
        return record
