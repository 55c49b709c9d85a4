"""Google Calendar implementation of the Calendar Source.

A Calendar Source is anything with these three methods; the Feed Compiler
only relies on them:

    list_calendars(page_token) -> (items, next_page_token)
    get_calendar(calendar_id) -> metadata dict
    list_events(calendar_id, window, page_token) -> (items, next_page_token)

Items are plain dicts in the Calendar API v3 resource shape.
"""

import logging
from typing import Dict, List, Optional, Tuple

import google_auth_httplib2
import httplib2
from google.auth.exceptions import RefreshError, TransportError
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import Error as GoogleApiClientError

from icsfeed.config.constants import (
    MAX_CALENDARS_PER_CALL,
    MAX_EVENTS_PER_CALL,
    PROVIDER_CALL_TIMEOUT_SECONDS,
)
from icsfeed.core.policy import TimeWindow
from icsfeed.core.timezone_utils import format_rfc3339
from icsfeed.exceptions.errors import ProviderError, TokenRefreshError
from icsfeed.storage.credentials import CredentialRecord

logger = logging.getLogger(__name__)

Page = Tuple[List[Dict], Optional[str]]


class GoogleCalendarSource:
    """Paginated read access to one account's calendars."""

    def __init__(self, credentials: Credentials, account: str = "", service=None):
        """
        Args:
            credentials: google-auth credentials; they refresh themselves
                when the access token expires mid-export.
            account: Account identity, used in error messages.
            service: Prebuilt discovery service (tests).
        """
        self.credentials = credentials
        self.account = account
        self.issued_token = credentials.token
        if service is None:
            http = google_auth_httplib2.AuthorizedHttp(
                credentials, http=httplib2.Http(timeout=PROVIDER_CALL_TIMEOUT_SECONDS)
            )
            service = build("calendar", "v3", http=http, cache_discovery=False)
        self._service = service

    @property
    def access_token(self) -> Optional[str]:
        return self.credentials.token

    @property
    def record(self) -> CredentialRecord:
        """Current token, which differs from ``issued_token`` after a lazy refresh."""
        return CredentialRecord.from_credentials(self.credentials)

    def _execute(self, operation: str, request) -> Dict:
        try:
            response = request.execute()
        except RefreshError as e:
            raise TokenRefreshError(self.account, f"{operation}: unable to refresh token") from e
        except (GoogleApiClientError, TransportError, httplib2.HttpLib2Error, OSError) as e:
            raise ProviderError(operation, str(e)) from e
        if response is None:
            raise ProviderError(operation, "empty response")
        return response

    def list_calendars(self, page_token: Optional[str] = None) -> Page:
        request = self._service.calendarList().list(
            maxResults=MAX_CALENDARS_PER_CALL,
            showHidden=True,
            pageToken=page_token,
        )
        response = self._execute("unable to list calendars", request)
        return response.get("items") or [], response.get("nextPageToken") or None

    def get_calendar(self, calendar_id: str) -> Dict:
        request = self._service.calendars().get(calendarId=calendar_id)
        return self._execute(f"unable to get details for calendar `{calendar_id}'", request)

    def list_events(
        self,
        calendar_id: str,
        window: TimeWindow,
        page_token: Optional[str] = None,
    ) -> Page:
        request = self._service.events().list(
            calendarId=calendar_id,
            maxResults=MAX_EVENTS_PER_CALL,
            showDeleted=False,
            timeMin=format_rfc3339(window.start),
            timeMax=format_rfc3339(window.end),
            pageToken=page_token,
        )
        response = self._execute("unable to list events", request)
        return response.get("items") or [], response.get("nextPageToken") or None
