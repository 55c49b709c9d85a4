"""Shared fakes for the Google collaborators; no test touches the network."""

from datetime import datetime, timedelta
from typing import Dict, List, Optional

import pytest
import pytz

from icsfeed.storage.credentials import CredentialRecord
from icsfeed.storage.vault import CredentialVault

NOW = pytz.utc.localize(datetime(2024, 5, 1, 12, 0, 0))


def make_record(token: str = "access-1", refresh: Optional[str] = "refresh-1", expires_in=3600):
    expiry = None if expires_in is None else NOW + timedelta(seconds=expires_in)
    return CredentialRecord(access_token=token, refresh_token=refresh, expiry=expiry)


def paged(items: List[Dict], size: int) -> List[List[Dict]]:
    """Split ``items`` into pages of ``size``; always at least one page."""
    return [items[i:i + size] for i in range(0, len(items), size)] or [[]]


class FakeCalendarSource:
    """Calendar Source serving fixed pages; page tokens are page indexes."""

    def __init__(
        self,
        calendar_pages: List[List[Dict]],
        event_pages: Optional[List[List[Dict]]] = None,
        metadata: Optional[Dict[str, Dict]] = None,
        record: Optional[CredentialRecord] = None,
        account: str = "me@example.com",
    ):
        self.calendar_pages = calendar_pages
        self.event_pages = event_pages or [[]]
        self.metadata = metadata or {}
        self.record = record or make_record()
        self.issued_token = self.record.access_token
        self.account = account
        self.calendar_calls: List[Optional[str]] = []
        self.event_calls = []
        self.fail_on_events = None

    @property
    def access_token(self) -> str:
        return self.record.access_token

    def rotate(self, token: str) -> None:
        """Simulate a lazy refresh during use."""
        self.record = make_record(token)

    def list_calendars(self, page_token=None):
        self.calendar_calls.append(page_token)
        index = int(page_token or 0)
        next_token = str(index + 1) if index + 1 < len(self.calendar_pages) else None
        return self.calendar_pages[index], next_token

    def get_calendar(self, calendar_id):
        return self.metadata.get(calendar_id, {"id": calendar_id, "timeZone": "Europe/Berlin"})

    def list_events(self, calendar_id, window, page_token=None):
        self.event_calls.append((calendar_id, window, page_token))
        if self.fail_on_events is not None:
            raise self.fail_on_events
        index = int(page_token or 0)
        next_token = str(index + 1) if index + 1 < len(self.event_pages) else None
        return self.event_pages[index], next_token


class FakeFlow:
    def __init__(self, state: str, record: Optional[CredentialRecord] = None, error=None):
        self.state = state
        self.url = f"https://accounts.example.com/auth?state={state}"
        self.record = record or make_record("fresh-token")
        self.error = error
        self.codes: List[str] = []

    def exchange(self, code: str) -> CredentialRecord:
        self.codes.append(code)
        if self.error is not None:
            raise self.error
        return self.record


class FakeBroker:
    """Token Broker handing out FakeFlows and a configured FakeCalendarSource."""

    def __init__(self, source: Optional[FakeCalendarSource] = None):
        self.source = source
        self.flows: List[FakeFlow] = []
        self.refreshed: List[CredentialRecord] = []
        self.refresh_result: Optional[CredentialRecord] = make_record("refreshed-token")
        self.refresh_error: Optional[Exception] = None
        self.exchange_record: Optional[CredentialRecord] = None
        self.exchange_error: Optional[Exception] = None
        self.sources_for: List[CredentialRecord] = []

    def begin(self, state: str) -> FakeFlow:
        flow = FakeFlow(state, self.exchange_record, self.exchange_error)
        self.flows.append(flow)
        return flow

    def refresh(self, record: CredentialRecord, account: str = "") -> CredentialRecord:
        self.refreshed.append(record)
        if self.refresh_error is not None:
            raise self.refresh_error
        return self.refresh_result

    def calendar_source(self, record: CredentialRecord, account: str = ""):
        self.sources_for.append(record)
        if self.source is not None:
            self.source.record = record
            self.source.issued_token = record.access_token
            self.source.account = account
        return self.source


@pytest.fixture
def vault(tmp_path) -> CredentialVault:
    return CredentialVault(tmp_path / "tokens", "s3cret", create=True)


@pytest.fixture
def broker() -> FakeBroker:
    return FakeBroker()


@pytest.fixture
def clock():
    return lambda: NOW
