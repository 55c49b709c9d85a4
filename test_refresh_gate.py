"""Tests for the token refresh gate and the Google token broker."""

from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
import pytz
import requests
from google.auth.exceptions import RefreshError
from requests_oauthlib import OAuth2Session

from conftest import NOW, FakeBroker, FakeCalendarSource, make_record
from icsfeed.auth.broker import GoogleTokenBroker, LoopbackFlow, credentials_from_record
from icsfeed.auth.refresh import TokenRefreshGate
from icsfeed.config.constants import GOOGLE_TOKEN_URI, PROVIDER_CALL_TIMEOUT_SECONDS
from icsfeed.config.settings import OAuthSettings
from icsfeed.exceptions.errors import TokenExchangeError, TokenRefreshError
from icsfeed.storage.credentials import CredentialRecord

OAUTH = OAuthSettings(client_id="client-id", client_secret="client-secret")


@pytest.fixture
def source() -> FakeCalendarSource:
    return FakeCalendarSource([[]])


@pytest.fixture
def gate_broker(source) -> FakeBroker:
    return FakeBroker(source)


@pytest.fixture
def gate(gate_broker, clock) -> TokenRefreshGate:
    return TokenRefreshGate(gate_broker, clock=clock)


def test_valid_token_is_not_refreshed(gate, gate_broker) -> None:
    stored = []
    source, changed = gate.ensure_fresh("me@example.com", make_record(), on_refresh=stored.append)
    assert not changed
    assert stored == []
    assert gate_broker.refreshed == []
    assert source.issued_token == "access-1"


def test_expiring_token_is_refreshed_and_reported(gate, gate_broker) -> None:
    stored = []
    stale = make_record(expires_in=30)
    source, changed = gate.ensure_fresh("me@example.com", stale, on_refresh=stored.append)
    assert changed
    assert gate_broker.refreshed == [stale]
    assert [r.access_token for r in stored] == ["refreshed-token"]
    assert source.issued_token == "refreshed-token"


def test_expired_token_without_callback(gate) -> None:
    _, changed = gate.ensure_fresh("me@example.com", make_record(expires_in=-10))
    assert changed


def test_refresh_returning_same_token_is_not_a_change(gate, gate_broker) -> None:
    gate_broker.refresh_result = make_record("access-1")
    stored = []
    _, changed = gate.ensure_fresh("me@example.com", make_record(expires_in=0), stored.append)
    assert not changed
    assert stored == []


def test_refresh_failure_is_distinct_error(gate, gate_broker) -> None:
    gate_broker.refresh_error = TokenRefreshError("me@example.com", "unable to refresh token")
    with pytest.raises(TokenRefreshError) as exc:
        gate.ensure_fresh("me@example.com", make_record(expires_in=-10))
    assert exc.value.account == "me@example.com"


def test_invalid_refreshed_token_is_rejected(gate, gate_broker) -> None:
    gate_broker.refresh_result = make_record("")
    with pytest.raises(TokenRefreshError):
        gate.ensure_fresh("me@example.com", make_record(expires_in=-10))


def test_settle_reports_rotation_during_use(gate) -> None:
    stored = []
    source, _ = gate.ensure_fresh("me@example.com", make_record())
    assert not gate.settle(source, stored.append)

    source.rotate("rotated-token")
    assert gate.settle(source, stored.append)
    assert [r.access_token for r in stored] == ["rotated-token"]


def test_credentials_from_record_uses_naive_utc_expiry() -> None:
    berlin = pytz.timezone("Europe/Berlin")
    record = make_record()
    local = CredentialRecord(
        access_token="a", refresh_token="r", expiry=record.expiry.astimezone(berlin)
    )
    credentials = credentials_from_record(local, OAUTH)
    assert credentials.token == "a"
    assert credentials.refresh_token == "r"
    assert credentials.client_id == "client-id"
    assert credentials.expiry.tzinfo is None
    assert credentials.expiry == (NOW + timedelta(hours=1)).replace(tzinfo=None)


def test_broker_begin_builds_offline_consent_url() -> None:
    broker = GoogleTokenBroker(OAUTH, redirect_uri="https://feeds.example.com/auth")
    flow = broker.begin("the-state")
    assert flow.url.startswith("https://accounts.google.com/")
    assert "state=the-state" in flow.url
    assert "access_type=offline" in flow.url
    assert "prompt=consent" in flow.url
    assert "client_id=client-id" in flow.url
    assert "redirect_uri=https%3A%2F%2Ffeeds.example.com%2Fauth" in flow.url


def test_broker_refresh_requires_refresh_token() -> None:
    broker = GoogleTokenBroker(OAUTH)
    with pytest.raises(TokenRefreshError):
        broker.refresh(make_record(refresh=None), "me@example.com")


def test_broker_refresh_wraps_provider_errors() -> None:
    broker = GoogleTokenBroker(OAUTH)
    with patch("icsfeed.auth.broker.Credentials.refresh", side_effect=RefreshError("revoked")):
        with pytest.raises(TokenRefreshError) as exc:
            broker.refresh(make_record(), "me@example.com")
    assert "me@example.com" in str(exc.value)


def test_broker_refresh_keeps_refresh_token() -> None:
    broker = GoogleTokenBroker(OAUTH)

    def fake_refresh(self, request):
        self.token = "new-access"
        self.expiry = (NOW + timedelta(hours=1)).replace(tzinfo=None)
        self._refresh_token = None

    with patch("icsfeed.auth.broker.Credentials.refresh", fake_refresh):
        refreshed = broker.refresh(make_record(refresh="keep-me"), "me@example.com")
    assert refreshed.access_token == "new-access"
    assert refreshed.refresh_token == "keep-me"
    assert refreshed.expiry == NOW + timedelta(hours=1)


def test_flow_exchange_strips_code_and_wraps_errors() -> None:
    broker = GoogleTokenBroker(OAUTH, redirect_uri="https://feeds.example.com/auth")
    flow = broker.begin("s")
    flow._flow = MagicMock()
    flow._flow.credentials.token = "t"
    flow._flow.credentials.refresh_token = "r"
    flow._flow.credentials.expiry = None
    record = flow.exchange("  code \n")
    flow._flow.fetch_token.assert_called_once_with(
        code="code", timeout=PROVIDER_CALL_TIMEOUT_SECONDS
    )
    assert record.access_token == "t"

    flow._flow.fetch_token.side_effect = ValueError("bad code")
    with pytest.raises(TokenExchangeError):
        flow.exchange("code")


def _capture_token_request(captured):
    def request(self, method, url, **kwargs):
        captured.update(kwargs, url=url)
        raise requests.ConnectionError("token endpoint unreachable")

    return request


def test_flow_exchange_bounds_token_request() -> None:
    captured = {}
    flow = GoogleTokenBroker(OAUTH, redirect_uri="https://feeds.example.com/auth").begin("s")
    with patch.object(OAuth2Session, "request", _capture_token_request(captured)):
        with pytest.raises(TokenExchangeError):
            flow.exchange("code")
    assert captured["url"] == GOOGLE_TOKEN_URI
    assert captured["timeout"] == PROVIDER_CALL_TIMEOUT_SECONDS


def test_loopback_flow_bounds_token_request() -> None:
    captured = {}
    broker = GoogleTokenBroker(OAUTH)
    flow = LoopbackFlow.from_client_config(broker._client_config("installed"), scopes=broker.scopes)
    with patch.object(OAuth2Session, "request", _capture_token_request(captured)):
        with pytest.raises(requests.ConnectionError):
            flow.fetch_token(code="code")
    assert captured["timeout"] == PROVIDER_CALL_TIMEOUT_SECONDS
