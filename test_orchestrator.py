"""
Tests for the authorization orchestrator and its pending-state map.
"""

import threading
import unittest
from concurrent.futures import ThreadPoolExecutor, wait
from datetime import timedelta
from unittest.mock import Mock
from urllib.parse import parse_qs, urlparse

from conftest import NOW, FakeBroker, make_record
from icsfeed.auth.orchestrator import (
    AuthorizationOrchestrator,
    PendingAuthorization,
    PendingAuthorizations,
)
from icsfeed.exceptions.errors import (
    AuthorizationDeniedError,
    AuthorizationStateError,
    MissingCodeError,
    StateExpiredError,
    StateMismatchError,
    TokenExchangeError,
)


def state_of(url: str) -> str:
    return parse_qs(urlparse(url).query)["state"][0]


class MutableClock:
    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now


class TestPendingAuthorizations(unittest.TestCase):
    """The lock-protected pending map."""

    def _entry(self, state="s1"):
        return PendingAuthorization(state, "/feed.ics", "me@example.com", object(), NOW)

    def test_take_is_single_use(self):
        pending = PendingAuthorizations()
        entry = self._entry()
        self.assertTrue(pending.put(entry))
        self.assertIs(pending.take("s1"), entry)
        self.assertIsNone(pending.take("s1"))
        self.assertEqual(len(pending), 0)

    def test_duplicate_state_is_refused(self):
        pending = PendingAuthorizations()
        self.assertTrue(pending.put(self._entry()))
        self.assertFalse(pending.put(self._entry()))
        self.assertEqual(len(pending), 1)

    def test_discard_expired(self):
        pending = PendingAuthorizations()
        pending.put(self._entry("old"))
        pending.put(PendingAuthorization("new", "/", "a", object(), NOW + timedelta(minutes=5)))
        self.assertEqual(pending.discard_expired(NOW), 1)
        self.assertNotIn("old", pending)
        self.assertIn("new", pending)

    def test_concurrent_take_returns_entry_once(self):
        """Only one of many concurrent takers gets the entry."""
        for _ in range(20):
            pending = PendingAuthorizations()
            pending.put(self._entry())
            barrier = threading.Barrier(8)

            def taker():
                barrier.wait()
                return pending.take("s1")

            with ThreadPoolExecutor(max_workers=8) as executor:
                futures = [executor.submit(taker) for _ in range(8)]
                wait(futures)

            winners = [f.result() for f in futures if f.result() is not None]
            self.assertEqual(len(winners), 1)


class TestAuthorizationOrchestrator(unittest.TestCase):
    """Created -> Pending -> Resolved transitions."""

    def setUp(self):
        self.broker = FakeBroker()
        self.vault = Mock()
        self.clock = MutableClock()
        self.orchestrator = AuthorizationOrchestrator(self.broker, self.vault, clock=self.clock)

    def test_begin_returns_url_with_unique_state(self):
        urls = [self.orchestrator.begin("me@example.com", "/feed.ics") for _ in range(50)]
        states = {state_of(url) for url in urls}
        self.assertEqual(len(states), 50)
        self.assertEqual(len(self.orchestrator.pending), 50)
        for state in states:
            self.assertGreaterEqual(len(state), 32)

    def test_resolve_stores_token_and_returns_target(self):
        url = self.orchestrator.begin("me@example.com", "/team.ics?x=1")
        target = self.orchestrator.resolve(state_of(url), " the-code ")
        self.assertEqual(target, "/team.ics?x=1")
        self.vault.store.assert_called_once()
        account, record = self.vault.store.call_args[0]
        self.assertEqual(account, "me@example.com")
        self.assertEqual(record.access_token, "fresh-token")
        self.assertEqual(self.broker.flows[0].codes, [" the-code "])

    def test_replayed_state_is_mismatch(self):
        state = state_of(self.orchestrator.begin("me@example.com", "/feed.ics"))
        self.orchestrator.resolve(state, "code")
        with self.assertRaises(StateMismatchError):
            self.orchestrator.resolve(state, "code")
        self.vault.store.assert_called_once()

    def test_unknown_or_empty_state_is_mismatch(self):
        for state in ("nope", "", None):
            with self.assertRaises(StateMismatchError) as ctx:
                self.orchestrator.resolve(state, "code")
            self.assertEqual(str(ctx.exception), "state mismatch")

    def test_expired_entry_is_rejected_and_discarded(self):
        state = state_of(self.orchestrator.begin("me@example.com", "/feed.ics"))
        self.clock.now = NOW + timedelta(minutes=5)
        with self.assertRaises(StateExpiredError) as ctx:
            self.orchestrator.resolve(state, "code")
        self.assertEqual(str(ctx.exception), "expired")
        self.assertNotIn(state, self.orchestrator.pending)
        self.vault.store.assert_not_called()

    def test_entry_just_before_expiry_is_accepted(self):
        state = state_of(self.orchestrator.begin("me@example.com", "/feed.ics"))
        self.clock.now = NOW + timedelta(minutes=5) - timedelta(seconds=1)
        self.assertEqual(self.orchestrator.resolve(state, "code"), "/feed.ics")

    def test_provider_error_is_denied_and_discarded(self):
        state = state_of(self.orchestrator.begin("me@example.com", "/feed.ics"))
        with self.assertRaises(AuthorizationDeniedError) as ctx:
            self.orchestrator.resolve(state, "code", error="access_denied")
        self.assertEqual(str(ctx.exception), "error: access_denied")
        with self.assertRaises(StateMismatchError):
            self.orchestrator.resolve(state, "code")

    def test_missing_code(self):
        state = state_of(self.orchestrator.begin("me@example.com", "/feed.ics"))
        with self.assertRaises(MissingCodeError) as ctx:
            self.orchestrator.resolve(state, "")
        self.assertEqual(str(ctx.exception), "code is missing")

    def test_state_errors_share_a_base(self):
        for cls in (StateMismatchError, StateExpiredError, MissingCodeError):
            self.assertTrue(issubclass(cls, AuthorizationStateError))

    def test_exchange_failure_discards_entry(self):
        self.broker.exchange_error = TokenExchangeError("unable to exchange token: boom")
        state = state_of(self.orchestrator.begin("me@example.com", "/feed.ics"))
        with self.assertRaises(TokenExchangeError):
            self.orchestrator.resolve(state, "code")
        self.assertEqual(len(self.orchestrator.pending), 0)
        self.vault.store.assert_not_called()

    def test_invalid_exchanged_token_is_rejected(self):
        self.broker.exchange_record = make_record("", None)
        state = state_of(self.orchestrator.begin("me@example.com", "/feed.ics"))
        with self.assertRaises(TokenExchangeError):
            self.orchestrator.resolve(state, "code")
        self.vault.store.assert_not_called()

    def test_begin_sweeps_expired_entries(self):
        self.orchestrator.begin("a@example.com", "/a.ics")
        self.clock.now = NOW + timedelta(minutes=10)
        self.orchestrator.begin("b@example.com", "/b.ics")
        self.assertEqual(len(self.orchestrator.pending), 1)

    def test_concurrent_callbacks_with_same_state(self):
        """At most one of two simultaneous callbacks succeeds."""
        state = state_of(self.orchestrator.begin("me@example.com", "/feed.ics"))
        barrier = threading.Barrier(2)

        def callback():
            barrier.wait()
            try:
                return self.orchestrator.resolve(state, "code")
            except StateMismatchError as e:
                return e

        with ThreadPoolExecutor(max_workers=2) as executor:
            futures = [executor.submit(callback) for _ in range(2)]
            wait(futures)

        results = [f.result() for f in futures]
        self.assertEqual(results.count("/feed.ics"), 1)
        self.assertEqual(sum(isinstance(r, StateMismatchError) for r in results), 1)
        self.vault.store.assert_called_once()

    def test_concurrent_accounts_are_independent(self):
        accounts = [f"user{i}@example.com" for i in range(16)]
        with ThreadPoolExecutor(max_workers=8) as executor:
            urls = list(executor.map(lambda a: self.orchestrator.begin(a, f"/{a}.ics"), accounts))
        with ThreadPoolExecutor(max_workers=8) as executor:
            targets = list(executor.map(lambda u: self.orchestrator.resolve(state_of(u), "c"), urls))
        self.assertEqual(targets, [f"/{a}.ics" for a in accounts])
        stored = sorted(call[0][0] for call in self.vault.store.call_args_list)
        self.assertEqual(stored, sorted(accounts))


if __name__ == "__main__":
    unittest.main()
