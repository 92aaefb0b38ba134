"""Tests for the per-visitor session store and application state."""
from __future__ import annotations

import unittest

from medihealth.app.models import AuthSession
from medihealth.app.services.gateway import ConfigurationError, GatewayConnectionError, StoreError
from medihealth.app.services.session_store import AppState, ConnectionState, SessionStore
from tests.fakes import FakeBackend


class SessionStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self.storage: dict = {}
        self.store = SessionStore(self.storage)

    def test_session_round_trips_through_storage(self) -> None:
        session = AuthSession(user_id="u-1", email="ada@example.com", metadata={"first_name": "Ada"}, access_token="t")

        self.store.set_session(session)

        self.assertEqual(self.store.current_session(), session)
        self.store.clear_session()
        self.assertIsNone(self.store.current_session())

    def test_malformed_session_is_discarded(self) -> None:
        self.storage[SessionStore.AUTH_SESSION_KEY] = {"email": "missing-id@example.com"}

        self.assertIsNone(self.store.current_session())
        self.assertNotIn(SessionStore.AUTH_SESSION_KEY, self.storage)

    def test_display_name_falls_back_to_user(self) -> None:
        self.assertEqual(AuthSession(user_id="1", email="x@y.z").display_name, "User")
        named = AuthSession(user_id="1", email="x@y.z", metadata={"first_name": "ada", "last_name": "Lovelace"})
        self.assertEqual(named.display_name, "ada Lovelace")
        self.assertEqual(named.initial, "A")


class AppStateTests(unittest.TestCase):
    def setUp(self) -> None:
        self.backend = FakeBackend()

    def test_without_credentials_state_is_disconnected(self) -> None:
        state = AppState.build({}, gateway_factory=self.backend.connect)

        self.assertIsNone(state.gateway)
        self.assertEqual(state.status.state, ConnectionState.DISCONNECTED)

    def test_embedded_credentials_win_over_saved_ones(self) -> None:
        storage = {SessionStore.CREDENTIALS_KEY: {"url": "https://saved.example.co", "key": "saved"}}

        state = AppState.build(
            storage,
            gateway_factory=self.backend.connect,
            embedded_url="https://embedded.example.co",
            embedded_key="embedded",
        )

        self.assertEqual(state.gateway.url, "https://embedded.example.co")

    def test_saved_credentials_are_used_as_fallback(self) -> None:
        storage = {SessionStore.CREDENTIALS_KEY: {"url": "https://saved.example.co", "key": "saved"}}

        state = AppState.build(storage, gateway_factory=self.backend.connect, embedded_url="", embedded_key="")

        self.assertEqual(state.gateway.url, "https://saved.example.co")
        self.assertEqual(state.status.label, "Connected to Supabase ✓")

    def test_building_state_does_not_revalidate_session(self) -> None:
        user = self.backend.add_user("ada@example.com", "pw")
        stored = AuthSession.from_auth_payload(user, {"access_token": self.backend.issue_token(user)})
        storage = {
            SessionStore.CREDENTIALS_KEY: {"url": "https://saved.example.co", "key": "saved"},
            SessionStore.AUTH_SESSION_KEY: stored.to_dict(),
        }

        state = AppState.build(storage, gateway_factory=self.backend.connect)

        self.assertEqual(self.backend.calls, [])
        self.assertEqual(state.gateway.access_token, stored.access_token)
        self.assertIn("signed in as ada@example.com", state.status.label)

    def test_bad_credentials_set_error_status(self) -> None:
        state = AppState(SessionStore({}), self.backend.connect)

        with self.assertRaises(GatewayConnectionError):
            state.connect("not a url", "key")

        self.assertEqual(state.status.state, ConnectionState.ERROR)
        self.assertIsNone(state.gateway)

    def test_blank_credentials_raise_configuration_error(self) -> None:
        state = AppState(SessionStore({}), self.backend.connect)

        with self.assertRaises(ConfigurationError):
            state.connect("", "")

        self.assertEqual(state.status.state, ConnectionState.DISCONNECTED)

    def test_connect_recovers_a_valid_session(self) -> None:
        user = self.backend.add_user("ada@example.com", "pw", first_name="Ada")
        token = self.backend.issue_token(user)
        storage = {SessionStore.AUTH_SESSION_KEY: AuthSession.from_auth_payload(user, {"access_token": token}).to_dict()}
        state = AppState(SessionStore(storage), self.backend.connect)

        state.connect("https://clinic.example.co", "anon")

        self.assertEqual(self.backend.call_names(), ["get_session"])
        self.assertEqual(state.store.current_session().display_name, "Ada")

    def test_recovery_drops_a_revoked_session(self) -> None:
        stale = AuthSession(user_id="u-9", email="gone@example.com", access_token="revoked")
        storage = {SessionStore.AUTH_SESSION_KEY: stale.to_dict()}
        state = AppState(SessionStore(storage), self.backend.connect)

        state.connect("https://clinic.example.co", "anon")

        self.assertIsNone(state.store.current_session())
        self.assertIsNone(state.gateway.access_token)

    def test_recovery_keeps_session_when_service_is_unreachable(self) -> None:
        stored = AuthSession(user_id="u-1", email="ada@example.com", access_token="t")
        state = AppState(SessionStore({SessionStore.AUTH_SESSION_KEY: stored.to_dict()}), self.backend.connect)
        self.backend.failures["get_session"] = StoreError("upstream unavailable")

        state.connect("https://clinic.example.co", "anon")

        self.assertEqual(state.store.current_session(), stored)

    def test_disconnect_forgets_credentials_and_session(self) -> None:
        storage: dict = {}
        state = AppState(SessionStore(storage), self.backend.connect)
        state.connect("https://clinic.example.co", "anon")
        state.set_session(AuthSession(user_id="u-1", email="ada@example.com"))

        state.disconnect()

        self.assertEqual(storage, {})
        self.assertEqual(state.status.state, ConnectionState.DISCONNECTED)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
