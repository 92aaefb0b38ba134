"""Per-visitor application state: saved credentials, auth session and gateway handle."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, MutableMapping

from medihealth.app.models import AuthSession
from medihealth.app.services.gateway import (
    CancellationToken,
    GatewayConnectionError,
    GatewayError,
    SupabaseGateway,
)

LOGGER = logging.getLogger(__name__)

GatewayFactory = Callable[..., SupabaseGateway]


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class ConnectionStatus:
    """Value shown by the backend status indicator."""

    state: ConnectionState
    label: str

    def to_dict(self) -> dict[str, str]:
        return {"state": self.state.value, "label": self.label}


class SessionStore:
    """Typed view over the visitor's session mapping.

    The mapping is Flask's cookie session in the web app, so everything kept
    here lasts for the browser session and is reset on sign-out.
    """

    CREDENTIALS_KEY = "mh-sb-credentials"
    AUTH_SESSION_KEY = "mh-auth-session"
    LAST_LOOKUP_KEY = "mh-last-lookup"
    DIALOG_KEY = "mh-reschedule-dialog"

    def __init__(self, storage: MutableMapping[str, Any]) -> None:
        self._storage = storage

    def current_session(self) -> AuthSession | None:
        payload = self._storage.get(self.AUTH_SESSION_KEY)
        if not payload:
            return None
        try:
            return AuthSession.from_dict(payload)
        except (KeyError, TypeError):
            LOGGER.warning("Discarding malformed stored session")
            self._storage.pop(self.AUTH_SESSION_KEY, None)
            return None

    def set_session(self, session: AuthSession) -> None:
        self._storage[self.AUTH_SESSION_KEY] = session.to_dict()

    def clear_session(self) -> None:
        self._storage.pop(self.AUTH_SESSION_KEY, None)

    def saved_credentials(self) -> tuple[str, str] | None:
        saved = self._storage.get(self.CREDENTIALS_KEY)
        if not saved:
            return None
        return saved.get("url", ""), saved.get("key", "")

    def save_credentials(self, url: str, key: str) -> None:
        self._storage[self.CREDENTIALS_KEY] = {"url": url, "key": key}

    def forget_credentials(self) -> None:
        self._storage.pop(self.CREDENTIALS_KEY, None)

    @property
    def last_lookup_email(self) -> str | None:
        return self._storage.get(self.LAST_LOOKUP_KEY)

    @last_lookup_email.setter
    def last_lookup_email(self, email: str | None) -> None:
        if email:
            self._storage[self.LAST_LOOKUP_KEY] = email
        else:
            self._storage.pop(self.LAST_LOOKUP_KEY, None)

    def dialog_state(self) -> dict[str, Any] | None:
        state = self._storage.get(self.DIALOG_KEY)
        return dict(state) if state else None

    def set_dialog_state(self, state: dict[str, Any] | None) -> None:
        # Reassign rather than mutate so cookie sessions notice the change.
        if state:
            self._storage[self.DIALOG_KEY] = dict(state)
        else:
            self._storage.pop(self.DIALOG_KEY, None)


class AppState:
    """Session store plus the gateway handle, threaded through every workflow call."""

    def __init__(self, store: SessionStore, gateway_factory: GatewayFactory) -> None:
        self.store = store
        self._gateway_factory = gateway_factory
        self.gateway: SupabaseGateway | None = None
        self.connection_failed = False

    @classmethod
    def build(
        cls,
        storage: MutableMapping[str, Any],
        *,
        gateway_factory: GatewayFactory,
        embedded_url: str | None = None,
        embedded_key: str | None = None,
    ) -> "AppState":
        """Restore state for one request.

        Embedded credentials win over the ones saved in the session. The stored
        auth session is trusted as-is; it is only revalidated by
        :meth:`recover_session`.
        """

        state = cls(SessionStore(storage), gateway_factory)
        url, key = (embedded_url or "").strip(), (embedded_key or "").strip()
        if not (url and key):
            url, key = state.store.saved_credentials() or ("", "")
        if url and key:
            try:
                state.connect(url, key, recover=False)
            except GatewayError:
                pass
        return state

    @property
    def status(self) -> ConnectionStatus:
        if self.connection_failed:
            return ConnectionStatus(ConnectionState.ERROR, "Connection failed — check your credentials")
        if self.gateway is None:
            return ConnectionStatus(ConnectionState.DISCONNECTED, "Not connected")
        session = self.store.current_session()
        if session is not None:
            return ConnectionStatus(ConnectionState.CONNECTED, f"Connected — signed in as {session.email}")
        return ConnectionStatus(ConnectionState.CONNECTED, "Connected to Supabase ✓")

    def connect(self, url: str, key: str, *, recover: bool = True) -> ConnectionStatus:
        """Create the gateway handle and remember the credentials for the session."""

        try:
            gateway = self._gateway_factory(url, key)
        except GatewayConnectionError:
            self.gateway = None
            self.connection_failed = True
            LOGGER.warning("Could not create a data service handle")
            raise

        self.gateway = gateway
        self.connection_failed = False
        self.store.save_credentials(url.strip(), key.strip())
        self.authorize(self.store.current_session())
        if recover:
            self.recover_session()
        return self.status

    def disconnect(self) -> None:
        self.gateway = None
        self.connection_failed = False
        self.store.forget_credentials()
        self.store.clear_session()

    def authorize(self, session: AuthSession | None) -> None:
        if self.gateway is not None:
            self.gateway.access_token = session.access_token if session else None

    def recover_session(self, token: CancellationToken | None = None) -> AuthSession | None:
        """Revalidate the stored auth session against the identity service."""

        stored = self.store.current_session()
        if self.gateway is None or stored is None:
            return None

        try:
            session = self.gateway.get_session(stored.access_token, token=token)
        except GatewayError as exc:
            LOGGER.warning("Session recovery failed: %s", exc.message)
            return stored

        if session is None:
            self.clear_session()
            return None
        session.refresh_token = stored.refresh_token
        self.set_session(session)
        return session

    def set_session(self, session: AuthSession) -> None:
        self.store.set_session(session)
        self.authorize(session)

    def clear_session(self) -> None:
        self.store.clear_session()
        self.authorize(None)
