"""Client for the hosted data and identity service backing the booking site."""
from __future__ import annotations

import json
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator
from urllib.parse import quote, urlencode, urlparse
import urllib.error
import urllib.request

from medihealth.app.models import Appointment, AuthSession

LOGGER = logging.getLogger(__name__)


class GatewayError(RuntimeError):
    """Base class for failures that are shown to the visitor as a message."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(GatewayError):
    """Raised when the backend URL or access key is missing."""


class GatewayConnectionError(GatewayError):
    """Raised when a client handle cannot be built or the service is unreachable."""


class GatewayTimeoutError(GatewayError):
    """Raised when the service does not answer within the configured timeout."""


class AuthError(GatewayError):
    """Raised when the identity service rejects a sign-up, sign-in or sign-out."""


class StoreError(GatewayError):
    """Raised when the data service rejects an insert, query or update."""


class OperationCancelled(GatewayError):
    """Raised when the triggering action was abandoned before the call completed."""


class _ServiceRejection(Exception):
    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = status
        self.message = message


class CancellationToken:
    """Cancellation flag tied to the lifetime of one user action."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelled("The operation was cancelled.")


@dataclass(slots=True)
class SignUpResult:
    """Outcome of a sign-up; ``session`` is ``None`` when email confirmation is pending."""

    email: str
    session: AuthSession | None


def _error_message(body: bytes, fallback: str) -> str:
    try:
        parsed = json.loads(body.decode("utf-8") or "{}")
    except (UnicodeDecodeError, json.JSONDecodeError):
        return fallback
    if isinstance(parsed, dict):
        for key in ("message", "msg", "error_description", "error"):
            value = parsed.get(key)
            if isinstance(value, str) and value:
                return value
    return fallback


@contextmanager
def _rejections_as(error_cls: type[GatewayError]) -> Iterator[None]:
    try:
        yield
    except _ServiceRejection as exc:
        raise error_cls(exc.message) from exc


class SupabaseGateway:
    """Pass-through handle for the service's REST auth and table endpoints."""

    def __init__(
        self,
        url: str,
        key: str,
        *,
        timeout: float = 10.0,
        table: str = "appointments",
    ) -> None:
        self.url = url.rstrip("/")
        self.key = key
        self.timeout = timeout
        self.table = table
        self.access_token: str | None = None

    @classmethod
    def connect(cls, url: str | None, key: str | None, **options: Any) -> "SupabaseGateway":
        """Build a handle, validating that the credentials can form a client."""

        url = (url or "").strip()
        key = (key or "").strip()
        if not url or not key:
            raise ConfigurationError("Please enter both Supabase URL and Anon Key.")

        parsed = urlparse(url)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise GatewayConnectionError("Connection failed — check your credentials")

        LOGGER.debug("Data service handle created for %s", parsed.netloc)
        return cls(url, key, **options)

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------
    def get_session(
        self, access_token: str | None, *, token: CancellationToken | None = None
    ) -> AuthSession | None:
        """Return the identity behind ``access_token`` or ``None`` if it is no longer valid."""

        if not access_token:
            return None
        try:
            user = self._request("GET", "/auth/v1/user", bearer=access_token, token=token)
        except _ServiceRejection as exc:
            LOGGER.info("Stored session rejected (%s): %s", exc.status, exc.message)
            return None
        if not isinstance(user, dict) or "id" not in user:
            return None
        return AuthSession.from_auth_payload(user, {"access_token": access_token})

    def sign_up(
        self,
        email: str,
        password: str,
        profile: dict[str, Any],
        *,
        redirect_to: str | None = None,
        token: CancellationToken | None = None,
    ) -> SignUpResult:
        query = {"redirect_to": redirect_to} if redirect_to else None
        with _rejections_as(AuthError):
            data = self._request(
                "POST",
                "/auth/v1/signup",
                query=query,
                payload={"email": email, "password": password, "data": profile},
                token=token,
            )

        data = data or {}
        if data.get("access_token") and isinstance(data.get("user"), dict):
            return SignUpResult(email=email, session=AuthSession.from_auth_payload(data["user"], data))
        return SignUpResult(email=email, session=None)

    def sign_in(
        self, email: str, password: str, *, token: CancellationToken | None = None
    ) -> AuthSession:
        with _rejections_as(AuthError):
            data = self._request(
                "POST",
                "/auth/v1/token",
                query={"grant_type": "password"},
                payload={"email": email, "password": password},
                token=token,
            )
        if not isinstance(data, dict) or not isinstance(data.get("user"), dict):
            raise AuthError("Sign-in response did not include a user.")
        return AuthSession.from_auth_payload(data["user"], data)

    def sign_out(self, access_token: str | None, *, token: CancellationToken | None = None) -> None:
        if not access_token:
            return
        with _rejections_as(AuthError):
            self._request("POST", "/auth/v1/logout", bearer=access_token, token=token)

    # ------------------------------------------------------------------
    # Appointments
    # ------------------------------------------------------------------
    def insert_appointment(
        self, record: dict[str, Any], *, token: CancellationToken | None = None
    ) -> str | None:
        """Insert one appointment row and return the identifier the store assigned."""

        with _rejections_as(StoreError):
            rows = self._request(
                "POST",
                self._table_path,
                payload=[record],
                headers={"Prefer": "return=representation"},
                token=token,
            )
        if isinstance(rows, list) and rows and isinstance(rows[0], dict):
            identifier = rows[0].get("id")
            return str(identifier) if identifier is not None else None
        return None

    def query_appointments_by_email(
        self, email: str, *, token: CancellationToken | None = None
    ) -> list[Appointment]:
        return self._select({"email": f"eq.{email}"}, token=token)

    def query_appointments_by_owner(
        self, owner_id: str, *, token: CancellationToken | None = None
    ) -> list[Appointment]:
        return self._select({"user_id": f"eq.{owner_id}"}, token=token)

    def update_appointment(
        self,
        appointment_id: str,
        fields: dict[str, Any],
        *,
        token: CancellationToken | None = None,
    ) -> None:
        with _rejections_as(StoreError):
            self._request(
                "PATCH",
                self._table_path,
                query={"id": f"eq.{appointment_id}"},
                payload=fields,
                headers={"Prefer": "return=minimal"},
                token=token,
            )

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    @property
    def _table_path(self) -> str:
        return f"/rest/v1/{quote(self.table)}"

    def _select(self, filters: dict[str, str], *, token: CancellationToken | None) -> list[Appointment]:
        query = {"select": "*", **filters, "order": "appointment_date.asc"}
        with _rejections_as(StoreError):
            rows = self._request("GET", self._table_path, query=query, token=token)
        if not isinstance(rows, list):
            raise StoreError("Unexpected response while loading appointments.")
        try:
            return [Appointment.from_record(row) for row in rows]
        except (TypeError, ValueError) as exc:
            raise StoreError(f"Unexpected appointment record: {exc}") from exc

    def _request(
        self,
        method: str,
        path: str,
        *,
        query: dict[str, str] | None = None,
        payload: Any = None,
        bearer: str | None = None,
        headers: dict[str, str] | None = None,
        token: CancellationToken | None = None,
    ) -> Any:
        url = self.url + path
        if query:
            url = f"{url}?{urlencode(query)}"

        request_headers = {
            "apikey": self.key,
            "Authorization": f"Bearer {bearer or self.access_token or self.key}",
            "Accept": "application/json",
        }
        data = None
        if payload is not None:
            data = json.dumps(payload).encode("utf-8")
            request_headers["Content-Type"] = "application/json"
        request_headers.update(headers or {})

        request = urllib.request.Request(url, data=data, headers=request_headers, method=method)

        if token is not None:
            token.raise_if_cancelled()
        LOGGER.debug("Sending %s %s", method, url)

        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as response:
                body = response.read()
        except urllib.error.HTTPError as exc:
            message = _error_message(exc.read() or b"", exc.reason or f"HTTP {exc.code}")
            LOGGER.warning("%s %s rejected with %s: %s", method, path, exc.code, message)
            raise _ServiceRejection(exc.code, message) from exc
        except TimeoutError as exc:
            LOGGER.warning("%s %s timed out after %ss", method, path, self.timeout)
            raise GatewayTimeoutError("The request timed out. Please try again.") from exc
        except urllib.error.URLError as exc:
            if isinstance(exc.reason, TimeoutError):
                LOGGER.warning("%s %s timed out after %ss", method, path, self.timeout)
                raise GatewayTimeoutError("The request timed out. Please try again.") from exc
            LOGGER.warning("%s %s failed: %s", method, path, exc.reason)
            raise GatewayConnectionError("Unable to reach the data service.") from exc

        if token is not None:
            token.raise_if_cancelled()
        if not body:
            return None
        try:
            return json.loads(body)
        except json.JSONDecodeError as exc:
            raise GatewayConnectionError("Data service response was not valid JSON.") from exc
