"""Sign-up, sign-in and sign-out against the hosted identity service."""
from __future__ import annotations

import logging
from typing import Any

from medihealth.app.models import AuthSession
from medihealth.app.services.appointment_workflow import AppointmentWorkflow, WorkflowResult
from medihealth.app.services.gateway import AuthError, CancellationToken, ConfigurationError, GatewayError
from medihealth.app.services.session_store import AppState

LOGGER = logging.getLogger(__name__)

NOT_CONNECTED_MESSAGE = "Please connect to Supabase first (see Setup section)."


def user_panel(session: AuthSession) -> dict[str, Any]:
    """Fields shown in the signed-in user panel."""

    return {
        "name": session.display_name,
        "initial": session.initial,
        "email": session.email,
    }


def _signed_in(state: AppState, session: AuthSession, message: str, token: CancellationToken | None) -> WorkflowResult:
    state.set_session(session)
    owner = AppointmentWorkflow(state).load_owner_appointments(token=token)
    return WorkflowResult.success(
        message,
        owner_html=owner.html,
        extra={"user": user_panel(session), "connection": state.status.to_dict()},
    )


def sign_in(
    state: AppState, email: str, password: str, *, token: CancellationToken | None = None
) -> WorkflowResult:
    if state.gateway is None:
        return WorkflowResult.failure(NOT_CONNECTED_MESSAGE, ConfigurationError(NOT_CONNECTED_MESSAGE))

    email = (email or "").strip()
    if not email or not password:
        message = "Email and password are required."
        return WorkflowResult.failure(message, ValueError(message))

    try:
        session = state.gateway.sign_in(email, password, token=token)
    except GatewayError as exc:
        return WorkflowResult.failure(exc.message, exc)

    LOGGER.info("Visitor signed in as %s", session.email)
    return _signed_in(state, session, f"Welcome back! Signed in as {session.email}", token)


def sign_up(
    state: AppState,
    email: str,
    password: str,
    first_name: str = "",
    last_name: str = "",
    *,
    redirect_to: str | None = None,
    token: CancellationToken | None = None,
) -> WorkflowResult:
    """Create an account and sign the visitor in when the service allows it."""

    if state.gateway is None:
        return WorkflowResult.failure(NOT_CONNECTED_MESSAGE, ConfigurationError(NOT_CONNECTED_MESSAGE))

    email = (email or "").strip()
    if not email or not password:
        message = "Email and password are required."
        return WorkflowResult.failure(message, ValueError(message))

    profile = {"first_name": (first_name or "").strip(), "last_name": (last_name or "").strip()}
    try:
        outcome = state.gateway.sign_up(
            email, password, profile, redirect_to=redirect_to, token=token
        )
    except GatewayError as exc:
        return WorkflowResult.failure(exc.message, exc)

    if outcome.session is not None:
        return _signed_in(state, outcome.session, f"Account created! You're now signed in as {email}.", token)

    # Email confirmation is on for the project; signing in still works when it is not enforced.
    try:
        session = state.gateway.sign_in(email, password, token=token)
    except AuthError as exc:
        LOGGER.info("Sign-in after sign-up deferred for %s: %s", email, exc.message)
        return WorkflowResult.success(
            "Account created! If you receive a confirmation email, click the link then sign in. "
            "Otherwise, try signing in now."
        )
    except GatewayError as exc:
        return WorkflowResult.failure(exc.message, exc)

    return _signed_in(state, session, f"Account created and signed in as {email}!", token)


def sign_out(state: AppState, *, token: CancellationToken | None = None) -> WorkflowResult:
    """End the visitor's session; the local session is cleared even if the service call fails."""

    session = state.store.current_session()
    if state.gateway is not None and session is not None:
        try:
            state.gateway.sign_out(session.access_token, token=token)
        except GatewayError as exc:
            LOGGER.warning("Remote sign-out failed: %s", exc.message)
    state.clear_session()
    return WorkflowResult.success("Signed out.", extra={"connection": state.status.to_dict()})
