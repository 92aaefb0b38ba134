"""Authentication endpoints backed by the hosted identity service."""
from __future__ import annotations

from http import HTTPStatus

from flask import jsonify, request
from flask.typing import ResponseReturnValue

from medihealth.app.context import current_state, current_workflow, result_response
from medihealth.app.services import auth_flow

from . import api_bp


@api_bp.get("/auth/session")
def recover_session() -> ResponseReturnValue:
    """Recover a previously stored session when the page starts."""

    state = current_state()
    session = state.recover_session()
    body = {"connection": state.status.to_dict(), "user": None}
    if session is not None:
        body["user"] = auth_flow.user_panel(session)
        body["owner_html"] = str(current_workflow().load_owner_appointments().html)
    return jsonify(body), HTTPStatus.OK


@api_bp.post("/auth/signup")
def signup() -> ResponseReturnValue:
    """Register a new account with the identity service."""

    payload = request.get_json(silent=True) or {}
    result = auth_flow.sign_up(
        current_state(),
        payload.get("email") or "",
        payload.get("password") or "",
        payload.get("first_name") or "",
        payload.get("last_name") or "",
        redirect_to=request.host_url,
    )
    return result_response(result, success_status=HTTPStatus.CREATED)


@api_bp.post("/auth/login")
def login() -> ResponseReturnValue:
    """Sign in with email and password."""

    payload = request.get_json(silent=True) or {}
    result = auth_flow.sign_in(
        current_state(), payload.get("email") or "", payload.get("password") or ""
    )
    return result_response(result)


@api_bp.post("/auth/logout")
def logout() -> ResponseReturnValue:
    return result_response(auth_flow.sign_out(current_state()))
