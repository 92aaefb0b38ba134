"""Backend connection endpoints driving the status indicator."""
from __future__ import annotations

from http import HTTPStatus

from flask import jsonify, request
from flask.typing import ResponseReturnValue

from medihealth.app.context import current_state, status_for
from medihealth.app.services.gateway import GatewayError

from . import api_bp


@api_bp.get("/connection")
def connection_status() -> ResponseReturnValue:
    """Return the current backend status indicator."""

    return jsonify(current_state().status.to_dict()), HTTPStatus.OK


@api_bp.post("/connection")
def connect() -> ResponseReturnValue:
    """Create a data service handle from the supplied URL and key."""

    payload = request.get_json(silent=True) or {}
    state = current_state()

    try:
        status = state.connect(payload.get("url") or "", payload.get("key") or "")
    except GatewayError as exc:
        body = {"status": "error", "message": exc.message, "connection": state.status.to_dict()}
        return jsonify(body), status_for(exc)

    body = {"status": "success", "message": status.label, "connection": status.to_dict()}
    session = state.store.current_session()
    if session is not None:
        body["user"] = {"email": session.email, "name": session.display_name}
    return jsonify(body), HTTPStatus.OK


@api_bp.delete("/connection")
def disconnect() -> ResponseReturnValue:
    """Forget the saved backend credentials and any session."""

    state = current_state()
    state.disconnect()
    return jsonify(status="success", message="Disconnected.", connection=state.status.to_dict()), HTTPStatus.OK
