"""Request-scoped access to the visitor's application state."""
from __future__ import annotations

from functools import partial
from http import HTTPStatus

from flask import current_app, g, jsonify, session
from flask.typing import ResponseReturnValue

from medihealth.app.services.appointment_workflow import (
    AppointmentWorkflow,
    WorkflowConflict,
    WorkflowResult,
)
from medihealth.app.services.gateway import (
    AuthError,
    ConfigurationError,
    GatewayTimeoutError,
    OperationCancelled,
    SupabaseGateway,
)
from medihealth.app.services.session_store import AppState

_ERROR_STATUS: list[tuple[type[Exception], HTTPStatus]] = [
    (WorkflowConflict, HTTPStatus.CONFLICT),
    (ConfigurationError, HTTPStatus.BAD_REQUEST),
    (AuthError, HTTPStatus.UNAUTHORIZED),
    (GatewayTimeoutError, HTTPStatus.GATEWAY_TIMEOUT),
    (OperationCancelled, HTTPStatus.REQUEST_TIMEOUT),
    (ValueError, HTTPStatus.BAD_REQUEST),
]


def current_state() -> AppState:
    """Return the :class:`AppState` for this request, building it on first use."""

    if "app_state" not in g:
        config = current_app.config
        factory = config.get("GATEWAY_FACTORY") or SupabaseGateway.connect
        g.app_state = AppState.build(
            session,
            gateway_factory=partial(
                factory,
                timeout=config["GATEWAY_TIMEOUT_SECONDS"],
                table=config["APPOINTMENTS_TABLE"],
            ),
            embedded_url=config.get("SUPABASE_URL"),
            embedded_key=config.get("SUPABASE_ANON_KEY"),
        )
    return g.app_state


def current_workflow() -> AppointmentWorkflow:
    return AppointmentWorkflow(current_state())


def status_for(error: Exception | None) -> HTTPStatus:
    if error is None:
        return HTTPStatus.OK
    for error_cls, status in _ERROR_STATUS:
        if isinstance(error, error_cls):
            return status
    return HTTPStatus.BAD_GATEWAY


def result_response(result: WorkflowResult, *, success_status: HTTPStatus = HTTPStatus.OK) -> ResponseReturnValue:
    """Serialize a workflow result, mapping its error class onto an HTTP status."""

    status = success_status if result.ok else status_for(result.error)
    return jsonify(result.to_payload()), status
