"""Application middleware utilities such as audit logging."""
from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from typing import Any

from flask import Flask, g, request, session

from medihealth.app.services.session_store import SessionStore

AUDIT_LOGGER = logging.getLogger("medihealth.audit")


@dataclass(slots=True)
class _AuditConfig:
    action: str
    entity_type: str


SIGNIFICANT_ACTIONS: dict[str, _AuditConfig] = {
    "api.login": _AuditConfig(action="auth.login", entity_type="user"),
    "api.signup": _AuditConfig(action="auth.signup", entity_type="user"),
    "api.logout": _AuditConfig(action="auth.logout", entity_type="user"),
    "api.appointments.book_appointment": _AuditConfig(
        action="appointment.booked",
        entity_type="appointment",
    ),
    "api.appointments.cancel_appointment": _AuditConfig(
        action="appointment.cancelled",
        entity_type="appointment",
    ),
    "api.appointments.reschedule_input": _AuditConfig(
        action="appointment.reschedule_step",
        entity_type="appointment",
    ),
}


def register_audit_middleware(app: Flask) -> None:
    """Attach hooks that write an audit record for significant actions."""

    @app.before_request
    def _capture_audit_context() -> None:
        config = SIGNIFICANT_ACTIONS.get(request.endpoint or "")
        if not config:
            g.audit_context = None
            return

        g.audit_context = {
            "config": config,
            "method": request.method.upper(),
            "path": _normalize_path(request.path),
            "request_bytes": request.get_data(cache=True) or b"",
            "entity_id": (request.view_args or {}).get("appointment_id"),
        }

    @app.after_request
    def _write_audit_record(response):
        context: dict[str, Any] | None = getattr(g, "audit_context", None)
        if not context:
            return response

        config: _AuditConfig = context["config"]
        auth_session = SessionStore(session).current_session()
        entity_id = context["entity_id"] or _determine_entity_id(config.action, response)

        AUDIT_LOGGER.info(
            "%s %s",
            config.action,
            "succeeded" if response.status_code < 400 else "failed",
            extra={
                "audit_action": config.action,
                "audit_entity_type": config.entity_type,
                "audit_entity_id": entity_id,
                "audit_user_id": auth_session.user_id if auth_session else None,
                "audit_status_code": response.status_code,
                "audit_request_hash": _hash_request(
                    context["method"], context["path"], context["request_bytes"]
                ),
                "audit_response_hash": _hash_response(response),
            },
        )
        return response


def _normalize_path(path: str) -> str:
    if path != "/" and path.endswith("/"):
        return path[:-1]
    return path


def _determine_entity_id(action: str, response) -> str | None:
    if action != "appointment.booked" or not getattr(response, "is_json", False):
        return None
    data = response.get_json(silent=True) or {}
    identifier = data.get("appointment_id")
    return str(identifier) if identifier is not None else None


def _hash_request(method: str, path: str, body: bytes) -> str:
    payload = f"{method}\n{path}\n".encode("utf-8") + body
    return hashlib.sha256(payload).hexdigest()


def _hash_response(response) -> str:
    body = response.get_data() or b""
    payload = f"{response.status_code}\n".encode("utf-8") + body
    return hashlib.sha256(payload).hexdigest()
