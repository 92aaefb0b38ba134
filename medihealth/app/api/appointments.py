"""Endpoints for booking and managing appointments."""
from __future__ import annotations

from http import HTTPStatus
from typing import Any

from flask import Blueprint, request
from flask.typing import ResponseReturnValue

from medihealth.app.context import current_workflow, result_response

appointments_bp = Blueprint("appointments", __name__)


def _payload() -> dict[str, Any]:
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form.to_dict()


@appointments_bp.post("")
def book_appointment() -> ResponseReturnValue:
    """Book an appointment, or acknowledge it in demo mode when no backend is connected."""

    result = current_workflow().book(_payload())
    success_status = HTTPStatus.OK if result.demo else HTTPStatus.CREATED
    return result_response(result, success_status=success_status)


@appointments_bp.get("")
def lookup_appointments() -> ResponseReturnValue:
    """List appointments booked under an email address."""

    return result_response(current_workflow().lookup(request.args.get("email")))


@appointments_bp.get("/mine")
def my_appointments() -> ResponseReturnValue:
    """List the signed-in visitor's own appointments."""

    return result_response(current_workflow().load_owner_appointments())


@appointments_bp.post("/<appointment_id>/cancel")
def cancel_appointment(appointment_id: str) -> ResponseReturnValue:
    payload = _payload()
    confirmed = payload.get("confirm") in (True, "true", "yes", "1", 1)
    return result_response(current_workflow().cancel(appointment_id, confirmed))


@appointments_bp.post("/<appointment_id>/reschedule")
def open_reschedule(appointment_id: str) -> ResponseReturnValue:
    """Open the reschedule dialog; answers arrive through ``/reschedule/input``."""

    return result_response(current_workflow().open_reschedule(appointment_id))


@appointments_bp.post("/reschedule/input")
def reschedule_input() -> ResponseReturnValue:
    return result_response(current_workflow().submit_reschedule_input(_payload().get("value")))


@appointments_bp.post("/reschedule/dismiss")
def dismiss_reschedule() -> ResponseReturnValue:
    return result_response(current_workflow().dismiss_reschedule())
