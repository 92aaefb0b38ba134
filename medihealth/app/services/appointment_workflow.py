"""Booking, lookup, reschedule and cancel flows for clinic appointments."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Callable, Mapping

from markupsafe import Markup

from medihealth.app.models import (
    Appointment,
    AppointmentStatus,
    Service,
    format_service,
    normalize_date,
    normalize_time,
    today,
)
from medihealth.app.services.gateway import (
    AuthError,
    CancellationToken,
    ConfigurationError,
    GatewayError,
)
from medihealth.app.services.renderer import (
    NO_LOOKUP_RESULTS,
    NO_OWNER_APPOINTMENTS,
    render_appointment_list,
    render_notice,
)
from medihealth.app.services.session_store import AppState

LOGGER = logging.getLogger(__name__)

NOT_CONNECTED_MESSAGE = "Connect to Supabase first to look up appointments."
REQUIRED_BOOKING_FIELDS = (
    "first_name",
    "last_name",
    "email",
    "service",
    "appointment_date",
    "appointment_time",
)


class WorkflowConflict(ValueError):
    """Raised when an action does not fit the current interaction state."""


class BookingState(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class DialogStage(str, Enum):
    CLOSED = "closed"
    AWAITING_DATE = "awaiting_date"
    AWAITING_TIME = "awaiting_time"
    SUBMITTING = "submitting"


DATE_PROMPT = "Enter new date (YYYY-MM-DD):"
TIME_PROMPT = "Enter new time (e.g. 10:00):"


@dataclass(slots=True)
class WorkflowResult:
    """What the visitor sees after an action: a message and optional refreshed markup."""

    ok: bool
    message: str
    html: Markup | None = None
    owner_html: Markup | None = None
    error: Exception | None = None
    clear_form: bool = False
    demo: bool = False
    prompt: str | None = None
    dialog_stage: DialogStage | None = None
    appointments: list[Appointment] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, message: str, **kwargs: Any) -> "WorkflowResult":
        return cls(ok=True, message=message, **kwargs)

    @classmethod
    def failure(cls, message: str, error: Exception, **kwargs: Any) -> "WorkflowResult":
        return cls(ok=False, message=message, error=error, **kwargs)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "status": "success" if self.ok else "error",
            "message": self.message,
        }
        if self.html is not None:
            payload["html"] = str(self.html)
        if self.owner_html is not None:
            payload["owner_html"] = str(self.owner_html)
        if self.clear_form:
            payload["clear_form"] = True
        if self.demo:
            payload["demo"] = True
        if self.prompt is not None:
            payload["prompt"] = self.prompt
        if self.dialog_stage is not None:
            payload["dialog_stage"] = self.dialog_stage.value
        if self.appointments:
            payload["appointments"] = [
                {"id": apt.id, **apt.to_record()} for apt in self.appointments
            ]
        payload.update(self.extra)
        return payload


def _clean(fields: Mapping[str, Any], name: str) -> str:
    value = fields.get(name)
    return str(value).strip() if value is not None else ""


class AppointmentWorkflow:
    """Orchestrates appointment actions against the visitor's :class:`AppState`.

    Without a gateway handle the workflow runs in demo mode: bookings are
    acknowledged but nothing is persisted. Every mutation re-fetches the
    visible lists instead of patching them locally.
    """

    def __init__(self, state: AppState, *, clock: Callable[[], date] | None = None) -> None:
        self.state = state
        self.booking_state = BookingState.IDLE
        self._clock = clock or today

    # ------------------------------------------------------------------
    # Booking
    # ------------------------------------------------------------------
    def book(
        self, fields: Mapping[str, Any], *, token: CancellationToken | None = None
    ) -> WorkflowResult:
        if self.booking_state is BookingState.SUBMITTING:
            return WorkflowResult.failure(
                "A booking is already being submitted.",
                WorkflowConflict("booking in flight"),
            )

        gateway = self.state.gateway
        if gateway is None:
            first_name = _clean(fields, "first_name")
            appointment_date = _clean(fields, "appointment_date")
            appointment_time = _clean(fields, "appointment_time")
            LOGGER.info("Demo booking acknowledged for %s", appointment_date)
            return WorkflowResult.success(
                f"✓ Demo mode — Appointment booked for {first_name} on {appointment_date} "
                f"at {appointment_time}. Connect Supabase to save to database.",
                demo=True,
            )

        try:
            appointment = self._build_appointment(fields)
        except ValueError as exc:
            return WorkflowResult.failure(str(exc), exc)

        session = self.state.store.current_session()
        appointment.user_id = session.user_id if session else None

        self.booking_state = BookingState.SUBMITTING
        try:
            appointment.id = gateway.insert_appointment(appointment.to_record(), token=token)
        except GatewayError as exc:
            LOGGER.warning("Booking rejected: %s", exc.message)
            return WorkflowResult.failure(f"Booking failed: {exc.message}", exc)
        else:
            self.booking_state = BookingState.CONFIRMED
        finally:
            if self.booking_state is BookingState.SUBMITTING:
                self.booking_state = BookingState.FAILED

        LOGGER.info("Appointment %s booked", appointment.id)
        result = WorkflowResult.success(
            f"✓ Appointment confirmed for {appointment.first_name} {appointment.last_name} — "
            f"{format_service(appointment.service)} on {appointment.appointment_date} "
            f"at {appointment.appointment_time}.",
            clear_form=True,
            extra={"appointment_id": appointment.id},
        )
        if session is not None:
            result.owner_html = self.load_owner_appointments(token=token).html
        return result

    def _build_appointment(self, fields: Mapping[str, Any]) -> Appointment:
        missing = [name for name in REQUIRED_BOOKING_FIELDS if not _clean(fields, name)]
        if missing:
            raise ValueError(f"Missing required fields: {', '.join(missing)}.")

        service = _clean(fields, "service")
        try:
            Service(service)
        except ValueError as exc:
            raise ValueError(f"Unknown service '{service}'.") from exc

        return Appointment(
            first_name=_clean(fields, "first_name"),
            last_name=_clean(fields, "last_name"),
            email=_clean(fields, "email"),
            phone=_clean(fields, "phone") or None,
            service=service,
            appointment_date=normalize_date(
                _clean(fields, "appointment_date"), not_before=self._clock()
            ),
            appointment_time=normalize_time(_clean(fields, "appointment_time")),
            notes=_clean(fields, "notes") or None,
            status=AppointmentStatus.CONFIRMED,
        )

    # ------------------------------------------------------------------
    # Lists
    # ------------------------------------------------------------------
    def lookup(self, email: str | None, *, token: CancellationToken | None = None) -> WorkflowResult:
        email = (email or "").strip()
        if not email:
            message = "Please enter your email address."
            return WorkflowResult.failure(message, ValueError(message), html=render_notice(message))

        gateway = self.state.gateway
        if gateway is None:
            return WorkflowResult.failure(
                NOT_CONNECTED_MESSAGE,
                ConfigurationError(NOT_CONNECTED_MESSAGE),
                html=render_notice(NOT_CONNECTED_MESSAGE),
            )

        self.state.store.last_lookup_email = email
        try:
            appointments = gateway.query_appointments_by_email(email, token=token)
        except GatewayError as exc:
            message = f"Error: {exc.message}"
            return WorkflowResult.failure(message, exc, html=render_notice(message))

        message = NO_LOOKUP_RESULTS if not appointments else f"{len(appointments)} appointment(s) found."
        return WorkflowResult.success(
            message,
            html=render_appointment_list(appointments, with_actions=True),
            appointments=appointments,
        )

    def load_owner_appointments(self, *, token: CancellationToken | None = None) -> WorkflowResult:
        """Load the signed-in visitor's own appointments for the user panel."""

        session = self.state.store.current_session()
        gateway = self.state.gateway
        if gateway is None or session is None:
            message = "Sign in to see your appointments."
            return WorkflowResult.failure(message, AuthError(message), html=render_notice(message))

        try:
            appointments = gateway.query_appointments_by_owner(session.user_id, token=token)
        except GatewayError as exc:
            LOGGER.warning("Could not load appointments for %s: %s", session.user_id, exc.message)
            return WorkflowResult.failure(
                "Could not load appointments.", exc, html=render_notice("Could not load appointments.")
            )

        return WorkflowResult.success(
            NO_OWNER_APPOINTMENTS if not appointments else f"{len(appointments)} appointment(s).",
            html=render_appointment_list(
                appointments, with_actions=False, empty_message=NO_OWNER_APPOINTMENTS
            ),
            appointments=appointments,
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def reschedule(
        self,
        appointment_id: str,
        new_date: str | None,
        new_time: str | None,
        *,
        token: CancellationToken | None = None,
    ) -> WorkflowResult:
        """Move an appointment; an empty date or time aborts without touching the store."""

        new_date = (new_date or "").strip()
        new_time = (new_time or "").strip()
        if not new_date or not new_time:
            return WorkflowResult.success("Reschedule cancelled.")

        gateway = self.state.gateway
        if gateway is None:
            return WorkflowResult.failure(NOT_CONNECTED_MESSAGE, ConfigurationError(NOT_CONNECTED_MESSAGE))

        try:
            fields = {
                "appointment_date": normalize_date(new_date, not_before=self._clock()),
                "appointment_time": normalize_time(new_time),
                "status": AppointmentStatus.RESCHEDULED.value,
            }
        except ValueError as exc:
            return WorkflowResult.failure(str(exc), exc)

        try:
            gateway.update_appointment(appointment_id, fields, token=token)
        except GatewayError as exc:
            return WorkflowResult.failure(f"Reschedule failed: {exc.message}", exc)

        LOGGER.info("Appointment %s rescheduled", appointment_id)
        return self._after_mutation("Appointment rescheduled successfully.", token=token)

    def cancel(
        self,
        appointment_id: str,
        confirmed: bool,
        *,
        token: CancellationToken | None = None,
    ) -> WorkflowResult:
        if not confirmed:
            message = "Please confirm that you want to cancel this appointment."
            return WorkflowResult.failure(message, WorkflowConflict(message))

        gateway = self.state.gateway
        if gateway is None:
            return WorkflowResult.failure(NOT_CONNECTED_MESSAGE, ConfigurationError(NOT_CONNECTED_MESSAGE))

        try:
            gateway.update_appointment(
                appointment_id, {"status": AppointmentStatus.CANCELLED.value}, token=token
            )
        except GatewayError as exc:
            return WorkflowResult.failure(f"Cancellation failed: {exc.message}", exc)

        LOGGER.info("Appointment %s cancelled", appointment_id)
        return self._after_mutation("Appointment cancelled.", token=token)

    def _after_mutation(self, message: str, *, token: CancellationToken | None) -> WorkflowResult:
        result = WorkflowResult.success(message)
        email = self.state.store.last_lookup_email
        if email:
            refreshed = self.lookup(email, token=token)
            result.html = refreshed.html
            result.appointments = refreshed.appointments
        if self.state.store.current_session() is not None:
            result.owner_html = self.load_owner_appointments(token=token).html
        return result

    # ------------------------------------------------------------------
    # Reschedule dialog
    # ------------------------------------------------------------------
    def dialog_stage(self) -> DialogStage:
        dialog = self.state.store.dialog_state()
        if not dialog:
            return DialogStage.CLOSED
        return DialogStage(dialog.get("stage", DialogStage.CLOSED.value))

    def open_reschedule(self, appointment_id: str) -> WorkflowResult:
        if self.state.gateway is None:
            return WorkflowResult.failure(NOT_CONNECTED_MESSAGE, ConfigurationError(NOT_CONNECTED_MESSAGE))

        self.state.store.set_dialog_state(
            {"appointment_id": appointment_id, "stage": DialogStage.AWAITING_DATE.value}
        )
        return WorkflowResult.success(
            DATE_PROMPT, prompt=DATE_PROMPT, dialog_stage=DialogStage.AWAITING_DATE
        )

    def submit_reschedule_input(
        self, value: str | None, *, token: CancellationToken | None = None
    ) -> WorkflowResult:
        """Feed the next answer to the open reschedule dialog."""

        dialog = self.state.store.dialog_state()
        stage = self.dialog_stage()
        if dialog is None or stage is DialogStage.CLOSED:
            message = "No reschedule is in progress."
            return WorkflowResult.failure(message, WorkflowConflict(message))
        if stage is DialogStage.SUBMITTING:
            message = "A reschedule is already being submitted."
            return WorkflowResult.failure(message, WorkflowConflict(message))

        value = (value or "").strip()
        if not value:
            return self.dismiss_reschedule()

        if stage is DialogStage.AWAITING_DATE:
            try:
                dialog["new_date"] = normalize_date(value, not_before=self._clock())
            except ValueError as exc:
                return WorkflowResult.failure(
                    str(exc), exc, prompt=DATE_PROMPT, dialog_stage=DialogStage.AWAITING_DATE
                )
            dialog["stage"] = DialogStage.AWAITING_TIME.value
            self.state.store.set_dialog_state(dialog)
            return WorkflowResult.success(
                TIME_PROMPT, prompt=TIME_PROMPT, dialog_stage=DialogStage.AWAITING_TIME
            )

        try:
            normalize_time(value)
        except ValueError as exc:
            return WorkflowResult.failure(
                str(exc), exc, prompt=TIME_PROMPT, dialog_stage=DialogStage.AWAITING_TIME
            )

        dialog["stage"] = DialogStage.SUBMITTING.value
        self.state.store.set_dialog_state(dialog)
        try:
            result = self.reschedule(
                dialog["appointment_id"], dialog.get("new_date"), value, token=token
            )
        finally:
            self.state.store.set_dialog_state(None)
        result.dialog_stage = DialogStage.CLOSED
        return result

    def dismiss_reschedule(self) -> WorkflowResult:
        self.state.store.set_dialog_state(None)
        return WorkflowResult.success("Reschedule cancelled.", dialog_stage=DialogStage.CLOSED)
