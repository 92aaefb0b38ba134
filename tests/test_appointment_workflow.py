"""Tests for the appointment booking, lookup and mutation flows."""
from __future__ import annotations

from datetime import date
import unittest

from medihealth.app.models import AuthSession, normalize_date, normalize_time
from medihealth.app.services.appointment_workflow import (
    AppointmentWorkflow,
    BookingState,
    DialogStage,
    WorkflowConflict,
)
from medihealth.app.services.gateway import (
    CancellationToken,
    ConfigurationError,
    OperationCancelled,
    StoreError,
)
from medihealth.app.services.session_store import AppState, SessionStore
from tests.fakes import FakeBackend

TODAY = date(2025, 3, 15)


def _booking_fields(**overrides):
    fields = {
        "first_name": "Ada",
        "last_name": "Lovelace",
        "email": "ada@example.com",
        "phone": "",
        "service": "general-checkup",
        "appointment_date": "2025-06-01",
        "appointment_time": "10:00",
        "notes": "  ",
    }
    fields.update(overrides)
    return fields


class WorkflowTestCase(unittest.TestCase):
    """Shared fixture: a connected app state over an in-memory backend."""

    def setUp(self) -> None:
        self.backend = FakeBackend()
        self.storage: dict = {}
        self.state = AppState(SessionStore(self.storage), self.backend.connect)
        self.state.connect("https://clinic.example.co", "anon-key", recover=False)
        self.workflow = AppointmentWorkflow(self.state, clock=lambda: TODAY)

    def _sign_in(self) -> AuthSession:
        user = self.backend.add_user("ada@example.com", "pw", first_name="Ada")
        session = AuthSession.from_auth_payload(user, {"access_token": self.backend.issue_token(user)})
        self.state.set_session(session)
        return session


class DemoModeTests(unittest.TestCase):
    def setUp(self) -> None:
        self.backend = FakeBackend()
        self.state = AppState(SessionStore({}), self.backend.connect)
        self.workflow = AppointmentWorkflow(self.state, clock=lambda: TODAY)

    def test_booking_without_gateway_is_acknowledged_in_demo_mode(self) -> None:
        result = self.workflow.book(
            {
                "first_name": "Ada",
                "service": "general-checkup",
                "appointment_date": "2025-06-01",
                "appointment_time": "10:00",
            }
        )

        self.assertTrue(result.ok)
        self.assertTrue(result.demo)
        self.assertIn("Demo mode", result.message)
        for fragment in ("Ada", "2025-06-01", "10:00"):
            self.assertIn(fragment, result.message)
        self.assertEqual(self.backend.calls, [])

    def test_lookup_without_gateway_asks_to_connect(self) -> None:
        result = self.workflow.lookup("ada@example.com")

        self.assertFalse(result.ok)
        self.assertIsInstance(result.error, ConfigurationError)
        self.assertIn("Connect to Supabase first", str(result.html))


class BookingTests(WorkflowTestCase):
    def test_successful_booking_persists_confirmed_record_and_clears_form(self) -> None:
        result = self.workflow.book(_booking_fields())

        self.assertTrue(result.ok, result.message)
        self.assertTrue(result.clear_form)
        self.assertEqual(self.workflow.booking_state, BookingState.CONFIRMED)
        self.assertIn("General Checkup", result.message)

        name, (record,) = self.backend.calls[0]
        self.assertEqual(name, "insert_appointment")
        self.assertEqual(record["status"], "confirmed")
        self.assertIsNone(record["user_id"])
        self.assertIsNone(record["phone"])
        self.assertIsNone(record["notes"])
        self.assertNotIn("query_appointments_by_owner", self.backend.call_names())

    def test_booking_while_signed_in_reloads_owner_list_once(self) -> None:
        session = self._sign_in()

        result = self.workflow.book(_booking_fields())

        self.assertTrue(result.ok)
        insert_record = self.backend.calls[0][1][0]
        self.assertEqual(insert_record["user_id"], session.user_id)
        self.assertEqual(self.backend.call_names().count("query_appointments_by_owner"), 1)
        self.assertIn("General Checkup", str(result.owner_html))

    def test_store_failure_is_reported_verbatim(self) -> None:
        self.backend.failures["insert_appointment"] = StoreError("permission denied for table appointments")

        result = self.workflow.book(_booking_fields())

        self.assertFalse(result.ok)
        self.assertIn("permission denied for table appointments", result.message)
        self.assertEqual(self.workflow.booking_state, BookingState.FAILED)
        self.assertFalse(result.clear_form)

    def test_failed_booking_can_be_resubmitted(self) -> None:
        self.backend.failures["insert_appointment"] = StoreError("temporarily unavailable")
        self.workflow.book(_booking_fields())
        del self.backend.failures["insert_appointment"]

        result = self.workflow.book(_booking_fields())

        self.assertTrue(result.ok)
        self.assertEqual(self.workflow.booking_state, BookingState.CONFIRMED)

    def test_duplicate_submission_is_refused_while_submitting(self) -> None:
        self.workflow.booking_state = BookingState.SUBMITTING

        result = self.workflow.book(_booking_fields())

        self.assertFalse(result.ok)
        self.assertIsInstance(result.error, WorkflowConflict)
        self.assertEqual(self.backend.calls, [])

    def test_invalid_fields_are_rejected_before_any_call(self) -> None:
        cases = {
            "past date": _booking_fields(appointment_date="2025-03-14"),
            "unpadded date": _booking_fields(appointment_date="2025-6-1"),
            "bad time": _booking_fields(appointment_time="25:00"),
            "unknown service": _booking_fields(service="astrology"),
            "missing email": _booking_fields(email=""),
        }
        for label, fields in cases.items():
            with self.subTest(label):
                result = self.workflow.book(fields)
                self.assertFalse(result.ok)
                self.assertIsInstance(result.error, ValueError)
        self.assertEqual(self.backend.calls, [])

    def test_same_day_booking_needs_a_padded_time(self) -> None:
        result = self.workflow.book(_booking_fields(appointment_date="2025-03-15", appointment_time="9:30"))

        self.assertFalse(result.ok)
        result = self.workflow.book(_booking_fields(appointment_date="2025-03-15", appointment_time="09:30:00"))
        self.assertTrue(result.ok, result.message)
        self.assertEqual(self.backend.rows[0]["appointment_time"], "09:30")

    def test_cancelled_token_prevents_the_insert(self) -> None:
        token = CancellationToken()
        token.cancel()

        result = self.workflow.book(_booking_fields(), token=token)

        self.assertFalse(result.ok)
        self.assertIsInstance(result.error, OperationCancelled)
        self.assertEqual(self.backend.rows, [])
        self.assertEqual(self.workflow.booking_state, BookingState.FAILED)


class LookupTests(WorkflowTestCase):
    def test_empty_email_is_rejected(self) -> None:
        result = self.workflow.lookup("   ")

        self.assertFalse(result.ok)
        self.assertIn("Please enter your email address.", str(result.html))
        self.assertEqual(self.backend.calls, [])

    def test_no_matches_renders_empty_state_not_error(self) -> None:
        result = self.workflow.lookup("nobody@example.com")

        self.assertTrue(result.ok)
        self.assertIsNone(result.error)
        self.assertIn("No appointments found for this email.", str(result.html))

    def test_rows_keep_gateway_order_and_carry_actions(self) -> None:
        first = self.backend.add_row(appointment_date="2025-05-01")
        second = self.backend.add_row(appointment_date="2025-04-01")

        result = self.workflow.lookup("ada@example.com")
        html = str(result.html)

        self.assertLess(html.index("2025-05-01"), html.index("2025-04-01"))
        self.assertEqual([apt.id for apt in result.appointments], [first["id"], second["id"]])
        self.assertIn(f'data-id="{first["id"]}"', html)
        self.assertIn("Reschedule", html)
        self.assertEqual(self.storage[SessionStore.LAST_LOOKUP_KEY], "ada@example.com")

    def test_query_failure_shows_error_message(self) -> None:
        self.backend.failures["query_appointments_by_email"] = StoreError("JWT expired")

        result = self.workflow.lookup("ada@example.com")

        self.assertFalse(result.ok)
        self.assertIn("Error: JWT expired", str(result.html))

    def test_owner_list_requires_session(self) -> None:
        result = self.workflow.load_owner_appointments()

        self.assertFalse(result.ok)
        self.assertEqual(self.backend.calls, [])

    def test_owner_list_has_no_actions(self) -> None:
        session = self._sign_in()
        self.backend.add_row(user_id=session.user_id, service="dental-care")

        result = self.workflow.load_owner_appointments()

        self.assertTrue(result.ok)
        self.assertIn("Dental Care", str(result.html))
        self.assertNotIn("Reschedule", str(result.html))

    def test_owner_list_empty_state(self) -> None:
        self._sign_in()

        result = self.workflow.load_owner_appointments()

        self.assertIn("No upcoming appointments.", str(result.html))


class MutationTests(WorkflowTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.row = self.backend.add_row(appointment_date="2025-04-01")
        self.workflow.lookup("ada@example.com")
        self.backend.calls.clear()

    def test_reschedule_with_empty_input_does_nothing(self) -> None:
        for new_date, new_time in (("", "10:00"), ("2025-05-01", ""), (None, None)):
            with self.subTest(new_date=new_date, new_time=new_time):
                result = self.workflow.reschedule(self.row["id"], new_date, new_time)
                self.assertTrue(result.ok)
                self.assertIsNone(result.html)
        self.assertEqual(self.backend.calls, [])
        self.assertEqual(self.row["appointment_date"], "2025-04-01")

    def test_reschedule_updates_and_refreshes_last_lookup(self) -> None:
        result = self.workflow.reschedule(self.row["id"], "2025-05-02", "14:30")

        self.assertTrue(result.ok)
        self.assertEqual(
            self.backend.calls[0],
            (
                "update_appointment",
                (
                    self.row["id"],
                    {"appointment_date": "2025-05-02", "appointment_time": "14:30", "status": "rescheduled"},
                ),
            ),
        )
        self.assertEqual(self.backend.calls[1][0], "query_appointments_by_email")
        self.assertIn("rescheduled", str(result.html))

    def test_reschedule_also_reloads_owner_list_when_signed_in(self) -> None:
        self._sign_in()

        result = self.workflow.reschedule(self.row["id"], "2025-05-02", "14:30")

        self.assertEqual(self.backend.call_names().count("query_appointments_by_owner"), 1)
        self.assertIsNotNone(result.owner_html)

    def test_cancel_without_confirmation_does_nothing(self) -> None:
        result = self.workflow.cancel(self.row["id"], confirmed=False)

        self.assertFalse(result.ok)
        self.assertIsInstance(result.error, WorkflowConflict)
        self.assertEqual(self.backend.calls, [])
        self.assertEqual(self.row["status"], "confirmed")

    def test_cancel_sets_status_and_reruns_lookup(self) -> None:
        result = self.workflow.cancel(self.row["id"], confirmed=True)

        self.assertTrue(result.ok)
        self.assertEqual(self.backend.calls[0], ("update_appointment", (self.row["id"], {"status": "cancelled"})))
        self.assertEqual(self.backend.calls[1], ("query_appointments_by_email", ("ada@example.com",)))
        self.assertIn("cancelled", str(result.html))

    def test_cancel_failure_keeps_list_untouched(self) -> None:
        self.backend.failures["update_appointment"] = StoreError("row level security")

        result = self.workflow.cancel(self.row["id"], confirmed=True)

        self.assertFalse(result.ok)
        self.assertIn("Cancellation failed: row level security", result.message)
        self.assertEqual(self.backend.call_names(), ["update_appointment"])


class RescheduleDialogTests(WorkflowTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.row = self.backend.add_row(appointment_date="2025-04-01")

    def test_full_dialog_runs_the_update(self) -> None:
        opened = self.workflow.open_reschedule(self.row["id"])
        self.assertEqual(opened.dialog_stage, DialogStage.AWAITING_DATE)

        after_date = self.workflow.submit_reschedule_input("2025-05-10")
        self.assertEqual(after_date.dialog_stage, DialogStage.AWAITING_TIME)
        self.assertEqual(self.workflow.dialog_stage(), DialogStage.AWAITING_TIME)

        done = self.workflow.submit_reschedule_input("11:15")

        self.assertTrue(done.ok, done.message)
        self.assertEqual(done.dialog_stage, DialogStage.CLOSED)
        self.assertEqual(self.workflow.dialog_stage(), DialogStage.CLOSED)
        self.assertEqual(self.row["appointment_date"], "2025-05-10")
        self.assertEqual(self.row["appointment_time"], "11:15")
        self.assertEqual(self.row["status"], "rescheduled")

    def test_empty_answer_aborts_without_update(self) -> None:
        self.workflow.open_reschedule(self.row["id"])
        self.workflow.submit_reschedule_input("2025-05-10")

        result = self.workflow.submit_reschedule_input("")

        self.assertTrue(result.ok)
        self.assertEqual(self.workflow.dialog_stage(), DialogStage.CLOSED)
        self.assertNotIn("update_appointment", self.backend.call_names())

    def test_malformed_date_keeps_dialog_waiting(self) -> None:
        self.workflow.open_reschedule(self.row["id"])

        result = self.workflow.submit_reschedule_input("next tuesday")

        self.assertFalse(result.ok)
        self.assertEqual(self.workflow.dialog_stage(), DialogStage.AWAITING_DATE)

    def test_dismiss_closes_dialog_mid_flow(self) -> None:
        self.workflow.open_reschedule(self.row["id"])
        self.workflow.submit_reschedule_input("2025-05-10")

        self.workflow.dismiss_reschedule()

        self.assertEqual(self.workflow.dialog_stage(), DialogStage.CLOSED)
        self.assertEqual(self.backend.calls, [])

    def test_input_without_open_dialog_is_a_conflict(self) -> None:
        result = self.workflow.submit_reschedule_input("2025-05-10")

        self.assertIsInstance(result.error, WorkflowConflict)


class NormalizationTests(unittest.TestCase):
    def test_dates_must_be_zero_padded_iso(self) -> None:
        self.assertEqual(normalize_date("2025-06-01"), "2025-06-01")
        for value in ("2025-6-1", "01/06/2025", "2025-02-30", ""):
            with self.subTest(value=value):
                with self.assertRaises(ValueError):
                    normalize_date(value)

    def test_times_are_24_hour_minutes(self) -> None:
        self.assertEqual(normalize_time("07:05"), "07:05")
        self.assertEqual(normalize_time("23:59:59"), "23:59")
        for value in ("7:05", "24:00", "10:60", "10am"):
            with self.subTest(value=value):
                with self.assertRaises(ValueError):
                    normalize_time(value)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
