"""Markup rendering for health tips and appointment lists.

Rendering is a pure function of its inputs: templates are loaded from the
package with autoescaping enabled and no request context is required.
"""
from __future__ import annotations

from typing import Iterable

from jinja2 import Environment, PackageLoader, select_autoescape
from markupsafe import Markup

from medihealth.app.models import ALL_CATEGORIES, Appointment, TipCategory
from medihealth.app.tips import filter_tips

_ENVIRONMENT = Environment(
    loader=PackageLoader("medihealth.app", "templates"),
    autoescape=select_autoescape(["html"]),
    trim_blocks=True,
    lstrip_blocks=True,
)

NO_LOOKUP_RESULTS = "No appointments found for this email."
NO_OWNER_APPOINTMENTS = "No upcoming appointments."


def render_tips(category: str | TipCategory = ALL_CATEGORIES) -> Markup:
    """Render the tip cards for ``category`` (or every tip for ``"all"``)."""

    template = _ENVIRONMENT.get_template("partials/tip_cards.html")
    return Markup(template.render(tips=filter_tips(category)))


def render_appointment_list(
    appointments: Iterable[Appointment],
    with_actions: bool,
    *,
    empty_message: str = NO_LOOKUP_RESULTS,
) -> Markup:
    """Render appointment rows in the order given, optionally with actions."""

    template = _ENVIRONMENT.get_template("partials/appointment_list.html")
    return Markup(
        template.render(
            appointments=list(appointments),
            with_actions=with_actions,
            empty_message=empty_message,
        )
    )


def render_notice(text: str) -> Markup:
    """Render a muted single-line notice in place of a list."""

    template = _ENVIRONMENT.get_template("partials/notice.html")
    return Markup(template.render(text=text))
