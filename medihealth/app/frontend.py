"""Route for the single-page clinic site."""
from __future__ import annotations

from flask import Blueprint, render_template

from medihealth.app.context import current_state, current_workflow
from medihealth.app.models import ALL_CATEGORIES, Service, TipCategory, format_service, today
from medihealth.app.services.auth_flow import user_panel
from medihealth.app.services.renderer import render_tips

frontend_bp = Blueprint("frontend", __name__)


@frontend_bp.get("/")
def index() -> str:
    """Render the site, recovering a stored session as the page starts."""

    state = current_state()
    session = state.recover_session()
    owner_html = current_workflow().load_owner_appointments().html if session else None

    return render_template(
        "index.html",
        tips_html=render_tips(ALL_CATEGORIES),
        tip_categories=[category.value for category in TipCategory],
        services=[(service.value, format_service(service.value)) for service in Service],
        min_date=today().isoformat(),
        connection=state.status,
        user=user_panel(session) if session else None,
        owner_html=owner_html,
    )
