"""Health tip filtering endpoint."""
from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, jsonify, request
from flask.typing import ResponseReturnValue

from medihealth.app.models import ALL_CATEGORIES
from medihealth.app.services.renderer import render_tips
from medihealth.app.tips import filter_tips

tips_bp = Blueprint("tips", __name__)


@tips_bp.get("")
def list_tips() -> ResponseReturnValue:
    """Return the tips for the requested category along with their markup."""

    category = (request.args.get("category") or ALL_CATEGORIES).strip().lower()
    try:
        tips = filter_tips(category)
    except ValueError:
        return jsonify(message=f"Unknown tip category '{category}'."), HTTPStatus.BAD_REQUEST

    return (
        jsonify(
            category=category,
            tips=[tip.to_dict() for tip in tips],
            html=str(render_tips(category)),
        ),
        HTTPStatus.OK,
    )
