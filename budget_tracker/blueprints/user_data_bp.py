"""
User Data Blueprint — the per-user remote workspace document.

  GET /api/v1/user-data   — point-read by the bearer's user id (404 if none)
  PUT /api/v1/user-data   — upsert (insert-or-replace) the whole document
"""

import logging

from flask import Blueprint, g, jsonify, request

from budget_tracker.core.exceptions import ValidationError
from budget_tracker.middleware.jwt_auth import require_jwt
from budget_tracker.services.user_data_service import get_user_data, upsert_user_data
from budget_tracker.utils.errors import E, api_error

logger = logging.getLogger(__name__)

user_data_bp = Blueprint("user_data_bp", __name__, url_prefix="/api/v1/user-data")


@user_data_bp.route("", methods=["GET"])
@require_jwt
def read_user_data():
    row = get_user_data(g.jwt_user_id)
    if row is None:
        return api_error(E.NOT_FOUND, "No data stored for this user")
    return jsonify(row.to_dict()), 200


@user_data_bp.route("", methods=["PUT"])
@require_jwt
def write_user_data():
    """
    Replace the stored document.

    Body: { "data": { "agencies": [...], "currentAgencyId": "..." } }
    """
    body = request.get_json(silent=True) or {}
    if "data" not in body:
        return api_error(E.VALIDATION_REQUIRED, "data is required")

    try:
        row = upsert_user_data(g.jwt_user_id, body["data"])
    except ValidationError as e:
        return api_error(E.VALIDATION_INVALID, str(e), details=e.details)

    return jsonify(row.to_dict()), 200
