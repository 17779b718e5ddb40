"""
Auth Blueprint — email/password authentication endpoints.

  POST /api/v1/auth/signup      — Email + password → new user + JWT pair
  POST /api/v1/auth/login       — Email + password → JWT pair
  POST /api/v1/auth/refresh     — Refresh token → new token pair (rotation)
  POST /api/v1/auth/logout      — Revoke refresh token(s)
  PUT  /api/v1/auth/password    — Change password of the current user
  GET  /api/v1/auth/session     — Current user from the access token
"""

from flask import Blueprint, g, jsonify, request

from budget_tracker.core.exceptions import AuthError, ValidationError
from budget_tracker.middleware.jwt_auth import require_jwt
from budget_tracker.services.jwt_service import (
    decode_refresh_token,
    generate_token_pair,
    get_active_session_by_token,
    hash_token,
    issue_session,
    revoke_all_user_sessions,
    revoke_session,
    revoke_session_by_token,
    rotate_session,
)
from budget_tracker.services.user_service import (
    authenticate_user,
    change_user_password,
    create_user,
    get_user_by_id,
)
from budget_tracker.utils.errors import E, api_error

auth_bp = Blueprint("auth_bp", __name__, url_prefix="/api/v1/auth")


def _session_payload(user, tokens: dict) -> dict:
    return {
        "access_token": tokens["access_token"],
        "refresh_token": tokens["refresh_token"],
        "token_type": tokens["token_type"],
        "expires_in": tokens["expires_in"],
        "expires_at": tokens["expires_at"].isoformat(),
        "user": user.to_dict(),
    }


def _credentials():
    data = request.get_json(silent=True) or {}
    return str(data.get("email", "") or "").strip().lower(), str(data.get("password", "") or "")


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/signup
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/signup", methods=["POST"])
def signup():
    """
    Register with email + password; the new user is signed in immediately.

    Body: { "email": "...", "password": "..." }
    """
    email, password = _credentials()
    if not email or not password:
        return api_error(E.VALIDATION_REQUIRED, "Email and password are required")

    try:
        user = create_user(email, password)
    except ValidationError as e:
        return api_error(E.VALIDATION_INVALID, str(e), details=e.details)
    except AuthError as e:
        return api_error(E.CONFLICT_DUPLICATE, e.message, status=e.status_code)

    tokens = issue_session(user, request.remote_addr, request.headers.get("User-Agent", ""))
    return jsonify(_session_payload(user, tokens)), 201


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/login
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/login", methods=["POST"])
def login():
    """
    Authenticate with email + password, return JWT pair.

    Body: { "email": "...", "password": "..." }
    """
    email, password = _credentials()
    if not email or not password:
        return api_error(E.VALIDATION_REQUIRED, "Email and password are required")

    try:
        user = authenticate_user(email, password)
    except AuthError as e:
        return api_error(E.UNAUTHORIZED, e.message, status=e.status_code)

    tokens = issue_session(user, request.remote_addr, request.headers.get("User-Agent", ""))
    return jsonify(_session_payload(user, tokens)), 200


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/refresh
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/refresh", methods=["POST"])
def refresh():
    """
    Exchange a refresh token for a new token pair (token rotation).

    Body: { "refresh_token": "..." }
    """
    data = request.get_json(silent=True) or {}
    refresh_token = data.get("refresh_token", "")

    if not refresh_token:
        return api_error(E.VALIDATION_REQUIRED, "Refresh token is required")

    try:
        payload = decode_refresh_token(refresh_token)
    except Exception:
        return api_error(E.UNAUTHORIZED, "Invalid or expired refresh token")

    user_id = payload.get("sub")
    session = get_active_session_by_token(user_id, hash_token(refresh_token))
    if not session:
        return api_error(E.UNAUTHORIZED, "Session not found or revoked")

    if session.is_expired:
        revoke_session(session)
        return api_error(E.UNAUTHORIZED, "Session expired")

    user = get_user_by_id(user_id)
    if not user or user.status != "active":
        revoke_session(session)
        return api_error(E.UNAUTHORIZED, "User inactive or not found")

    tokens = generate_token_pair(user.id, user.email)
    rotate_session(
        session,
        user.id,
        tokens["token_hash"],
        tokens["expires_at"],
        request.remote_addr,
        request.headers.get("User-Agent", ""),
    )
    return jsonify(_session_payload(user, tokens)), 200


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/logout
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/logout", methods=["POST"])
def logout():
    """
    Revoke the given refresh token, or every session of the bearer.

    Body: { "refresh_token": "..." }  or uses Authorization header
    """
    data = request.get_json(silent=True) or {}
    refresh_token = data.get("refresh_token", "")

    if refresh_token:
        revoke_session_by_token(hash_token(refresh_token))
    elif getattr(g, "jwt_user_id", None):
        revoke_all_user_sessions(g.jwt_user_id)

    return jsonify({"message": "Logged out successfully"}), 200


# ═══════════════════════════════════════════════════════════════
# PUT /api/v1/auth/password
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/password", methods=["PUT"])
@require_jwt
def change_password():
    """
    Change the current user's password.

    Body: { "new_password": "...", "confirm_password": "..." }
    """
    data = request.get_json(silent=True) or {}
    new_pw = str(data.get("new_password", "") or "")
    confirm_pw = data.get("confirm_password")

    try:
        change_user_password(g.jwt_user_id, new_pw, confirm_pw)
    except ValidationError as e:
        return api_error(E.VALIDATION_INVALID, str(e), details=e.details)
    except AuthError as e:
        return api_error(E.NOT_FOUND, e.message, status=e.status_code)

    return jsonify({"message": "Password changed successfully"}), 200


# ═══════════════════════════════════════════════════════════════
# GET /api/v1/auth/session
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/session", methods=["GET"])
@require_jwt
def current_session():
    """Return the user behind the bearer token."""
    user = get_user_by_id(g.jwt_user_id)
    if not user:
        return api_error(E.NOT_FOUND, "User not found")
    return jsonify({"user": user.to_dict()}), 200
