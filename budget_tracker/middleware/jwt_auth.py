"""
JWT Auth Middleware — Parses JWT from Authorization header, sets g.jwt_*.

Requests without a Bearer token pass through with ``g.jwt_user_id = None``;
endpoints that need a user check it themselves (see ``require_jwt``).
"""

import functools

import jwt as pyjwt
from flask import g, request

from budget_tracker.services.jwt_service import decode_access_token
from budget_tracker.utils.errors import E, api_error


# Paths that skip JWT auth entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/auth/login",
    "/api/v1/auth/signup",
    "/api/v1/auth/refresh",
    "/api/v1/health",
)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.jwt_user_id = None
        g.jwt_email = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return

        token = auth_header[7:]  # Strip "Bearer "

        try:
            payload = decode_access_token(token)
        except pyjwt.ExpiredSignatureError:
            g.jwt_error = "Token expired"
            return
        except pyjwt.InvalidTokenError:
            g.jwt_error = "Invalid token"
            return

        g.jwt_user_id = payload.get("sub")
        g.jwt_email = payload.get("email")


def require_jwt(f):
    """Decorator: reject the request with 401 unless a valid access token was sent."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if not getattr(g, "jwt_user_id", None):
            message = getattr(g, "jwt_error", None) or "Authentication required"
            return api_error(E.UNAUTHORIZED, message)
        return f(*args, **kwargs)

    return decorated
