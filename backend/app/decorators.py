# Overview: Request decorators for API routes.

import hmac
from functools import wraps

from flask import current_app, g, jsonify, request

from .services import session_service


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_admin(f):
    """
    Require an internal caller.

    Accepts either:
    - a live admin session token (g.admin_user is set, g.auth_method = "session")
    - the static ADMIN_API_KEY (g.admin_user is None, g.auth_method = "api_key")

    SECURITY: Returns 401 if the header is missing, the token is invalid,
    expired or revoked, and the API key does not match. The key comparison
    is constant-time.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return jsonify({"error": "Unauthorized"}), 401

        admin = session_service.validate_session(token)
        if admin is not None:
            g.admin_user = admin
            g.auth_method = "session"
            return f(*args, **kwargs)

        settings = current_app.extensions["proposal_settings"]
        if settings.admin_api_key and hmac.compare_digest(
            token.encode("utf-8"), settings.admin_api_key.encode("utf-8")
        ):
            g.admin_user = None
            g.auth_method = "api_key"
            return f(*args, **kwargs)

        return jsonify({"error": "Unauthorized"}), 401

    return decorated_function
