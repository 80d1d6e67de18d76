# Overview: Flask API routes for admin authentication; parses input and returns JSON responses.

# backend/app/routes/auth.py
"""
Admin Authentication API Routes

- POST /api/admin/setup   One-time creation of the first admin (then 403)
- POST /api/admin/login   Email/password -> bearer session token
- POST /api/admin/logout  Revoke the current session token
- GET  /api/admin/me      Who am I (session or static API key)
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import bearer_token, require_admin
from ..services import auth_service, session_service
from ..services.auth_service import AdminSetupClosedError
from ..validation import ConflictError, ValidationError


auth_bp = Blueprint("auth", __name__, url_prefix="/api/admin")


@auth_bp.post("/setup")
def setup_route():
    """
    Create the first admin account and return a session token.

    Request body:
    {
        "email": "admin@example.com",
        "password": "at-least-10-chars"
    }
    """
    try:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            data = {}
        admin = auth_service.create_first_admin(data.get("email"), data.get("password"))
        _, token = session_service.create_session(admin.id)
        return jsonify({"success": True, "token": token, "message": "Admin account created"}), 201

    except AdminSetupClosedError as e:
        return jsonify({"error": str(e)}), 403
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Admin setup failed")
        return jsonify({"error": "Failed to create admin account"}), 500


@auth_bp.post("/login")
def login_route():
    try:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            data = {}
        email = data.get("email")
        password = data.get("password")
        if not email or not password:
            return jsonify({"error": "Email and password are required"}), 400

        admin = auth_service.authenticate(email, password)
        if admin is None:
            return jsonify({"error": "Invalid email or password"}), 401

        session, token = session_service.create_session(admin.id)
        return jsonify({
            "success": True,
            "token": token,
            "expires_at": session.expires_at.isoformat(),
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login admin")
        return jsonify({"error": "Login failed"}), 500


@auth_bp.post("/logout")
@require_admin
def logout_route():
    if g.auth_method == "session":
        session_service.revoke_session(bearer_token())
    return jsonify({"success": True}), 200


@auth_bp.get("/me")
@require_admin
def me_route():
    if g.admin_user is None:
        return jsonify({"authenticated": True, "method": "api_key"}), 200
    return jsonify({"authenticated": True, "method": "session", "email": g.admin_user.email}), 200
