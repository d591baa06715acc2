# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/stockpilot/routes/auth.py
"""
Authentication API routes

- Owners sign up with a new organization; employees join an existing one
- Login issues an opaque bearer token (hashed at rest, see session_service)
- Clients re-query /me after login/logout to refresh their session state
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..validation import ValidationError, ConflictError
from ..decorators import require_auth
from ..permissions import get_role_permissions


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _session_payload(profile, token: str, session) -> dict:
    return {
        "profile": profile.to_dict(),
        "organization": profile.organization.to_dict() if profile.organization else None,
        "permissions": sorted(get_role_permissions(profile.role)),
        "token": token,
        "session": session.to_dict(),
        "org_id": session.org_id,
    }


@auth_bp.get("/organizations")
def organizations_route():
    """Organizations to choose from on the employee signup form (public)."""
    return jsonify({"items": auth_service.list_organizations()}), 200


@auth_bp.post("/signup")
def signup_route():
    """
    Create an account and log it in.

    Body: email, password, full_name, role ("owner" | "employee"),
    organization_name (owner) or organization_id (employee).
    """
    data = request.get_json(silent=True) or {}

    try:
        profile = auth_service.signup(
            email=data.get("email"),
            password=data.get("password"),
            full_name=data.get("full_name"),
            role=data.get("role"),
            organization_name=data.get("organization_name"),
            organization_id=data.get("organization_id"),
        )
        session, token = session_service.create_session(profile.id)
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to sign up user")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(_session_payload(profile, token, session)), 201


@auth_bp.post("/login")
def login_route():
    """
    Authenticate by email and password and create a session token.

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required"}), 400

        profile = auth_service.authenticate(email, password)
        if not profile:
            current_app.logger.info("Failed login for %s from %s", email, request.remote_addr)
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(profile.id)

        payload = _session_payload(profile, token, session)
        payload["message"] = "Login successful"
        return jsonify(payload), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """
    Revoke session token (logout).

    Expects Authorization header: Bearer <token>
    """
    try:
        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authorization header required"}), 401

        token = auth_header.split(" ", 1)[1]

        if not session_service.revoke_session(token):
            return jsonify({"error": "Invalid or expired token"}), 401

        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    """Current profile, organization and permissions."""
    context = g.session_context
    profile = context.profile
    return jsonify({
        "profile": profile.to_dict(),
        "organization": profile.organization.to_dict() if profile.organization else None,
        "permissions": sorted(context.permissions),
        "org_id": context.org_id,
    }), 200
