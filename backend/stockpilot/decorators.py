# Overview: Request and permission decorators for API routes.

from functools import wraps
from flask import request, jsonify, g, current_app

from .services import session_service


def _is_authenticated() -> bool:
    return hasattr(g, 'session_context') and hasattr(g, 'org_id')


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require authentication and establish tenant context.

    MULTI-TENANT: Sets the following Flask g attributes:
    - g.session_context: The SessionContext for this request
    - g.profile: The authenticated Profile
    - g.org_id: The organization ID (tenant context)

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, revoked or expired token
    - Profile deactivated or organization removed
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.session_context = context
        g.profile = context.profile
        g.org_id = context.org_id

        return f(*args, **kwargs)

    return decorated_function


def require_permission(permission_code: str):
    """
    Require a specific permission for the caller's role.

    Denials are logged with the tenant context.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_auth was called first
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            context = g.session_context
            if not context.has_permission(permission_code):
                current_app.logger.warning(
                    "Permission denied: profile=%s role=%s org=%s permission=%s %s %s",
                    context.profile_id, context.role, g.org_id,
                    permission_code, request.method, request.path,
                )
                return jsonify({
                    "error": "Permission denied",
                    "required_permission": permission_code,
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
