# Overview: Flask API routes for the business assistant chat.

"""
Assistant routes.

One chat session per profile, held in memory. The first request (or a
reset) snapshots the business data that the model is given.
"""

from flask import Blueprint, request, g, current_app
from ..services import assistant_service
from ..services.assistant_service import AssistantError
from ..decorators import require_auth, require_permission

assistant_bp = Blueprint("assistant", __name__, url_prefix="/api/assistant")


def _include_financials() -> bool:
    return g.session_context.has_permission("VIEW_FINANCIALS")


@assistant_bp.get("/session")
@require_auth
@require_permission("USE_ASSISTANT")
def get_session_route():
    """Current transcript, starting a session when there is none."""
    session = assistant_service.get_session(
        profile_id=g.session_context.profile_id, org_id=g.org_id,
        include_financials=_include_financials(),
    )
    return session.to_dict(), 200


@assistant_bp.post("/messages")
@require_auth
@require_permission("USE_ASSISTANT")
def send_message_route():
    """Body: {"message": str}. Returns the model reply."""
    data = request.get_json(silent=True) or {}
    message = data.get("message")
    if not isinstance(message, str) or not message.strip():
        return {"error": "message is required"}, 400

    try:
        reply = assistant_service.send_message(
            profile_id=g.session_context.profile_id,
            org_id=g.org_id,
            message=message,
            include_financials=_include_financials(),
        )
    except AssistantError as e:
        current_app.logger.warning("Assistant request failed: %s", e)
        return {"error": "The assistant is unavailable right now", "detail": str(e)}, 502

    return {"reply": reply}, 200


@assistant_bp.post("/reset")
@require_auth
@require_permission("USE_ASSISTANT")
def reset_route():
    """Clear the transcript and rebuild the business snapshot."""
    session = assistant_service.reset_session(
        profile_id=g.session_context.profile_id, org_id=g.org_id,
        include_financials=_include_financials(),
    )
    return session.to_dict(), 200
