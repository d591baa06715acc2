# Overview: Flask API routes for team invitations; parses input and returns JSON responses.

from flask import Blueprint, request, g
from ..services import team_service
from ..validation import ValidationError, ConflictError, NotFoundError
from ..decorators import require_auth, require_permission

team_bp = Blueprint("team", __name__, url_prefix="/api/team")


@team_bp.get("/invitations")
@require_auth
@require_permission("MANAGE_TEAM")
def list_invitations_route():
    """Invitations newest first. Query param status filters (pending | accepted)."""
    invitations = team_service.list_invitations(org_id=g.org_id, status=request.args.get("status"))
    return {"items": [i.to_dict() for i in invitations], "count": len(invitations)}, 200


@team_bp.post("/invitations")
@require_auth
@require_permission("MANAGE_TEAM")
def create_invitation_route():
    """Invite an employee. Body: {"email": str}."""
    data = request.get_json(silent=True) or {}

    try:
        invitation, email_sent = team_service.create_invitation(
            org_id=g.org_id,
            email=data.get("email"),
            invited_by_profile_id=g.session_context.profile_id,
        )
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400

    return {"invitation": invitation.to_dict(), "email_sent": email_sent}, 201


@team_bp.delete("/invitations/<int:invitation_id>")
@require_auth
@require_permission("MANAGE_TEAM")
def delete_invitation_route(invitation_id: int):
    try:
        team_service.delete_invitation(org_id=g.org_id, invitation_id=invitation_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409

    return {"ok": True}, 200
