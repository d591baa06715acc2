# Overview: Service-layer operations for team invitations; encapsulates business logic and database work.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Invitation, Organization, Profile
from ..models.auth import INVITATION_PENDING, ROLE_EMPLOYEE
from ..validation import ConflictError, NotFoundError
from .auth_service import normalize_email
from .mailer import get_invite_mailer


def create_invitation(*, org_id: int, email: str, invited_by_profile_id: int | None = None) -> tuple[Invitation, bool]:
    """
    Invite an employee by email.

    Returns (invitation, email_sent). The invitation is stored even when the
    mailer fails, so the owner can share the signup link another way.

    Raises:
        ValidationError: malformed email
        ConflictError: a pending invite exists, or the email already has an account
    """
    email = normalize_email(email)

    existing = (
        db.session.query(Invitation)
        .filter_by(org_id=org_id, email=email, status=INVITATION_PENDING)
        .first()
    )
    if existing:
        raise ConflictError("An invitation for this email is already pending")

    if db.session.query(Profile).filter_by(email=email).first():
        raise ConflictError("A user with this email already exists")

    org = db.session.get(Organization, org_id)
    if org is None:
        raise NotFoundError("Organization not found")

    invitation = Invitation(
        org_id=org_id,
        email=email,
        role=ROLE_EMPLOYEE,
        status=INVITATION_PENDING,
        invited_by_profile_id=invited_by_profile_id,
    )
    db.session.add(invitation)
    db.session.commit()

    email_sent = get_invite_mailer().send_invitation(
        email=email,
        organization_id=org_id,
        organization_name=org.name,
    )
    current_app.logger.info(
        "Invitation %s created for %s in org %s (email_sent=%s)",
        invitation.id, email, org_id, email_sent,
    )
    return invitation, email_sent


def list_invitations(*, org_id: int, status: str | None = None) -> list[Invitation]:
    query = db.session.query(Invitation).filter_by(org_id=org_id)
    if status:
        query = query.filter_by(status=status)
    return query.order_by(Invitation.created_at.desc(), Invitation.id.desc()).all()


def delete_invitation(*, org_id: int, invitation_id: int) -> None:
    """Cancel a pending invitation. Accepted invitations are kept as history."""
    invitation = db.session.query(Invitation).filter_by(id=invitation_id, org_id=org_id).first()
    if invitation is None:
        raise NotFoundError("Invitation not found")
    if invitation.status != INVITATION_PENDING:
        raise ConflictError("Only pending invitations can be removed")

    db.session.delete(invitation)
    db.session.commit()
    current_app.logger.info("Invitation %s removed from org %s", invitation_id, org_id)
