# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

Owners sign up with a new organization name; employees sign up against an
existing organization id. Passwords are hashed with bcrypt.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters with upper, lower, digit and special character
- Session tokens managed separately (see session_service.py)
"""

import re

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import Invitation, Organization, Profile
from ..models.auth import INVITATION_ACCEPTED, INVITATION_PENDING, PROFILE_ROLES, ROLE_EMPLOYEE, ROLE_OWNER
from ..validation import ConflictError, ValidationError
from stockpilot.time_utils import utcnow


EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>?_\-]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Hash password using bcrypt with cost factor 12 (validates strength first)."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check; malformed hashes never verify."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def normalize_email(email) -> str:
    if not isinstance(email, str):
        raise ValidationError("email is required")
    normalized = email.strip().lower()
    if not EMAIL_PATTERN.match(normalized):
        raise ValidationError("email is not a valid address")
    return normalized


def signup(
    *,
    email: str,
    password: str,
    full_name: str,
    role: str,
    organization_name: str | None = None,
    organization_id: int | None = None,
) -> Profile:
    """
    Create a profile, and for owners, the organization it owns.

    - owner: organization_name is required; a new Organization is created.
    - employee: organization_id is required and must exist. Pending
      invitations for this email in that organization are marked accepted.

    Raises:
        ValidationError / PasswordValidationError: bad input
        ConflictError: email already registered
    """
    email = normalize_email(email)

    full_name = (full_name or "").strip() if isinstance(full_name, str) else ""
    if not full_name:
        raise ValidationError("full_name is required")

    if role not in PROFILE_ROLES:
        raise ValidationError(f"role must be one of {', '.join(PROFILE_ROLES)}")

    if db.session.query(Profile).filter_by(email=email).first():
        raise ConflictError("An account with this email already exists")

    # Hash first so a weak password fails before anything is written
    password_hash = hash_password(password)

    if role == ROLE_OWNER:
        name = organization_name.strip() if isinstance(organization_name, str) else ""
        if not name:
            raise ValidationError("organization_name is required for owners")
        org = Organization(name=name)
        db.session.add(org)
        db.session.flush()
    else:
        if organization_id is None:
            raise ValidationError("organization_id is required for employees")
        org = db.session.query(Organization).filter_by(id=organization_id).first()
        if not org:
            raise ValidationError("Organization not found")

    profile = Profile(
        org_id=org.id,
        email=email,
        password_hash=password_hash,
        full_name=full_name,
        role=role,
    )
    db.session.add(profile)

    if role == ROLE_EMPLOYEE:
        pending = db.session.query(Invitation).filter_by(
            org_id=org.id, email=email, status=INVITATION_PENDING
        ).all()
        for invitation in pending:
            invitation.status = INVITATION_ACCEPTED
            invitation.accepted_at = utcnow()

    db.session.commit()
    current_app.logger.info("Profile %s signed up as %s in org %s", profile.id, role, org.id)
    return profile


def authenticate(email: str, password: str) -> Profile | None:
    """
    Authenticate by email and password.

    Returns the Profile and stamps last_login_at on success, None otherwise.
    """
    if not isinstance(email, str) or not isinstance(password, str):
        return None

    profile = db.session.query(Profile).filter(
        Profile.email == email.strip().lower(),
        Profile.is_active.is_(True),
    ).first()
    if not profile:
        return None

    if not verify_password(password, profile.password_hash):
        return None

    profile.last_login_at = utcnow()
    db.session.commit()
    return profile


def list_organizations() -> list[dict]:
    """Organizations an employee can choose from when signing up."""
    orgs = db.session.query(Organization).order_by(Organization.name.asc()).all()
    return [{"id": org.id, "name": org.name} for org in orgs]
