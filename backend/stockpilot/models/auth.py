from __future__ import annotations

from ..extensions import db
from stockpilot.time_utils import to_utc_z, utcnow

ROLE_OWNER = "owner"
ROLE_EMPLOYEE = "employee"
PROFILE_ROLES = (ROLE_OWNER, ROLE_EMPLOYEE)

INVITATION_PENDING = "pending"
INVITATION_ACCEPTED = "accepted"


class Profile(db.Model):
    """
    Authenticated identity plus its tenant membership.

    The role is fixed at signup: owners create the organization, employees
    join an existing one. There is no operation that changes a role later.
    """
    __tablename__ = "profiles"
    __table_args__ = (
        db.Index("ix_profiles_org_id", "org_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False)

    # Emails are globally unique: login does not ask for an organization
    email = db.Column(db.String(255), nullable=False, unique=True)
    password_hash = db.Column(db.String(255), nullable=False)
    full_name = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(16), nullable=False, default=ROLE_EMPLOYEE)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    organization = db.relationship("Organization", backref=db.backref("profiles", lazy=True))

    def __repr__(self) -> str:
        return f"<Profile id={self.id} email={self.email!r} role={self.role}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "email": self.email,
            "full_name": self.full_name,
            "role": self.role,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }


class SessionToken(db.Model):
    """
    Bearer session. Only the SHA-256 hash of the token is stored.

    org_id is captured at creation time and is the tenant context for every
    request authenticated with this token.
    """
    __tablename__ = "session_tokens"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    profile_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=False, index=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    token_hash = db.Column(db.String(64), nullable=False, unique=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    profile = db.relationship("Profile", backref=db.backref("sessions", lazy=True))

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "profile_id": self.profile_id,
            "org_id": self.org_id,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
            "expires_at": to_utc_z(self.expires_at),
        }


class Invitation(db.Model):
    """Pending or accepted invitation for an employee to join an organization."""
    __tablename__ = "invitations"
    __table_args__ = (
        db.Index("ix_invitations_org_email", "org_id", "email"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    email = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(16), nullable=False, default=ROLE_EMPLOYEE)
    status = db.Column(db.String(16), nullable=False, default=INVITATION_PENDING, index=True)
    invited_by_profile_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    accepted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "email": self.email,
            "role": self.role,
            "status": self.status,
            "invited_by_profile_id": self.invited_by_profile_id,
            "created_at": to_utc_z(self.created_at),
            "accepted_at": to_utc_z(self.accepted_at) if self.accepted_at else None,
        }
