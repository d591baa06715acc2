# Overview: Service-layer operations for session; encapsulates business logic and database work.

"""
Session Token Management Service

Tokens are cryptographically secure, hashed in the database, and time-limited.
The tenant context (org_id) is captured when the session is created and is
what every authenticated request is scoped by.

SECURITY FEATURES:
- 32 bytes of randomness per token
- Tokens hashed with SHA-256 before storage
- 24-hour absolute timeout (SESSION_ABSOLUTE_TIMEOUT)
- 2-hour idle timeout (SESSION_IDLE_TIMEOUT)
- Revocable on logout
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from ..extensions import db
from ..models import Organization, Profile, SessionToken
from ..permissions import get_role_permissions, role_has_permission
from stockpilot.time_utils import utcnow


SESSION_ABSOLUTE_TIMEOUT = timedelta(hours=24)
SESSION_IDLE_TIMEOUT = timedelta(hours=2)


@dataclass
class SessionContext:
    """
    Explicit per-request session context.

    Built by validate_session and attached to flask.g by @require_auth, so
    services receive org_id / profile_id as arguments instead of reading
    ambient global state.
    """
    profile: Profile
    session: SessionToken
    org_id: int

    @property
    def profile_id(self) -> int:
        return self.profile.id

    @property
    def role(self) -> str:
        return self.profile.role

    @property
    def permissions(self) -> frozenset:
        return get_role_permissions(self.profile.role)

    def has_permission(self, code: str) -> bool:
        return role_has_permission(self.profile.role, code)


def generate_token() -> str:
    return secrets.token_hex(32)  # 32 bytes = 64 hex characters


def hash_token(token: str) -> str:
    """
    SHA-256 hex digest of a session token.

    Tokens are high-entropy, so a fast hash is sufficient (unlike passwords).
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_session(profile_id: int) -> tuple[SessionToken, str]:
    """
    Create a new session for a profile.

    Returns (session_record, plaintext_token); only the hash is stored.
    Raises ValueError if the profile does not exist or is inactive.
    """
    profile = db.session.query(Profile).filter_by(id=profile_id).first()
    if not profile or not profile.is_active:
        raise ValueError("Profile not found or inactive")

    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        profile_id=profile.id,
        org_id=profile.org_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + SESSION_ABSOLUTE_TIMEOUT,
    )
    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def validate_session(token: str) -> SessionContext | None:
    """
    Validate a session token and return its SessionContext.

    Returns None if the token is unknown, revoked, expired (absolute or idle),
    or the profile / organization no longer exists or is inactive.
    Updates last_used_at on success.
    """
    if not token:
        return None

    session = db.session.query(SessionToken).filter_by(token_hash=hash_token(token)).first()
    if not session or session.is_revoked:
        return None

    now = utcnow()
    if now >= session.expires_at:
        return None
    if now - session.last_used_at > SESSION_IDLE_TIMEOUT:
        return None

    profile = db.session.query(Profile).filter_by(id=session.profile_id).first()
    if not profile or not profile.is_active:
        return None

    org = db.session.query(Organization).filter_by(id=session.org_id).first()
    if not org:
        return None

    session.last_used_at = now
    db.session.commit()

    return SessionContext(profile=profile, session=session, org_id=session.org_id)


def revoke_session(token: str) -> bool:
    """Revoke a session (logout). Returns False for unknown tokens."""
    session = db.session.query(SessionToken).filter_by(token_hash=hash_token(token)).first()
    if not session:
        return False
    if not session.is_revoked:
        session.revoked_at = utcnow()
        db.session.commit()
    return True
