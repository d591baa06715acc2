from __future__ import annotations

from ..extensions import db
from stockpilot.time_utils import to_utc_z, utcnow


class Organization(db.Model):
    """
    Multi-tenant root: every tenant is an Organization.

    Created when an owner signs up. Profiles, products, sales, ledger entries,
    financial transactions and invitations all carry org_id, and every query
    is scoped by it. No data may cross organization boundaries.
    """
    __tablename__ = "organizations"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)

    # Calendar-day bucketing for dashboards happens in this zone
    timezone = db.Column(db.String(64), nullable=False, default="UTC")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Organization id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "timezone": self.timezone,
            "created_at": to_utc_z(self.created_at),
        }
