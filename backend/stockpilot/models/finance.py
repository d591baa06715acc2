from __future__ import annotations

from ..extensions import db
from stockpilot.time_utils import to_utc_z, utcnow

TRANSACTION_INCOME = "INCOME"
TRANSACTION_EXPENSE = "EXPENSE"
TRANSACTION_TYPES = (TRANSACTION_INCOME, TRANSACTION_EXPENSE)


class FinancialTransaction(db.Model):
    """
    Append-only income/expense entry.

    Written manually by owners and automatically by checkout (INCOME),
    restocks and initial inventory (EXPENSE).
    """
    __tablename__ = "financial_transactions"
    __table_args__ = (
        db.Index("ix_fin_tx_org_type_created", "org_id", "type", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    profile_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=True)

    type = db.Column(db.String(16), nullable=False)
    amount = db.Column(db.Float, nullable=False)
    description = db.Column(db.String(255), nullable=False)

    related_sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "profile_id": self.profile_id,
            "type": self.type,
            "amount": self.amount,
            "description": self.description,
            "related_sale_id": self.related_sale_id,
            "created_at": to_utc_z(self.created_at),
        }
