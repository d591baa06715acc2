from __future__ import annotations

from ..extensions import db
from stockpilot.time_utils import to_utc_z, utcnow


class Sale(db.Model):
    """
    Completed point-of-sale transaction.

    total_amount is post-discount and never negative. A sale is written
    together with its items, stock decrements, ledger entries and income
    transaction in one DB transaction (see sales_service.checkout).
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_org_created", "org_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    profile_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=True)

    customer_name = db.Column(db.String(255), nullable=True)
    total_amount = db.Column(db.Float, nullable=False, default=0.0)
    discount = db.Column(db.Float, nullable=False, default=0.0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    items = db.relationship(
        "SaleItem",
        backref="sale",
        lazy=True,
        order_by="SaleItem.id",
    )

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "org_id": self.org_id,
            "profile_id": self.profile_id,
            "customer_name": self.customer_name,
            "total_amount": self.total_amount,
            "discount": self.discount,
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """Sale line. price_at_sale snapshots the product price at checkout."""
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    price_at_sale = db.Column(db.Float, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "price_at_sale": self.price_at_sale,
            "line_total": self.price_at_sale * self.quantity,
        }
