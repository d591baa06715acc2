from __future__ import annotations

from ..extensions import db
from stockpilot.time_utils import to_utc_z, utcnow

LEDGER_ADDITION = "ADDITION"
LEDGER_SALE = "SALE"
LEDGER_ADJUSTMENT = "ADJUSTMENT"
LEDGER_TYPES = (LEDGER_ADDITION, LEDGER_SALE, LEDGER_ADJUSTMENT)


class Product(db.Model):
    """
    Product master data with its current stock level.

    MULTI-TENANT: Products are scoped to organizations via org_id.

    stock is a cached running total; the inventory ledger is the audit trail
    that must replay to it. Only inventory_service, sales_service and product
    creation change stock, and each of them appends a ledger entry in the
    same DB transaction.

    cost is the running weighted-average unit cost, stored unrounded.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_org_name", "org_id", "name"),
        db.Index("ix_products_org_active", "org_id", "is_active"),
        db.CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    size = db.Column(db.String(64), nullable=True)

    price = db.Column(db.Float, nullable=False, default=0.0)
    cost = db.Column(db.Float, nullable=False, default=0.0)

    stock = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=5)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.stock} org_id={self.org_id}>"

    @property
    def is_low_stock(self) -> bool:
        return self.stock <= self.min_stock

    @property
    def inventory_value(self) -> float:
        return self.stock * self.cost

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "name": self.name,
            "size": self.size,
            "price": self.price,
            "cost": self.cost,
            "stock": self.stock,
            "min_stock": self.min_stock,
            "is_low_stock": self.is_low_stock,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryLedgerEntry(db.Model):
    """
    Append-only stock audit trail.

    stock_after is the product's stock immediately after this entry, so for
    consecutive entries of one product:
        entry[n].stock_after == entry[n-1].stock_after + entry[n].quantity_change
    Rows are never updated or deleted.
    """
    __tablename__ = "inventory_ledger"
    __table_args__ = (
        db.Index("ix_ledger_org_product_created", "org_id", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    profile_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=True)

    transaction_type = db.Column(db.String(16), nullable=False, index=True)
    quantity_change = db.Column(db.Integer, nullable=False)
    stock_after = db.Column(db.Integer, nullable=False)

    related_sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)
    note = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    product = db.relationship("Product", backref=db.backref("ledger_entries", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "product_id": self.product_id,
            "profile_id": self.profile_id,
            "transaction_type": self.transaction_type,
            "quantity_change": self.quantity_change,
            "stock_after": self.stock_after,
            "related_sale_id": self.related_sale_id,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }
