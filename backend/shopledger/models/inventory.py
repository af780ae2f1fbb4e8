from __future__ import annotations

from ..extensions import db
from ..identity import new_id
from ..mappers import stock_map_total
from ..time_utils import utcnow
from .base import RowMixin


class Category(RowMixin, db.Model):
    __tablename__ = "categories"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(255), nullable=False, unique=True)
    # Exactly one category is the fallback target when a category is deleted
    is_uncategorized = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Category id={self.id} name={self.name!r}>"


class Supplier(RowMixin, db.Model):
    __tablename__ = "suppliers"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(255), nullable=False)
    contact_person = db.Column(db.String(255), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=True)
    address = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    vat_number = db.Column(db.String(64), nullable=True)
    tin_number = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Supplier id={self.id} name={self.name!r}>"


class Product(RowMixin, db.Model):
    """
    Product master data with its stock position.

    STOCK REPRESENTATION:
    - Single-location products keep an aggregate `stock` only.
    - Multi-store products keep `stock_by_store` (store_id -> qty) and
      `stock` is a derived cache: stock == sum(stock_by_store.values()).
      Every mutation recomputes the cache in the same transaction.

    WHY version_id:
    Stock writes are read-modify-write. The version column makes a lost
    update raise StaleDataError instead of silently overwriting a
    concurrent write (SQLite ignores SELECT ... FOR UPDATE).

    Stock is only ever changed through inventory_service so that every
    change lands in inventory_history.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_category_name", "category_id", "name"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(255), nullable=False)
    category_id = db.Column(db.String(36), db.ForeignKey("categories.id"), nullable=True, index=True)

    price = db.Column(db.Float, nullable=False, default=0.0)
    cost = db.Column(db.Float, nullable=False, default=0.0)
    wholesale_price = db.Column(db.Float, nullable=False, default=0.0)

    stock = db.Column(db.Integer, nullable=False, default=0)
    stock_by_store = db.Column(db.JSON, nullable=True)

    track_stock = db.Column(db.Boolean, nullable=False, default=True)
    available_for_sale = db.Column(db.Boolean, nullable=False, default=True)

    sku = db.Column(db.String(64), nullable=False, unique=True)
    image_url = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    category = db.relationship("Category", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r} stock={self.stock}>"

    @property
    def uses_store_stock(self) -> bool:
        return self.stock_by_store is not None

    def total_stock(self) -> int:
        if self.uses_store_stock:
            return stock_map_total(self.stock_by_store)
        return int(self.stock or 0)

    def store_stock(self, store_id: str) -> int:
        return int((self.stock_by_store or {}).get(store_id, 0))


class InventoryHistoryEntry(RowMixin, db.Model):
    """
    One stock movement. Append-only.

    - quantity_change is the signed delta, current_stock the resulting
      value for the scope written (store value when store_id is set,
      aggregate otherwise).
    - product_id is deliberately not a foreign key: the PRODUCT_DELETED
      entry must outlive the product row.
    - product/store/user names are snapshots taken at write time.
    """
    __tablename__ = "inventory_history"
    __table_args__ = (
        db.Index("ix_invhist_product_store_date", "product_id", "store_id", "date"),
        db.Index("ix_invhist_reference", "reference_id"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    date = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    type = db.Column(db.String(32), nullable=False, index=True)
    reference_id = db.Column(db.String(64), nullable=False)
    description = db.Column(db.Text, nullable=True)

    product_id = db.Column(db.String(36), nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)

    quantity_change = db.Column(db.Integer, nullable=False)
    current_stock = db.Column(db.Integer, nullable=False)

    store_id = db.Column(db.String(36), db.ForeignKey("stores.id"), nullable=True, index=True)
    store_name = db.Column(db.String(255), nullable=True)
    user_id = db.Column(db.String(64), nullable=True)
    user_name = db.Column(db.String(255), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<InventoryHistoryEntry id={self.id} type={self.type} "
            f"product_id={self.product_id} change={self.quantity_change}>"
        )

    def to_dict(self) -> dict:
        from ..services.history_service import HISTORY_TYPE_LABELS

        d = super().to_dict()
        d["typeLabel"] = HISTORY_TYPE_LABELS.get(self.type, self.type)
        return d
