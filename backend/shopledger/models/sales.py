from __future__ import annotations

from ..extensions import db
from ..identity import new_id
from ..time_utils import utcnow
from .base import RowMixin


class PaymentMethod(RowMixin, db.Model):
    """
    Tender type. Flags decide which account a sale debits:
    is_credit -> Accounts Receivable (sale stays pending until settled),
    is_cash_equivalent -> Cash, otherwise Bank Account.
    """
    __tablename__ = "payment_methods"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(128), nullable=False, unique=True)
    is_cash_equivalent = db.Column(db.Boolean, nullable=False, default=False)
    is_credit = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<PaymentMethod id={self.id} name={self.name!r}>"


class TaxRate(RowMixin, db.Model):
    """
    Named sales tax rate. rate is a fraction (0.08 = 8%). At most one rate
    is the default; sales that name no rate use it.
    """
    __tablename__ = "tax_rates"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(128), nullable=False, unique=True)
    rate = db.Column(db.Float, nullable=False, default=0.0)
    is_default = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<TaxRate id={self.id} name={self.name!r} rate={self.rate}>"


class Sale(RowMixin, db.Model):
    """
    Sale or refund document.

    - type='sale': status is completed, pending (credit tender, awaiting
      settlement) or on-hold (parked cart, no stock effect).
    - type='refund': quantities and money amounts are stored negated and
      original_sale_id points at the refunded sale.

    Items: productId, name, price, cost, quantity.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_store_date", "store_id", "date"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    date = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    items = db.Column(db.JSON, nullable=False, default=list)
    subtotal = db.Column(db.Float, nullable=False, default=0.0)
    tax = db.Column(db.Float, nullable=False, default=0.0)
    total = db.Column(db.Float, nullable=False, default=0.0)

    # completed | pending | on-hold
    status = db.Column(db.String(16), nullable=False, default="completed", index=True)
    # sale | refund
    type = db.Column(db.String(16), nullable=False, default="sale", index=True)

    gift_card_amount_used = db.Column(db.Float, nullable=True)
    customer_id = db.Column(db.String(36), db.ForeignKey("customers.id"), nullable=True, index=True)
    customer_name = db.Column(db.String(255), nullable=True)
    discount_percentage = db.Column(db.Float, nullable=True)
    discount_amount = db.Column(db.Float, nullable=True)
    loyalty_points_used = db.Column(db.Integer, nullable=True)
    loyalty_points_discount_amount = db.Column(db.Float, nullable=True)
    original_sale_id = db.Column(db.String(36), db.ForeignKey("sales.id"), nullable=True, index=True)
    tax_rate_applied = db.Column(db.Float, nullable=True)
    tax_rate_id = db.Column(db.String(36), db.ForeignKey("tax_rates.id"), nullable=True)
    payment_method_id = db.Column(db.String(36), db.ForeignKey("payment_methods.id"), nullable=True)

    employee_id = db.Column(db.String(64), nullable=True)
    employee_name = db.Column(db.String(255), nullable=True)
    held_by_employee_id = db.Column(db.String(64), nullable=True)
    held_by_employee_name = db.Column(db.String(255), nullable=True)

    store_id = db.Column(db.String(36), db.ForeignKey("stores.id"), nullable=True, index=True)
    store_name = db.Column(db.String(255), nullable=True)

    payment_method = db.relationship("PaymentMethod")

    def __repr__(self) -> str:
        return f"<Sale id={self.id} type={self.type} status={self.status} total={self.total}>"
