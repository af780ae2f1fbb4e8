from __future__ import annotations

from ..extensions import db
from ..identity import new_id
from ..time_utils import utcnow
from .base import RowMixin


class Customer(RowMixin, db.Model):
    __tablename__ = "customers"
    __table_args__ = (
        db.CheckConstraint("loyalty_points >= 0", name="ck_customers_loyalty_points_nonneg"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False, default="")
    phone = db.Column(db.String(64), nullable=True)
    address = db.Column(db.Text, nullable=True)
    loyalty_points = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Customer id={self.id} name={self.name!r} points={self.loyalty_points}>"
