from __future__ import annotations

from ..extensions import db
from ..identity import new_id
from ..time_utils import utcnow
from .base import RowMixin


class Store(RowMixin, db.Model):
    """
    Physical location that holds stock.

    Stores are referenced by per-store stock maps on products, by workflow
    documents (GRN receiving store, transfer endpoints, adjustments, sales)
    and by history entries. Names are denormalized onto those rows at write
    time, so renaming a store does not rewrite history.
    """
    __tablename__ = "stores"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(255), nullable=False)
    address = db.Column(db.Text, nullable=False, default="")
    phone = db.Column(db.String(64), nullable=True)
    email = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Store id={self.id} name={self.name!r}>"
