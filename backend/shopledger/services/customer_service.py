# Overview: Customer records and loyalty point balances.

from __future__ import annotations

import math
from typing import Optional

from flask import current_app

from ..extensions import db
from ..models import Customer, Sale
from ..validation import ConflictError, ValidationError
from .concurrency import lock_for_update, run_in_transaction
from .errors import NotFoundError

CUSTOMER_MUTABLE_FIELDS = {"name", "email", "phone", "address"}


def loyalty_enabled() -> bool:
    return bool(current_app.config.get("LOYALTY_ENABLED", True))


def points_per_currency_unit() -> int:
    return int(current_app.config.get("LOYALTY_POINTS_PER_CURRENCY_UNIT", 100))


def points_to_amount(points: int) -> float:
    """Currency value of redeemed points (100 points = 1.00 by default)."""
    return round(points / points_per_currency_unit(), 2)


def points_earned(amount: float) -> int:
    """One point per whole currency unit spent after discounts."""
    if amount <= 0:
        return 0
    return int(math.floor(amount))


def get_customer(customer_id: str, *, lock: bool = False) -> Customer:
    q = db.session.query(Customer).filter_by(id=customer_id)
    if lock:
        q = lock_for_update(q)
    customer = q.first() if customer_id else None
    if customer is None:
        raise NotFoundError(f"Customer {customer_id} not found", {"customer_id": customer_id})
    return customer


def list_customers(*, search: Optional[str] = None) -> list[Customer]:
    q = db.session.query(Customer)
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(Customer.name.ilike(like) | Customer.email.ilike(like) | Customer.phone.ilike(like))
    return q.order_by(Customer.name.asc(), Customer.id.asc()).all()


def create_customer(patch: dict, *, commit: bool = True) -> Customer:
    if not (patch.get("name") or "").strip():
        raise ValidationError("name is required")
    points = patch.get("loyalty_points") or 0
    if isinstance(points, bool) or not isinstance(points, int) or points < 0:
        raise ValidationError("loyalty_points must be an integer >= 0")

    customer = Customer(**{k: v for k, v in patch.items() if k in CUSTOMER_MUTABLE_FIELDS | {"id"}})
    customer.loyalty_points = points
    if customer.email is None:
        customer.email = ""
    db.session.add(customer)
    db.session.flush()
    if commit:
        db.session.commit()
    return customer


def update_customer(customer_id: str, patch: dict, *, commit: bool = True) -> Customer:
    customer = get_customer(customer_id)
    for k, v in patch.items():
        if k in CUSTOMER_MUTABLE_FIELDS:
            setattr(customer, k, v)
    db.session.flush()
    if commit:
        db.session.commit()
    return customer


def delete_customer(customer_id: str, *, commit: bool = True) -> None:
    customer = get_customer(customer_id)
    if db.session.query(Sale.id).filter_by(customer_id=customer.id).first():
        raise ConflictError("Customer has sales and cannot be deleted")
    db.session.delete(customer)
    if commit:
        db.session.commit()


def adjust_loyalty_points(customer_id: str, change: int, *, commit: bool = True) -> Customer:
    """Add (or subtract) points; the balance never drops below zero."""
    if isinstance(change, bool) or not isinstance(change, int):
        raise ValidationError("change must be an integer")

    def _op():
        customer = get_customer(customer_id, lock=True)
        customer.loyalty_points = max(0, int(customer.loyalty_points or 0) + change)
        db.session.flush()
        return customer

    return run_in_transaction(_op, commit=commit)
