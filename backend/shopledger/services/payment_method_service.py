# Overview: Tender types used at checkout and their default seed set.

from __future__ import annotations

from ..extensions import db
from ..models import PaymentMethod, Sale
from ..validation import ConflictError, ValidationError
from .errors import NotFoundError

# (name, is_cash_equivalent, is_credit)
DEFAULT_PAYMENT_METHODS = [
    ("Cash", True, False),
    ("Card", False, False),
    ("Store Credit", False, True),
]


def get_payment_method(method_id: str) -> PaymentMethod:
    method = db.session.get(PaymentMethod, method_id) if method_id else None
    if method is None:
        raise NotFoundError(f"Payment method {method_id} not found")
    return method


def list_payment_methods() -> list[PaymentMethod]:
    return db.session.query(PaymentMethod).order_by(PaymentMethod.name.asc()).all()


def create_payment_method(patch: dict, *, commit: bool = True) -> PaymentMethod:
    name = (patch.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required")
    if db.session.query(PaymentMethod.id).filter_by(name=name).first():
        raise ConflictError("Payment method already exists.")

    method = PaymentMethod(
        name=name,
        is_cash_equivalent=bool(patch.get("is_cash_equivalent", False)),
        is_credit=bool(patch.get("is_credit", False)),
    )
    if method.is_cash_equivalent and method.is_credit:
        raise ValidationError("A payment method cannot be both cash-equivalent and credit")
    db.session.add(method)
    db.session.flush()
    if commit:
        db.session.commit()
    return method


def delete_payment_method(method_id: str, *, commit: bool = True) -> None:
    method = get_payment_method(method_id)
    if db.session.query(Sale.id).filter_by(payment_method_id=method.id).first():
        raise ConflictError("Payment method is used by sales and cannot be deleted")
    db.session.delete(method)
    if commit:
        db.session.commit()


def seed_default_payment_methods(*, commit: bool = True) -> int:
    """Add any missing default tender. Returns rows added."""
    existing = {name for (name,) in db.session.query(PaymentMethod.name).all()}
    added = 0
    for name, is_cash_equivalent, is_credit in DEFAULT_PAYMENT_METHODS:
        if name in existing:
            continue
        db.session.add(PaymentMethod(name=name, is_cash_equivalent=is_cash_equivalent, is_credit=is_credit))
        added += 1
    db.session.flush()
    if commit:
        db.session.commit()
    return added
