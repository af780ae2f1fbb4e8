# Overview: Named sales tax rates, the store-wide default and per-sale rate resolution.

from __future__ import annotations

from typing import Optional

from flask import current_app

from ..extensions import db
from ..models import Sale, TaxRate
from ..validation import ConflictError, ValidationError
from .errors import NotFoundError

DEFAULT_TAX_RATE_NAME = "Standard Tax"
DEFAULT_TAX_RATE = 0.08


def _require_rate(value) -> float:
    """Tax rate as a fraction between 0 and 1 (0.08 = 8%)."""
    if value is None or value == "" or isinstance(value, bool):
        raise ValidationError("rate must be a number")
    try:
        rate = float(value)
    except (TypeError, ValueError):
        raise ValidationError("rate must be a number")
    if not 0 <= rate <= 1:
        raise ValidationError("rate must be between 0 and 1")
    return rate


def _clear_default(*, except_id: Optional[str] = None) -> None:
    q = db.session.query(TaxRate).filter(TaxRate.is_default.is_(True))
    if except_id is not None:
        q = q.filter(TaxRate.id != except_id)
    for other in q.all():
        other.is_default = False


def get_tax_rate(tax_rate_id: str) -> TaxRate:
    tax_rate = db.session.get(TaxRate, tax_rate_id) if tax_rate_id else None
    if tax_rate is None:
        raise NotFoundError(f"Tax rate {tax_rate_id} not found")
    return tax_rate


def list_tax_rates() -> list[TaxRate]:
    return db.session.query(TaxRate).order_by(TaxRate.name.asc()).all()


def get_default_tax_rate() -> Optional[TaxRate]:
    """
    The flagged default, else the first rate by name, else None (no tax).
    """
    flagged = db.session.query(TaxRate).filter(TaxRate.is_default.is_(True)).first()
    if flagged is not None:
        return flagged
    return db.session.query(TaxRate).order_by(TaxRate.name.asc()).first()


def create_tax_rate(patch: dict, *, commit: bool = True) -> TaxRate:
    """
    Create a tax rate. The first rate created becomes the default; a new
    default takes the flag from the previous one.

    Raises:
        ValidationError: missing name, rate not in [0, 1]
        ConflictError: name already used
    """
    name = (patch.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required")
    if db.session.query(TaxRate.id).filter_by(name=name).first():
        raise ConflictError("Tax rate already exists.")
    rate = _require_rate(patch.get("rate"))

    is_default = bool(patch.get("is_default", False)) or db.session.query(TaxRate.id).first() is None
    if is_default:
        _clear_default()

    tax_rate = TaxRate(name=name, rate=rate, is_default=is_default)
    if patch.get("id"):
        tax_rate.id = patch["id"]
    db.session.add(tax_rate)
    db.session.flush()
    if commit:
        db.session.commit()
    return tax_rate


def update_tax_rate(tax_rate_id: str, patch: dict, *, commit: bool = True) -> TaxRate:
    """Rate changes apply to future sales only; finalized sales keep tax_rate_applied."""
    tax_rate = get_tax_rate(tax_rate_id)

    if "name" in patch:
        name = (patch.get("name") or "").strip()
        if not name:
            raise ValidationError("name is required")
        clash = db.session.query(TaxRate.id).filter(TaxRate.name == name, TaxRate.id != tax_rate.id).first()
        if clash:
            raise ConflictError("Tax rate already exists.")
        tax_rate.name = name
    if "rate" in patch:
        tax_rate.rate = _require_rate(patch.get("rate"))
    if "is_default" in patch:
        if patch.get("is_default"):
            _clear_default(except_id=tax_rate.id)
        tax_rate.is_default = bool(patch.get("is_default"))

    db.session.flush()
    if commit:
        db.session.commit()
    return tax_rate


def set_default_tax_rate(tax_rate_id: str, *, commit: bool = True) -> TaxRate:
    return update_tax_rate(tax_rate_id, {"is_default": True}, commit=commit)


def delete_tax_rate(tax_rate_id: str, *, commit: bool = True) -> None:
    """
    Remove a tax rate. When the default is removed, the first remaining
    rate by name becomes the default.

    Raises:
        ConflictError: sales were recorded with this rate
    """
    tax_rate = get_tax_rate(tax_rate_id)
    if db.session.query(Sale.id).filter_by(tax_rate_id=tax_rate.id).first():
        raise ConflictError("Tax rate is used by sales and cannot be deleted")

    was_default = bool(tax_rate.is_default)
    db.session.delete(tax_rate)
    db.session.flush()

    if was_default:
        successor = db.session.query(TaxRate).order_by(TaxRate.name.asc()).first()
        if successor is not None:
            successor.is_default = True
            current_app.logger.info("Default tax rate moved to %s", successor.name)
        else:
            current_app.logger.info("Last tax rate deleted; sales default to no tax")
        db.session.flush()

    if commit:
        db.session.commit()


def seed_default_tax_rate(*, commit: bool = True) -> Optional[TaxRate]:
    """Add 'Standard Tax' (8%) when no tax rate exists. Returns the new row or None."""
    if db.session.query(TaxRate.id).first() is not None:
        return None
    return create_tax_rate({"name": DEFAULT_TAX_RATE_NAME, "rate": DEFAULT_TAX_RATE, "is_default": True}, commit=commit)


def resolve_tax_rate(data: dict) -> tuple[Optional[TaxRate], float]:
    """
    Tax rate for a sale payload.

    - tax_rate_id: that rate (NotFoundError if unknown)
    - tax_rate: an explicit fraction, not tied to a stored rate
    - neither: the default rate, or 0 when no rate is configured

    tax_rate_id wins when both are given.
    """
    if data.get("tax_rate_id"):
        tax_rate = get_tax_rate(data["tax_rate_id"])
        return tax_rate, float(tax_rate.rate or 0)

    explicit = data.get("tax_rate")
    if explicit is not None and explicit != "":
        if isinstance(explicit, bool):
            raise ValidationError("tax_rate must be a number")
        try:
            return None, float(explicit)
        except (TypeError, ValueError):
            raise ValidationError("tax_rate must be a number")

    default = get_default_tax_rate()
    if default is None:
        return None, 0.0
    return default, float(default.rate or 0)
