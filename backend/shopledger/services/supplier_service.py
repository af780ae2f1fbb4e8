# Overview: Supplier records referenced by purchase orders and GRNs.

from __future__ import annotations

from ..extensions import db
from ..models import GoodsReceivedNote, PurchaseOrder, Supplier
from ..validation import ConflictError, ValidationError
from .errors import NotFoundError

SUPPLIER_MUTABLE_FIELDS = {
    "name", "contact_person", "email", "phone", "address", "notes", "vat_number", "tin_number",
}


def get_supplier(supplier_id: str) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id) if supplier_id else None
    if supplier is None:
        raise NotFoundError(f"Supplier {supplier_id} not found", {"supplier_id": supplier_id})
    return supplier


def list_suppliers() -> list[Supplier]:
    return db.session.query(Supplier).order_by(Supplier.name.asc(), Supplier.id.asc()).all()


def create_supplier(patch: dict, *, commit: bool = True) -> Supplier:
    if not (patch.get("name") or "").strip():
        raise ValidationError("name is required")
    supplier = Supplier(**{k: v for k, v in patch.items() if k in SUPPLIER_MUTABLE_FIELDS | {"id"}})
    db.session.add(supplier)
    db.session.flush()
    if commit:
        db.session.commit()
    return supplier


def update_supplier(supplier_id: str, patch: dict, *, commit: bool = True) -> Supplier:
    supplier = get_supplier(supplier_id)
    for k, v in patch.items():
        if k in SUPPLIER_MUTABLE_FIELDS:
            setattr(supplier, k, v)
    db.session.flush()
    if commit:
        db.session.commit()
    return supplier


def delete_supplier(supplier_id: str, *, commit: bool = True) -> None:
    """Suppliers referenced by purchase orders or GRNs cannot be deleted."""
    supplier = get_supplier(supplier_id)
    in_use = (
        db.session.query(PurchaseOrder.id).filter_by(supplier_id=supplier.id).first()
        or db.session.query(GoodsReceivedNote.id).filter_by(supplier_id=supplier.id).first()
    )
    if in_use:
        raise ConflictError("Supplier is referenced by purchase orders or GRNs")
    db.session.delete(supplier)
    if commit:
        db.session.commit()
