# Overview: Store records; other workflows resolve store ids and names through here.

from __future__ import annotations

from ..extensions import db
from ..models import Store
from ..validation import ValidationError
from .errors import NotFoundError

STORE_MUTABLE_FIELDS = {"name", "address", "phone", "email"}


def get_store(store_id: str) -> Store:
    store = db.session.get(Store, store_id) if store_id else None
    if store is None:
        raise NotFoundError(f"Store {store_id} not found", {"store_id": store_id})
    return store


def list_stores() -> list[Store]:
    return db.session.query(Store).order_by(Store.name.asc(), Store.id.asc()).all()


def create_store(patch: dict, *, commit: bool = True) -> Store:
    if not (patch.get("name") or "").strip():
        raise ValidationError("name is required")
    store = Store(**{k: v for k, v in patch.items() if k in STORE_MUTABLE_FIELDS | {"id"}})
    if store.address is None:
        store.address = ""
    db.session.add(store)
    db.session.flush()
    if commit:
        db.session.commit()
    return store


def update_store(store_id: str, patch: dict, *, commit: bool = True) -> Store:
    store = get_store(store_id)
    for k, v in patch.items():
        if k in STORE_MUTABLE_FIELDS:
            setattr(store, k, v)
    db.session.flush()
    if commit:
        db.session.commit()
    return store
