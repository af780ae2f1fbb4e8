# Overview: Append-only inventory history (the stock-movement ledger).

from __future__ import annotations

from typing import Optional

from sqlalchemy.exc import OperationalError, SQLAlchemyError

from ..extensions import db
from ..models import InventoryHistoryEntry, Store
from .errors import LedgerWriteError, NotFoundError
"""
Inventory History Invariants (authoritative)

- Append-only: entries are never updated or deleted.
- Exactly one entry per stock change, written in the same DB transaction
  as the product write it records. Product deletion is always recorded,
  even when the product held no stock.
- current_stock is the value after the change for the scope written
  (the store value when store_id is set, the aggregate otherwise).
- Conservation: for a product, the running sum of quantity_change equals
  its aggregate stock.
"""

HISTORY_TYPE_INITIAL_STOCK = "INITIAL_STOCK"
HISTORY_TYPE_PRODUCT_EDIT = "PRODUCT_EDIT"
HISTORY_TYPE_PRODUCT_DELETED = "PRODUCT_DELETED"
HISTORY_TYPE_SALE = "SALE"
HISTORY_TYPE_REFUND = "REFUND"
HISTORY_TYPE_GRN = "GRN"
HISTORY_TYPE_SA_INCREASE = "SA_INCREASE"
HISTORY_TYPE_SA_DECREASE = "SA_DECREASE"
HISTORY_TYPE_TOG_OUT = "TOG_OUT"
HISTORY_TYPE_TOG_IN = "TOG_IN"

HISTORY_TYPE_LABELS = {
    HISTORY_TYPE_INITIAL_STOCK: "Initial Stock",
    HISTORY_TYPE_PRODUCT_EDIT: "Product Edit",
    HISTORY_TYPE_PRODUCT_DELETED: "Product Deleted",
    HISTORY_TYPE_SALE: "Sale",
    HISTORY_TYPE_REFUND: "Refund",
    HISTORY_TYPE_GRN: "Goods Received Note",
    HISTORY_TYPE_SA_INCREASE: "Stock Adjustment (Increase)",
    HISTORY_TYPE_SA_DECREASE: "Stock Adjustment (Decrease)",
    HISTORY_TYPE_TOG_OUT: "Transfer Out",
    HISTORY_TYPE_TOG_IN: "Transfer In",
}

HISTORY_TYPES = frozenset(HISTORY_TYPE_LABELS)


def append_history_entry(
    *,
    history_type: str,
    reference_id: str,
    product_id: str,
    product_name: str,
    quantity_change: int,
    current_stock: int,
    description: Optional[str] = None,
    store_id: Optional[str] = None,
    store_name: Optional[str] = None,
    user_id: Optional[str] = None,
    user_name: Optional[str] = None,
) -> InventoryHistoryEntry:
    """
    Append one history entry and flush it (no commit).

    Raises LedgerWriteError if the entry cannot be written; the caller's
    transaction must then be rolled back so the stock write is undone too.
    """
    if history_type not in HISTORY_TYPES:
        raise LedgerWriteError(f"Unknown history type: {history_type}")

    if store_id is not None and store_name is None:
        store = db.session.get(Store, store_id)
        store_name = store.name if store else None

    entry = InventoryHistoryEntry(
        type=history_type,
        reference_id=str(reference_id),
        description=description,
        product_id=product_id,
        product_name=product_name,
        quantity_change=int(quantity_change),
        current_stock=int(current_stock),
        store_id=store_id,
        store_name=store_name,
        user_id=user_id,
        user_name=user_name,
    )
    db.session.add(entry)
    try:
        db.session.flush()
    except OperationalError:
        # lock contention: let run_with_retry handle it
        raise
    except SQLAlchemyError as exc:
        raise LedgerWriteError(
            f"Failed to record {history_type} history for product {product_id}",
            {"product_id": product_id, "reference_id": reference_id},
        ) from exc
    return entry


def get_history_entry(entry_id: str) -> InventoryHistoryEntry:
    entry = db.session.get(InventoryHistoryEntry, entry_id)
    if entry is None:
        raise NotFoundError(f"History entry {entry_id} not found")
    return entry


def list_history(
    *,
    product_id: Optional[str] = None,
    store_id: Optional[str] = None,
    reference_id: Optional[str] = None,
    history_type: Optional[str] = None,
    limit: Optional[int] = None,
) -> list[InventoryHistoryEntry]:
    """Newest first."""
    q = db.session.query(InventoryHistoryEntry)
    if product_id is not None:
        q = q.filter(InventoryHistoryEntry.product_id == product_id)
    if store_id is not None:
        q = q.filter(InventoryHistoryEntry.store_id == store_id)
    if reference_id is not None:
        q = q.filter(InventoryHistoryEntry.reference_id == reference_id)
    if history_type is not None:
        q = q.filter(InventoryHistoryEntry.type == history_type)
    q = q.order_by(InventoryHistoryEntry.date.desc(), InventoryHistoryEntry.id.desc())
    if limit is not None:
        q = q.limit(limit)
    return q.all()
