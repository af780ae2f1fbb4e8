# Overview: Stock ledger core; the only code path that changes product stock.

# backend/shopledger/services/inventory_service.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..identity import Actor
from ..mappers import stock_map_total
from ..models import InventoryHistoryEntry, Product
from . import history_service
from .concurrency import lock_for_update, run_in_transaction
from .errors import ProductNotFoundError, StockValidationError
"""
Stock Invariants (authoritative)

Stock model:
- A product holds either an aggregate `stock`, or a per-store map
  `stock_by_store` with `stock` as its derived total.
- stock == sum(stock_by_store.values()) after every write, in the same
  transaction as the write.
- Stock is never negative.

Effective stock:
- With a store context and a per-store map: the store's value (missing
  key -> 0). Otherwise: the aggregate. Unknown product -> 0.
- Every stock-decreasing action validates against effective stock, never
  against `stock` directly.

Writes:
- apply_stock_delta takes the NEW ABSOLUTE value, computes the delta
  against the locked current value and appends exactly one history entry
  when the delta is non-zero.
- change_stock reads the current value under the same row lock and adds a
  relative delta; workflows use it so read and write cannot interleave
  with another writer.
- commit=False joins the caller's transaction (multi-item workflows commit
  once, so a failure mid-loop leaves nothing applied).
"""


@dataclass(frozen=True)
class StockChange:
    product_id: str
    store_id: Optional[str]
    previous_stock: int
    new_stock: int
    quantity_change: int
    history_entry_id: Optional[str]

    def to_dict(self) -> dict:
        return {
            "productId": self.product_id,
            "storeId": self.store_id,
            "previousStock": self.previous_stock,
            "newStock": self.new_stock,
            "quantityChange": self.quantity_change,
            "historyEntryId": self.history_entry_id,
        }


def _load_product(product_id: str, *, lock: bool = False) -> Product:
    query = db.session.query(Product).filter_by(id=product_id)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None:
        raise ProductNotFoundError(product_id)
    return product


def _effective_stock_of(product: Product, store_id: Optional[str]) -> int:
    if store_id is not None and product.uses_store_stock:
        return product.store_stock(store_id)
    return int(product.stock or 0)


def _require_stock_value(value, field: str = "new_stock") -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise StockValidationError(f"{field} must be an integer")
    return value


def get_effective_stock(product_id: str, store_id: Optional[str] = None) -> int:
    """Stock relevant to a store context; 0 for unknown products."""
    product = db.session.get(Product, product_id)
    if product is None:
        return 0
    return _effective_stock_of(product, store_id)


def apply_stock_delta(
    product_id: str,
    new_stock: int,
    history_type: str,
    reference_id: str,
    reason: Optional[str] = None,
    store_id: Optional[str] = None,
    user_id: Optional[str] = None,
    product_name: Optional[str] = None,
    user_name: Optional[str] = None,
    *,
    commit: bool = True,
) -> StockChange:
    """
    Set a product's stock (per-store when store_id is given and the product
    keeps a per-store map, aggregate otherwise) to new_stock.

    Raises:
        ProductNotFoundError: before any write
        StockValidationError: new_stock is not a non-negative integer
        LedgerWriteError: history append failed (transaction rolled back)
    """
    new_stock = _require_stock_value(new_stock)
    if new_stock < 0:
        raise StockValidationError(
            "Stock cannot be negative",
            {"product_id": product_id, "store_id": store_id, "new_stock": new_stock},
        )

    def _op():
        product = _load_product(product_id, lock=True)
        current = _effective_stock_of(product, store_id)
        quantity_change = new_stock - current

        if quantity_change == 0:
            return StockChange(product.id, store_id, current, current, 0, None)

        if store_id is not None and product.uses_store_stock:
            stock_map = dict(product.stock_by_store)
            stock_map[store_id] = new_stock
            product.stock_by_store = stock_map
            product.stock = stock_map_total(stock_map)
        else:
            product.stock = new_stock

        db.session.flush()

        entry = history_service.append_history_entry(
            history_type=history_type,
            reference_id=reference_id,
            description=reason,
            product_id=product.id,
            product_name=product_name or product.name,
            quantity_change=quantity_change,
            current_stock=new_stock,
            store_id=store_id,
            user_id=user_id,
            user_name=user_name,
        )

        current_app.logger.debug(
            "Stock %s for product %s (store %s): %s -> %s",
            history_type, product.id, store_id, current, new_stock,
        )
        return StockChange(product.id, store_id, current, new_stock, quantity_change, entry.id)

    return run_in_transaction(_op, commit=commit)


def change_stock(
    product_id: str,
    quantity_delta: int,
    history_type: str,
    reference_id: str,
    *,
    reason: Optional[str] = None,
    store_id: Optional[str] = None,
    actor: Optional[Actor] = None,
    commit: bool = True,
) -> StockChange:
    """
    Add a signed delta to effective stock, reading the current value under
    the product row lock. Rejects results below zero.
    """
    quantity_delta = _require_stock_value(quantity_delta, "quantity_delta")

    def _op():
        product = _load_product(product_id, lock=True)
        current = _effective_stock_of(product, store_id)
        target = current + quantity_delta
        if target < 0:
            raise StockValidationError(
                f"Insufficient stock for {product.name}: available {current}, requested {-quantity_delta}",
                {"product_id": product.id, "store_id": store_id, "available": current},
            )
        return apply_stock_delta(
            product.id,
            target,
            history_type,
            reference_id,
            reason=reason,
            store_id=store_id,
            user_id=actor.user_id if actor else None,
            user_name=actor.user_name if actor else None,
            product_name=product.name,
            commit=False,
        )

    return run_in_transaction(_op, commit=commit)


def get_stock_levels(product_id: str) -> dict:
    product = _load_product(product_id)
    return {
        "productId": product.id,
        "stock": int(product.stock or 0),
        "stockByStore": dict(product.stock_by_store) if product.uses_store_stock else None,
        "trackStock": bool(product.track_stock),
    }


def audit_product(product_id: str) -> dict:
    """
    Conservation check: the running sum of every quantity_change for the
    product must equal its aggregate stock.
    """
    product = _load_product(product_id)
    ledger_total = (
        db.session.query(func.coalesce(func.sum(InventoryHistoryEntry.quantity_change), 0))
        .filter(InventoryHistoryEntry.product_id == product_id)
        .scalar()
    )
    ledger_total = int(ledger_total or 0)
    stock = int(product.stock or 0)
    map_consistent = (not product.uses_store_stock) or stock_map_total(product.stock_by_store) == stock
    return {
        "productId": product.id,
        "productName": product.name,
        "stock": stock,
        "ledgerTotal": ledger_total,
        "aggregateConsistent": map_consistent,
        "consistent": ledger_total == stock and map_consistent,
    }


def audit_all() -> list[dict]:
    product_ids = [pid for (pid,) in db.session.query(Product.id).order_by(Product.name.asc()).all()]
    return [audit_product(pid) for pid in product_ids]
