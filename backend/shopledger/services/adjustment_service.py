# backend/shopledger/services/adjustment_service.py
"""
Stock adjustments: manual corrections at one store.

Single-phase: creating an adjustment applies it. Each line moves the
store's stock by +quantity (SA_INCREASE) or -quantity (SA_DECREASE); a
decrease below zero is rejected. approve_stock_adjustment exists for
callers that still run an approval step and only acknowledges.
"""
from __future__ import annotations

from typing import Optional

from flask import current_app

from ..extensions import db
from ..identity import Actor
from ..mappers import fields_to_items
from ..models import Product, StockAdjustment
from ..time_utils import coerce_datetime, utcnow
from ..validation import ValidationError, validate_line_items
from . import accounting_service, inventory_service
from .concurrency import run_in_transaction
from .errors import NotFoundError, ProductNotFoundError
from .history_service import HISTORY_TYPE_SA_DECREASE, HISTORY_TYPE_SA_INCREASE
from .store_service import get_store

ADJUSTMENT_INCREASE = "increase"
ADJUSTMENT_DECREASE = "decrease"
ADJUSTMENT_TYPES = (ADJUSTMENT_INCREASE, ADJUSTMENT_DECREASE)


def _normalize_items(items) -> list[dict]:
    items = validate_line_items(items, quantity_field="quantity")
    normalized = []
    for index, item in enumerate(items):
        adjustment_type = str(item.get("adjustment_type") or "").lower()
        if adjustment_type not in ADJUSTMENT_TYPES:
            raise ValidationError(f"items[{index}].adjustment_type must be 'increase' or 'decrease'")
        product = db.session.get(Product, item["product_id"])
        if product is None:
            raise ProductNotFoundError(item["product_id"])
        normalized.append({
            "product_id": product.id,
            "product_name": item.get("product_name") or product.name,
            "adjustment_type": adjustment_type,
            "quantity": item["quantity"],
            "reason": item.get("reason") or "",
        })
    return normalized


def get_stock_adjustment(adjustment_id: str) -> StockAdjustment:
    adjustment = db.session.get(StockAdjustment, adjustment_id)
    if adjustment is None:
        raise NotFoundError(f"Stock adjustment {adjustment_id} not found")
    return adjustment


def list_stock_adjustments(*, store_id: Optional[str] = None) -> list[StockAdjustment]:
    q = db.session.query(StockAdjustment)
    if store_id is not None:
        q = q.filter(StockAdjustment.store_id == store_id)
    return q.order_by(StockAdjustment.adjustment_date.desc(), StockAdjustment.id.asc()).all()


def add_stock_adjustment(data: dict, actor: Optional[Actor] = None, *, commit: bool = True) -> StockAdjustment:
    """
    Create and apply a stock adjustment in one transaction.

    Raises:
        NotFoundError: unknown store or product
        ValidationError: bad items
        StockValidationError: a decrease exceeds the store's stock
    """
    def _op():
        store = get_store(data.get("store_id"))
        items = _normalize_items(data.get("items"))
        try:
            adjustment_date = coerce_datetime(data.get("adjustment_date"))
        except ValueError:
            raise ValidationError("adjustment_date must be an ISO-8601 datetime")

        adjustment = StockAdjustment(
            adjustment_date=adjustment_date,
            store_id=store.id,
            store_name=store.name,
            items=fields_to_items(items),
            notes=data.get("notes"),
            approved_by_user_id=actor.user_id if actor else None,
            approved_by_user_name=actor.user_name if actor else None,
            approval_date=utcnow(),
        )
        if data.get("id"):
            adjustment.id = data["id"]
        db.session.add(adjustment)
        db.session.flush()

        for item in items:
            increase = item["adjustment_type"] == ADJUSTMENT_INCREASE
            inventory_service.change_stock(
                item["product_id"],
                item["quantity"] if increase else -item["quantity"],
                HISTORY_TYPE_SA_INCREASE if increase else HISTORY_TYPE_SA_DECREASE,
                adjustment.id,
                reason=item["reason"] or None,
                store_id=store.id,
                actor=actor,
                commit=False,
            )

        accounting_service.post_stock_adjustment(adjustment, actor)

        current_app.logger.info("Stock adjustment applied: %s at %s (%s lines)", adjustment.id, store.name, len(items))
        return adjustment

    return run_in_transaction(_op, commit=commit)


def approve_stock_adjustment(adjustment_id: str) -> dict:
    """
    Acknowledge an adjustment. Stock was applied at creation; nothing
    further changes.
    """
    adjustment = get_stock_adjustment(adjustment_id)
    d = adjustment.to_dict()
    d["alreadyApplied"] = True
    return d
