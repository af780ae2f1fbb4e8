# backend/shopledger/services/transfer_service.py
"""
Inter-store transfer of goods.

WHY: Move stock between stores with an explicit in-transit leg, so stock
that has left the source but not reached the destination is visible and
each leg lands in the history ledger.

LIFECYCLE:
1. pending: created, stock validated at the source for every line, nothing moved
2. in-transit: source debited (TOG_OUT, negative)
3. received: destination credited (TOG_IN, positive). Terminal.
4. rejected: from pending (nothing to undo) or from in-transit (source
   re-credited with a positive TOG_OUT). Terminal.

Every other transition is refused without side effects.
"""
from __future__ import annotations

from typing import Optional

from flask import current_app

from ..extensions import db
from ..identity import Actor
from ..mappers import fields_to_items
from ..models import Product, TransferOfGoods
from ..time_utils import coerce_datetime, utcnow
from ..validation import ValidationError, validate_line_items
from . import inventory_service
from .concurrency import lock_for_update, run_in_transaction
from .errors import InvalidStateError, NotFoundError, ProductNotFoundError, StockValidationError
from .history_service import HISTORY_TYPE_TOG_IN, HISTORY_TYPE_TOG_OUT
from .store_service import get_store


# Transfer status constants
TRANSFER_STATUS_PENDING = "pending"
TRANSFER_STATUS_IN_TRANSIT = "in-transit"
TRANSFER_STATUS_RECEIVED = "received"
TRANSFER_STATUS_REJECTED = "rejected"

TRANSFER_STATUSES = (
    TRANSFER_STATUS_PENDING,
    TRANSFER_STATUS_IN_TRANSIT,
    TRANSFER_STATUS_RECEIVED,
    TRANSFER_STATUS_REJECTED,
)

ALLOWED_TRANSITIONS = {
    (TRANSFER_STATUS_PENDING, TRANSFER_STATUS_IN_TRANSIT),
    (TRANSFER_STATUS_IN_TRANSIT, TRANSFER_STATUS_RECEIVED),
    (TRANSFER_STATUS_PENDING, TRANSFER_STATUS_REJECTED),
    (TRANSFER_STATUS_IN_TRANSIT, TRANSFER_STATUS_REJECTED),
}


def _normalize_items(items) -> list[dict]:
    items = validate_line_items(items, quantity_field="quantity")
    normalized = []
    for item in items:
        product = db.session.get(Product, item["product_id"])
        if product is None:
            raise ProductNotFoundError(item["product_id"])
        normalized.append({
            "product_id": product.id,
            "product_name": item.get("product_name") or product.name,
            "quantity": item["quantity"],
        })
    return normalized


def _check_source_stock(items: list[dict], store_id: str) -> None:
    """
    Every line must be available at the source store. Untracked products
    are included: the in-transit leg moves their stock too and refuses to
    go below zero.
    """
    shortages = []
    for item in items:
        product = db.session.get(Product, item["product_id"])
        if product is None:
            continue
        available = inventory_service.get_effective_stock(product.id, store_id)
        if available < item["quantity"]:
            shortages.append({
                "product_id": product.id,
                "product_name": product.name,
                "available": available,
                "requested": item["quantity"],
            })
    if shortages:
        first = shortages[0]
        raise StockValidationError(
            f"Insufficient stock for {first['product_name']}: "
            f"available {first['available']}, requested {first['requested']}",
            {"shortages": shortages},
        )


def get_transfer(transfer_id: str, *, lock: bool = False) -> TransferOfGoods:
    q = db.session.query(TransferOfGoods).filter_by(id=transfer_id)
    if lock:
        q = lock_for_update(q)
    transfer = q.first()
    if transfer is None:
        raise NotFoundError(f"Transfer {transfer_id} not found")
    return transfer


def list_transfers(*, status: Optional[str] = None, store_id: Optional[str] = None) -> list[TransferOfGoods]:
    """store_id matches either end of the transfer."""
    q = db.session.query(TransferOfGoods)
    if status is not None:
        q = q.filter(TransferOfGoods.status == status)
    if store_id is not None:
        q = q.filter(
            (TransferOfGoods.transfer_from_store_id == store_id)
            | (TransferOfGoods.transfer_to_store_id == store_id)
        )
    return q.order_by(TransferOfGoods.transfer_date.desc(), TransferOfGoods.id.asc()).all()


def add_transfer(data: dict, actor: Optional[Actor] = None, *, commit: bool = True) -> TransferOfGoods:
    """
    Create a pending transfer.

    Raises:
        StockValidationError: same source and destination, or insufficient
            source stock for any line
        NotFoundError: unknown store or product
    """
    def _op():
        from_store_id = data.get("transfer_from_store_id")
        to_store_id = data.get("transfer_to_store_id")
        if from_store_id and from_store_id == to_store_id:
            raise StockValidationError("Cannot transfer to the same store")

        from_store = get_store(from_store_id)
        to_store = get_store(to_store_id)
        items = _normalize_items(data.get("items"))
        _check_source_stock(items, from_store.id)

        try:
            transfer_date = coerce_datetime(data.get("transfer_date"))
        except ValueError:
            raise ValidationError("transfer_date must be an ISO-8601 datetime")

        transfer = TransferOfGoods(
            transfer_date=transfer_date,
            transfer_from_store_id=from_store.id,
            transfer_from_store_name=from_store.name,
            transfer_to_store_id=to_store.id,
            transfer_to_store_name=to_store.name,
            status=TRANSFER_STATUS_PENDING,
            items=fields_to_items(items),
            notes=data.get("notes"),
        )
        if data.get("id"):
            transfer.id = data["id"]
        db.session.add(transfer)
        db.session.flush()
        current_app.logger.info(
            "Transfer created: %s (%s -> %s)", transfer.id, from_store.name, to_store.name
        )
        return transfer

    return run_in_transaction(_op, commit=commit)


def _move(transfer: TransferOfGoods, *, sign: int, history_type: str, store_id: str, actor: Optional[Actor], reason: str) -> None:
    for item in transfer.line_items:
        inventory_service.change_stock(
            item["product_id"],
            sign * int(item["quantity"]),
            history_type,
            transfer.id,
            reason=reason,
            store_id=store_id,
            actor=actor,
            commit=False,
        )


def update_transfer_status(
    transfer_id: str,
    new_status: str,
    actor: Optional[Actor] = None,
    *,
    commit: bool = True,
) -> TransferOfGoods:
    """
    Advance a transfer along its lifecycle.

    - pending -> in-transit: source -qty per line (TOG_OUT); approval stamped
    - in-transit -> received: destination +qty per line (TOG_IN); receipt stamped
    - pending -> rejected: no stock movement
    - in-transit -> rejected: source +qty per line (TOG_OUT, positive)

    Raises:
        InvalidStateError: transition not in the table (nothing changes)
        StockValidationError: source no longer holds enough stock when
            leaving pending (nothing changes)
    """
    if new_status not in TRANSFER_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(TRANSFER_STATUSES)}")

    def _op():
        transfer = get_transfer(transfer_id, lock=True)
        old_status = transfer.status
        if (old_status, new_status) not in ALLOWED_TRANSITIONS:
            raise InvalidStateError(
                f"Cannot move transfer from {old_status} to {new_status}",
                {"from": old_status, "to": new_status},
            )

        now = utcnow()
        if new_status == TRANSFER_STATUS_IN_TRANSIT:
            _move(
                transfer,
                sign=-1,
                history_type=HISTORY_TYPE_TOG_OUT,
                store_id=transfer.transfer_from_store_id,
                actor=actor,
                reason=f"Transfer to {transfer.transfer_to_store_name}",
            )
            transfer.approved_by_user_id = actor.user_id if actor else None
            transfer.approved_by_user_name = actor.user_name if actor else None
            transfer.approval_date = now

        elif new_status == TRANSFER_STATUS_RECEIVED:
            _move(
                transfer,
                sign=1,
                history_type=HISTORY_TYPE_TOG_IN,
                store_id=transfer.transfer_to_store_id,
                actor=actor,
                reason=f"Transfer from {transfer.transfer_from_store_name}",
            )
            transfer.received_by_user_id = actor.user_id if actor else None
            transfer.received_by_user_name = actor.user_name if actor else None
            transfer.received_date = now

        elif new_status == TRANSFER_STATUS_REJECTED:
            if old_status == TRANSFER_STATUS_IN_TRANSIT:
                _move(
                    transfer,
                    sign=1,
                    history_type=HISTORY_TYPE_TOG_OUT,
                    store_id=transfer.transfer_from_store_id,
                    actor=actor,
                    reason=f"Transfer to {transfer.transfer_to_store_name} rejected; stock returned",
                )
            transfer.rejected_by_user_id = actor.user_id if actor else None
            transfer.rejected_by_user_name = actor.user_name if actor else None
            transfer.rejected_date = now

        transfer.status = new_status
        db.session.flush()
        current_app.logger.info("Transfer %s moved %s -> %s", transfer.id, old_status, new_status)
        return transfer

    return run_in_transaction(_op, commit=commit)


def delete_transfer(transfer_id: str, *, commit: bool = True) -> None:
    """Only pending transfers (nothing moved yet) can be deleted."""
    def _op():
        transfer = get_transfer(transfer_id, lock=True)
        if transfer.status != TRANSFER_STATUS_PENDING:
            raise InvalidStateError("Only pending transfers can be deleted")
        db.session.delete(transfer)
        db.session.flush()

    run_in_transaction(_op, commit=commit)
