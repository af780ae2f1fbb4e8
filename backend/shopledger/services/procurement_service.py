# backend/shopledger/services/procurement_service.py
"""
Purchase orders and goods received notes (GRNs).

LIFECYCLE:
- PurchaseOrder: pending -> completed (by an approved GRN) | cancelled.
- GRN: pending -> approved. Only pending GRNs can be edited, deleted or
  approved.

GRN APPROVAL is one transaction: every line credited to the receiving
store, the linked PO completed, approval stamped and the purchase posted
to the journal. A failure on any line leaves stock and the GRN untouched,
so approval can simply be retried.
"""
from __future__ import annotations

from typing import Optional

from flask import current_app

from ..extensions import db
from ..identity import Actor
from ..mappers import fields_to_items
from ..models import GoodsReceivedNote, Product, PurchaseOrder
from ..time_utils import coerce_datetime, utcnow
from ..validation import ConflictError, ValidationError, require_money, validate_line_items
from . import accounting_service, inventory_service
from .concurrency import lock_for_update, run_in_transaction
from .document_service import DOCUMENT_TYPE_GRN, DOCUMENT_TYPE_PURCHASE_ORDER, next_document_number
from .errors import InvalidStateError, NotFoundError, ProductNotFoundError
from .history_service import HISTORY_TYPE_GRN
from .store_service import get_store
from .supplier_service import get_supplier


# Purchase order status constants
PO_STATUS_PENDING = "pending"
PO_STATUS_COMPLETED = "completed"
PO_STATUS_CANCELLED = "cancelled"

# GRN status constants
GRN_STATUS_PENDING = "pending"
GRN_STATUS_APPROVED = "approved"


def _parse_date(value, field: str, *, default_now: bool = True):
    try:
        return coerce_datetime(value, default_now=default_now)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 datetime")


def _product_name(product_id: str, given: Optional[str]) -> str:
    product = db.session.get(Product, product_id)
    if product is None:
        raise ProductNotFoundError(product_id)
    return given or product.name


def _unique_reference(model, reference_no: str, *, exclude_id: Optional[str] = None) -> None:
    q = db.session.query(model.id).filter(model.reference_no == reference_no)
    if exclude_id is not None:
        q = q.filter(model.id != exclude_id)
    if q.first():
        raise ConflictError(f"Reference number {reference_no} already exists.")


# ---------------------------------------------------------------------------
# Purchase orders
# ---------------------------------------------------------------------------

def _normalize_po_items(items) -> tuple[list[dict], float]:
    items = validate_line_items(items, quantity_field="quantity")
    normalized = []
    total = 0.0
    for item in items:
        unit_cost = require_money(item.get("unit_cost", 0), "unit_cost")
        normalized.append({
            "product_id": item["product_id"],
            "product_name": _product_name(item["product_id"], item.get("product_name")),
            "quantity": item["quantity"],
            "unit_cost": unit_cost,
        })
        total += item["quantity"] * unit_cost
    return normalized, round(total, 2)


def get_purchase_order(purchase_order_id: str, *, lock: bool = False) -> PurchaseOrder:
    q = db.session.query(PurchaseOrder).filter_by(id=purchase_order_id)
    if lock:
        q = lock_for_update(q)
    po = q.first()
    if po is None:
        raise NotFoundError(f"Purchase order {purchase_order_id} not found")
    return po


def list_purchase_orders(*, status: Optional[str] = None, supplier_id: Optional[str] = None) -> list[PurchaseOrder]:
    q = db.session.query(PurchaseOrder)
    if status is not None:
        q = q.filter(PurchaseOrder.status == status)
    if supplier_id is not None:
        q = q.filter(PurchaseOrder.supplier_id == supplier_id)
    return q.order_by(PurchaseOrder.order_date.desc(), PurchaseOrder.id.asc()).all()


def create_purchase_order(data: dict, actor: Optional[Actor] = None, *, commit: bool = True) -> PurchaseOrder:
    """
    Create a pending purchase order. totalValue = sum(quantity * unitCost).
    A reference number is allocated when none is given.
    """
    def _op():
        supplier = get_supplier(data.get("supplier_id"))
        items, total = _normalize_po_items(data.get("items"))

        reference_no = data.get("reference_no")
        if reference_no:
            _unique_reference(PurchaseOrder, reference_no)
        else:
            reference_no = next_document_number(document_type=DOCUMENT_TYPE_PURCHASE_ORDER, prefix="PO")

        po = PurchaseOrder(
            reference_no=reference_no,
            supplier_id=supplier.id,
            supplier_name=supplier.name,
            order_date=_parse_date(data.get("order_date"), "order_date"),
            expected_delivery_date=_parse_date(
                data.get("expected_delivery_date"), "expected_delivery_date", default_now=False
            ),
            status=PO_STATUS_PENDING,
            items=fields_to_items(items),
            total_value=total,
            notes=data.get("notes"),
        )
        if data.get("id"):
            po.id = data["id"]
        db.session.add(po)
        db.session.flush()
        current_app.logger.info("Purchase order created: %s (%s)", po.reference_no, po.id)
        return po

    return run_in_transaction(_op, commit=commit)


def update_purchase_order(purchase_order_id: str, data: dict, *, commit: bool = True) -> PurchaseOrder:
    """Edit a pending purchase order."""
    def _op():
        po = get_purchase_order(purchase_order_id, lock=True)
        if po.status != PO_STATUS_PENDING:
            raise InvalidStateError(f"Cannot edit purchase order in {po.status} status")

        if "supplier_id" in data:
            supplier = get_supplier(data["supplier_id"])
            po.supplier_id = supplier.id
            po.supplier_name = supplier.name
        if "reference_no" in data and data["reference_no"] != po.reference_no:
            if not data["reference_no"]:
                raise ValidationError("reference_no cannot be blank")
            _unique_reference(PurchaseOrder, data["reference_no"], exclude_id=po.id)
            po.reference_no = data["reference_no"]
        if "items" in data:
            items, total = _normalize_po_items(data["items"])
            po.items = fields_to_items(items)
            po.total_value = total
        if "order_date" in data:
            po.order_date = _parse_date(data["order_date"], "order_date")
        if "expected_delivery_date" in data:
            po.expected_delivery_date = _parse_date(
                data["expected_delivery_date"], "expected_delivery_date", default_now=False
            )
        if "notes" in data:
            po.notes = data["notes"]
        db.session.flush()
        return po

    return run_in_transaction(_op, commit=commit)


def cancel_purchase_order(purchase_order_id: str, *, commit: bool = True) -> PurchaseOrder:
    def _op():
        po = get_purchase_order(purchase_order_id, lock=True)
        if po.status != PO_STATUS_PENDING:
            raise InvalidStateError(f"Cannot cancel purchase order in {po.status} status")
        po.status = PO_STATUS_CANCELLED
        db.session.flush()
        current_app.logger.info("Purchase order cancelled: %s", po.reference_no)
        return po

    return run_in_transaction(_op, commit=commit)


def delete_purchase_order(purchase_order_id: str, *, commit: bool = True) -> None:
    def _op():
        po = get_purchase_order(purchase_order_id, lock=True)
        if po.status != PO_STATUS_PENDING:
            raise InvalidStateError(f"Cannot delete purchase order in {po.status} status")
        linked = db.session.query(GoodsReceivedNote.id).filter_by(purchase_order_id=po.id).first()
        if linked:
            raise InvalidStateError("Purchase order is referenced by a GRN")
        db.session.delete(po)
        db.session.flush()

    run_in_transaction(_op, commit=commit)


# ---------------------------------------------------------------------------
# Goods received notes
# ---------------------------------------------------------------------------

def _normalize_grn_items(items) -> tuple[list[dict], float]:
    items = validate_line_items(items, quantity_field="quantity_received")
    normalized = []
    total = 0.0
    for item in items:
        unit_cost = require_money(item.get("unit_cost", 0), "unit_cost")
        line_total = round(item["quantity_received"] * unit_cost, 2)
        normalized.append({
            "product_id": item["product_id"],
            "product_name": _product_name(item["product_id"], item.get("product_name")),
            "quantity_received": item["quantity_received"],
            "unit_cost": unit_cost,
            "total_cost": line_total,
        })
        total += line_total
    return normalized, round(total, 2)


def _check_linked_po(purchase_order_id: Optional[str]) -> Optional[str]:
    if not purchase_order_id:
        return None
    po = get_purchase_order(purchase_order_id)
    if po.status == PO_STATUS_CANCELLED:
        raise InvalidStateError("Cannot receive against a cancelled purchase order")
    return po.id


def get_grn(grn_id: str, *, lock: bool = False) -> GoodsReceivedNote:
    q = db.session.query(GoodsReceivedNote).filter_by(id=grn_id)
    if lock:
        q = lock_for_update(q)
    grn = q.first()
    if grn is None:
        raise NotFoundError(f"GRN {grn_id} not found")
    return grn


def list_grns(*, status: Optional[str] = None, store_id: Optional[str] = None) -> list[GoodsReceivedNote]:
    q = db.session.query(GoodsReceivedNote)
    if status is not None:
        q = q.filter(GoodsReceivedNote.status == status)
    if store_id is not None:
        q = q.filter(GoodsReceivedNote.receiving_store_id == store_id)
    return q.order_by(GoodsReceivedNote.received_date.desc(), GoodsReceivedNote.id.asc()).all()


def create_grn(data: dict, actor: Optional[Actor] = None, *, commit: bool = True) -> GoodsReceivedNote:
    """Record received goods as a pending GRN. No stock moves until approval."""
    def _op():
        supplier = get_supplier(data.get("supplier_id"))
        store = get_store(data.get("receiving_store_id"))
        purchase_order_id = _check_linked_po(data.get("purchase_order_id"))
        items, total = _normalize_grn_items(data.get("items"))

        reference_no = data.get("reference_no")
        if reference_no:
            _unique_reference(GoodsReceivedNote, reference_no)
        else:
            reference_no = next_document_number(document_type=DOCUMENT_TYPE_GRN, prefix="GRN")

        grn = GoodsReceivedNote(
            reference_no=reference_no,
            purchase_order_id=purchase_order_id,
            supplier_id=supplier.id,
            supplier_name=supplier.name,
            received_date=_parse_date(data.get("received_date"), "received_date"),
            receiving_store_id=store.id,
            receiving_store_name=store.name,
            status=GRN_STATUS_PENDING,
            items=fields_to_items(items),
            total_value=total,
            notes=data.get("notes"),
        )
        if data.get("id"):
            grn.id = data["id"]
        db.session.add(grn)
        db.session.flush()
        current_app.logger.info("GRN created: %s (%s)", grn.reference_no, grn.id)
        return grn

    return run_in_transaction(_op, commit=commit)


def update_grn(grn_id: str, data: dict, *, commit: bool = True) -> GoodsReceivedNote:
    """Edit a pending GRN; approved GRNs are immutable."""
    def _op():
        grn = get_grn(grn_id, lock=True)
        if grn.status != GRN_STATUS_PENDING:
            raise InvalidStateError("Only pending GRNs can be edited")

        if "supplier_id" in data:
            supplier = get_supplier(data["supplier_id"])
            grn.supplier_id = supplier.id
            grn.supplier_name = supplier.name
        if "receiving_store_id" in data:
            store = get_store(data["receiving_store_id"])
            grn.receiving_store_id = store.id
            grn.receiving_store_name = store.name
        if "purchase_order_id" in data:
            grn.purchase_order_id = _check_linked_po(data["purchase_order_id"])
        if "reference_no" in data and data["reference_no"] != grn.reference_no:
            if not data["reference_no"]:
                raise ValidationError("reference_no cannot be blank")
            _unique_reference(GoodsReceivedNote, data["reference_no"], exclude_id=grn.id)
            grn.reference_no = data["reference_no"]
        if "items" in data:
            items, total = _normalize_grn_items(data["items"])
            grn.items = fields_to_items(items)
            grn.total_value = total
        if "received_date" in data:
            grn.received_date = _parse_date(data["received_date"], "received_date")
        if "notes" in data:
            grn.notes = data["notes"]
        db.session.flush()
        return grn

    return run_in_transaction(_op, commit=commit)


def delete_grn(grn_id: str, *, commit: bool = True) -> None:
    def _op():
        grn = get_grn(grn_id, lock=True)
        if grn.status != GRN_STATUS_PENDING:
            raise InvalidStateError("Only pending GRNs can be deleted")
        db.session.delete(grn)
        db.session.flush()

    run_in_transaction(_op, commit=commit)


def approve_grn(grn_id: str, actor: Optional[Actor] = None, *, commit: bool = True) -> GoodsReceivedNote:
    """
    Approve a pending GRN.

    Effects, all-or-nothing:
    - each line: receiving-store stock += quantityReceived (GRN entry,
      referenceId = GRN id)
    - linked purchase order -> completed
    - approvedByUserId/Name and approvalDate stamped
    - purchase posted (Dr Inventory / Cr Accounts Payable)

    Raises:
        NotFoundError: unknown GRN
        InvalidStateError: GRN is not pending, or its purchase order was
            cancelled (nothing is applied)
        ProductNotFoundError: a line's product is gone (nothing is applied)
    """
    def _op():
        grn = get_grn(grn_id, lock=True)
        if grn.status != GRN_STATUS_PENDING:
            raise InvalidStateError(f"GRN {grn.reference_no} is {grn.status}; only pending GRNs can be approved")

        po = None
        if grn.purchase_order_id:
            po = get_purchase_order(grn.purchase_order_id, lock=True)
            if po.status == PO_STATUS_CANCELLED:
                raise InvalidStateError(
                    f"Purchase order {po.reference_no} is cancelled; GRN {grn.reference_no} cannot be approved"
                )

        for item in grn.line_items:
            inventory_service.change_stock(
                item["product_id"],
                int(item["quantity_received"]),
                HISTORY_TYPE_GRN,
                grn.id,
                reason=f"GRN {grn.reference_no} from {grn.supplier_name}",
                store_id=grn.receiving_store_id,
                actor=actor,
                commit=False,
            )

        if po is not None:
            po.status = PO_STATUS_COMPLETED

        grn.status = GRN_STATUS_APPROVED
        grn.approved_by_user_id = actor.user_id if actor else None
        grn.approved_by_user_name = actor.user_name if actor else None
        grn.approval_date = utcnow()
        db.session.flush()

        accounting_service.post_purchase_transaction(grn, actor)

        current_app.logger.info("GRN approved: %s (%s lines)", grn.reference_no, len(grn.line_items))
        return grn

    return run_in_transaction(_op, commit=commit)
