# Overview: Flask API routes for purchase orders and goods received notes.

# backend/shopledger/routes/procurement.py
"""
Procurement API routes.

Purchase orders carry no stock effect. A GRN moves stock only when it is
approved: every line is received into the GRN's store, the linked PO is
completed and the purchase is posted, all in one transaction.
"""
from flask import Blueprint, request, jsonify, g

from ..decorators import require_actor, handle_service_errors, json_body
from ..mappers import document_to_fields
from ..services import procurement_service

purchase_orders_bp = Blueprint("purchase_orders", __name__, url_prefix="/api/purchase-orders")
grns_bp = Blueprint("grns", __name__, url_prefix="/api/grns")


# ---------------------------------------------------------------------------
# Purchase orders
# ---------------------------------------------------------------------------

@purchase_orders_bp.get("")
@handle_service_errors
def list_purchase_orders():
    orders = procurement_service.list_purchase_orders(
        status=request.args.get("status"),
        supplier_id=request.args.get("supplierId"),
    )
    return jsonify([po.to_dict() for po in orders]), 200


@purchase_orders_bp.get("/<purchase_order_id>")
@handle_service_errors
def get_purchase_order(purchase_order_id: str):
    po = procurement_service.get_purchase_order(purchase_order_id)
    return jsonify(po.to_dict()), 200


@purchase_orders_bp.post("")
@require_actor
@handle_service_errors
def create_purchase_order():
    """
    Request body:
    {
        "supplierId": str,
        "referenceNo": str (optional, generated when omitted),
        "orderDate": ISO-8601 (optional),
        "expectedDeliveryDate": ISO-8601 (optional),
        "items": [{"productId": str, "quantity": int, "unitCost": float}],
        "notes": str (optional)
    }
    """
    data = document_to_fields(json_body())
    po = procurement_service.create_purchase_order(data, g.actor)
    return jsonify(po.to_dict()), 201


@purchase_orders_bp.put("/<purchase_order_id>")
@handle_service_errors
def update_purchase_order(purchase_order_id: str):
    data = document_to_fields(json_body())
    po = procurement_service.update_purchase_order(purchase_order_id, data)
    return jsonify(po.to_dict()), 200


@purchase_orders_bp.post("/<purchase_order_id>/cancel")
@handle_service_errors
def cancel_purchase_order(purchase_order_id: str):
    po = procurement_service.cancel_purchase_order(purchase_order_id)
    return jsonify(po.to_dict()), 200


@purchase_orders_bp.delete("/<purchase_order_id>")
@handle_service_errors
def delete_purchase_order(purchase_order_id: str):
    procurement_service.delete_purchase_order(purchase_order_id)
    return jsonify({"ok": True}), 200


# ---------------------------------------------------------------------------
# Goods received notes
# ---------------------------------------------------------------------------

@grns_bp.get("")
@handle_service_errors
def list_grns():
    grns = procurement_service.list_grns(
        status=request.args.get("status"),
        store_id=request.args.get("storeId"),
    )
    return jsonify([grn.to_dict() for grn in grns]), 200


@grns_bp.get("/<grn_id>")
@handle_service_errors
def get_grn(grn_id: str):
    grn = procurement_service.get_grn(grn_id)
    return jsonify(grn.to_dict()), 200


@grns_bp.post("")
@require_actor
@handle_service_errors
def create_grn():
    """
    Create a pending GRN (no stock effect until approval).

    Request body:
    {
        "supplierId": str,
        "receivingStoreId": str,
        "purchaseOrderId": str (optional),
        "items": [{"productId": str, "quantityReceived": int, "unitCost": float}]
    }
    """
    data = document_to_fields(json_body())
    grn = procurement_service.create_grn(data, g.actor)
    return jsonify(grn.to_dict()), 201


@grns_bp.put("/<grn_id>")
@handle_service_errors
def update_grn(grn_id: str):
    data = document_to_fields(json_body())
    grn = procurement_service.update_grn(grn_id, data)
    return jsonify(grn.to_dict()), 200


@grns_bp.delete("/<grn_id>")
@handle_service_errors
def delete_grn(grn_id: str):
    procurement_service.delete_grn(grn_id)
    return jsonify({"ok": True}), 200


@grns_bp.post("/<grn_id>/approve")
@require_actor
@handle_service_errors
def approve_grn(grn_id: str):
    """
    Returns:
        200: GRN approved, stock received
        404: GRN, store or product not found
        409: GRN is not pending
    """
    grn = procurement_service.approve_grn(grn_id, g.actor)
    return jsonify(grn.to_dict()), 200
