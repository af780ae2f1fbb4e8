# Overview: Flask API routes for the stock ledger: history, stock levels and audits.

# backend/shopledger/routes/inventory.py
"""
Stock ledger read endpoints.

The inventory history is append-only; nothing here writes to it. Stock
moves only through the workflow endpoints (GRNs, adjustments, transfers,
sales) and the product catalog.
"""
from flask import Blueprint, request, jsonify

from ..decorators import handle_service_errors
from ..services import history_service, inventory_service
from ..validation import ValidationError

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api")


@inventory_bp.get("/inventory-history")
@handle_service_errors
def list_history():
    """
    List history entries, newest first.

    Query params: productId, storeId, referenceId, type, limit
    """
    history_type = request.args.get("type")
    if history_type is not None and history_type not in history_service.HISTORY_TYPES:
        raise ValidationError(f"Unknown history type: {history_type}")

    entries = history_service.list_history(
        product_id=request.args.get("productId"),
        store_id=request.args.get("storeId"),
        reference_id=request.args.get("referenceId"),
        history_type=history_type,
        limit=request.args.get("limit", type=int),
    )
    return jsonify([e.to_dict() for e in entries]), 200


@inventory_bp.get("/inventory-history/<entry_id>")
@handle_service_errors
def get_history_entry(entry_id: str):
    entry = history_service.get_history_entry(entry_id)
    return jsonify(entry.to_dict()), 200


@inventory_bp.get("/inventory/stock/<product_id>")
@handle_service_errors
def get_stock_levels(product_id: str):
    """Aggregate stock, per-store map and (with ?storeId) the effective stock there."""
    levels = inventory_service.get_stock_levels(product_id)
    store_id = request.args.get("storeId")
    if store_id is not None:
        levels["storeId"] = store_id
        levels["effectiveStock"] = inventory_service.get_effective_stock(product_id, store_id)
    return jsonify(levels), 200


@inventory_bp.get("/inventory/audit")
@handle_service_errors
def audit():
    """
    Compare every product's stock with the sum of its history entries.

    Query params: productId (audit a single product)
    """
    product_id = request.args.get("productId")
    if product_id:
        results = [inventory_service.audit_product(product_id)]
    else:
        results = inventory_service.audit_all()
    mismatches = [r for r in results if not r["consistent"]]
    return jsonify({"results": results, "mismatches": len(mismatches)}), 200
