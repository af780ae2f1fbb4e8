# Overview: Flask API routes for stock adjustments.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_actor, handle_service_errors, json_body
from ..mappers import document_to_fields
from ..services import adjustment_service

stock_adjustments_bp = Blueprint("stock_adjustments", __name__, url_prefix="/api/stock-adjustments")


@stock_adjustments_bp.get("")
@handle_service_errors
def list_stock_adjustments():
    adjustments = adjustment_service.list_stock_adjustments(store_id=request.args.get("storeId"))
    return jsonify([a.to_dict() for a in adjustments]), 200


@stock_adjustments_bp.get("/<adjustment_id>")
@handle_service_errors
def get_stock_adjustment(adjustment_id: str):
    adjustment = adjustment_service.get_stock_adjustment(adjustment_id)
    return jsonify(adjustment.to_dict()), 200


@stock_adjustments_bp.post("")
@require_actor
@handle_service_errors
def create_stock_adjustment():
    """
    Create and apply an adjustment.

    Request body:
    {
        "storeId": str,
        "items": [{"productId": str, "adjustmentType": "increase"|"decrease",
                   "quantity": int, "reason": str}],
        "notes": str (optional)
    }

    Returns:
        201: adjustment applied
        400: bad items, or a decrease beyond the store's stock
        404: store or product not found
    """
    data = document_to_fields(json_body())
    adjustment = adjustment_service.add_stock_adjustment(data, g.actor)
    return jsonify(adjustment.to_dict()), 201


@stock_adjustments_bp.post("/<adjustment_id>/approve")
@handle_service_errors
def approve_stock_adjustment(adjustment_id: str):
    """Adjustments apply on creation; this only acknowledges."""
    return jsonify(adjustment_service.approve_stock_adjustment(adjustment_id)), 200
