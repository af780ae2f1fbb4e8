# Overview: Flask API routes for checkout: finalize, hold, settle and refund sales.

# backend/shopledger/routes/sales.py
"""
Sales API routes.

Finalizing a sale decrements stock at the sale's store, updates the
customer's loyalty points and posts the journal entries in one
transaction. Held sales have no stock effect until finalized.
"""
from flask import Blueprint, request, jsonify, g

from ..decorators import require_actor, handle_service_errors, json_body
from ..mappers import document_to_fields, items_to_fields
from ..services import sales_service

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
@handle_service_errors
def list_sales():
    """Query params: status, type (sale|refund), storeId, customerId"""
    sales = sales_service.list_sales(
        status=request.args.get("status"),
        sale_type=request.args.get("type"),
        store_id=request.args.get("storeId"),
        customer_id=request.args.get("customerId"),
    )
    return jsonify([s.to_dict() for s in sales]), 200


@sales_bp.get("/held")
@handle_service_errors
def list_held_sales():
    sales = sales_service.list_held_sales(store_id=request.args.get("storeId"))
    return jsonify([s.to_dict() for s in sales]), 200


@sales_bp.get("/<sale_id>")
@handle_service_errors
def get_sale(sale_id: str):
    sale = sales_service.get_sale(sale_id)
    return jsonify(sale.to_dict()), 200


@sales_bp.post("")
@require_actor
@handle_service_errors
def finalize_sale():
    """
    Finalize a sale (or a held sale when "id" names one).

    Request body:
    {
        "id": str (optional),
        "storeId": str,
        "items": [{"productId": str, "quantity": int, "price": float (optional)}],
        "customerId": str (optional, required for credit tenders),
        "paymentMethodId": str (optional),
        "discountPercentage": float (optional),
        "loyaltyPointsUsed": int (optional),
        "taxRateId": str (optional, wins over taxRate),
        "taxRate": float fraction (optional; default tax rate when neither is given),
        "giftCardAmountUsed": float (optional)
    }

    Returns:
        201: Sale finalized (status completed, or pending for credit)
        400: Bad cart, insufficient stock or loyalty points
        404: Store, customer, product or payment method not found
        409: The sale id is already finalized
    """
    data = document_to_fields(json_body())
    sale = sales_service.finalize_sale(data, g.actor)
    return jsonify(sale.to_dict()), 201


@sales_bp.post("/hold")
@require_actor
@handle_service_errors
def hold_sale():
    data = document_to_fields(json_body())
    sale = sales_service.hold_sale(data, g.actor)
    return jsonify(sale.to_dict()), 201


@sales_bp.delete("/held/<sale_id>")
@handle_service_errors
def delete_held_sale(sale_id: str):
    sales_service.delete_held_sale(sale_id)
    return jsonify({"ok": True}), 200


@sales_bp.post("/<sale_id>/settle")
@require_actor
@handle_service_errors
def settle_sale(sale_id: str):
    """Request body (optional): {"paymentMethodId": str}"""
    data = json_body()
    sale = sales_service.settle_sale(sale_id, g.actor, payment_method_id=data.get("paymentMethodId"))
    return jsonify(sale.to_dict()), 200


@sales_bp.post("/<sale_id>/refund")
@require_actor
@handle_service_errors
def refund_sale(sale_id: str):
    """
    Request body: {"items": [{"productId": str, "quantity": int}]}

    Returns:
        201: Refund recorded and stock returned to the sale's store
        400: Quantity exceeds what is left to refund
        409: Sale cannot be refunded in its current status
    """
    data = json_body()
    refund = sales_service.refund_sale(sale_id, items_to_fields(data.get("items")), g.actor)
    return jsonify(refund.to_dict()), 201
