# Overview: Flask API routes for the product catalog; parses input and returns JSON responses.

# backend/shopledger/routes/products.py
"""
Product catalog routes.

Bodies are camelCase; they are converted to column keys and validated
against the Product model before reaching products_service. Every stock
change made here lands in the inventory history as one catalog entry
(INITIAL_STOCK, PRODUCT_EDIT or PRODUCT_DELETED).
"""
from flask import Blueprint, request, jsonify, g

from ..decorators import require_actor, handle_service_errors, json_body
from ..mappers import payload_to_fields
from ..models import Product
from ..services import products_service
from ..validation import ModelValidationPolicy, validate_payload, enforce_rules_product

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields=set(products_service.PRODUCT_MUTABLE_FIELDS),
    required_on_create={"sku", "name"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@handle_service_errors
def list_products():
    """
    List products with optional pagination.

    Query params:
    - categoryId: filter by category
    - storeId: adds effectiveStock for that store to every item
    - availableOnly: 1/true to list only products available for sale
    - page: page number (1-indexed). If omitted, returns all items.
    - perPage: items per page (default 20, max 100)
    """
    result = products_service.list_products(
        category_id=request.args.get("categoryId"),
        store_id=request.args.get("storeId"),
        available_only=request.args.get("availableOnly", "").lower() in ("1", "true", "yes"),
        page=request.args.get("page", type=int),
        per_page=request.args.get("perPage", type=int),
    )
    return jsonify(result), 200


@products_bp.get("/<product_id>")
@handle_service_errors
def get_product(product_id: str):
    product = products_service.get_product(product_id)
    return jsonify(product.to_dict()), 200


@products_bp.get("/<product_id>/stock")
@handle_service_errors
def get_effective_stock(product_id: str):
    """Effective stock at ?storeId (per-store map entry or aggregate fallback)."""
    store_id = request.args.get("storeId")
    products_service.get_product(product_id)
    stock = products_service.get_effective_stock(product_id, store_id)
    return jsonify({"productId": product_id, "storeId": store_id, "effectiveStock": stock}), 200


@products_bp.post("")
@require_actor
@handle_service_errors
def create_product():
    """
    Create a product.

    Initial stock comes from stockByStore (summed) or stock, and is
    recorded as one INITIAL_STOCK history entry.
    """
    fields = payload_to_fields(json_body())
    product_id = fields.pop("id", None)
    patch = validate_payload(model=Product, payload=fields, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)
    if product_id:
        patch["id"] = product_id

    product = products_service.add_product(patch, g.actor)
    return jsonify(product.to_dict()), 201


@products_bp.put("/<product_id>")
@require_actor
@handle_service_errors
def update_product(product_id: str):
    fields = payload_to_fields(json_body())
    fields.pop("id", None)
    patch = validate_payload(model=Product, payload=fields, policy=PRODUCT_POLICY, partial=True)
    enforce_rules_product(patch)

    product = products_service.update_product(product_id, patch, g.actor)
    return jsonify(product.to_dict()), 200


@products_bp.delete("/<product_id>")
@require_actor
@handle_service_errors
def delete_product(product_id: str):
    products_service.delete_product(product_id, g.actor)
    return jsonify({"ok": True}), 200
