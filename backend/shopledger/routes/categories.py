# Overview: Flask API routes for product categories.

from flask import Blueprint, jsonify

from ..decorators import handle_service_errors, json_body
from ..services import products_service

categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("")
@handle_service_errors
def list_categories():
    categories = products_service.list_categories()
    return jsonify([c.to_dict() for c in categories]), 200


@categories_bp.post("")
@handle_service_errors
def create_category():
    data = json_body()
    category = products_service.create_category(data.get("name"))
    return jsonify(category.to_dict()), 201


@categories_bp.delete("/<category_id>")
@handle_service_errors
def delete_category(category_id: str):
    """Products in the category move to Uncategorized."""
    moved = products_service.delete_category(category_id)
    return jsonify({"ok": True, "reassignedProducts": moved}), 200
