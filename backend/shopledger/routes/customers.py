# Overview: Flask API routes for customers and loyalty balances.

from flask import Blueprint, request, jsonify

from ..decorators import handle_service_errors, json_body, require_field
from ..mappers import payload_to_fields
from ..services import customer_service

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@handle_service_errors
def list_customers():
    customers = customer_service.list_customers(search=request.args.get("search"))
    return jsonify([c.to_dict() for c in customers]), 200


@customers_bp.get("/<customer_id>")
@handle_service_errors
def get_customer(customer_id: str):
    customer = customer_service.get_customer(customer_id)
    return jsonify(customer.to_dict()), 200


@customers_bp.post("")
@handle_service_errors
def create_customer():
    customer = customer_service.create_customer(payload_to_fields(json_body()))
    return jsonify(customer.to_dict()), 201


@customers_bp.put("/<customer_id>")
@handle_service_errors
def update_customer(customer_id: str):
    customer = customer_service.update_customer(customer_id, payload_to_fields(json_body()))
    return jsonify(customer.to_dict()), 200


@customers_bp.delete("/<customer_id>")
@handle_service_errors
def delete_customer(customer_id: str):
    customer_service.delete_customer(customer_id)
    return jsonify({"ok": True}), 200


@customers_bp.post("/<customer_id>/loyalty")
@handle_service_errors
def adjust_loyalty_points(customer_id: str):
    """Request body: {"change": int}. The balance never drops below zero."""
    data = json_body()
    customer = customer_service.adjust_loyalty_points(customer_id, require_field(data, "change"))
    return jsonify(customer.to_dict()), 200
