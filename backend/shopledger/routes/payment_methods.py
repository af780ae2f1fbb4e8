# Overview: Flask API routes for payment methods (tender types).

from flask import Blueprint, jsonify

from ..decorators import handle_service_errors, json_body
from ..mappers import payload_to_fields
from ..services import payment_method_service

payment_methods_bp = Blueprint("payment_methods", __name__, url_prefix="/api/payment-methods")


@payment_methods_bp.get("")
@handle_service_errors
def list_payment_methods():
    methods = payment_method_service.list_payment_methods()
    return jsonify([m.to_dict() for m in methods]), 200


@payment_methods_bp.post("")
@handle_service_errors
def create_payment_method():
    """Request body: {"name": str, "isCashEquivalent": bool, "isCredit": bool}"""
    method = payment_method_service.create_payment_method(payload_to_fields(json_body()))
    return jsonify(method.to_dict()), 201


@payment_methods_bp.delete("/<method_id>")
@handle_service_errors
def delete_payment_method(method_id: str):
    payment_method_service.delete_payment_method(method_id)
    return jsonify({"ok": True}), 200
