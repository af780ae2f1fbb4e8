# Overview: Flask API routes for sales tax rates and the default rate.

from flask import Blueprint, jsonify

from ..decorators import handle_service_errors, json_body
from ..mappers import payload_to_fields
from ..services import tax_rate_service

tax_rates_bp = Blueprint("tax_rates", __name__, url_prefix="/api/tax-rates")


@tax_rates_bp.get("")
@handle_service_errors
def list_tax_rates():
    rates = tax_rate_service.list_tax_rates()
    return jsonify([r.to_dict() for r in rates]), 200


@tax_rates_bp.get("/default")
@handle_service_errors
def get_default_tax_rate():
    """The default rate, or {"rate": 0} when no rate is configured."""
    default = tax_rate_service.get_default_tax_rate()
    if default is None:
        return jsonify({"id": None, "name": "No Tax", "rate": 0.0, "isDefault": True}), 200
    return jsonify(default.to_dict()), 200


@tax_rates_bp.get("/<tax_rate_id>")
@handle_service_errors
def get_tax_rate(tax_rate_id: str):
    return jsonify(tax_rate_service.get_tax_rate(tax_rate_id).to_dict()), 200


@tax_rates_bp.post("")
@handle_service_errors
def create_tax_rate():
    """Request body: {"name": str, "rate": float (0.08 = 8%), "isDefault": bool}"""
    tax_rate = tax_rate_service.create_tax_rate(payload_to_fields(json_body()))
    return jsonify(tax_rate.to_dict()), 201


@tax_rates_bp.put("/<tax_rate_id>")
@handle_service_errors
def update_tax_rate(tax_rate_id: str):
    tax_rate = tax_rate_service.update_tax_rate(tax_rate_id, payload_to_fields(json_body()))
    return jsonify(tax_rate.to_dict()), 200


@tax_rates_bp.post("/<tax_rate_id>/default")
@handle_service_errors
def set_default_tax_rate(tax_rate_id: str):
    return jsonify(tax_rate_service.set_default_tax_rate(tax_rate_id).to_dict()), 200


@tax_rates_bp.delete("/<tax_rate_id>")
@handle_service_errors
def delete_tax_rate(tax_rate_id: str):
    tax_rate_service.delete_tax_rate(tax_rate_id)
    return jsonify({"ok": True}), 200
