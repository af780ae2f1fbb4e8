# Overview: Flask API routes for stores and suppliers.

from flask import Blueprint, jsonify

from ..decorators import handle_service_errors, json_body
from ..mappers import payload_to_fields
from ..services import store_service, supplier_service

stores_bp = Blueprint("stores", __name__, url_prefix="/api/stores")
suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


@stores_bp.get("")
@handle_service_errors
def list_stores():
    return jsonify([s.to_dict() for s in store_service.list_stores()]), 200


@stores_bp.get("/<store_id>")
@handle_service_errors
def get_store(store_id: str):
    return jsonify(store_service.get_store(store_id).to_dict()), 200


@stores_bp.post("")
@handle_service_errors
def create_store():
    store = store_service.create_store(payload_to_fields(json_body()))
    return jsonify(store.to_dict()), 201


@stores_bp.put("/<store_id>")
@handle_service_errors
def update_store(store_id: str):
    store = store_service.update_store(store_id, payload_to_fields(json_body()))
    return jsonify(store.to_dict()), 200


@suppliers_bp.get("")
@handle_service_errors
def list_suppliers():
    return jsonify([s.to_dict() for s in supplier_service.list_suppliers()]), 200


@suppliers_bp.get("/<supplier_id>")
@handle_service_errors
def get_supplier(supplier_id: str):
    return jsonify(supplier_service.get_supplier(supplier_id).to_dict()), 200


@suppliers_bp.post("")
@handle_service_errors
def create_supplier():
    supplier = supplier_service.create_supplier(payload_to_fields(json_body()))
    return jsonify(supplier.to_dict()), 201


@suppliers_bp.put("/<supplier_id>")
@handle_service_errors
def update_supplier(supplier_id: str):
    supplier = supplier_service.update_supplier(supplier_id, payload_to_fields(json_body()))
    return jsonify(supplier.to_dict()), 200


@suppliers_bp.delete("/<supplier_id>")
@handle_service_errors
def delete_supplier(supplier_id: str):
    supplier_service.delete_supplier(supplier_id)
    return jsonify({"ok": True}), 200
