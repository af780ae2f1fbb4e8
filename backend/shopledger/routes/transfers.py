# backend/shopledger/routes/transfers.py
"""
Inter-store transfer API routes.
"""
from flask import Blueprint, request, jsonify, g

from ..decorators import require_actor, handle_service_errors, json_body, require_field
from ..mappers import document_to_fields
from ..services import transfer_service


transfers_bp = Blueprint("transfers", __name__, url_prefix="/api/transfers")


@transfers_bp.route("", methods=["GET"])
@handle_service_errors
def list_transfers():
    """
    Query params:
    - status: pending | in-transit | received | rejected
    - storeId: matches either end of the transfer
    """
    transfers = transfer_service.list_transfers(
        status=request.args.get("status"),
        store_id=request.args.get("storeId"),
    )
    return jsonify([t.to_dict() for t in transfers]), 200


@transfers_bp.route("/<transfer_id>", methods=["GET"])
@handle_service_errors
def get_transfer(transfer_id: str):
    transfer = transfer_service.get_transfer(transfer_id)
    return jsonify(transfer.to_dict()), 200


@transfers_bp.route("", methods=["POST"])
@require_actor
@handle_service_errors
def create_transfer():
    """
    Create a pending transfer.

    Request body:
    {
        "transferFromStoreId": str,
        "transferToStoreId": str,
        "items": [{"productId": str, "quantity": int}],
        "notes": str (optional)
    }

    Returns:
        201: Transfer created
        400: Same store, bad items or insufficient source stock
        404: Store or product not found
    """
    data = document_to_fields(json_body())
    transfer = transfer_service.add_transfer(data, g.actor)
    return jsonify(transfer.to_dict()), 201


@transfers_bp.route("/<transfer_id>/status", methods=["POST"])
@require_actor
@handle_service_errors
def update_transfer_status(transfer_id: str):
    """
    Move a transfer along pending -> in-transit -> received (or rejected).

    Request body: {"status": str}

    Returns:
        200: Transfer updated and stock moved
        400: Unknown status or insufficient source stock
        404: Transfer not found
        409: Transition not allowed from the current status
    """
    data = json_body()
    transfer = transfer_service.update_transfer_status(transfer_id, require_field(data, "status"), g.actor)
    return jsonify(transfer.to_dict()), 200


@transfers_bp.route("/<transfer_id>", methods=["DELETE"])
@handle_service_errors
def delete_transfer(transfer_id: str):
    transfer_service.delete_transfer(transfer_id)
    return jsonify({"ok": True}), 200
