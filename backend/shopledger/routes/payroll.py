# Overview: Flask API routes for payroll runs.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_actor, handle_service_errors, json_body
from ..mappers import payload_to_fields
from ..services import payroll_service

payroll_bp = Blueprint("payroll", __name__, url_prefix="/api/payroll")


@payroll_bp.get("")
@handle_service_errors
def list_payroll():
    records = payroll_service.list_payroll(
        status=request.args.get("status"),
        user_id=request.args.get("userId"),
    )
    return jsonify([p.to_dict() for p in records]), 200


@payroll_bp.get("/<payroll_id>")
@handle_service_errors
def get_payroll(payroll_id: str):
    return jsonify(payroll_service.get_payroll(payroll_id).to_dict()), 200


@payroll_bp.post("")
@handle_service_errors
def create_payroll():
    """
    Request body:
    {
        "userId": str, "userName": str,
        "baseSalary": float, "totalAllowances": float, "totalDeductions": float,
        "overtimeAmount": float,
        "periodStart": ISO-8601, "periodEnd": ISO-8601
    }
    """
    payroll = payroll_service.create_payroll(payload_to_fields(json_body()))
    return jsonify(payroll.to_dict()), 201


@payroll_bp.post("/<payroll_id>/approve")
@require_actor
@handle_service_errors
def approve_payroll(payroll_id: str):
    payroll = payroll_service.approve_payroll(payroll_id, g.actor)
    return jsonify(payroll.to_dict()), 200


@payroll_bp.post("/<payroll_id>/pay")
@require_actor
@handle_service_errors
def pay_payroll(payroll_id: str):
    """Request body (optional): {"createJournalEntry": bool} (default true)"""
    data = json_body()
    payroll = payroll_service.pay_payroll(
        payroll_id,
        g.actor,
        create_journal_entry=bool(data.get("createJournalEntry", True)),
    )
    return jsonify(payroll.to_dict()), 200


@payroll_bp.post("/<payroll_id>/cancel")
@handle_service_errors
def cancel_payroll(payroll_id: str):
    payroll = payroll_service.cancel_payroll(payroll_id)
    return jsonify(payroll.to_dict()), 200
