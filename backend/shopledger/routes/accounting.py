# Overview: Flask API routes for the chart of accounts, journal entries and trial balance.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_actor, handle_service_errors, json_body
from ..mappers import items_to_fields, payload_to_fields
from ..services import accounting_service
from ..time_utils import coerce_datetime
from ..validation import ValidationError

accounting_bp = Blueprint("accounting", __name__, url_prefix="/api/accounting")


@accounting_bp.get("/accounts")
@handle_service_errors
def list_accounts():
    active_only = request.args.get("activeOnly", "").lower() in ("1", "true", "yes")
    accounts = accounting_service.list_accounts(active_only=active_only)
    return jsonify([a.to_dict() for a in accounts]), 200


@accounting_bp.post("/accounts")
@handle_service_errors
def create_account():
    account = accounting_service.create_account(payload_to_fields(json_body()))
    return jsonify(account.to_dict()), 201


@accounting_bp.post("/accounts/seed")
@handle_service_errors
def seed_accounts():
    """Insert the default chart of accounts when the chart is empty."""
    added = accounting_service.seed_default_chart_of_accounts()
    return jsonify({"added": added}), 200


@accounting_bp.get("/journal-entries")
@handle_service_errors
def list_journal_entries():
    entries = accounting_service.list_journal_entries(
        reference_type=request.args.get("referenceType"),
        reference_id=request.args.get("referenceId"),
    )
    return jsonify([e.to_dict() for e in entries]), 200


@accounting_bp.get("/journal-entries/<entry_id>")
@handle_service_errors
def get_journal_entry(entry_id: str):
    return jsonify(accounting_service.get_journal_entry(entry_id).to_dict()), 200


@accounting_bp.post("/journal-entries")
@require_actor
@handle_service_errors
def create_journal_entry():
    """
    Manual journal entry.

    Request body:
    {
        "description": str,
        "entryDate": ISO-8601 (optional),
        "lines": [{"accountId": str, "debit": float, "credit": float, "description": str}]
    }

    Returns:
        201: Entry posted
        400: Fewer than two lines, negative amounts or debits != credits
        404: Unknown account
    """
    data = json_body()
    try:
        entry_date = coerce_datetime(data.get("entryDate"))
    except ValueError:
        raise ValidationError("entryDate must be an ISO-8601 datetime")

    entry = accounting_service.create_journal_entry(
        description=data.get("description") or "Manual entry",
        lines=items_to_fields(data.get("lines")),
        entry_date=entry_date,
        reference_type=data.get("referenceType") or "manual",
        reference_id=data.get("referenceId"),
        actor=g.actor,
    )
    return jsonify(entry.to_dict()), 201


@accounting_bp.get("/trial-balance")
@handle_service_errors
def trial_balance():
    return jsonify(accounting_service.trial_balance()), 200
