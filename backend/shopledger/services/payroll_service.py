# backend/shopledger/services/payroll_service.py
"""
Payroll runs: one record per employee and pay period.

LIFECYCLE:
- pending -> approved -> paid
- pending/approved -> cancelled
Paid and cancelled are terminal. Paying posts Salaries Expense / Cash for
the net salary unless the caller opts out.
"""
from __future__ import annotations

from typing import Optional

from flask import current_app

from ..extensions import db
from ..identity import Actor
from ..models import Payroll
from ..time_utils import coerce_datetime, utcnow
from ..validation import ValidationError, require_money
from . import accounting_service
from .concurrency import lock_for_update, run_in_transaction
from .errors import InvalidStateError, NotFoundError

PAYROLL_STATUS_PENDING = "pending"
PAYROLL_STATUS_APPROVED = "approved"
PAYROLL_STATUS_PAID = "paid"
PAYROLL_STATUS_CANCELLED = "cancelled"

PAYROLL_STATUSES = (
    PAYROLL_STATUS_PENDING,
    PAYROLL_STATUS_APPROVED,
    PAYROLL_STATUS_PAID,
    PAYROLL_STATUS_CANCELLED,
)

TERMINAL_STATUSES = (PAYROLL_STATUS_PAID, PAYROLL_STATUS_CANCELLED)

_AMOUNT_FIELDS = ("base_salary", "total_allowances", "total_deductions", "overtime_amount")


def compute_net_salary(*, base_salary: float, total_allowances: float = 0.0,
                       total_deductions: float = 0.0, overtime_amount: float = 0.0) -> float:
    return round(base_salary + total_allowances + overtime_amount - total_deductions, 2)


def get_payroll(payroll_id: str, *, lock: bool = False) -> Payroll:
    q = db.session.query(Payroll).filter_by(id=payroll_id)
    if lock:
        q = lock_for_update(q)
    payroll = q.first()
    if payroll is None:
        raise NotFoundError(f"Payroll {payroll_id} not found")
    return payroll


def list_payroll(*, status: Optional[str] = None, user_id: Optional[str] = None) -> list[Payroll]:
    q = db.session.query(Payroll)
    if status is not None:
        q = q.filter(Payroll.status == status)
    if user_id is not None:
        q = q.filter(Payroll.user_id == user_id)
    return q.order_by(Payroll.period_start.desc(), Payroll.id.asc()).all()


def create_payroll(data: dict, *, commit: bool = True) -> Payroll:
    """
    Raises:
        ValidationError: missing employee, bad amounts or period
    """
    user_id = data.get("user_id")
    user_name = (data.get("user_name") or "").strip()
    if not user_id or not user_name:
        raise ValidationError("user_id and user_name are required")

    amounts = {}
    for field in _AMOUNT_FIELDS:
        value = data.get(field)
        if value is None:
            if field == "base_salary":
                raise ValidationError("base_salary is required")
            value = 0
        amounts[field] = require_money(value, field)

    try:
        period_start = coerce_datetime(data.get("period_start"), default_now=False)
        period_end = coerce_datetime(data.get("period_end"), default_now=False)
    except ValueError:
        raise ValidationError("period_start and period_end must be ISO-8601 datetimes")
    if period_start is None or period_end is None:
        raise ValidationError("period_start and period_end are required")
    if period_end < period_start:
        raise ValidationError("period_end must not be before period_start")

    net_salary = compute_net_salary(**amounts)
    if net_salary < 0:
        raise ValidationError("Deductions exceed gross pay")

    def _op():
        payroll = Payroll(
            user_id=str(user_id),
            user_name=user_name,
            period_start=period_start,
            period_end=period_end,
            net_salary=net_salary,
            status=PAYROLL_STATUS_PENDING,
            **amounts,
        )
        db.session.add(payroll)
        db.session.flush()
        current_app.logger.info("Payroll created: %s for %s (net %.2f)", payroll.id, user_name, net_salary)
        return payroll

    return run_in_transaction(_op, commit=commit)


def approve_payroll(payroll_id: str, actor: Optional[Actor] = None, *, commit: bool = True) -> Payroll:
    def _op():
        payroll = get_payroll(payroll_id, lock=True)
        if payroll.status != PAYROLL_STATUS_PENDING:
            raise InvalidStateError(f"Cannot approve payroll with status {payroll.status}")
        payroll.status = PAYROLL_STATUS_APPROVED
        payroll.approved_by_user_id = actor.user_id if actor else None
        payroll.approved_at = utcnow()
        db.session.flush()
        return payroll

    return run_in_transaction(_op, commit=commit)


def pay_payroll(
    payroll_id: str,
    actor: Optional[Actor] = None,
    *,
    create_journal_entry: bool = True,
    commit: bool = True,
) -> Payroll:
    """
    Mark a payroll paid and, by default, post the salary expense.

    Raises:
        InvalidStateError: already paid or cancelled
    """
    def _op():
        payroll = get_payroll(payroll_id, lock=True)
        if payroll.status in TERMINAL_STATUSES:
            raise InvalidStateError(f"Payroll is already {payroll.status}")

        payroll.status = PAYROLL_STATUS_PAID
        payroll.paid_by_user_id = actor.user_id if actor else None
        payroll.paid_at = utcnow()
        db.session.flush()

        if create_journal_entry:
            entry = accounting_service.post_payroll_payment(payroll, actor)
            if entry is not None:
                payroll.journal_entry_id = entry.id
                db.session.flush()

        current_app.logger.info("Payroll paid: %s (%s)", payroll.id, payroll.user_name)
        return payroll

    return run_in_transaction(_op, commit=commit)


def cancel_payroll(payroll_id: str, *, commit: bool = True) -> Payroll:
    def _op():
        payroll = get_payroll(payroll_id, lock=True)
        if payroll.status in TERMINAL_STATUSES:
            raise InvalidStateError(f"Payroll is already {payroll.status}")
        payroll.status = PAYROLL_STATUS_CANCELLED
        db.session.flush()
        return payroll

    return run_in_transaction(_op, commit=commit)
