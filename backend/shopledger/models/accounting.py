from __future__ import annotations

from ..extensions import db
from ..identity import new_id
from ..time_utils import utcnow
from .base import RowMixin


class Account(RowMixin, db.Model):
    """Chart of accounts entry. account_code is the stable lookup key."""
    __tablename__ = "chart_of_accounts"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    account_code = db.Column(db.String(16), nullable=False, unique=True)
    account_name = db.Column(db.String(255), nullable=False)
    # asset | liability | equity | income | expense
    account_type = db.Column(db.String(16), nullable=False)
    account_category = db.Column(db.String(64), nullable=True)
    parent_account_id = db.Column(db.String(36), db.ForeignKey("chart_of_accounts.id"), nullable=True)
    description = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Account code={self.account_code} name={self.account_name!r}>"


class JournalEntry(RowMixin, db.Model):
    """
    Double-entry journal entry. Lines always balance (sum debit ==
    sum credit within 0.01); enforced in accounting_service.
    """
    __tablename__ = "journal_entries"
    __table_args__ = (
        db.Index("ix_journal_entries_reference", "reference_type", "reference_id"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    entry_date = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    entry_number = db.Column(db.String(16), nullable=False, unique=True)
    reference_type = db.Column(db.String(32), nullable=True)
    reference_id = db.Column(db.String(64), nullable=True)
    description = db.Column(db.Text, nullable=False, default="")
    posted_by_user_id = db.Column(db.String(64), nullable=True)
    posted_by_user_name = db.Column(db.String(255), nullable=True)
    is_posted = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    lines = db.relationship(
        "JournalEntryLine",
        backref="journal_entry",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="JournalEntryLine.line_number",
    )

    def __repr__(self) -> str:
        return f"<JournalEntry number={self.entry_number} ref={self.reference_type}:{self.reference_id}>"

    def to_dict(self) -> dict:
        d = super().to_dict()
        d["lines"] = [line.to_dict() for line in self.lines]
        return d


class JournalEntryLine(RowMixin, db.Model):
    __tablename__ = "journal_entry_lines"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    journal_entry_id = db.Column(db.String(36), db.ForeignKey("journal_entries.id"), nullable=False, index=True)
    line_number = db.Column(db.Integer, nullable=False, default=1)
    account_id = db.Column(db.String(36), db.ForeignKey("chart_of_accounts.id"), nullable=False, index=True)
    account_code = db.Column(db.String(16), nullable=False)
    account_name = db.Column(db.String(255), nullable=False)
    debit = db.Column(db.Float, nullable=False, default=0.0)
    credit = db.Column(db.Float, nullable=False, default=0.0)
    description = db.Column(db.Text, nullable=True)

    def __repr__(self) -> str:
        return f"<JournalEntryLine {self.account_code} dr={self.debit} cr={self.credit}>"


class Payroll(RowMixin, db.Model):
    """
    Pay run for one employee and period.

    LIFECYCLE: pending -> approved -> paid; cancelled is terminal.
    Paying optionally posts Salaries Expense / Cash for net_salary.
    """
    __tablename__ = "payroll"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    user_name = db.Column(db.String(255), nullable=False)

    base_salary = db.Column(db.Float, nullable=False, default=0.0)
    total_allowances = db.Column(db.Float, nullable=False, default=0.0)
    total_deductions = db.Column(db.Float, nullable=False, default=0.0)
    overtime_amount = db.Column(db.Float, nullable=False, default=0.0)
    net_salary = db.Column(db.Float, nullable=False, default=0.0)

    period_start = db.Column(db.DateTime, nullable=False)
    period_end = db.Column(db.DateTime, nullable=False)

    # pending | approved | paid | cancelled
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    approved_by_user_id = db.Column(db.String(64), nullable=True)
    approved_at = db.Column(db.DateTime, nullable=True)
    paid_by_user_id = db.Column(db.String(64), nullable=True)
    paid_at = db.Column(db.DateTime, nullable=True)
    journal_entry_id = db.Column(db.String(36), db.ForeignKey("journal_entries.id"), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Payroll id={self.id} user_id={self.user_id} status={self.status}>"
