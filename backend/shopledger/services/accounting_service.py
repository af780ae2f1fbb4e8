# backend/shopledger/services/accounting_service.py
"""
Double-entry accounting: chart of accounts, journal entries and the
automatic postings made by sales, refunds, GRNs and stock adjustments.

POSTING RULES:
- Every journal entry balances (sum debit == sum credit within 0.01).
- Postings run inside the business transaction that caused them, so a
  rolled-back sale leaves no journal entry behind.
- If the chart of accounts lacks a required account, the posting is
  skipped with a warning; the business operation still succeeds.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..identity import Actor
from ..models import Account, GoodsReceivedNote, JournalEntry, JournalEntryLine, PaymentMethod, Product, Sale, StockAdjustment
from ..time_utils import utcnow
from ..validation import ConflictError, ValidationError
from .concurrency import run_in_transaction
from .document_service import DOCUMENT_TYPE_JOURNAL_ENTRY, next_document_number
from .errors import NotFoundError, UnbalancedJournalEntryError

BALANCE_TOLERANCE = 0.01

ACCOUNT_CASH = "1000"
ACCOUNT_BANK = "1010"
ACCOUNT_RECEIVABLE = "1100"
ACCOUNT_INVENTORY = "1200"
ACCOUNT_PAYABLE = "2000"
ACCOUNT_SALES_TAX_PAYABLE = "2100"
ACCOUNT_UNEARNED_REVENUE = "2200"
ACCOUNT_SALES_REVENUE = "4000"
ACCOUNT_COGS = "5000"
ACCOUNT_SALARIES = "6000"
ACCOUNT_DISCOUNT_EXPENSE = "6700"
ACCOUNT_INVENTORY_LOSS = "6800"

ACCOUNT_TYPES = {"asset", "liability", "equity", "income", "expense"}

# (code, name, type, category)
DEFAULT_CHART_OF_ACCOUNTS = [
    ("1000", "Cash", "asset", "current_asset"),
    ("1010", "Bank Account", "asset", "current_asset"),
    ("1100", "Accounts Receivable", "asset", "current_asset"),
    ("1200", "Inventory", "asset", "current_asset"),
    ("1500", "Equipment", "asset", "fixed_asset"),
    ("1600", "Accumulated Depreciation", "asset", "fixed_asset"),
    ("2000", "Accounts Payable", "liability", "current_liability"),
    ("2100", "Sales Tax Payable", "liability", "current_liability"),
    ("2200", "Unearned Revenue", "liability", "current_liability"),
    ("2500", "Long-term Debt", "liability", "long_term_liability"),
    ("3000", "Owner's Equity", "equity", "equity"),
    ("3100", "Retained Earnings", "equity", "equity"),
    ("4000", "Sales Revenue", "income", "revenue"),
    ("4100", "Service Revenue", "income", "revenue"),
    ("4900", "Other Income", "income", "other_income"),
    ("5000", "Cost of Goods Sold", "expense", "cost_of_goods_sold"),
    ("6000", "Salaries Expense", "expense", "operating_expense"),
    ("6100", "Rent Expense", "expense", "operating_expense"),
    ("6200", "Utilities Expense", "expense", "operating_expense"),
    ("6300", "Supplies Expense", "expense", "operating_expense"),
    ("6400", "Advertising Expense", "expense", "operating_expense"),
    ("6500", "Depreciation Expense", "expense", "operating_expense"),
    ("6600", "Insurance Expense", "expense", "operating_expense"),
    ("6700", "Discount Expense", "expense", "operating_expense"),
    ("6800", "Inventory Loss", "expense", "operating_expense"),
    ("7000", "Interest Expense", "expense", "other_expense"),
]


def _money(value) -> float:
    return round(float(value or 0), 2)


# ---------------------------------------------------------------------------
# Chart of accounts
# ---------------------------------------------------------------------------

def seed_default_chart_of_accounts(*, commit: bool = True) -> int:
    """Insert the default accounts if the chart is empty. Returns rows added."""
    if db.session.query(Account.id).first() is not None:
        return 0
    for code, name, account_type, category in DEFAULT_CHART_OF_ACCOUNTS:
        db.session.add(Account(
            account_code=code,
            account_name=name,
            account_type=account_type,
            account_category=category,
            is_active=True,
        ))
    db.session.flush()
    if commit:
        db.session.commit()
    current_app.logger.info("Default chart of accounts seeded (%s accounts)", len(DEFAULT_CHART_OF_ACCOUNTS))
    return len(DEFAULT_CHART_OF_ACCOUNTS)


def get_account_by_code(account_code: str) -> Optional[Account]:
    return db.session.query(Account).filter_by(account_code=account_code).first()


def list_accounts(*, active_only: bool = False) -> list[Account]:
    q = db.session.query(Account)
    if active_only:
        q = q.filter(Account.is_active.is_(True))
    return q.order_by(Account.account_code.asc()).all()


def create_account(patch: dict, *, commit: bool = True) -> Account:
    code = str(patch.get("account_code") or "").strip()
    name = str(patch.get("account_name") or "").strip()
    account_type = patch.get("account_type")
    if not code or not name:
        raise ValidationError("account_code and account_name are required")
    if account_type not in ACCOUNT_TYPES:
        raise ValidationError(f"account_type must be one of: {', '.join(sorted(ACCOUNT_TYPES))}")
    if get_account_by_code(code) is not None:
        raise ConflictError("Account code already exists.")

    account = Account(
        account_code=code,
        account_name=name,
        account_type=account_type,
        account_category=patch.get("account_category"),
        parent_account_id=patch.get("parent_account_id"),
        description=patch.get("description"),
        is_active=bool(patch.get("is_active", True)),
    )
    db.session.add(account)
    db.session.flush()
    if commit:
        db.session.commit()
    return account


def _accounts(*codes: str) -> Optional[dict[str, Account]]:
    found = {a.account_code: a for a in db.session.query(Account).filter(Account.account_code.in_(codes)).all()}
    if any(code not in found for code in codes):
        return None
    return found


# ---------------------------------------------------------------------------
# Journal entries
# ---------------------------------------------------------------------------

def create_journal_entry(
    *,
    description: str,
    lines: list[dict],
    entry_date: Optional[datetime] = None,
    reference_type: Optional[str] = None,
    reference_id: Optional[str] = None,
    actor: Optional[Actor] = None,
    commit: bool = True,
) -> JournalEntry:
    """
    Create a balanced journal entry.

    lines: [{"account_id": ..., "debit": float, "credit": float, "description": str?}]

    Raises:
        ValidationError: no lines, negative amounts
        UnbalancedJournalEntryError: debits != credits (tolerance 0.01)
        NotFoundError: unknown account
    """
    if not lines or len(lines) < 2:
        raise ValidationError("A journal entry needs at least two lines")

    total_debit = 0.0
    total_credit = 0.0
    for line in lines:
        debit = float(line.get("debit") or 0)
        credit = float(line.get("credit") or 0)
        if debit < 0 or credit < 0:
            raise ValidationError("Journal line amounts must be >= 0")
        total_debit += debit
        total_credit += credit

    if abs(total_debit - total_credit) > BALANCE_TOLERANCE:
        raise UnbalancedJournalEntryError(
            f"Journal entry must balance. Debit: {total_debit:.2f}, Credit: {total_credit:.2f}",
            {"debit": round(total_debit, 2), "credit": round(total_credit, 2)},
        )

    def _op():
        entry = JournalEntry(
            entry_date=entry_date or utcnow(),
            entry_number=next_document_number(document_type=DOCUMENT_TYPE_JOURNAL_ENTRY),
            reference_type=reference_type,
            reference_id=reference_id,
            description=description,
            posted_by_user_id=actor.user_id if actor else None,
            posted_by_user_name=actor.user_name if actor else None,
            is_posted=True,
        )
        db.session.add(entry)
        db.session.flush()

        for index, line in enumerate(lines, start=1):
            account = db.session.get(Account, line.get("account_id"))
            if account is None:
                raise NotFoundError(f"Account with ID {line.get('account_id')} not found")
            db.session.add(JournalEntryLine(
                journal_entry_id=entry.id,
                line_number=index,
                account_id=account.id,
                account_code=account.account_code,
                account_name=account.account_name,
                debit=_money(line.get("debit")),
                credit=_money(line.get("credit")),
                description=line.get("description"),
            ))
        db.session.flush()
        return entry

    return run_in_transaction(_op, commit=commit)


def get_journal_entry(entry_id: str) -> JournalEntry:
    entry = db.session.get(JournalEntry, entry_id)
    if entry is None:
        raise NotFoundError(f"Journal entry {entry_id} not found")
    return entry


def list_journal_entries(
    *,
    reference_type: Optional[str] = None,
    reference_id: Optional[str] = None,
) -> list[JournalEntry]:
    q = db.session.query(JournalEntry)
    if reference_type is not None:
        q = q.filter(JournalEntry.reference_type == reference_type)
    if reference_id is not None:
        q = q.filter(JournalEntry.reference_id == reference_id)
    return q.order_by(JournalEntry.entry_number.asc()).all()


# ---------------------------------------------------------------------------
# Automatic postings (always commit=False: they join the caller's transaction)
# ---------------------------------------------------------------------------

def _payment_account_code(payment_method_id: Optional[str]) -> str:
    method = db.session.get(PaymentMethod, payment_method_id) if payment_method_id else None
    if method is not None and method.is_credit:
        return ACCOUNT_RECEIVABLE
    if method is not None and not method.is_cash_equivalent:
        return ACCOUNT_BANK
    # No payment method recorded: treat as cash
    return ACCOUNT_CASH


def _items_cost(sale: Sale) -> float:
    return abs(sum(float(i.get("cost") or 0) * int(i.get("quantity") or 0) for i in (sale.items or [])))


def post_sale_transaction(sale: Sale) -> list[JournalEntry]:
    """
    Sale: Dr Cash/Bank/Receivable (total), Dr Discount Expense (discounts),
    Cr Sales Revenue (subtotal), Cr Sales Tax Payable (tax); then
    Dr COGS / Cr Inventory for the cost of the items.
    """
    accounts = _accounts(
        ACCOUNT_CASH, ACCOUNT_BANK, ACCOUNT_RECEIVABLE, ACCOUNT_SALES_REVENUE,
        ACCOUNT_SALES_TAX_PAYABLE, ACCOUNT_COGS, ACCOUNT_INVENTORY, ACCOUNT_DISCOUNT_EXPENSE,
    )
    if accounts is None:
        current_app.logger.warning("Required accounts not found for sale posting. Skipping sale %s.", sale.id)
        return []

    debit_account = accounts[_payment_account_code(sale.payment_method_id)]
    lines = [
        {
            "account_id": debit_account.id,
            "debit": _money(sale.total),
            "credit": 0,
            "description": f"Sale to {sale.customer_name or 'Walk-in Customer'}",
        },
        {
            "account_id": accounts[ACCOUNT_SALES_REVENUE].id,
            "debit": 0,
            "credit": _money(sale.subtotal),
            "description": "Sales revenue",
        },
    ]
    if _money(sale.tax) > 0:
        lines.append({
            "account_id": accounts[ACCOUNT_SALES_TAX_PAYABLE].id,
            "debit": 0,
            "credit": _money(sale.tax),
            "description": "Sales tax collected",
        })
    if _money(sale.discount_amount) > 0:
        lines.append({
            "account_id": accounts[ACCOUNT_DISCOUNT_EXPENSE].id,
            "debit": _money(sale.discount_amount),
            "credit": 0,
            "description": "Discount given",
        })
    if _money(sale.loyalty_points_discount_amount) > 0:
        lines.append({
            "account_id": accounts[ACCOUNT_DISCOUNT_EXPENSE].id,
            "debit": _money(sale.loyalty_points_discount_amount),
            "credit": 0,
            "description": "Loyalty points redeemed",
        })
    if _money(sale.gift_card_amount_used) > 0:
        gift_card_account = get_account_by_code(ACCOUNT_UNEARNED_REVENUE)
        if gift_card_account is None:
            current_app.logger.warning("Unearned Revenue account missing. Skipping sale %s.", sale.id)
            return []
        lines.append({
            "account_id": gift_card_account.id,
            "debit": _money(sale.gift_card_amount_used),
            "credit": 0,
            "description": "Gift card redeemed",
        })

    entries = [create_journal_entry(
        entry_date=sale.date,
        reference_type="sale",
        reference_id=sale.id,
        description=f"Sale {sale.id}",
        lines=lines,
        actor=Actor(sale.employee_id, sale.employee_name),
        commit=False,
    )]

    total_cost = _money(_items_cost(sale))
    if total_cost > 0:
        entries.append(create_journal_entry(
            entry_date=sale.date,
            reference_type="sale_cogs",
            reference_id=sale.id,
            description=f"COGS for Sale {sale.id}",
            lines=[
                {"account_id": accounts[ACCOUNT_COGS].id, "debit": total_cost, "credit": 0,
                 "description": "Cost of goods sold"},
                {"account_id": accounts[ACCOUNT_INVENTORY].id, "debit": 0, "credit": total_cost,
                 "description": "Inventory reduction"},
            ],
            commit=False,
        ))
    return entries


def post_credit_settlement(sale: Sale, payment_method_id: Optional[str] = None, actor: Optional[Actor] = None) -> Optional[JournalEntry]:
    """Credit sale paid off: Dr Cash/Bank / Cr Accounts Receivable for the sale total."""
    accounts = _accounts(ACCOUNT_CASH, ACCOUNT_BANK, ACCOUNT_RECEIVABLE)
    if accounts is None:
        current_app.logger.warning("Required accounts not found for settlement posting. Skipping sale %s.", sale.id)
        return None

    amount = _money(sale.total)
    if amount <= 0:
        return None

    debit_code = _payment_account_code(payment_method_id)
    if debit_code == ACCOUNT_RECEIVABLE:
        debit_code = ACCOUNT_CASH
    return create_journal_entry(
        reference_type="sale_settlement",
        reference_id=sale.id,
        description=f"Settlement of credit Sale {sale.id}",
        lines=[
            {"account_id": accounts[debit_code].id, "debit": amount, "credit": 0,
             "description": f"Payment from {sale.customer_name or 'Customer'}"},
            {"account_id": accounts[ACCOUNT_RECEIVABLE].id, "debit": 0, "credit": amount,
             "description": "Receivable settled"},
        ],
        actor=actor,
        commit=False,
    )


def post_refund_transaction(refund: Sale) -> list[JournalEntry]:
    """
    Refund (amounts stored negated): Dr Sales Revenue, Dr Sales Tax Payable,
    Cr Discount Expense, Cr Cash/Bank/Receivable; then Dr Inventory / Cr COGS.
    """
    accounts = _accounts(
        ACCOUNT_CASH, ACCOUNT_BANK, ACCOUNT_RECEIVABLE, ACCOUNT_SALES_REVENUE,
        ACCOUNT_SALES_TAX_PAYABLE, ACCOUNT_COGS, ACCOUNT_INVENTORY, ACCOUNT_DISCOUNT_EXPENSE,
    )
    if accounts is None:
        current_app.logger.warning("Required accounts not found for refund posting. Skipping refund %s.", refund.id)
        return []

    credit_account = accounts[_payment_account_code(refund.payment_method_id)]
    lines = [
        {
            "account_id": accounts[ACCOUNT_SALES_REVENUE].id,
            "debit": abs(_money(refund.subtotal)),
            "credit": 0,
            "description": "Sales revenue refund",
        },
        {
            "account_id": credit_account.id,
            "debit": 0,
            "credit": abs(_money(refund.total)),
            "description": f"Refund to {refund.customer_name or 'Customer'}",
        },
    ]
    if abs(_money(refund.tax)) > 0:
        lines.append({
            "account_id": accounts[ACCOUNT_SALES_TAX_PAYABLE].id,
            "debit": abs(_money(refund.tax)),
            "credit": 0,
            "description": "Sales tax refund",
        })
    if abs(_money(refund.discount_amount)) > 0:
        lines.append({
            "account_id": accounts[ACCOUNT_DISCOUNT_EXPENSE].id,
            "debit": 0,
            "credit": abs(_money(refund.discount_amount)),
            "description": "Discount reversed",
        })

    entries = [create_journal_entry(
        entry_date=refund.date,
        reference_type="refund",
        reference_id=refund.id,
        description=f"Refund {refund.id}",
        lines=lines,
        actor=Actor(refund.employee_id, refund.employee_name),
        commit=False,
    )]

    total_cost = _money(_items_cost(refund))
    if total_cost > 0:
        entries.append(create_journal_entry(
            entry_date=refund.date,
            reference_type="refund_cogs",
            reference_id=refund.id,
            description=f"COGS reversal for Refund {refund.id}",
            lines=[
                {"account_id": accounts[ACCOUNT_INVENTORY].id, "debit": total_cost, "credit": 0,
                 "description": "Inventory return"},
                {"account_id": accounts[ACCOUNT_COGS].id, "debit": 0, "credit": total_cost,
                 "description": "COGS reversal"},
            ],
            commit=False,
        ))
    return entries


def post_purchase_transaction(grn: GoodsReceivedNote, actor: Optional[Actor] = None) -> Optional[JournalEntry]:
    """Goods received: Dr Inventory / Cr Accounts Payable for the GRN value."""
    accounts = _accounts(ACCOUNT_INVENTORY, ACCOUNT_PAYABLE)
    if accounts is None:
        current_app.logger.warning("Required accounts not found for purchase posting. Skipping GRN %s.", grn.id)
        return None

    amount = _money(grn.total_value)
    if amount <= 0:
        return None

    return create_journal_entry(
        entry_date=grn.approval_date or grn.received_date,
        reference_type="purchase",
        reference_id=grn.id,
        description=f"Goods Received {grn.reference_no}",
        lines=[
            {"account_id": accounts[ACCOUNT_INVENTORY].id, "debit": amount, "credit": 0,
             "description": f"Purchase from {grn.supplier_name}"},
            {"account_id": accounts[ACCOUNT_PAYABLE].id, "debit": 0, "credit": amount,
             "description": f"Payable to {grn.supplier_name}"},
        ],
        actor=actor,
        commit=False,
    )


def post_stock_adjustment(adjustment: StockAdjustment, actor: Optional[Actor] = None) -> Optional[JournalEntry]:
    """
    Adjustment valued at product cost: a net increase is Dr Inventory /
    Cr Inventory Loss, a net decrease Dr Inventory Loss / Cr Inventory.
    """
    accounts = _accounts(ACCOUNT_INVENTORY, ACCOUNT_INVENTORY_LOSS)
    if accounts is None:
        current_app.logger.warning(
            "Required accounts not found for stock adjustment posting. Skipping adjustment %s.", adjustment.id
        )
        return None

    total = 0.0
    for item in adjustment.line_items:
        product = db.session.get(Product, item.get("product_id"))
        cost = float(product.cost or 0) if product else 0.0
        sign = 1 if item.get("adjustment_type") == "increase" else -1
        total += sign * cost * int(item.get("quantity") or 0)

    amount = _money(abs(total))
    if amount == 0:
        return None

    inventory_id = accounts[ACCOUNT_INVENTORY].id
    loss_id = accounts[ACCOUNT_INVENTORY_LOSS].id
    if total > 0:
        lines = [
            {"account_id": inventory_id, "debit": amount, "credit": 0, "description": "Inventory increase"},
            {"account_id": loss_id, "debit": 0, "credit": amount, "description": "Inventory adjustment"},
        ]
    else:
        lines = [
            {"account_id": loss_id, "debit": amount, "credit": 0, "description": "Inventory loss"},
            {"account_id": inventory_id, "debit": 0, "credit": amount, "description": "Inventory decrease"},
        ]

    return create_journal_entry(
        entry_date=adjustment.adjustment_date,
        reference_type="stock_adjustment",
        reference_id=adjustment.id,
        description=f"Stock Adjustment - {adjustment.store_name}",
        lines=lines,
        actor=actor,
        commit=False,
    )


def post_payroll_payment(payroll, actor: Optional[Actor] = None) -> Optional[JournalEntry]:
    """Salary paid: Dr Salaries Expense / Cr Cash for net salary."""
    accounts = _accounts(ACCOUNT_SALARIES, ACCOUNT_CASH)
    if accounts is None:
        current_app.logger.warning("Required accounts not found for payroll posting. Skipping payroll %s.", payroll.id)
        return None

    amount = _money(payroll.net_salary)
    if amount <= 0:
        return None

    return create_journal_entry(
        entry_date=utcnow(),
        reference_type="payroll",
        reference_id=payroll.id,
        description=f"Salary payment - {payroll.user_name}",
        lines=[
            {"account_id": accounts[ACCOUNT_SALARIES].id, "debit": amount, "credit": 0,
             "description": f"Salary for {payroll.user_name}"},
            {"account_id": accounts[ACCOUNT_CASH].id, "debit": 0, "credit": amount,
             "description": "Cash payment"},
        ],
        actor=actor,
        commit=False,
    )


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------

def trial_balance() -> dict:
    """Debit/credit totals per account with activity, plus grand totals."""
    rows = (
        db.session.query(
            Account.id,
            Account.account_code,
            Account.account_name,
            Account.account_type,
            func.coalesce(func.sum(JournalEntryLine.debit), 0).label("total_debit"),
            func.coalesce(func.sum(JournalEntryLine.credit), 0).label("total_credit"),
        )
        .join(JournalEntryLine, JournalEntryLine.account_id == Account.id)
        .join(JournalEntry, JournalEntry.id == JournalEntryLine.journal_entry_id)
        .filter(JournalEntry.is_posted.is_(True))
        .group_by(Account.id, Account.account_code, Account.account_name, Account.account_type)
        .order_by(Account.account_code.asc())
        .all()
    )

    accounts = []
    for row in rows:
        total_debit = _money(row.total_debit)
        total_credit = _money(row.total_credit)
        accounts.append({
            "accountId": row.id,
            "accountCode": row.account_code,
            "accountName": row.account_name,
            "accountType": row.account_type,
            "totalDebit": total_debit,
            "totalCredit": total_credit,
            "balance": _money(total_debit - total_credit),
        })

    grand_debit = _money(sum(a["totalDebit"] for a in accounts))
    grand_credit = _money(sum(a["totalCredit"] for a in accounts))
    return {
        "accounts": accounts,
        "totalDebit": grand_debit,
        "totalCredit": grand_credit,
        "isBalanced": abs(grand_debit - grand_credit) <= BALANCE_TOLERANCE,
    }
