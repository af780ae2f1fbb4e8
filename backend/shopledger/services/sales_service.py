# backend/shopledger/services/sales_service.py
"""
Sale and refund settlement.

SALE (finalize):
- Totals: subtotal = sum(price * qty); discount = subtotal * pct / 100;
  loyalty discount = points / points-per-unit; tax on the discounted
  amount at the named tax rate (tax_rate_id), an explicit tax_rate, or the
  default tax rate; gift card deducted last.
- Every stock-tracked line decrements the sale store's effective stock
  (SALE entry). Stock is re-checked under the product row lock, so two
  registers cannot both sell the last unit.
- Credit tenders need a customer and leave the sale pending until settled.
- Loyalty: redeemed points deducted, floor(discounted subtotal) earned.
- Journal: revenue/tax/discount entry plus COGS entry.

REFUND:
- Against a finalized sale, never more than sold minus already refunded.
- Stored as type='refund' with negated quantities and amounts; each
  stock-tracked line re-credits the original store (REFUND entry).

Each call is one transaction; any failure leaves stock, loyalty balances
and the journal untouched.
"""
from __future__ import annotations

from collections import defaultdict
from typing import Optional

from flask import current_app

from ..extensions import db
from ..identity import Actor, new_id
from ..mappers import fields_to_items, items_to_fields
from ..models import PaymentMethod, Product, Sale, TaxRate
from ..time_utils import coerce_datetime
from ..validation import ValidationError, require_money, validate_line_items
from . import accounting_service, customer_service, inventory_service, tax_rate_service
from .concurrency import lock_for_update, run_in_transaction
from .errors import InvalidStateError, NotFoundError, ProductNotFoundError
from .history_service import HISTORY_TYPE_REFUND, HISTORY_TYPE_SALE
from .store_service import get_store


# Sale status constants
SALE_STATUS_COMPLETED = "completed"
SALE_STATUS_PENDING = "pending"
SALE_STATUS_ON_HOLD = "on-hold"

SALE_TYPE_SALE = "sale"
SALE_TYPE_REFUND = "refund"

REFUNDABLE_STATUSES = (SALE_STATUS_COMPLETED, SALE_STATUS_PENDING)


def _money(value) -> float:
    return round(float(value or 0), 2)


def _normalize_items(items) -> list[dict]:
    items = validate_line_items(items, quantity_field="quantity")
    normalized = []
    for item in items:
        product = db.session.get(Product, item["product_id"])
        if product is None:
            raise ProductNotFoundError(item["product_id"])
        price = require_money(item["price"], "price") if item.get("price") is not None else float(product.price or 0)
        cost = require_money(item["cost"], "cost") if item.get("cost") is not None else float(product.cost or 0)
        normalized.append({
            "product_id": product.id,
            "name": item.get("name") or product.name,
            "price": price,
            "cost": cost,
            "quantity": item["quantity"],
        })
    return normalized


def _rate(value, field: str) -> float:
    if value is None or value == "":
        return 0.0
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number")


def compute_totals(
    items: list[dict],
    *,
    discount_percentage: float = 0.0,
    loyalty_points_used: int = 0,
    tax_rate: float = 0.0,
    gift_card_amount: float = 0.0,
) -> dict:
    """
    Sale money fields. tax_rate is a fraction (0.08 = 8%), applied after
    discounts; the gift card is applied last and never drives total below 0.
    """
    if not 0 <= discount_percentage <= 100:
        raise ValidationError("discount_percentage must be between 0 and 100")
    if tax_rate < 0:
        raise ValidationError("tax_rate must be >= 0")
    if gift_card_amount < 0:
        raise ValidationError("gift_card_amount_used must be >= 0")

    subtotal = _money(sum(i["price"] * i["quantity"] for i in items))
    discount_amount = _money(subtotal * discount_percentage / 100)
    loyalty_discount = customer_service.points_to_amount(loyalty_points_used) if loyalty_points_used else 0.0
    after_discount = _money(subtotal - discount_amount - loyalty_discount)
    if after_discount < 0:
        raise ValidationError("Loyalty points redeemed exceed the sale amount")
    tax = _money(after_discount * tax_rate)
    before_gift_card = _money(after_discount + tax)
    gift_card = _money(min(gift_card_amount, before_gift_card))
    total = _money(before_gift_card - gift_card)
    return {
        "subtotal": subtotal,
        "discount_amount": discount_amount,
        "loyalty_points_discount_amount": loyalty_discount,
        "subtotal_after_discount": after_discount,
        "tax": tax,
        "gift_card_amount_used": gift_card,
        "total": total,
    }


def get_sale(sale_id: str, *, lock: bool = False) -> Sale:
    q = db.session.query(Sale).filter_by(id=sale_id)
    if lock:
        q = lock_for_update(q)
    sale = q.first()
    if sale is None:
        raise NotFoundError(f"Sale {sale_id} not found")
    return sale


def list_sales(
    *,
    status: Optional[str] = None,
    sale_type: Optional[str] = None,
    store_id: Optional[str] = None,
    customer_id: Optional[str] = None,
) -> list[Sale]:
    q = db.session.query(Sale)
    if status is not None:
        q = q.filter(Sale.status == status)
    if sale_type is not None:
        q = q.filter(Sale.type == sale_type)
    if store_id is not None:
        q = q.filter(Sale.store_id == store_id)
    if customer_id is not None:
        q = q.filter(Sale.customer_id == customer_id)
    return q.order_by(Sale.date.desc(), Sale.id.asc()).all()


def list_held_sales(*, store_id: Optional[str] = None) -> list[Sale]:
    return list_sales(status=SALE_STATUS_ON_HOLD, store_id=store_id)


def _existing_held_sale(sale_id: Optional[str]) -> Optional[Sale]:
    if not sale_id:
        return None
    sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
    if sale is None:
        return None
    if sale.status != SALE_STATUS_ON_HOLD:
        raise InvalidStateError(f"Sale {sale_id} is already {sale.status}")
    return sale


def _apply_cart(
    sale: Sale,
    data: dict,
    items: list[dict],
    totals: dict,
    tax_rate: Optional[TaxRate],
    rate: float,
) -> None:
    sale.items = fields_to_items(items)
    sale.subtotal = totals["subtotal"]
    sale.tax = totals["tax"]
    sale.total = totals["total"]
    sale.gift_card_amount_used = totals["gift_card_amount_used"] or None
    discount_percentage = _rate(data.get("discount_percentage"), "discount_percentage")
    sale.discount_percentage = discount_percentage or None
    sale.discount_amount = totals["discount_amount"] or None
    sale.loyalty_points_discount_amount = totals["loyalty_points_discount_amount"] or None
    sale.tax_rate_applied = rate
    sale.tax_rate_id = tax_rate.id if tax_rate is not None else None


def hold_sale(data: dict, actor: Optional[Actor] = None, *, commit: bool = True) -> Sale:
    """
    Park a cart as an on-hold sale. No stock, loyalty or journal effect.
    Holding again with the same id replaces the parked cart.
    """
    def _op():
        items = _normalize_items(data.get("items"))
        points_used = int(data.get("loyalty_points_used") or 0)
        tax_rate, rate = tax_rate_service.resolve_tax_rate(data)
        totals = compute_totals(
            items,
            discount_percentage=_rate(data.get("discount_percentage"), "discount_percentage"),
            loyalty_points_used=points_used,
            tax_rate=rate,
            gift_card_amount=_rate(data.get("gift_card_amount_used"), "gift_card_amount_used"),
        )

        sale = _existing_held_sale(data.get("id"))
        if sale is None:
            sale = Sale(id=data.get("id") or new_id(), type=SALE_TYPE_SALE)
            db.session.add(sale)

        store = get_store(data["store_id"]) if data.get("store_id") else None
        customer = customer_service.get_customer(data["customer_id"]) if data.get("customer_id") else None

        _apply_cart(sale, data, items, totals, tax_rate, rate)
        sale.status = SALE_STATUS_ON_HOLD
        sale.date = coerce_datetime(None)
        sale.loyalty_points_used = points_used or None
        sale.customer_id = customer.id if customer else None
        sale.customer_name = customer.name if customer else None
        sale.payment_method_id = data.get("payment_method_id")
        sale.store_id = store.id if store else None
        sale.store_name = store.name if store else None
        sale.held_by_employee_id = actor.user_id if actor else None
        sale.held_by_employee_name = actor.user_name if actor else None
        db.session.flush()
        current_app.logger.info("Sale held: %s", sale.id)
        return sale

    return run_in_transaction(_op, commit=commit)


def delete_held_sale(sale_id: str, *, commit: bool = True) -> None:
    def _op():
        sale = get_sale(sale_id, lock=True)
        if sale.status != SALE_STATUS_ON_HOLD:
            raise InvalidStateError("Only held sales can be discarded")
        db.session.delete(sale)
        db.session.flush()

    run_in_transaction(_op, commit=commit)


def finalize_sale(data: dict, actor: Optional[Actor] = None, *, commit: bool = True) -> Sale:
    """
    Complete a sale (new, or a held sale with the same id).

    Raises:
        ValidationError: empty cart, credit sale without customer, bad
            loyalty redemption
        NotFoundError: unknown store, customer, payment method or product
        StockValidationError: a stock-tracked line exceeds effective stock
        InvalidStateError: the id belongs to an already finalized sale
    """
    def _op():
        store = get_store(data.get("store_id"))
        items = _normalize_items(data.get("items"))

        method = None
        if data.get("payment_method_id"):
            method = db.session.get(PaymentMethod, data["payment_method_id"])
            if method is None:
                raise NotFoundError(f"Payment method {data['payment_method_id']} not found")

        customer = None
        if data.get("customer_id"):
            customer = customer_service.get_customer(data["customer_id"], lock=True)
        if method is not None and method.is_credit and customer is None:
            raise ValidationError("A customer must be selected for a credit sale")

        points_used = data.get("loyalty_points_used") or 0
        if isinstance(points_used, bool) or not isinstance(points_used, int) or points_used < 0:
            raise ValidationError("loyalty_points_used must be an integer >= 0")
        if points_used:
            if not customer_service.loyalty_enabled():
                raise ValidationError("Loyalty program is disabled")
            if customer is None:
                raise ValidationError("A customer is required to redeem loyalty points")
            if points_used > int(customer.loyalty_points or 0):
                raise ValidationError(
                    f"Insufficient loyalty points: available {customer.loyalty_points}, requested {points_used}"
                )

        tax_rate, rate = tax_rate_service.resolve_tax_rate(data)
        totals = compute_totals(
            items,
            discount_percentage=_rate(data.get("discount_percentage"), "discount_percentage"),
            loyalty_points_used=points_used,
            tax_rate=rate,
            gift_card_amount=_rate(data.get("gift_card_amount_used"), "gift_card_amount_used"),
        )

        sale = _existing_held_sale(data.get("id"))
        if sale is None:
            sale = Sale(id=data.get("id") or new_id())
            db.session.add(sale)

        _apply_cart(sale, data, items, totals, tax_rate, rate)
        sale.date = coerce_datetime(None)
        sale.type = SALE_TYPE_SALE
        sale.status = SALE_STATUS_PENDING if (method is not None and method.is_credit) else SALE_STATUS_COMPLETED
        sale.loyalty_points_used = points_used or None
        sale.customer_id = customer.id if customer else None
        sale.customer_name = customer.name if customer else None
        sale.payment_method_id = method.id if method else None
        sale.employee_id = actor.user_id if actor else None
        sale.employee_name = actor.user_name if actor else None
        sale.held_by_employee_id = None
        sale.held_by_employee_name = None
        sale.store_id = store.id
        sale.store_name = store.name
        db.session.flush()

        for item in items:
            product = db.session.get(Product, item["product_id"])
            if not product.track_stock:
                continue
            inventory_service.change_stock(
                product.id,
                -item["quantity"],
                HISTORY_TYPE_SALE,
                sale.id,
                reason=f"Sold {item['quantity']}x {item['name']} in Sale ID: {sale.id[:8]} at {store.name}",
                store_id=store.id,
                actor=actor,
                commit=False,
            )

        if customer is not None and customer_service.loyalty_enabled():
            earned = customer_service.points_earned(totals["subtotal_after_discount"])
            if earned or points_used:
                customer_service.adjust_loyalty_points(customer.id, earned - points_used, commit=False)

        accounting_service.post_sale_transaction(sale)

        current_app.logger.info("Sale finalized: %s (%s, total %.2f)", sale.id, sale.status, sale.total)
        return sale

    return run_in_transaction(_op, commit=commit)


def settle_sale(
    sale_id: str,
    actor: Optional[Actor] = None,
    *,
    payment_method_id: Optional[str] = None,
    commit: bool = True,
) -> Sale:
    """Mark a pending credit sale as paid (pending -> completed)."""
    def _op():
        sale = get_sale(sale_id, lock=True)
        if sale.type != SALE_TYPE_SALE or sale.status != SALE_STATUS_PENDING:
            raise InvalidStateError(f"Only pending credit sales can be settled (sale is {sale.status})")
        sale.status = SALE_STATUS_COMPLETED
        db.session.flush()
        accounting_service.post_credit_settlement(sale, payment_method_id, actor)
        current_app.logger.info("Credit sale settled: %s", sale.id)
        return sale

    return run_in_transaction(_op, commit=commit)


def _refunded_quantities(original_sale_id: str) -> dict[str, int]:
    refunded: dict[str, int] = defaultdict(int)
    refunds = db.session.query(Sale).filter_by(original_sale_id=original_sale_id, type=SALE_TYPE_REFUND).all()
    for refund in refunds:
        for item in items_to_fields(refund.items):
            refunded[item["product_id"]] += abs(int(item.get("quantity") or 0))
    return refunded


def refund_sale(
    original_sale_id: str,
    items: list[dict],
    actor: Optional[Actor] = None,
    *,
    commit: bool = True,
) -> Sale:
    """
    Refund part or all of a finalized sale.

    items: [{"product_id": ..., "quantity": int > 0}]; price, cost and name
    come from the original sale line. The original discount percentage
    and tax rate are applied to the refunded amount.
    """
    def _op():
        original = get_sale(original_sale_id, lock=True)
        if original.type != SALE_TYPE_SALE or original.status not in REFUNDABLE_STATUSES:
            raise InvalidStateError(f"Sale {original.id} cannot be refunded (status {original.status})")

        requested = validate_line_items(items, quantity_field="quantity")

        sold: dict[str, dict] = {}
        for line in items_to_fields(original.items):
            entry = sold.setdefault(line["product_id"], {**line, "quantity": 0})
            entry["quantity"] += int(line["quantity"])
        already = _refunded_quantities(original.id)

        wanted: dict[str, int] = defaultdict(int)
        for item in requested:
            wanted[item["product_id"]] += item["quantity"]

        refund_lines = []
        for product_id, qty in wanted.items():
            line = sold.get(product_id)
            if line is None:
                raise ValidationError(f"Product {product_id} is not part of sale {original.id}")
            remaining = line["quantity"] - already.get(product_id, 0)
            if qty > remaining:
                raise ValidationError(
                    f"Cannot refund {qty}x {line['name']}: only {remaining} left to refund"
                )
            refund_lines.append({
                "product_id": product_id,
                "name": line["name"],
                "price": float(line["price"]),
                "cost": float(line.get("cost") or 0),
                "quantity": qty,
            })

        subtotal = _money(sum(l["price"] * l["quantity"] for l in refund_lines))
        discount = _money(subtotal * (original.discount_percentage or 0) / 100)
        tax = _money((subtotal - discount) * (original.tax_rate_applied or 0))
        total = _money(subtotal - discount + tax)

        refund = Sale(
            id=new_id(),
            date=coerce_datetime(None),
            items=fields_to_items([{**l, "quantity": -l["quantity"]} for l in refund_lines]),
            subtotal=-subtotal,
            tax=-tax,
            total=-total,
            status=SALE_STATUS_COMPLETED,
            type=SALE_TYPE_REFUND,
            original_sale_id=original.id,
            customer_id=original.customer_id,
            customer_name=original.customer_name,
            discount_percentage=original.discount_percentage,
            discount_amount=-discount if discount else None,
            tax_rate_applied=original.tax_rate_applied,
            tax_rate_id=original.tax_rate_id,
            payment_method_id=original.payment_method_id,
            employee_id=actor.user_id if actor and actor.user_id else original.employee_id,
            employee_name=actor.user_name if actor and actor.user_name else original.employee_name,
            store_id=original.store_id,
            store_name=original.store_name,
        )
        db.session.add(refund)
        db.session.flush()

        for line in refund_lines:
            product = db.session.get(Product, line["product_id"])
            if product is None:
                current_app.logger.warning(
                    "Refund %s: product %s no longer exists; stock not restored", refund.id, line["product_id"]
                )
                continue
            if not product.track_stock:
                continue
            inventory_service.change_stock(
                product.id,
                line["quantity"],
                HISTORY_TYPE_REFUND,
                refund.id,
                reason=f"Refunded {line['quantity']}x {line['name']} from Sale ID: {original.id[:8]}",
                store_id=original.store_id,
                actor=actor,
                commit=False,
            )

        accounting_service.post_refund_transaction(refund)

        current_app.logger.info("Refund %s recorded against sale %s (total %.2f)", refund.id, original.id, total)
        return refund

    return run_in_transaction(_op, commit=commit)
