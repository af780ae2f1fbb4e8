# Overview: Pytest coverage for checkout, held sales, credit settlement and refunds.

"""
Sales Tests

Test Coverage:
- Money calculation (discount, loyalty, tax, gift card)
- Sale/refund round trip restores stock and nets the history to zero
- Overselling is rejected without side effects
- Loyalty redemption and accrual
- Credit tenders: pending until settled
- Refunds bounded by what was sold and not yet refunded
- Held sales finalize in place, exactly once
"""

import pytest

from shopledger.extensions import db
from shopledger.models import Customer, Sale
from shopledger.services import accounting_service, customer_service, history_service, inventory_service
from shopledger.services import products_service, sales_service
from shopledger.services.errors import InvalidStateError, NotFoundError, StockValidationError
from shopledger.validation import ValidationError


def _cart(store, product, qty, **extra):
    data = {"store_id": store.id, "items": [{"product_id": product.id, "quantity": qty}]}
    data.update(extra)
    return data


@pytest.fixture
def customer(db_session):
    return customer_service.create_customer({"name": "Dana Regular", "email": "dana@example.test", "loyalty_points": 500})


class TestComputeTotals:
    def test_discount_then_tax(self):
        totals = sales_service.compute_totals(
            [{"price": 10.0, "quantity": 3}], discount_percentage=10, tax_rate=0.08
        )
        assert totals["subtotal"] == 30.0
        assert totals["discount_amount"] == 3.0
        assert totals["subtotal_after_discount"] == 27.0
        assert totals["tax"] == 2.16
        assert totals["total"] == 29.16

    def test_gift_card_never_drives_total_negative(self):
        totals = sales_service.compute_totals([{"price": 5.0, "quantity": 1}], gift_card_amount=50)
        assert totals["gift_card_amount_used"] == 5.0
        assert totals["total"] == 0.0

    def test_loyalty_discount(self, app):
        totals = sales_service.compute_totals([{"price": 10.0, "quantity": 2}], loyalty_points_used=250)
        assert totals["loyalty_points_discount_amount"] == 2.5
        assert totals["total"] == 17.5

    @pytest.mark.parametrize("kwargs", [
        {"discount_percentage": -1},
        {"discount_percentage": 101},
        {"tax_rate": -0.1},
        {"gift_card_amount": -5},
    ])
    def test_bad_inputs(self, kwargs):
        with pytest.raises(ValidationError):
            sales_service.compute_totals([{"price": 1.0, "quantity": 1}], **kwargs)


class TestFinalizeSale:
    def test_sale_decrements_store_stock(self, db_session, store_product, store_a, actor):
        sale = sales_service.finalize_sale(_cart(store_a, store_product, 3), actor)

        assert sale.status == sales_service.SALE_STATUS_COMPLETED
        assert sale.total == 30.0
        assert sale.employee_name == "Alice Clerk"
        assert inventory_service.get_effective_stock(store_product.id, store_a.id) == 7

        entries = history_service.list_history(reference_id=sale.id)
        assert len(entries) == 1
        assert entries[0].type == history_service.HISTORY_TYPE_SALE
        assert entries[0].quantity_change == -3
        assert entries[0].current_stock == 7
        assert entries[0].store_id == store_a.id

    def test_oversell_rejected_without_side_effects(self, db_session, store_product, store_a):
        with pytest.raises(StockValidationError):
            sales_service.finalize_sale(_cart(store_a, store_product, 11))

        assert inventory_service.get_effective_stock(store_product.id, store_a.id) == 10
        assert db.session.query(Sale).count() == 0
        assert history_service.list_history(history_type=history_service.HISTORY_TYPE_SALE) == []

    def test_store_without_stock_cannot_sell(self, db_session, store_product, store_b):
        with pytest.raises(StockValidationError):
            sales_service.finalize_sale(_cart(store_b, store_product, 1))

    def test_untracked_product_leaves_no_history(self, db_session, make_product, store_a):
        service_item = make_product(name="Gift Wrap", track_stock=False, stock=0)
        sale = sales_service.finalize_sale(_cart(store_a, service_item, 5))
        assert sale.status == sales_service.SALE_STATUS_COMPLETED
        assert history_service.list_history(reference_id=sale.id) == []

    def test_store_is_required(self, db_session, store_product):
        with pytest.raises(NotFoundError):
            sales_service.finalize_sale({"items": [{"product_id": store_product.id, "quantity": 1}]})

    def test_unknown_payment_method(self, db_session, store_product, store_a):
        with pytest.raises(NotFoundError):
            sales_service.finalize_sale(_cart(store_a, store_product, 1, payment_method_id="missing"))

    def test_sale_posts_balanced_entries(self, db_session, accounts, payment_methods, store_product, store_a):
        sale = sales_service.finalize_sale(_cart(
            store_a, store_product, 3,
            payment_method_id=payment_methods["Card"].id, discount_percentage=10, tax_rate=0.08,
        ))

        [revenue] = accounting_service.list_journal_entries(reference_type="sale", reference_id=sale.id)
        lines = {line.account_code: line for line in revenue.lines}
        assert lines["1010"].debit == 29.16
        assert lines["4000"].credit == 30.0
        assert lines["2100"].credit == 2.16
        assert lines["6700"].debit == 3.0

        [cogs] = accounting_service.list_journal_entries(reference_type="sale_cogs", reference_id=sale.id)
        cogs_lines = {line.account_code: line for line in cogs.lines}
        assert cogs_lines["5000"].debit == 12.0
        assert cogs_lines["1200"].credit == 12.0

        assert accounting_service.trial_balance()["isBalanced"] is True


class TestLoyalty:
    def test_redeem_and_earn(self, db_session, customer, store_product, store_a):
        sale = sales_service.finalize_sale(_cart(
            store_a, store_product, 3, customer_id=customer.id, loyalty_points_used=200,
        ))

        assert sale.loyalty_points_discount_amount == 2.0
        assert sale.total == 28.0
        # 500 - 200 redeemed + 28 earned
        assert db.session.get(Customer, customer.id).loyalty_points == 328

    def test_cannot_redeem_more_than_balance(self, db_session, customer, store_product, store_a):
        with pytest.raises(ValidationError, match="Insufficient loyalty points"):
            sales_service.finalize_sale(_cart(
                store_a, store_product, 1, customer_id=customer.id, loyalty_points_used=501,
            ))
        assert inventory_service.get_effective_stock(store_product.id, store_a.id) == 10

    def test_redeem_requires_customer(self, db_session, store_product, store_a):
        with pytest.raises(ValidationError):
            sales_service.finalize_sale(_cart(store_a, store_product, 1, loyalty_points_used=10))

    def test_redeem_when_program_disabled(self, app, db_session, customer, store_product, store_a):
        app.config["LOYALTY_ENABLED"] = False
        with pytest.raises(ValidationError, match="disabled"):
            sales_service.finalize_sale(_cart(
                store_a, store_product, 1, customer_id=customer.id, loyalty_points_used=10,
            ))

    def test_no_accrual_when_program_disabled(self, app, db_session, customer, store_product, store_a):
        app.config["LOYALTY_ENABLED"] = False
        sales_service.finalize_sale(_cart(store_a, store_product, 2, customer_id=customer.id))
        assert db.session.get(Customer, customer.id).loyalty_points == 500


class TestCreditSales:
    def test_credit_requires_customer(self, db_session, payment_methods, store_product, store_a):
        with pytest.raises(ValidationError, match="customer"):
            sales_service.finalize_sale(_cart(
                store_a, store_product, 1, payment_method_id=payment_methods["Store Credit"].id,
            ))

    def test_credit_sale_is_pending_until_settled(self, db_session, accounts, payment_methods, customer,
                                                  store_product, store_a, actor):
        sale = sales_service.finalize_sale(_cart(
            store_a, store_product, 2,
            customer_id=customer.id, payment_method_id=payment_methods["Store Credit"].id,
        ), actor)
        assert sale.status == sales_service.SALE_STATUS_PENDING
        [revenue] = accounting_service.list_journal_entries(reference_type="sale", reference_id=sale.id)
        assert {line.account_code for line in revenue.lines if line.debit} == {"1100"}

        settled = sales_service.settle_sale(sale.id, actor, payment_method_id=payment_methods["Cash"].id)

        assert settled.status == sales_service.SALE_STATUS_COMPLETED
        [settlement] = accounting_service.list_journal_entries(reference_type="sale_settlement", reference_id=sale.id)
        lines = {line.account_code: line for line in settlement.lines}
        assert lines["1000"].debit == 20.0
        assert lines["1100"].credit == 20.0

        with pytest.raises(InvalidStateError):
            sales_service.settle_sale(sale.id, actor)


class TestRefunds:
    def test_round_trip_restores_stock(self, db_session, accounts, store_product, store_a, actor):
        sale = sales_service.finalize_sale(_cart(store_a, store_product, 3, discount_percentage=10, tax_rate=0.08), actor)
        refund = sales_service.refund_sale(sale.id, [{"product_id": store_product.id, "quantity": 3}], actor)

        assert inventory_service.get_effective_stock(store_product.id, store_a.id) == 10
        assert refund.type == sales_service.SALE_TYPE_REFUND
        assert refund.original_sale_id == sale.id
        assert refund.total == -29.16
        assert refund.items[0]["quantity"] == -3

        sale_entries = history_service.list_history(reference_id=sale.id)
        refund_entries = history_service.list_history(reference_id=refund.id)
        assert [e.type for e in refund_entries] == [history_service.HISTORY_TYPE_REFUND]
        assert sum(e.quantity_change for e in sale_entries + refund_entries) == 0
        assert inventory_service.audit_product(store_product.id)["consistent"] is True
        assert accounting_service.trial_balance()["isBalanced"] is True

    def test_refund_bounded_by_remaining_quantity(self, db_session, store_product, store_a):
        sale = sales_service.finalize_sale(_cart(store_a, store_product, 3))
        sales_service.refund_sale(sale.id, [{"product_id": store_product.id, "quantity": 2}])

        with pytest.raises(ValidationError, match="only 1 left"):
            sales_service.refund_sale(sale.id, [{"product_id": store_product.id, "quantity": 2}])
        assert inventory_service.get_effective_stock(store_product.id, store_a.id) == 9

    def test_refund_of_product_not_in_sale(self, db_session, store_product, store_a, make_product):
        other = make_product(stock=5)
        sale = sales_service.finalize_sale(_cart(store_a, store_product, 1))
        with pytest.raises(ValidationError):
            sales_service.refund_sale(sale.id, [{"product_id": other.id, "quantity": 1}])

    def test_refund_of_deleted_product_skips_restock(self, db_session, make_product, store_a):
        p = make_product(stock_by_store={store_a.id: 4})
        sale = sales_service.finalize_sale(_cart(store_a, p, 1))
        products_service.delete_product(p.id)

        refund = sales_service.refund_sale(sale.id, [{"product_id": p.id, "quantity": 1}])
        assert refund.total == -10.0
        assert history_service.list_history(reference_id=refund.id) == []

    def test_held_sale_cannot_be_refunded(self, db_session, store_product, store_a):
        held = sales_service.hold_sale(_cart(store_a, store_product, 1))
        with pytest.raises(InvalidStateError):
            sales_service.refund_sale(held.id, [{"product_id": store_product.id, "quantity": 1}])


class TestHeldSales:
    def test_hold_has_no_stock_effect(self, db_session, store_product, store_a, actor):
        held = sales_service.hold_sale(_cart(store_a, store_product, 2), actor)

        assert held.status == sales_service.SALE_STATUS_ON_HOLD
        assert held.held_by_employee_name == "Alice Clerk"
        assert inventory_service.get_effective_stock(store_product.id, store_a.id) == 10
        assert [s.id for s in sales_service.list_held_sales()] == [held.id]

    def test_finalize_held_sale_in_place(self, db_session, store_product, store_a, actor):
        held = sales_service.hold_sale(_cart(store_a, store_product, 2), actor)
        sale = sales_service.finalize_sale(_cart(store_a, store_product, 2, id=held.id), actor)

        assert sale.id == held.id
        assert sale.status == sales_service.SALE_STATUS_COMPLETED
        assert sale.held_by_employee_id is None
        assert db.session.query(Sale).count() == 1
        assert inventory_service.get_effective_stock(store_product.id, store_a.id) == 8

        with pytest.raises(InvalidStateError):
            sales_service.finalize_sale(_cart(store_a, store_product, 2, id=held.id), actor)
        assert inventory_service.get_effective_stock(store_product.id, store_a.id) == 8

    def test_discard_held_sale(self, db_session, store_product, store_a):
        held = sales_service.hold_sale(_cart(store_a, store_product, 1))
        sales_service.delete_held_sale(held.id)
        assert sales_service.list_held_sales() == []

    def test_completed_sale_cannot_be_discarded(self, db_session, store_product, store_a):
        sale = sales_service.finalize_sale(_cart(store_a, store_product, 1))
        with pytest.raises(InvalidStateError):
            sales_service.delete_held_sale(sale.id)
