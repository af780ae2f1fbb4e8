# Overview: Pytest coverage for purchase orders and GRN approval.

"""
Procurement Tests

Test Coverage:
- GRN approval credits the receiving store (one GRN entry per line)
- Linked purchase order completes on approval
- Approval is all-or-nothing and happens at most once
- Only pending documents are editable
- Purchase posting (Dr Inventory / Cr Accounts Payable)
"""

import pytest

from shopledger.extensions import db
from shopledger.models import Product
from shopledger.services import accounting_service, history_service, inventory_service, procurement_service
from shopledger.services import products_service
from shopledger.services.errors import InvalidStateError, NotFoundError, ProductNotFoundError
from shopledger.validation import ConflictError, ValidationError


@pytest.fixture
def empty_store_product(make_product, store_a):
    """Per-store product with nothing on hand at store A."""
    return make_product(name="Tonic 500ml", sku="TONIC-500", cost=2.5, stock_by_store={store_a.id: 0})


def _grn(supplier, store, lines, **extra):
    data = {
        "supplier_id": supplier.id,
        "receiving_store_id": store.id,
        "items": [
            {"product_id": p.id, "quantity_received": qty, "unit_cost": cost}
            for (p, qty, cost) in lines
        ],
    }
    data.update(extra)
    return data


class TestPurchaseOrders:
    def test_create_computes_total_and_reference(self, db_session, supplier, make_product, actor):
        p = make_product()
        po = procurement_service.create_purchase_order({
            "supplier_id": supplier.id,
            "items": [{"product_id": p.id, "quantity": 6, "unit_cost": 1.25}],
        }, actor)

        assert po.status == procurement_service.PO_STATUS_PENDING
        assert po.total_value == 7.5
        assert po.reference_no.startswith("PO")
        assert po.supplier_name == "Acme Wholesale"
        assert po.items[0]["productName"] == p.name

    def test_reference_numbers_are_unique(self, db_session, supplier, make_product):
        p = make_product()
        data = {"supplier_id": supplier.id, "items": [{"product_id": p.id, "quantity": 1, "unit_cost": 1}]}
        first = procurement_service.create_purchase_order(dict(data))
        second = procurement_service.create_purchase_order(dict(data))
        assert first.reference_no != second.reference_no

        with pytest.raises(ConflictError):
            procurement_service.create_purchase_order({**data, "reference_no": first.reference_no})

    def test_unknown_supplier(self, db_session, make_product):
        p = make_product()
        with pytest.raises(NotFoundError):
            procurement_service.create_purchase_order({
                "supplier_id": "missing",
                "items": [{"product_id": p.id, "quantity": 1, "unit_cost": 1}],
            })

    def test_empty_items_rejected(self, db_session, supplier):
        with pytest.raises(ValidationError):
            procurement_service.create_purchase_order({"supplier_id": supplier.id, "items": []})

    def test_cancelled_po_cannot_be_received(self, db_session, supplier, store_a, empty_store_product):
        po = procurement_service.create_purchase_order({
            "supplier_id": supplier.id,
            "items": [{"product_id": empty_store_product.id, "quantity": 5, "unit_cost": 2.5}],
        })
        procurement_service.cancel_purchase_order(po.id)

        with pytest.raises(InvalidStateError):
            procurement_service.create_grn(
                _grn(supplier, store_a, [(empty_store_product, 5, 2.5)], purchase_order_id=po.id)
            )

    def test_cancel_twice(self, db_session, supplier, make_product):
        p = make_product()
        po = procurement_service.create_purchase_order({
            "supplier_id": supplier.id, "items": [{"product_id": p.id, "quantity": 1, "unit_cost": 1}],
        })
        procurement_service.cancel_purchase_order(po.id)
        with pytest.raises(InvalidStateError):
            procurement_service.cancel_purchase_order(po.id)


class TestGrnApproval:
    def test_approval_credits_receiving_store(self, db_session, supplier, store_a, empty_store_product, actor):
        po = procurement_service.create_purchase_order({
            "supplier_id": supplier.id,
            "items": [{"product_id": empty_store_product.id, "quantity": 5, "unit_cost": 2.5}],
        })
        grn = procurement_service.create_grn(
            _grn(supplier, store_a, [(empty_store_product, 5, 2.5)], purchase_order_id=po.id), actor
        )
        assert inventory_service.get_effective_stock(empty_store_product.id, store_a.id) == 0

        procurement_service.approve_grn(grn.id, actor)

        product = db.session.get(Product, empty_store_product.id)
        assert product.stock_by_store == {store_a.id: 5}
        assert product.stock == 5

        entries = history_service.list_history(product_id=product.id, reference_id=grn.id)
        assert len(entries) == 1
        assert entries[0].type == history_service.HISTORY_TYPE_GRN
        assert entries[0].quantity_change == 5
        assert entries[0].current_stock == 5
        assert entries[0].store_id == store_a.id

        assert procurement_service.get_purchase_order(po.id).status == procurement_service.PO_STATUS_COMPLETED
        approved = procurement_service.get_grn(grn.id)
        assert approved.status == procurement_service.GRN_STATUS_APPROVED
        assert approved.approved_by_user_name == "Alice Clerk"
        assert approved.approval_date is not None

    def test_second_approval_is_rejected(self, db_session, supplier, store_a, empty_store_product):
        grn = procurement_service.create_grn(_grn(supplier, store_a, [(empty_store_product, 5, 2.5)]))
        procurement_service.approve_grn(grn.id)

        with pytest.raises(InvalidStateError):
            procurement_service.approve_grn(grn.id)

        assert inventory_service.get_effective_stock(empty_store_product.id, store_a.id) == 5
        assert len(history_service.list_history(reference_id=grn.id)) == 1

    def test_failure_mid_loop_applies_nothing(self, db_session, supplier, store_a, empty_store_product, make_product):
        doomed = make_product(name="Discontinued", stock_by_store={store_a.id: 0})
        grn = procurement_service.create_grn(
            _grn(supplier, store_a, [(empty_store_product, 5, 2.5), (doomed, 3, 1.0)])
        )
        products_service.delete_product(doomed.id)

        with pytest.raises(ProductNotFoundError):
            procurement_service.approve_grn(grn.id)

        assert inventory_service.get_effective_stock(empty_store_product.id, store_a.id) == 0
        assert history_service.list_history(reference_id=grn.id) == []
        assert procurement_service.get_grn(grn.id).status == procurement_service.GRN_STATUS_PENDING

    def test_aggregate_product_receives_into_aggregate(self, db_session, supplier, store_a, make_product):
        p = make_product(stock=2)
        grn = procurement_service.create_grn(_grn(supplier, store_a, [(p, 3, 4.0)]))
        procurement_service.approve_grn(grn.id)

        product = db.session.get(Product, p.id)
        assert product.stock == 5
        assert product.stock_by_store is None

    def test_cancelled_po_blocks_approval(self, db_session, supplier, store_a, empty_store_product):
        po = procurement_service.create_purchase_order({
            "supplier_id": supplier.id,
            "items": [{"product_id": empty_store_product.id, "quantity": 5, "unit_cost": 2.5}],
        })
        grn = procurement_service.create_grn(
            _grn(supplier, store_a, [(empty_store_product, 5, 2.5)], purchase_order_id=po.id)
        )
        procurement_service.cancel_purchase_order(po.id)

        with pytest.raises(InvalidStateError):
            procurement_service.approve_grn(grn.id)

        assert procurement_service.get_purchase_order(po.id).status == procurement_service.PO_STATUS_CANCELLED
        assert procurement_service.get_grn(grn.id).status == procurement_service.GRN_STATUS_PENDING
        assert inventory_service.get_effective_stock(empty_store_product.id, store_a.id) == 0
        assert history_service.list_history(reference_id=grn.id) == []

    def test_approval_posts_purchase(self, db_session, accounts, supplier, store_a, empty_store_product):
        grn = procurement_service.create_grn(_grn(supplier, store_a, [(empty_store_product, 4, 2.5)]))
        procurement_service.approve_grn(grn.id)

        entries = accounting_service.list_journal_entries(reference_type="purchase", reference_id=grn.id)
        assert len(entries) == 1
        by_code = {line.account_code: line for line in entries[0].lines}
        assert by_code["1200"].debit == 10.0
        assert by_code["2000"].credit == 10.0

    def test_unknown_grn(self, db_session):
        with pytest.raises(NotFoundError):
            procurement_service.approve_grn("missing")


class TestGrnEditing:
    def test_pending_grn_can_be_edited(self, db_session, supplier, store_a, empty_store_product):
        grn = procurement_service.create_grn(_grn(supplier, store_a, [(empty_store_product, 5, 2.5)]))
        updated = procurement_service.update_grn(grn.id, {
            "items": [{"product_id": empty_store_product.id, "quantity_received": 8, "unit_cost": 2.0}],
        })
        assert updated.total_value == 16.0
        assert updated.line_items[0]["quantity_received"] == 8

    def test_approved_grn_is_immutable(self, db_session, supplier, store_a, empty_store_product):
        grn = procurement_service.create_grn(_grn(supplier, store_a, [(empty_store_product, 5, 2.5)]))
        procurement_service.approve_grn(grn.id)

        with pytest.raises(InvalidStateError):
            procurement_service.update_grn(grn.id, {"notes": "late edit"})
        with pytest.raises(InvalidStateError):
            procurement_service.delete_grn(grn.id)

    def test_delete_pending_grn(self, db_session, supplier, store_a, empty_store_product):
        grn = procurement_service.create_grn(_grn(supplier, store_a, [(empty_store_product, 5, 2.5)]))
        procurement_service.delete_grn(grn.id)
        with pytest.raises(NotFoundError):
            procurement_service.get_grn(grn.id)
