# Overview: Pytest coverage for the stock ledger core (inventory_service + history_service).

"""
Stock Ledger Core Tests

Every stock change goes through apply_stock_delta / change_stock and lands
as exactly one inventory history entry in the same transaction.

Test Coverage:
- Conservation: sum(quantity_change) == aggregate stock
- Zero-delta writes are no-ops
- stock == sum(stock_by_store) after per-store writes
- Effective stock resolution
- Failure paths leave stock and history untouched
"""

import pytest

from shopledger.extensions import db
from shopledger.models import InventoryHistoryEntry, Product
from shopledger.services import history_service, inventory_service
from shopledger.services.errors import LedgerWriteError, ProductNotFoundError, StockValidationError
from shopledger.services.history_service import (
    HISTORY_TYPE_GRN,
    HISTORY_TYPE_INITIAL_STOCK,
    HISTORY_TYPE_SA_DECREASE,
    HISTORY_TYPE_SALE,
)


def _history_count(product_id=None):
    q = db.session.query(InventoryHistoryEntry)
    if product_id is not None:
        q = q.filter_by(product_id=product_id)
    return q.count()


def _ledger_sum(product_id):
    return sum(e.quantity_change for e in history_service.list_history(product_id=product_id))


class TestConservation:
    def test_initial_stock_is_recorded(self, db_session, make_product):
        p = make_product(stock=5)
        entries = history_service.list_history(product_id=p.id)
        assert len(entries) == 1
        assert entries[0].type == HISTORY_TYPE_INITIAL_STOCK
        assert entries[0].quantity_change == 5
        assert entries[0].current_stock == 5
        assert entries[0].store_id is None

    def test_zero_initial_stock_is_still_recorded(self, db_session, make_product):
        p = make_product(stock=0)
        [entry] = history_service.list_history(product_id=p.id)
        assert entry.type == HISTORY_TYPE_INITIAL_STOCK
        assert entry.quantity_change == 0
        assert entry.current_stock == 0
        assert inventory_service.audit_product(p.id)["consistent"] is True

    def test_running_sum_matches_stock(self, db_session, make_product, actor):
        p = make_product(stock=5)
        inventory_service.apply_stock_delta(p.id, 8, HISTORY_TYPE_GRN, "grn-1", user_id=actor.user_id)
        inventory_service.change_stock(p.id, -3, HISTORY_TYPE_SALE, "sale-1", actor=actor)
        inventory_service.change_stock(p.id, 10, HISTORY_TYPE_GRN, "grn-2", actor=actor)

        product = db.session.get(Product, p.id)
        assert product.stock == 15
        assert _ledger_sum(p.id) == 15
        assert inventory_service.audit_product(p.id)["consistent"] is True

    def test_history_records_delta_and_resulting_value(self, db_session, make_product, actor):
        p = make_product(stock=20)
        change = inventory_service.change_stock(p.id, -7, HISTORY_TYPE_SA_DECREASE, "sa-1", actor=actor)

        assert change.previous_stock == 20
        assert change.new_stock == 13
        assert change.quantity_change == -7

        entry = history_service.get_history_entry(change.history_entry_id)
        assert entry.type == HISTORY_TYPE_SA_DECREASE
        assert entry.quantity_change == -7
        assert entry.current_stock == 13
        assert entry.reference_id == "sa-1"
        assert entry.user_id == "u-1"
        assert entry.user_name == "Alice Clerk"

    def test_audit_detects_out_of_band_write(self, db_session, make_product):
        p = make_product(stock=4)
        product = db.session.get(Product, p.id)
        product.stock = 99
        db.session.commit()

        result = inventory_service.audit_product(p.id)
        assert result["consistent"] is False
        assert result["ledgerTotal"] == 4
        assert result["stock"] == 99


class TestZeroDelta:
    def test_same_value_is_a_no_op(self, db_session, make_product):
        p = make_product(stock=6)
        before = _history_count(p.id)

        change = inventory_service.apply_stock_delta(p.id, 6, HISTORY_TYPE_GRN, "grn-1")

        assert change.quantity_change == 0
        assert change.history_entry_id is None
        assert _history_count(p.id) == before
        assert db.session.get(Product, p.id).stock == 6


class TestPerStoreStock:
    def test_store_write_recomputes_aggregate(self, db_session, store_product, store_a, store_b):
        inventory_service.change_stock(store_product.id, 3, HISTORY_TYPE_GRN, "grn-1", store_id=store_b.id)

        product = db.session.get(Product, store_product.id)
        assert product.stock_by_store == {store_a.id: 10, store_b.id: 3}
        assert product.stock == 13
        assert product.stock == sum(product.stock_by_store.values())

    def test_store_entry_carries_store_value_and_name(self, db_session, store_product, store_a):
        change = inventory_service.change_stock(
            store_product.id, -4, HISTORY_TYPE_SALE, "sale-1", store_id=store_a.id
        )
        entry = history_service.get_history_entry(change.history_entry_id)
        assert entry.current_stock == 6
        assert entry.store_id == store_a.id
        assert entry.store_name == "Main Street"

    def test_missing_store_key_is_created(self, db_session, make_product, store_a, store_b):
        p = make_product(stock_by_store={store_a.id: 2})
        inventory_service.change_stock(p.id, 5, HISTORY_TYPE_GRN, "grn-1", store_id=store_b.id)

        product = db.session.get(Product, p.id)
        assert product.stock_by_store == {store_a.id: 2, store_b.id: 5}
        assert product.stock == 7


class TestEffectiveStock:
    def test_store_value_when_map_present(self, db_session, store_product, store_a, store_b):
        assert inventory_service.get_effective_stock(store_product.id, store_a.id) == 10
        assert inventory_service.get_effective_stock(store_product.id, store_b.id) == 0

    def test_store_missing_from_map_is_zero(self, db_session, make_product, store_a, store_b):
        p = make_product(stock_by_store={store_a.id: 3})
        assert inventory_service.get_effective_stock(p.id, store_b.id) == 0

    def test_aggregate_without_map(self, db_session, make_product, store_a):
        p = make_product(stock=9)
        assert inventory_service.get_effective_stock(p.id, store_a.id) == 9
        assert inventory_service.get_effective_stock(p.id) == 9

    def test_unknown_product_is_zero(self, db_session):
        assert inventory_service.get_effective_stock("no-such-product", None) == 0


class TestFailurePaths:
    def test_unknown_product_raises_without_history(self, db_session):
        with pytest.raises(ProductNotFoundError):
            inventory_service.apply_stock_delta("no-such-product", 5, HISTORY_TYPE_GRN, "grn-1")
        assert _history_count() == 0

    def test_negative_target_rejected(self, db_session, make_product):
        p = make_product(stock=2)
        with pytest.raises(StockValidationError):
            inventory_service.apply_stock_delta(p.id, -1, HISTORY_TYPE_SA_DECREASE, "sa-1")
        assert db.session.get(Product, p.id).stock == 2

    def test_oversell_rejected_under_lock(self, db_session, store_product, store_a):
        before = _history_count(store_product.id)
        with pytest.raises(StockValidationError, match="Insufficient stock"):
            inventory_service.change_stock(store_product.id, -11, HISTORY_TYPE_SALE, "sale-1", store_id=store_a.id)

        assert inventory_service.get_effective_stock(store_product.id, store_a.id) == 10
        assert _history_count(store_product.id) == before

    def test_history_failure_rolls_back_stock_write(self, db_session, make_product, monkeypatch):
        p = make_product(stock=5)
        before = _history_count(p.id)

        def _boom(**kwargs):
            raise LedgerWriteError("disk full")

        monkeypatch.setattr(history_service, "append_history_entry", _boom)

        with pytest.raises(LedgerWriteError):
            inventory_service.apply_stock_delta(p.id, 9, HISTORY_TYPE_GRN, "grn-1")

        monkeypatch.undo()
        assert db.session.get(Product, p.id).stock == 5
        assert _history_count(p.id) == before

    def test_unknown_history_type_rejected(self, db_session, make_product):
        p = make_product(stock=5)
        with pytest.raises(LedgerWriteError):
            inventory_service.apply_stock_delta(p.id, 6, "MYSTERY", "ref-1")
        assert db.session.get(Product, p.id).stock == 5

    def test_non_integer_quantity_rejected(self, db_session, make_product):
        p = make_product(stock=5)
        with pytest.raises(StockValidationError):
            inventory_service.change_stock(p.id, 1.5, HISTORY_TYPE_GRN, "grn-1")
