# Overview: Pytest coverage for the inter-store transfer lifecycle.

"""
Transfer of Goods Tests

Test Coverage:
- pending -> in-transit -> received moves stock leg by leg
- Aggregate stock is unchanged by a completed transfer
- Rejection from in-transit returns stock to the source
- Illegal transitions are refused without side effects
"""

import pytest

from shopledger.extensions import db
from shopledger.models import Product
from shopledger.services import history_service, inventory_service, transfer_service
from shopledger.services.errors import InvalidStateError, NotFoundError, StockValidationError
from shopledger.services.transfer_service import (
    TRANSFER_STATUS_IN_TRANSIT,
    TRANSFER_STATUS_PENDING,
    TRANSFER_STATUS_RECEIVED,
    TRANSFER_STATUS_REJECTED,
)
from shopledger.validation import ValidationError


@pytest.fixture
def pending_transfer(store_product, store_a, store_b, actor):
    """4 units of the per-store product from store A to store B."""
    return transfer_service.add_transfer({
        "transfer_from_store_id": store_a.id,
        "transfer_to_store_id": store_b.id,
        "items": [{"product_id": store_product.id, "quantity": 4}],
    }, actor)


def _stock(product_id):
    p = db.session.get(Product, product_id)
    return dict(p.stock_by_store), p.stock


class TestTransferLifecycle:
    def test_full_transfer(self, db_session, pending_transfer, store_product, store_a, store_b, actor):
        assert pending_transfer.status == TRANSFER_STATUS_PENDING
        assert _stock(store_product.id) == ({store_a.id: 10, store_b.id: 0}, 10)

        transfer_service.update_transfer_status(pending_transfer.id, TRANSFER_STATUS_IN_TRANSIT, actor)
        assert _stock(store_product.id) == ({store_a.id: 6, store_b.id: 0}, 6)

        transfer = transfer_service.update_transfer_status(pending_transfer.id, TRANSFER_STATUS_RECEIVED, actor)
        assert _stock(store_product.id) == ({store_a.id: 6, store_b.id: 4}, 10)

        assert transfer.status == TRANSFER_STATUS_RECEIVED
        assert transfer.approved_by_user_name == "Alice Clerk"
        assert transfer.received_date is not None

        out_entries = history_service.list_history(
            reference_id=transfer.id, history_type=history_service.HISTORY_TYPE_TOG_OUT
        )
        in_entries = history_service.list_history(
            reference_id=transfer.id, history_type=history_service.HISTORY_TYPE_TOG_IN
        )
        assert [(e.store_id, e.quantity_change, e.current_stock) for e in out_entries] == [(store_a.id, -4, 6)]
        assert [(e.store_id, e.quantity_change, e.current_stock) for e in in_entries] == [(store_b.id, 4, 4)]
        assert inventory_service.audit_product(store_product.id)["consistent"] is True

    def test_reject_from_pending_moves_nothing(self, db_session, pending_transfer, store_product, store_a, store_b):
        transfer = transfer_service.update_transfer_status(pending_transfer.id, TRANSFER_STATUS_REJECTED)
        assert transfer.status == TRANSFER_STATUS_REJECTED
        assert _stock(store_product.id) == ({store_a.id: 10, store_b.id: 0}, 10)
        assert history_service.list_history(reference_id=transfer.id) == []

    def test_reject_from_in_transit_returns_stock(self, db_session, pending_transfer, store_product, store_a, store_b):
        transfer_service.update_transfer_status(pending_transfer.id, TRANSFER_STATUS_IN_TRANSIT)
        transfer_service.update_transfer_status(pending_transfer.id, TRANSFER_STATUS_REJECTED)

        assert _stock(store_product.id) == ({store_a.id: 10, store_b.id: 0}, 10)
        changes = sorted(e.quantity_change for e in history_service.list_history(reference_id=pending_transfer.id))
        assert changes == [-4, 4]
        assert all(
            e.type == history_service.HISTORY_TYPE_TOG_OUT
            for e in history_service.list_history(reference_id=pending_transfer.id)
        )

    @pytest.mark.parametrize("path", [
        (TRANSFER_STATUS_RECEIVED,),
        (TRANSFER_STATUS_PENDING,),
        (TRANSFER_STATUS_IN_TRANSIT, TRANSFER_STATUS_IN_TRANSIT),
        (TRANSFER_STATUS_IN_TRANSIT, TRANSFER_STATUS_RECEIVED, TRANSFER_STATUS_REJECTED),
        (TRANSFER_STATUS_REJECTED, TRANSFER_STATUS_IN_TRANSIT),
    ])
    def test_illegal_transition_has_no_effect(self, db_session, pending_transfer, store_product, path):
        *legal, illegal = path
        for status in legal:
            transfer_service.update_transfer_status(pending_transfer.id, status)
        status_before = transfer_service.get_transfer(pending_transfer.id).status
        stock_before = _stock(store_product.id)
        history_before = len(history_service.list_history(reference_id=pending_transfer.id))

        with pytest.raises(InvalidStateError):
            transfer_service.update_transfer_status(pending_transfer.id, illegal)

        assert transfer_service.get_transfer(pending_transfer.id).status == status_before
        assert _stock(store_product.id) == stock_before
        assert len(history_service.list_history(reference_id=pending_transfer.id)) == history_before

    def test_unknown_status(self, db_session, pending_transfer):
        with pytest.raises(ValidationError):
            transfer_service.update_transfer_status(pending_transfer.id, "lost")


class TestAddTransfer:
    def test_same_store_rejected(self, db_session, store_product, store_a):
        with pytest.raises(StockValidationError):
            transfer_service.add_transfer({
                "transfer_from_store_id": store_a.id,
                "transfer_to_store_id": store_a.id,
                "items": [{"product_id": store_product.id, "quantity": 1}],
            })

    def test_insufficient_source_stock(self, db_session, store_product, store_a, store_b):
        with pytest.raises(StockValidationError, match="Insufficient stock"):
            transfer_service.add_transfer({
                "transfer_from_store_id": store_b.id,
                "transfer_to_store_id": store_a.id,
                "items": [{"product_id": store_product.id, "quantity": 1}],
            })
        assert transfer_service.list_transfers() == []

    def test_untracked_product_without_stock_rejected(self, db_session, make_product, store_a, store_b):
        wrap = make_product(name="Gift Wrap", track_stock=False, stock_by_store={store_a.id: 0, store_b.id: 0})
        with pytest.raises(StockValidationError, match="Insufficient stock"):
            transfer_service.add_transfer({
                "transfer_from_store_id": store_a.id,
                "transfer_to_store_id": store_b.id,
                "items": [{"product_id": wrap.id, "quantity": 2}],
            })
        assert transfer_service.list_transfers() == []

    def test_untracked_product_moves_like_tracked(self, db_session, make_product, store_a, store_b):
        wrap = make_product(name="Gift Wrap", track_stock=False, stock_by_store={store_a.id: 3, store_b.id: 0})
        transfer = transfer_service.add_transfer({
            "transfer_from_store_id": store_a.id,
            "transfer_to_store_id": store_b.id,
            "items": [{"product_id": wrap.id, "quantity": 2}],
        })

        transfer_service.update_transfer_status(transfer.id, TRANSFER_STATUS_IN_TRANSIT)
        transfer_service.update_transfer_status(transfer.id, TRANSFER_STATUS_RECEIVED)

        assert _stock(wrap.id) == ({store_a.id: 1, store_b.id: 2}, 3)

    def test_source_drained_before_dispatch(self, db_session, pending_transfer, store_product, store_a, store_b):
        inventory_service.change_stock(
            store_product.id, -8, history_service.HISTORY_TYPE_SALE, "sale-x", store_id=store_a.id
        )
        with pytest.raises(StockValidationError):
            transfer_service.update_transfer_status(pending_transfer.id, TRANSFER_STATUS_IN_TRANSIT)
        assert transfer_service.get_transfer(pending_transfer.id).status == TRANSFER_STATUS_PENDING
        assert _stock(store_product.id) == ({store_a.id: 2, store_b.id: 0}, 2)

    def test_list_by_store_matches_either_end(self, db_session, pending_transfer, store_a, store_b):
        assert [t.id for t in transfer_service.list_transfers(store_id=store_a.id)] == [pending_transfer.id]
        assert [t.id for t in transfer_service.list_transfers(store_id=store_b.id)] == [pending_transfer.id]

    def test_only_pending_can_be_deleted(self, db_session, pending_transfer):
        transfer_service.update_transfer_status(pending_transfer.id, TRANSFER_STATUS_IN_TRANSIT)
        with pytest.raises(InvalidStateError):
            transfer_service.delete_transfer(pending_transfer.id)

    def test_delete_pending(self, db_session, pending_transfer):
        transfer_service.delete_transfer(pending_transfer.id)
        with pytest.raises(NotFoundError):
            transfer_service.get_transfer(pending_transfer.id)
