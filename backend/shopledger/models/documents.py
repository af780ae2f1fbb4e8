from __future__ import annotations

from ..extensions import db
from ..identity import new_id
from ..mappers import items_to_fields
from ..time_utils import utcnow
from .base import RowMixin


class LineItemsMixin:
    """Line items are stored as a JSON array of camelCase objects."""

    @property
    def line_items(self) -> list[dict]:
        return items_to_fields(self.items)


class PurchaseOrder(LineItemsMixin, RowMixin, db.Model):
    """
    Order placed with a supplier. Does not move stock; a GRN that
    references it moves it to `completed` when approved.

    Items: productId, productName, quantity, unitCost.
    """
    __tablename__ = "purchase_orders"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    reference_no = db.Column(db.String(64), nullable=False, unique=True)

    supplier_id = db.Column(db.String(36), db.ForeignKey("suppliers.id"), nullable=False, index=True)
    supplier_name = db.Column(db.String(255), nullable=False)

    order_date = db.Column(db.DateTime, nullable=False, default=utcnow)
    expected_delivery_date = db.Column(db.DateTime, nullable=True)

    # pending | completed | cancelled
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    items = db.Column(db.JSON, nullable=False, default=list)
    total_value = db.Column(db.Float, nullable=False, default=0.0)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<PurchaseOrder id={self.id} ref={self.reference_no!r} status={self.status}>"


class GoodsReceivedNote(LineItemsMixin, RowMixin, db.Model):
    """
    Receipt of supplier goods at one store.

    LIFECYCLE:
    1. pending: editable and deletable, no stock effect
    2. approved: every line credited to the receiving store (GRN history
       entries), linked PO completed. Terminal.

    Items: productId, productName, quantityReceived, unitCost, totalCost.
    """
    __tablename__ = "grns"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    reference_no = db.Column(db.String(64), nullable=False, unique=True)
    purchase_order_id = db.Column(db.String(36), db.ForeignKey("purchase_orders.id"), nullable=True, index=True)

    supplier_id = db.Column(db.String(36), db.ForeignKey("suppliers.id"), nullable=False, index=True)
    supplier_name = db.Column(db.String(255), nullable=False)

    received_date = db.Column(db.DateTime, nullable=False, default=utcnow)
    receiving_store_id = db.Column(db.String(36), db.ForeignKey("stores.id"), nullable=False, index=True)
    receiving_store_name = db.Column(db.String(255), nullable=False)

    # pending | approved
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    items = db.Column(db.JSON, nullable=False, default=list)
    total_value = db.Column(db.Float, nullable=False, default=0.0)
    notes = db.Column(db.Text, nullable=True)

    approved_by_user_id = db.Column(db.String(64), nullable=True)
    approved_by_user_name = db.Column(db.String(255), nullable=True)
    approval_date = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<GoodsReceivedNote id={self.id} ref={self.reference_no!r} status={self.status}>"


class StockAdjustment(LineItemsMixin, RowMixin, db.Model):
    """
    Manual stock correction at one store. Applied when created; the
    approval fields record who applied it.

    Items: productId, productName, adjustmentType (increase|decrease),
    quantity, reason.
    """
    __tablename__ = "stock_adjustments"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    adjustment_date = db.Column(db.DateTime, nullable=False, default=utcnow)

    store_id = db.Column(db.String(36), db.ForeignKey("stores.id"), nullable=False, index=True)
    store_name = db.Column(db.String(255), nullable=False)

    items = db.Column(db.JSON, nullable=False, default=list)
    notes = db.Column(db.Text, nullable=True)

    approved_by_user_id = db.Column(db.String(64), nullable=True)
    approved_by_user_name = db.Column(db.String(255), nullable=True)
    approval_date = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<StockAdjustment id={self.id} store_id={self.store_id}>"


class TransferOfGoods(LineItemsMixin, RowMixin, db.Model):
    """
    Movement of stock between two stores.

    LIFECYCLE:
    1. pending: created, nothing moved
    2. in-transit: source debited (TOG_OUT)
    3. received: destination credited (TOG_IN). Terminal.
    4. rejected: from pending (nothing to undo) or from in-transit (source
       re-credited with a positive TOG_OUT). Terminal.

    Items: productId, productName, quantity.
    """
    __tablename__ = "transfers"
    __table_args__ = (
        db.CheckConstraint(
            "transfer_from_store_id <> transfer_to_store_id",
            name="ck_transfers_distinct_stores",
        ),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    transfer_date = db.Column(db.DateTime, nullable=False, default=utcnow)

    transfer_from_store_id = db.Column(db.String(36), db.ForeignKey("stores.id"), nullable=False, index=True)
    transfer_from_store_name = db.Column(db.String(255), nullable=False)
    transfer_to_store_id = db.Column(db.String(36), db.ForeignKey("stores.id"), nullable=False, index=True)
    transfer_to_store_name = db.Column(db.String(255), nullable=False)

    # pending | in-transit | received | rejected
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    items = db.Column(db.JSON, nullable=False, default=list)
    notes = db.Column(db.Text, nullable=True)

    approved_by_user_id = db.Column(db.String(64), nullable=True)
    approved_by_user_name = db.Column(db.String(255), nullable=True)
    approval_date = db.Column(db.DateTime, nullable=True)

    received_by_user_id = db.Column(db.String(64), nullable=True)
    received_by_user_name = db.Column(db.String(255), nullable=True)
    received_date = db.Column(db.DateTime, nullable=True)

    rejected_by_user_id = db.Column(db.String(64), nullable=True)
    rejected_by_user_name = db.Column(db.String(255), nullable=True)
    rejected_date = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return (
            f"<TransferOfGoods id={self.id} from={self.transfer_from_store_id} "
            f"to={self.transfer_to_store_id} status={self.status}>"
        )


class DocumentSequence(db.Model):
    """
    Atomic document number sequences (journal entries, PO and GRN
    reference numbers).

    WHY: Prevent two concurrent writers from allocating the same number.
    """
    __tablename__ = "document_sequences"

    id = db.Column(db.Integer, primary_key=True)
    document_type = db.Column(db.String(32), nullable=False, unique=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "documentType": self.document_type,
            "nextNumber": self.next_number,
        }
