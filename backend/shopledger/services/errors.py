# Overview: Service-layer exception types shared by every workflow.

from __future__ import annotations


class ShopLedgerError(Exception):
    """Base class for business-rule failures raised by services."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFoundError(ShopLedgerError):
    """Referenced entity does not exist (404)."""


class ProductNotFoundError(NotFoundError):
    def __init__(self, product_id: str):
        super().__init__(f"Product {product_id} not found", {"product_id": product_id})
        self.product_id = product_id


class InvalidStateError(ShopLedgerError):
    """Operation not allowed in the entity's current status (409)."""


class StockValidationError(ShopLedgerError):
    """Quantities or stock levels do not permit the operation (400)."""


class LedgerWriteError(ShopLedgerError):
    """
    Inventory history could not be appended after a stock write.

    Raised inside the stock write's transaction so the caller rolls the
    product change back together with it.
    """


class UnbalancedJournalEntryError(ShopLedgerError):
    """Journal entry debits and credits differ by more than 0.01."""
