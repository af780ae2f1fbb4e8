from .stores import Store
from .inventory import Category, Supplier, Product, InventoryHistoryEntry
from .documents import PurchaseOrder, GoodsReceivedNote, StockAdjustment, TransferOfGoods, DocumentSequence
from .customers import Customer
from .sales import PaymentMethod, TaxRate, Sale
from .accounting import Account, JournalEntry, JournalEntryLine, Payroll

__all__ = [
    'Store',
    'Category', 'Supplier', 'Product', 'InventoryHistoryEntry',
    'PurchaseOrder', 'GoodsReceivedNote', 'StockAdjustment', 'TransferOfGoods', 'DocumentSequence',
    'Customer',
    'PaymentMethod', 'TaxRate', 'Sale',
    'Account', 'JournalEntry', 'JournalEntryLine', 'Payroll',
]
