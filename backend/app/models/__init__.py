from .auth import Role, User, SessionToken
from .customers import Customer
from .inventory import Product, StockMovement
from .sales import Sale, SaleItem, SALE_STATUSES
from .payments import Payment, Receipt, PAYMENT_METHODS, PAYMENT_STATUSES, RECEIPT_STATUSES

__all__ = [
    'Role', 'User', 'SessionToken',
    'Customer',
    'Product', 'StockMovement',
    'Sale', 'SaleItem', 'SALE_STATUSES',
    'Payment', 'Receipt', 'PAYMENT_METHODS', 'PAYMENT_STATUSES', 'RECEIPT_STATUSES',
]
