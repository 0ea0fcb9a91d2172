from .catalog import Product, StockLedger, StockHistory
from .accounts import Company, AdminCredential, CashierUser

__all__ = [
    'Product', 'StockLedger', 'StockHistory',
    'Company', 'AdminCredential', 'CashierUser',
]
