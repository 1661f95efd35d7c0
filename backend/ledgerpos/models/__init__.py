from .catalog import Product
from .parties import Customer, Supplier
from .sales import Sale, SaleItem
from .ledger import Purchase, Payment

__all__ = [
    'Product',
    'Customer', 'Supplier',
    'Sale', 'SaleItem',
    'Purchase', 'Payment',
]
