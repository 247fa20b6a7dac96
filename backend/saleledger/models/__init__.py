from .tenancy import Tenant
from .inventory import Stock
from .sales import Sale, SaleItem, Payment

__all__ = [
    'Tenant',
    'Stock',
    'Sale', 'SaleItem', 'Payment',
]
