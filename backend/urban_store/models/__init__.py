from .inventory import Product
from .customers import Customer, CustomerPayment, CustomerCreditEntry
from .sales import Sale, SaleLine
from .notifications import NotificationLog

__all__ = [
    'Product',
    'Customer', 'CustomerPayment', 'CustomerCreditEntry',
    'Sale', 'SaleLine',
    'NotificationLog',
]
