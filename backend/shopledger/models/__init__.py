from .tenancy import Shop
from .customers import Customer
from .inventory import Product, StockMovement
from .invoices import Invoice, InvoiceItem, InvoicePayment, InvoiceReminder, InvoiceItemHistory, InvoiceSequence
from .security import SecurityEvent

__all__ = [
    'Shop',
    'Customer',
    'Product', 'StockMovement',
    'Invoice', 'InvoiceItem', 'InvoicePayment', 'InvoiceReminder', 'InvoiceItemHistory', 'InvoiceSequence',
    'SecurityEvent',
]
