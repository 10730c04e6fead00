from invoicely.models.user import User
from invoicely.models.client import Client
from invoicely.models.product import Product
from invoicely.models.invoice import Invoice, InvoiceLineItem, InvoiceCounter, InvoiceStatus

__all__ = ["User", "Client", "Product", "Invoice", "InvoiceLineItem", "InvoiceCounter", "InvoiceStatus"]
