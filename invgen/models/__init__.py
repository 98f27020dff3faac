from invgen.core.database import Base
from invgen.models.user import User
from invgen.models.client import Client
from invgen.models.invoice import Invoice, InvoiceItem, InvoiceSequence, InvoiceStatus

__all__ = ["Base", "User", "Client", "Invoice", "InvoiceItem", "InvoiceSequence", "InvoiceStatus"]
