from .tenancy import Organization
from .auth import Profile, SessionToken, Invitation
from .inventory import Product, InventoryLedgerEntry
from .sales import Sale, SaleItem
from .finance import FinancialTransaction

__all__ = [
    'Organization',
    'Profile', 'SessionToken', 'Invitation',
    'Product', 'InventoryLedgerEntry',
    'Sale', 'SaleItem',
    'FinancialTransaction',
]
