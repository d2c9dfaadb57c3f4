from .tenancy import Societe, SocieteSettings
from .auth import User, SessionToken, Invitation
from .security import SecurityEvent
from .inventory import StockItem, StockLot
from .documents import Purchase, PurchaseLine, Sale, SaleLine, Document, DocumentLine, document_sales
from .payments import Payment
from .activity import Activity

__all__ = [
    'Societe', 'SocieteSettings',
    'User', 'SessionToken', 'Invitation',
    'SecurityEvent',
    'StockItem', 'StockLot',
    'Purchase', 'PurchaseLine', 'Sale', 'SaleLine', 'Document', 'DocumentLine', 'document_sales',
    'Payment',
    'Activity',
]
