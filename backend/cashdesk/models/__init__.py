from .catalog import Product
from .promotions import Offer, OfferValidationError, OFFER_TYPE_NXM, OFFER_TYPE_N_PLUS_M
from .sales import (
    CartLine, Sale, Refund,
    PAYMENT_CASH, PAYMENT_CARD, PAYMENT_METHODS,
    SALE_STATUS_COMPLETED, SALE_STATUS_PARTIAL_REFUND, SALE_STATUS_REFUNDED,
)
from .auth import User, UserView, Session, ROLE_ADMIN, ROLE_EMPLOYEE
from .state import StateBlob

__all__ = [
    'Product',
    'Offer', 'OfferValidationError', 'OFFER_TYPE_NXM', 'OFFER_TYPE_N_PLUS_M',
    'CartLine', 'Sale', 'Refund',
    'PAYMENT_CASH', 'PAYMENT_CARD', 'PAYMENT_METHODS',
    'SALE_STATUS_COMPLETED', 'SALE_STATUS_PARTIAL_REFUND', 'SALE_STATUS_REFUNDED',
    'User', 'UserView', 'Session', 'ROLE_ADMIN', 'ROLE_EMPLOYEE',
    'StateBlob',
]
