"""
Domain models for business entities.

These models represent core business concepts and contain
business logic and invariants.
"""

from .catalog import CatalogSnapshot
from .customer import CustomerDomain, normalize_email
from .deliverable import DeliverableDomain
from .order import OrderDomain
from .payment import PaymentDomain
from .status_history import StatusHistoryEntry

__all__ = [
    "CatalogSnapshot",
    "CustomerDomain",
    "DeliverableDomain",
    "OrderDomain",
    "PaymentDomain",
    "StatusHistoryEntry",
    "normalize_email",
]
