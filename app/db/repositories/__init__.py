"""
Repositories for the order lifecycle tables.

Every repository method takes the ``AsyncSession`` of the caller's unit
of work as its first argument.
"""

from .catalog_repository import CatalogRepository
from .customer_repository import CustomerRepository
from .deliverable_repository import DeliverableRepository
from .order_repository import OrderRepository
from .payment_repository import PaymentRepository
from .status_history_repository import StatusHistoryRepository

__all__ = [
    "CatalogRepository",
    "CustomerRepository",
    "DeliverableRepository",
    "OrderRepository",
    "PaymentRepository",
    "StatusHistoryRepository",
]
