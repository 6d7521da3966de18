"""
Interfaces/Protocols for order services (Dependency Inversion Principle).

These protocols define contracts that services must implement,
allowing for loose coupling and easy testing.
"""

from typing import Any, Protocol

from app.db.transaction import UnitOfWork
from app.domain.enums import OrderStatus
from app.domain.models import CatalogSnapshot, CustomerDomain, OrderDomain


class ICatalogReader(Protocol):
    """Protocol for catalog lookups."""

    async def resolve_tier(self, uow: UnitOfWork, tier_id: str) -> CatalogSnapshot:
        """Resolve an active tier to a snapshot, raising InvalidTierException otherwise."""
        ...


class ICustomerRegistry(Protocol):
    """Protocol for customer identity resolution."""

    async def upsert_customer(
        self, uow: UnitOfWork, name: str, email: str, website: str, phone: str | None = None
    ) -> int:
        """Create or update a customer keyed by email, return customer ID."""
        ...

    async def get_customer(self, uow: UnitOfWork, customer_id: int) -> CustomerDomain:
        """Load a customer, raising CustomerNotFoundException if absent."""
        ...

    async def delete_customer(self, uow: UnitOfWork, customer_id: int) -> None:
        """Delete an unreferenced customer, raising CustomerInUseException otherwise."""
        ...


class IOrderLedger(Protocol):
    """Protocol for order creation and lookup."""

    async def create_order(
        self, uow: UnitOfWork, customer_id: int, snapshot: CatalogSnapshot, requirements: str, quantity: int
    ) -> OrderDomain:
        """Create a pending order with its first history entry."""
        ...

    async def get_order(self, uow: UnitOfWork, order_id: int, for_update: bool = False) -> OrderDomain:
        """Load an order, raising OrderNotFoundException if absent."""
        ...

    async def get_by_tracking_code(self, uow: UnitOfWork, tracking_code: str) -> OrderDomain | None:
        """Find an order by tracking code, None if unknown."""
        ...


class IStatusStateMachine(Protocol):
    """Protocol for status transitions."""

    async def transition(
        self,
        uow: UnitOfWork,
        order_id: int,
        new_status: OrderStatus,
        note: str | None = None,
        actor_id: str | None = None,
    ) -> OrderDomain:
        """Apply a legal transition and append history."""
        ...

    async def apply(
        self,
        uow: UnitOfWork,
        order: OrderDomain,
        new_status: OrderStatus,
        note: str | None = None,
        actor_id: str | None = None,
    ) -> OrderDomain:
        """Transition an order already loaded with a row lock."""
        ...

    def ensure_legal(self, order_id: int, current: OrderStatus, target: OrderStatus) -> None:
        """Raise InvalidTransitionException for an illegal transition."""
        ...


class INotificationSender(Protocol):
    """Protocol for customer notifications. Implementations never raise."""

    async def notify_order_created(self, order: OrderDomain, customer: CustomerDomain) -> bool: ...

    async def notify_payment_confirmed(self, order: OrderDomain, customer: CustomerDomain) -> bool: ...

    async def notify_status_changed(
        self, order: OrderDomain, customer: CustomerDomain, status: OrderStatus, note: str | None
    ) -> bool: ...

    async def notify_fulfilled(
        self, order: OrderDomain, customer: CustomerDomain, message: str | None, attachment: Any | None
    ) -> bool: ...


class IFileStore(Protocol):
    """Protocol for staging uploaded deliverables."""

    async def stage_pending_upload(self, data: bytes, name: str, content_type: str | None = None) -> Any: ...

    async def discard(self, handle: Any) -> bool: ...
