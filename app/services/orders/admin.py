"""OrderAdminService - staff operations on existing orders and customers."""

import logging
import math
from typing import Any, Dict, Optional

from app.db.repositories import (
    DeliverableRepository,
    OrderRepository,
    PaymentRepository,
    StatusHistoryRepository,
)
from app.db.transaction import TransactionCoordinator
from app.domain.enums import OrderStatus, PaymentStatus
from app.domain.models import DeliverableDomain, OrderDomain, PaymentDomain, StatusHistoryEntry
from app.services.orders.interfaces import ICustomerRegistry, INotificationSender, IOrderLedger, IStatusStateMachine
from app.utils.error_handler import ValidationException

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


class OrderAdminService:
    """Status updates, order queries and deletions for staff."""

    def __init__(
        self,
        coordinator: TransactionCoordinator,
        order_ledger: IOrderLedger,
        state_machine: IStatusStateMachine,
        customer_registry: ICustomerRegistry,
        order_repo: OrderRepository,
        history_repo: StatusHistoryRepository,
        payment_repo: PaymentRepository,
        deliverable_repo: DeliverableRepository,
        notifier: INotificationSender,
    ):
        self.coordinator = coordinator
        self.order_ledger = order_ledger
        self.state_machine = state_machine
        self.customer_registry = customer_registry
        self.order_repo = order_repo
        self.history_repo = history_repo
        self.payment_repo = payment_repo
        self.deliverable_repo = deliverable_repo
        self.notifier = notifier

    async def update_status(
        self, order_id: int, new_status: OrderStatus, note: Optional[str] = None, actor_id: Optional[str] = None
    ) -> OrderDomain:
        """
        Transition an order and notify the customer after commit.

        Raises:
            OrderNotFoundException: If the order does not exist
            InvalidTransitionException: If the transition is illegal
        """
        new_status = OrderStatus(new_status)
        async with self.coordinator.transaction("update_status") as uow:
            order = await self.state_machine.transition(uow, order_id, new_status, note=note, actor_id=actor_id)
            customer = await self.customer_registry.get_customer(uow, order.customer_id)

            async def notify():
                await self.notifier.notify_status_changed(order, customer, new_status, note)

            uow.add_post_commit_hook(notify, name="notify_status_changed")

        return order

    async def get_order_details(self, order_id: int) -> Dict[str, Any]:
        """Order with its customer, history (newest first), payments and deliverables."""
        async with self.coordinator.transaction("get_order_details") as uow:
            order = await self.order_ledger.get_order(uow, order_id)
            customer = await self.customer_registry.get_customer(uow, order.customer_id)
            history = await self.history_repo.list_for_order(uow.session, order_id, newest_first=True)
            payments = await self.payment_repo.list_for_order(uow.session, order_id)
            deliverables = await self.deliverable_repo.list_for_order(uow.session, order_id)

        return {
            "order": order.to_dict(),
            "customer": customer.to_dict(),
            "status_history": [StatusHistoryEntry.from_dict(row).to_dict() for row in history],
            "payments": [PaymentDomain.from_dict(row).to_dict() for row in payments],
            "deliverables": [DeliverableDomain.from_dict(row).to_dict() for row in deliverables],
        }

    async def list_orders(
        self,
        page: int = 1,
        limit: int = 20,
        status: Optional[OrderStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
        search: Optional[str] = None,
    ) -> Dict[str, Any]:
        if page < 1:
            raise ValidationException(message="Page must be at least 1", field="page", invalid_value=page)
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationException(
                message=f"Limit must be between 1 and {MAX_PAGE_SIZE}", field="limit", invalid_value=limit
            )

        async with self.coordinator.transaction("list_orders") as uow:
            rows, total = await self.order_repo.list_orders(
                uow.session,
                page=page,
                limit=limit,
                status=OrderStatus(status) if status else None,
                payment_status=PaymentStatus(payment_status) if payment_status else None,
                search=search,
            )

        items = [
            {**OrderDomain.from_dict(row).to_dict(), "customer_name": row["customer_name"], "customer_email": row["customer_email"]}
            for row in rows
        ]
        return {
            "orders": items,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": math.ceil(total / limit) if total else 0,
            },
        }

    async def delete_order(self, order_id: int) -> Dict[str, Any]:
        """
        Delete an order together with its history, payments and deliverables.

        Raises:
            OrderNotFoundException: If the order does not exist
        """
        async with self.coordinator.transaction("delete_order") as uow:
            order = await self.order_ledger.get_order(uow, order_id, for_update=True)
            removed = {
                "status_history": await self.history_repo.delete_for_order(uow.session, order_id),
                "payments": await self.payment_repo.delete_for_order(uow.session, order_id),
                "deliverables": await self.deliverable_repo.delete_for_order(uow.session, order_id),
            }
            await self.order_repo.delete(uow.session, order_id)

        logger.warning(f"Order {order.tracking_code} deleted with {removed}")
        return {"order_id": order_id, "tracking_code": order.tracking_code, "removed": removed}

    async def delete_customer(self, customer_id: int) -> None:
        """
        Raises:
            CustomerNotFoundException: If the customer does not exist
            CustomerInUseException: If any order still references the customer
        """
        async with self.coordinator.transaction("delete_customer") as uow:
            await self.customer_registry.delete_customer(uow, customer_id)
