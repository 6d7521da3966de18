"""FulfillmentService - completes an order by delivering a file to the customer."""

import logging
import os
from typing import Iterable, Optional

from app.db.repositories import DeliverableRepository
from app.db.transaction import TransactionCoordinator
from app.domain.enums import OrderStatus
from app.domain.models import CustomerDomain, OrderDomain
from app.services.file_store import StagedUpload
from app.services.orders.interfaces import ICustomerRegistry, IFileStore, INotificationSender, IStatusStateMachine
from app.utils.error_handler import InvalidDeliverableException

logger = logging.getLogger(__name__)

DELIVERABLE_MIME_TYPES = {
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".xls": "application/vnd.ms-excel",
    ".pdf": "application/pdf",
    ".zip": "application/zip",
}


def delivered_note(file_name: str) -> str:
    return f"Order delivered with file attachment: {file_name}"


class FulfillmentService:
    """
    Delivers a staged file and moves the order to ``completed``.

    The staged file lives until the delivery email has been sent. It is
    discarded straight away when anything fails before the commit.
    """

    def __init__(
        self,
        coordinator: TransactionCoordinator,
        state_machine: IStatusStateMachine,
        customer_registry: ICustomerRegistry,
        deliverable_repo: DeliverableRepository,
        file_store: IFileStore,
        notifier: INotificationSender,
        max_bytes: int = 10 * 1024 * 1024,
        allowed_extensions: Iterable[str] = tuple(DELIVERABLE_MIME_TYPES),
    ):
        self.coordinator = coordinator
        self.state_machine = state_machine
        self.customer_registry = customer_registry
        self.deliverable_repo = deliverable_repo
        self.file_store = file_store
        self.notifier = notifier
        self.max_bytes = max_bytes
        self.allowed_extensions = {ext.lower() for ext in allowed_extensions}

    def validate_file(self, data: bytes, file_name: str, content_type: Optional[str]) -> None:
        """
        Raises:
            InvalidDeliverableException: If the file is empty, too large or of a disallowed type
        """
        if not file_name:
            raise InvalidDeliverableException("A file name is required")
        if not data:
            raise InvalidDeliverableException("The uploaded file is empty", filename=file_name)
        if len(data) > self.max_bytes:
            raise InvalidDeliverableException(
                f"File is {len(data)} bytes, the limit is {self.max_bytes} bytes", filename=file_name
            )

        extension = os.path.splitext(file_name)[1].lower()
        allowed_mimes = {DELIVERABLE_MIME_TYPES[ext] for ext in self.allowed_extensions if ext in DELIVERABLE_MIME_TYPES}
        if extension not in self.allowed_extensions and content_type not in allowed_mimes:
            raise InvalidDeliverableException(
                f"Unsupported file type; allowed: {', '.join(sorted(self.allowed_extensions))}", filename=file_name
            )

    async def complete_with_deliverable(
        self,
        order_id: int,
        file_bytes: bytes,
        file_name: str,
        content_type: Optional[str] = None,
        message: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> OrderDomain:
        """
        Complete an order, record the deliverable and email it after commit.

        Returns:
            OrderDomain: The completed order

        Raises:
            InvalidDeliverableException: If the file is rejected
            OrderNotFoundException: If the order does not exist
            InvalidTransitionException: If the order cannot move to ``completed``
        """
        self.validate_file(file_bytes, file_name, content_type)
        staged = await self.file_store.stage_pending_upload(file_bytes, file_name, content_type)

        try:
            async with self.coordinator.transaction("complete_with_deliverable") as uow:
                order = await self.state_machine.transition(
                    uow, order_id, OrderStatus.COMPLETED, note=delivered_note(staged.original_name), actor_id=actor_id
                )
                await self.deliverable_repo.insert(
                    uow.session,
                    order_id=order.id,
                    file_name=staged.original_name,
                    file_path=str(staged.path),
                    file_type=content_type or DELIVERABLE_MIME_TYPES.get(
                        os.path.splitext(file_name)[1].lower(), "application/octet-stream"
                    ),
                    file_size=staged.size,
                    uploaded_by=actor_id,
                )
                customer = await self.customer_registry.get_customer(uow, order.customer_id)
                uow.add_post_commit_hook(self._delivery_hook(order, customer, message, staged), name="notify_fulfilled")
        except BaseException:
            await self.file_store.discard(staged)
            raise

        logger.info(f"Order {order.tracking_code} completed with deliverable {staged.original_name}")
        return order

    def _delivery_hook(self, order: OrderDomain, customer: CustomerDomain, message: Optional[str], staged: StagedUpload):
        async def hook():
            try:
                await self.notifier.notify_fulfilled(order, customer, message, staged)
            finally:
                await self.file_store.discard(staged)

        return hook
