"""OrderLedger service - order creation with tracking codes and first history entry."""

import logging
from datetime import datetime
from typing import Callable

from sqlalchemy.exc import IntegrityError

from app.db.repositories import OrderRepository, StatusHistoryRepository
from app.db.transaction import UnitOfWork
from app.domain.enums import OrderStatus
from app.domain.models import CatalogSnapshot, OrderDomain
from app.domain.value_objects import TrackingCode, business_today
from app.services.orders.factories import OrderFactory
from app.utils.error_handler import (
    DatabaseException,
    InvalidQuantityException,
    OrderNotFoundException,
    TrackingCollisionException,
)

logger = logging.getLogger(__name__)

ORDER_CREATED_NOTE = "Order created"
TRACKING_CODE_ATTEMPTS = 2


def _is_tracking_code_violation(error: IntegrityError) -> bool:
    return "tracking_code" in str(error.orig).lower()


class OrderLedger:
    """Creates and loads orders (SRP: order records only)."""

    def __init__(
        self,
        order_repo: OrderRepository,
        history_repo: StatusHistoryRepository,
        tracking_prefix: str = "SEO",
        business_timezone: str = "UTC",
        max_quantity: int = 100,
        clock: Callable[[], datetime] | None = None,
    ):
        """
        Initialize with SOLID dependencies (DIP).

        Args:
            order_repo: Repository for order operations
            history_repo: Repository for the status trail
            tracking_prefix: Prefix of generated tracking codes
            business_timezone: Timezone whose calendar date stamps tracking codes
            max_quantity: Upper bound for order quantity
            clock: Returns the current aware datetime (tests pin it)
        """
        self.order_repo = order_repo
        self.history_repo = history_repo
        self.tracking_prefix = tracking_prefix
        self.business_timezone = business_timezone
        self.max_quantity = max_quantity
        self.clock = clock

    async def create_order(
        self,
        uow: UnitOfWork,
        customer_id: int,
        snapshot: CatalogSnapshot,
        requirements: str,
        quantity: int,
    ) -> OrderDomain:
        """
        Create a pending order and its initial history entry.

        Args:
            uow: Caller's unit of work
            customer_id: Owning customer
            snapshot: Catalog data copied into the order
            requirements: Free-text requirements
            quantity: Units ordered (1..max_quantity)

        Returns:
            OrderDomain: Stored order

        Raises:
            InvalidQuantityException: If quantity is out of range
            TrackingCollisionException: If a unique tracking code could not be obtained
        """
        self.validate_quantity(quantity)

        for attempt in range(1, TRACKING_CODE_ATTEMPTS + 1):
            tracking_code = await self.next_tracking_code(uow)
            order = OrderFactory.create_order(str(tracking_code), customer_id, snapshot, requirements or "", quantity)

            try:
                async with uow.savepoint():
                    order_id, stored = await self.order_repo.insert(uow.session, OrderFactory.to_row(order))
                break
            except IntegrityError as e:
                if not _is_tracking_code_violation(e):
                    raise DatabaseException(message=f"Order insert rejected: {e.orig}", operation="create_order") from e
                logger.warning(f"Tracking code {tracking_code} already taken (attempt {attempt}/{TRACKING_CODE_ATTEMPTS})")
                if attempt == TRACKING_CODE_ATTEMPTS:
                    raise TrackingCollisionException(str(tracking_code), attempt) from e

        await self.history_repo.append(uow.session, order_id, OrderStatus.PENDING, notes=ORDER_CREATED_NOTE)

        order.id = order_id
        order.created_at = stored["created_at"]
        order.updated_at = stored["updated_at"]

        logger.info(
            f"Order {order.tracking_code} created: {order.service_name} / {order.service_tier_name} "
            f"x{order.quantity} = {order.total_amount}"
        )
        return order

    def validate_quantity(self, quantity) -> None:
        if isinstance(quantity, bool) or not isinstance(quantity, int) or not 1 <= quantity <= self.max_quantity:
            raise InvalidQuantityException(quantity, self.max_quantity)

    async def next_tracking_code(self, uow: UnitOfWork) -> TrackingCode:
        """Next code for today's business date, one past the highest already issued."""
        now = self.clock() if self.clock else None
        day = business_today(self.business_timezone, now)
        day_prefix = TrackingCode.day_prefix(self.tracking_prefix, day)

        last_code = await self.order_repo.last_tracking_code_with_prefix(uow.session, day_prefix)
        if last_code is None:
            return TrackingCode.first_of_day(self.tracking_prefix, day)
        return TrackingCode.parse(last_code).next()

    async def get_order(self, uow: UnitOfWork, order_id: int, for_update: bool = False) -> OrderDomain:
        """
        Load an order, optionally locking its row for the rest of the unit.

        Raises:
            OrderNotFoundException: If the order does not exist
        """
        row = await self.order_repo.find_by_id(uow.session, order_id, for_update=for_update)
        if row is None:
            raise OrderNotFoundException(order_id)
        return OrderDomain.from_dict(row)

    async def get_by_tracking_code(self, uow: UnitOfWork, tracking_code: str) -> OrderDomain | None:
        row = await self.order_repo.find_by_tracking_code(uow.session, tracking_code)
        return OrderDomain.from_dict(row) if row else None
