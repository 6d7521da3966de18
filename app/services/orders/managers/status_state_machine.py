"""StatusStateMachine service - legal status transitions with an audit trail."""

import logging
from dataclasses import replace

from app.db.repositories import OrderRepository, StatusHistoryRepository
from app.db.repositories.base import utcnow
from app.db.transaction import UnitOfWork
from app.domain.enums import OrderStatus
from app.domain.models import OrderDomain
from app.utils.error_handler import InvalidTransitionException, OrderNotFoundException

logger = logging.getLogger(__name__)


class StatusStateMachine:
    """
    Enforces the order status graph:

        pending -> confirmed -> in_progress -> completed
        pending | confirmed -> cancelled
        confirmed -> completed

    ``completed`` and ``cancelled`` are terminal.
    """

    def __init__(self, order_repo: OrderRepository, history_repo: StatusHistoryRepository):
        self.order_repo = order_repo
        self.history_repo = history_repo

    @staticmethod
    def ensure_legal(order_id: int, current: OrderStatus, target: OrderStatus) -> None:
        """
        Raises:
            InvalidTransitionException: If ``current -> target`` is not an edge of the graph
        """
        if not OrderStatus(current).can_transition_to(OrderStatus(target)):
            raise InvalidTransitionException(order_id, OrderStatus(current).value, OrderStatus(target).value)

    async def transition(
        self,
        uow: UnitOfWork,
        order_id: int,
        new_status: OrderStatus,
        note: str | None = None,
        actor_id: str | None = None,
    ) -> OrderDomain:
        """
        Move an order to ``new_status`` and append the history entry.

        The order row is locked first so concurrent transitions serialize.

        Raises:
            OrderNotFoundException: If the order does not exist
            InvalidTransitionException: If the transition is illegal (nothing is written)
        """
        row = await self.order_repo.find_by_id(uow.session, order_id, for_update=True)
        if row is None:
            raise OrderNotFoundException(order_id)
        return await self.apply(uow, OrderDomain.from_dict(row), new_status, note, actor_id)

    async def apply(
        self,
        uow: UnitOfWork,
        order: OrderDomain,
        new_status: OrderStatus,
        note: str | None = None,
        actor_id: str | None = None,
    ) -> OrderDomain:
        """Transition an order the caller has already loaded with a row lock."""
        new_status = OrderStatus(new_status)
        self.ensure_legal(order.id, order.status, new_status)

        await self.order_repo.update_status(uow.session, order.id, new_status)
        await self.history_repo.append(uow.session, order.id, new_status, notes=note, changed_by=actor_id)

        logger.info(
            f"Order {order.tracking_code}: {order.status.value} -> {new_status.value} "
            f"by {actor_id or 'system'}"
        )
        return replace(order, status=new_status, updated_at=utcnow())
