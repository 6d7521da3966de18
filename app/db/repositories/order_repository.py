"""
OrderRepository: order creation, lookups, status updates and listing.

The ``orders.tracking_code`` unique constraint is the final authority on
tracking code uniqueness; an insert that violates it raises
``IntegrityError`` to the caller.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.repositories.base import BaseRepository, log_operation, utcnow
from app.db.schema import customers, orders
from app.domain.enums import OrderStatus, PaymentStatus

logger = logging.getLogger(__name__)


class OrderRepository(BaseRepository):
    """Repository for order records."""

    tables = (orders,)

    # ------------------------- Lookups -------------------------
    @log_operation()
    async def find_by_id(self, session: AsyncSession, order_id: int, for_update: bool = False) -> Optional[Dict[str, Any]]:
        """
        Find an order by ID.

        Args:
            for_update: Lock the row until the surrounding transaction ends
        """
        statement = sa.select(orders).where(orders.c.id == order_id)
        if for_update:
            statement = statement.with_for_update()
        result = await self._execute(session, statement, "find_by_id")
        return self._row_to_dict(result.first())

    @log_operation()
    async def find_by_tracking_code(self, session: AsyncSession, tracking_code: str) -> Optional[Dict[str, Any]]:
        statement = sa.select(orders).where(orders.c.tracking_code == tracking_code)
        result = await self._execute(session, statement, "find_by_tracking_code")
        return self._row_to_dict(result.first())

    @log_operation()
    async def last_tracking_code_with_prefix(self, session: AsyncSession, day_prefix: str) -> Optional[str]:
        """
        Highest tracking code issued with ``day_prefix`` (e.g. ``SEO-20250131-``).

        Codes are ordered by length first so ``...-10000`` sorts after ``...-9999``.
        """
        statement = (
            sa.select(orders.c.tracking_code)
            .where(orders.c.tracking_code.like(f"{day_prefix}%"))
            .order_by(sa.func.length(orders.c.tracking_code).desc(), orders.c.tracking_code.desc())
            .limit(1)
        )
        result = await self._execute(session, statement, "last_tracking_code_with_prefix")
        return result.scalar_one_or_none()

    # ------------------------- Writes -------------------------
    @log_operation()
    async def insert(self, session: AsyncSession, values: Dict[str, Any]) -> Tuple[int, Dict[str, Any]]:
        """
        Insert an order row.

        Returns:
            Tuple of the new order ID and the stored values (timestamps included)
        """
        now = utcnow()
        stored = {**values, "created_at": now, "updated_at": now}
        result = await self._execute(session, orders.insert().values(**stored), "insert")
        order_id = result.inserted_primary_key[0]
        return order_id, {**stored, "id": order_id}

    @log_operation()
    async def update_status(self, session: AsyncSession, order_id: int, status: OrderStatus) -> None:
        statement = orders.update().where(orders.c.id == order_id).values(status=status, updated_at=utcnow())
        await self._execute(session, statement, "update_status")

    @log_operation()
    async def update_payment_status(self, session: AsyncSession, order_id: int, payment_status: PaymentStatus) -> None:
        statement = (
            orders.update().where(orders.c.id == order_id).values(payment_status=payment_status, updated_at=utcnow())
        )
        await self._execute(session, statement, "update_payment_status")

    @log_operation()
    async def delete(self, session: AsyncSession, order_id: int) -> bool:
        result = await self._execute(session, orders.delete().where(orders.c.id == order_id), "delete")
        return result.rowcount > 0

    # ------------------------- Listing -------------------------
    @log_operation()
    async def list_orders(
        self,
        session: AsyncSession,
        page: int = 1,
        limit: int = 20,
        status: Optional[OrderStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
        search: Optional[str] = None,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """
        List orders with customer name and email, newest first.

        Returns:
            Tuple of the page rows and the total matching count
        """
        conditions = []
        if status is not None:
            conditions.append(orders.c.status == status)
        if payment_status is not None:
            conditions.append(orders.c.payment_status == payment_status)
        if search:
            pattern = f"%{search.strip()}%"
            conditions.append(
                sa.or_(
                    orders.c.tracking_code.ilike(pattern),
                    customers.c.name.ilike(pattern),
                    customers.c.email.ilike(pattern),
                )
            )

        joined = orders.join(customers, orders.c.customer_id == customers.c.id)

        count_statement = sa.select(sa.func.count()).select_from(joined).where(*conditions)
        total = int((await self._execute(session, count_statement, "count_orders")).scalar_one())

        statement = (
            sa.select(orders, customers.c.name.label("customer_name"), customers.c.email.label("customer_email"))
            .select_from(joined)
            .where(*conditions)
            .order_by(orders.c.created_at.desc(), orders.c.id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        result = await self._execute(session, statement, "list_orders")
        return [row._asdict() for row in result], total
