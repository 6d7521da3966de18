"""
CustomerRepository: customer lookup, creation, update and deletion.

Emails are stored normalized (trimmed, lower-cased); callers pass
normalized values.
"""

import logging
from typing import Any, Dict, Optional

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.repositories.base import BaseRepository, log_operation, utcnow
from app.db.schema import customers, orders

logger = logging.getLogger(__name__)


class CustomerRepository(BaseRepository):
    """Repository for customer records."""

    tables = (customers,)

    # ------------------------- Lookups -------------------------
    @log_operation()
    async def find_by_email(self, session: AsyncSession, email: str, for_update: bool = False) -> Optional[Dict[str, Any]]:
        """Find a customer by normalized email, optionally locking the row."""
        statement = sa.select(customers).where(customers.c.email == email)
        if for_update:
            statement = statement.with_for_update()
        result = await self._execute(session, statement, "find_by_email")
        return self._row_to_dict(result.first())

    @log_operation()
    async def find_by_id(self, session: AsyncSession, customer_id: int, for_update: bool = False) -> Optional[Dict[str, Any]]:
        statement = sa.select(customers).where(customers.c.id == customer_id)
        if for_update:
            statement = statement.with_for_update()
        result = await self._execute(session, statement, "find_by_id")
        return self._row_to_dict(result.first())

    @log_operation()
    async def count_orders(self, session: AsyncSession, customer_id: int) -> int:
        """Number of orders referencing the customer."""
        statement = sa.select(sa.func.count()).select_from(orders).where(orders.c.customer_id == customer_id)
        result = await self._execute(session, statement, "count_orders")
        return int(result.scalar_one())

    # ------------------------- Writes -------------------------
    @log_operation()
    async def insert(self, session: AsyncSession, name: str, email: str, website: str, phone: Optional[str]) -> int:
        """
        Insert a new customer.

        Returns:
            int: New customer ID
        """
        now = utcnow()
        statement = customers.insert().values(
            name=name, email=email, website=website, phone=phone, created_at=now, updated_at=now
        )
        result = await self._execute(session, statement, "insert")
        customer_id = result.inserted_primary_key[0]
        logger.info(f"Customer created: id={customer_id}")
        return customer_id

    @log_operation()
    async def update_profile(
        self, session: AsyncSession, customer_id: int, name: str, website: str, phone: Optional[str] = None
    ) -> None:
        """Update name and website; phone only when supplied."""
        values: Dict[str, Any] = {"name": name, "website": website, "updated_at": utcnow()}
        if phone is not None:
            values["phone"] = phone
        statement = customers.update().where(customers.c.id == customer_id).values(**values)
        await self._execute(session, statement, "update_profile")

    @log_operation()
    async def delete(self, session: AsyncSession, customer_id: int) -> bool:
        statement = customers.delete().where(customers.c.id == customer_id)
        result = await self._execute(session, statement, "delete")
        return result.rowcount > 0
