"""
StatusHistoryRepository: append-only status trail of each order.

Entries are never updated; the newest entry is the one with the highest ID.
"""

import logging
from typing import Any, Dict, List, Optional

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.repositories.base import BaseRepository, log_operation, utcnow
from app.db.schema import order_status_history
from app.domain.enums import OrderStatus

logger = logging.getLogger(__name__)


class StatusHistoryRepository(BaseRepository):
    """Repository for order status history."""

    tables = (order_status_history,)

    @log_operation()
    async def append(
        self,
        session: AsyncSession,
        order_id: int,
        status: OrderStatus,
        notes: Optional[str] = None,
        changed_by: Optional[str] = None,
    ) -> int:
        """Append one history entry. ``changed_by`` None marks a system-generated entry."""
        statement = order_status_history.insert().values(
            order_id=order_id, status=status, notes=notes, changed_by=changed_by, created_at=utcnow()
        )
        result = await self._execute(session, statement, "append")
        return result.inserted_primary_key[0]

    @log_operation()
    async def list_for_order(self, session: AsyncSession, order_id: int, newest_first: bool = False) -> List[Dict[str, Any]]:
        order_by = order_status_history.c.id.desc() if newest_first else order_status_history.c.id.asc()
        statement = sa.select(order_status_history).where(order_status_history.c.order_id == order_id).order_by(order_by)
        result = await self._execute(session, statement, "list_for_order")
        return [row._asdict() for row in result]

    @log_operation()
    async def latest(self, session: AsyncSession, order_id: int) -> Optional[Dict[str, Any]]:
        statement = (
            sa.select(order_status_history)
            .where(order_status_history.c.order_id == order_id)
            .order_by(order_status_history.c.id.desc())
            .limit(1)
        )
        result = await self._execute(session, statement, "latest")
        return self._row_to_dict(result.first())

    @log_operation()
    async def delete_for_order(self, session: AsyncSession, order_id: int) -> int:
        statement = order_status_history.delete().where(order_status_history.c.order_id == order_id)
        result = await self._execute(session, statement, "delete_for_order")
        return result.rowcount
