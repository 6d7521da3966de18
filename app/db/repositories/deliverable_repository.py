"""
DeliverableRepository: metadata of files delivered on fulfillment.
"""

from typing import Any, Dict, List, Optional

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.repositories.base import BaseRepository, log_operation, utcnow
from app.db.schema import deliverables


class DeliverableRepository(BaseRepository):
    tables = (deliverables,)

    @log_operation()
    async def insert(
        self,
        session: AsyncSession,
        order_id: int,
        file_name: str,
        file_path: str,
        file_type: str,
        file_size: int,
        uploaded_by: Optional[str] = None,
    ) -> int:
        statement = deliverables.insert().values(
            order_id=order_id,
            file_name=file_name,
            file_path=file_path,
            file_type=file_type,
            file_size=file_size,
            uploaded_by=uploaded_by,
            created_at=utcnow(),
        )
        result = await self._execute(session, statement, "insert")
        return result.inserted_primary_key[0]

    @log_operation()
    async def list_for_order(self, session: AsyncSession, order_id: int) -> List[Dict[str, Any]]:
        statement = sa.select(deliverables).where(deliverables.c.order_id == order_id).order_by(deliverables.c.id.desc())
        result = await self._execute(session, statement, "list_for_order")
        return [row._asdict() for row in result]

    @log_operation()
    async def delete_for_order(self, session: AsyncSession, order_id: int) -> int:
        result = await self._execute(
            session, deliverables.delete().where(deliverables.c.order_id == order_id), "delete_for_order"
        )
        return result.rowcount
