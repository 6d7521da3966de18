"""
PaymentRepository: payment attempts recorded against orders.
"""

import logging
from typing import Any, Dict, List, Optional

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.repositories.base import BaseRepository, log_operation, utcnow
from app.db.schema import payments
from app.domain.enums import PaymentMethod, PaymentStatus

logger = logging.getLogger(__name__)


class PaymentRepository(BaseRepository):
    """Repository for payment records."""

    tables = (payments,)

    @log_operation()
    async def find_by_status(self, session: AsyncSession, order_id: int, status: PaymentStatus) -> Optional[Dict[str, Any]]:
        """Most recent payment of the order with the given status."""
        statement = (
            sa.select(payments)
            .where(payments.c.order_id == order_id, payments.c.status == status)
            .order_by(payments.c.id.desc())
            .limit(1)
        )
        result = await self._execute(session, statement, "find_by_status")
        return self._row_to_dict(result.first())

    @log_operation()
    async def find_by_reference(
        self, session: AsyncSession, order_id: int, gateway_reference: str, status: Optional[PaymentStatus] = None
    ) -> Optional[Dict[str, Any]]:
        statement = sa.select(payments).where(
            payments.c.order_id == order_id, payments.c.gateway_reference == gateway_reference
        )
        if status is not None:
            statement = statement.where(payments.c.status == status)
        result = await self._execute(session, statement.order_by(payments.c.id.desc()).limit(1), "find_by_reference")
        return self._row_to_dict(result.first())

    @log_operation()
    async def list_for_order(self, session: AsyncSession, order_id: int) -> List[Dict[str, Any]]:
        statement = sa.select(payments).where(payments.c.order_id == order_id).order_by(payments.c.id.desc())
        result = await self._execute(session, statement, "list_for_order")
        return [row._asdict() for row in result]

    @log_operation()
    async def insert(
        self,
        session: AsyncSession,
        order_id: int,
        payment_method: PaymentMethod,
        gateway_reference: Optional[str],
        amount,
        currency: str,
        status: PaymentStatus,
        payer_id: Optional[str] = None,
        gateway_response: Optional[Dict[str, Any]] = None,
    ) -> int:
        """
        Record a payment attempt.

        Returns:
            int: New payment ID
        """
        now = utcnow()
        statement = payments.insert().values(
            order_id=order_id,
            payment_method=payment_method,
            gateway_reference=gateway_reference,
            payer_id=payer_id,
            amount=amount,
            currency=currency,
            status=status,
            gateway_response=gateway_response,
            created_at=now,
            updated_at=now,
        )
        result = await self._execute(session, statement, "insert")
        return result.inserted_primary_key[0]

    @log_operation()
    async def update_status(self, session: AsyncSession, payment_id: int, status: PaymentStatus) -> None:
        statement = payments.update().where(payments.c.id == payment_id).values(status=status, updated_at=utcnow())
        await self._execute(session, statement, "update_status")

    @log_operation()
    async def delete_for_order(self, session: AsyncSession, order_id: int) -> int:
        result = await self._execute(session, payments.delete().where(payments.c.order_id == order_id), "delete_for_order")
        return result.rowcount
