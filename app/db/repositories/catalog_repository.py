"""
CatalogRepository: read-only access to services and their priced tiers.
"""

import logging
from typing import Any, Dict, List, Optional

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.repositories.base import BaseRepository, log_operation
from app.db.schema import service_tiers, services

logger = logging.getLogger(__name__)


class CatalogRepository(BaseRepository):
    """Repository for catalog (service tier) lookups."""

    tables = (services, service_tiers)

    def _active_tiers_query(self):
        return (
            sa.select(
                service_tiers.c.id.label("tier_id"),
                services.c.name.label("service_name"),
                service_tiers.c.name.label("tier_name"),
                service_tiers.c.price,
                service_tiers.c.delivery_days,
            )
            .select_from(service_tiers.join(services, service_tiers.c.service_id == services.c.id))
            .where(service_tiers.c.is_active.is_(True), services.c.is_active.is_(True))
        )

    @log_operation()
    async def find_active_tier(self, session: AsyncSession, tier_id: str) -> Optional[Dict[str, Any]]:
        """
        Find a tier whose tier and parent service are both active.

        Returns:
            Joined tier/service row, or None if absent or inactive
        """
        statement = self._active_tiers_query().where(service_tiers.c.id == tier_id)
        result = await self._execute(session, statement, "find_active_tier")
        return self._row_to_dict(result.first())

    @log_operation()
    async def list_active_tiers(self, session: AsyncSession) -> List[Dict[str, Any]]:
        """List active tiers of active services ordered by service name and price."""
        statement = self._active_tiers_query().order_by(services.c.name, service_tiers.c.price)
        result = await self._execute(session, statement, "list_active_tiers")
        return [row._asdict() for row in result]
