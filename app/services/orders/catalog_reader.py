"""CatalogReader service - resolves service tiers to immutable snapshots."""

import logging

from app.db.repositories import CatalogRepository
from app.db.transaction import UnitOfWork
from app.domain.models import CatalogSnapshot
from app.utils.error_handler import InvalidTierException

logger = logging.getLogger(__name__)


class CatalogReader:
    """Reads the priced catalog (SRP: read-only reference data)."""

    def __init__(self, catalog_repo: CatalogRepository, currency: str = "USD"):
        """
        Args:
            catalog_repo: Repository for catalog lookups
            currency: Currency every catalog price is expressed in
        """
        self.catalog_repo = catalog_repo
        self.currency = currency

    async def resolve_tier(self, uow: UnitOfWork, tier_id: str) -> CatalogSnapshot:
        """
        Resolve a tier ID to a price/name/duration snapshot.

        Raises:
            InvalidTierException: If the tier or its parent service is absent or inactive
        """
        if not tier_id:
            raise InvalidTierException(tier_id, reason="Service tier is required")

        row = await self.catalog_repo.find_active_tier(uow.session, str(tier_id))
        if row is None:
            logger.info(f"Rejected order for unknown or inactive tier {tier_id}")
            raise InvalidTierException(tier_id)

        return CatalogSnapshot.from_dict(row, currency=self.currency)

    async def list_active_tiers(self, uow: UnitOfWork) -> list[CatalogSnapshot]:
        rows = await self.catalog_repo.list_active_tiers(uow.session)
        return [CatalogSnapshot.from_dict(row, currency=self.currency) for row in rows]
