"""
Endpoints del catálogo de servicios.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends

from app.api.v1.dependencies import get_container
from app.core.container import Container

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/tiers", summary="List active service tiers")
async def list_tiers(container: Container = Depends(get_container)) -> Dict[str, Any]:
    """
    Lista los tiers activos con su precio actual.

    Returns:
        Dict con los tiers y timestamp
    """
    async with container.coordinator.transaction("list_active_tiers") as uow:
        tiers = await container.catalog_reader.list_active_tiers(uow)

    return {
        "tiers": [tier.to_dict() for tier in tiers],
        "count": len(tiers),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
