"""
Dependencias compartidas por los endpoints de la API v1.
"""

import hmac
import logging
from typing import Optional

from fastapi import Header, Request

from app.core.config import get_settings
from app.core.container import Container
from app.utils.error_handler import ConfigurationException, UnauthorizedException

logger = logging.getLogger(__name__)


def get_container(request: Request) -> Container:
    """Contenedor construido en el lifespan."""
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise ConfigurationException("Application container is not initialized", setting="container")
    return container


async def verify_admin_access(
    x_admin_token: Optional[str] = Header(default=None),
    x_admin_id: Optional[str] = Header(default=None),
) -> Optional[str]:
    """
    Verifica el token de administración.

    Returns:
        El identificador del operador (``X-Admin-Id``), usado como actor en el historial

    Raises:
        UnauthorizedException: Si el token falta o no coincide
    """
    expected = get_settings().ADMIN_API_TOKEN
    if not expected:
        raise UnauthorizedException("Admin access is not configured")

    if not x_admin_token or not hmac.compare_digest(x_admin_token.encode(), expected.encode()):
        logger.warning(f"Rejected admin request (actor={x_admin_id or 'unknown'})")
        raise UnauthorizedException()

    return x_admin_id
