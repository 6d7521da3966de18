"""
Endpoints para webhooks de pasarelas de pago.

La firma se verifica sobre el cuerpo crudo, por eso estos endpoints leen
``request.body()`` en lugar de declarar un modelo Pydantic.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request, status

from app.api.v1.dependencies import get_container
from app.core.container import Container

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/paypal", status_code=status.HTTP_200_OK)
async def receive_paypal_webhook(request: Request, container: Container = Depends(get_container)) -> Dict[str, Any]:
    """
    Recibe eventos de captura de PayPal.

    Args:
        request: Request HTTP con el webhook

    Returns:
        Dict con el resultado (``processed`` o ``ignored``)
    """
    raw_body = await request.body()
    return await container.webhooks.handle_paypal(request.headers, raw_body)


@router.post("/stripe", status_code=status.HTTP_200_OK)
async def receive_stripe_webhook(request: Request, container: Container = Depends(get_container)) -> Dict[str, Any]:
    """Recibe eventos de PaymentIntent de Stripe."""
    raw_body = await request.body()
    return await container.webhooks.handle_stripe(request.headers, raw_body)
