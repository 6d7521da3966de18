"""
Endpoints de pedidos y pagos del cliente.

Este módulo expone la creación de pedidos (individual y carrito), la
apertura del pago en la pasarela y la captura tras la aprobación.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, status

from app.api.v1.dependencies import get_container
from app.api.v1.schemas.order_schemas import (
    CapturePaymentRequest,
    CartCheckoutRequest,
    InitiatePaymentRequest,
    PlaceOrderRequest,
)
from app.core.container import Container
from app.services.orders.orchestrator import CartItem

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED, summary="Place an order")
async def place_order(request: PlaceOrderRequest, container: Container = Depends(get_container)) -> Dict[str, Any]:
    """
    Crea un pedido y, si se indica método de pago, abre el pago en la pasarela.

    Si la apertura del pago falla el pedido queda creado y el error se
    devuelve en ``payment_error`` para reintentar con ``/orders/{id}/payment``.
    """
    item = CartItem(tier_id=request.tier_id, requirements=request.requirements, quantity=request.quantity)
    result = await container.placement.checkout(request.customer.to_details(), [item], request.payment_method)
    return result.to_dict()


@router.post("/cart", status_code=status.HTTP_201_CREATED, summary="Checkout a cart")
async def checkout_cart(request: CartCheckoutRequest, container: Container = Depends(get_container)) -> Dict[str, Any]:
    """Crea un pedido por línea del carrito dentro de una sola transacción."""
    items = [item.to_item() for item in request.items]
    result = await container.placement.checkout(request.customer.to_details(), items, request.payment_method)
    return result.to_dict()


@router.post("/{order_id}/payment", summary="Open a gateway payment for an order")
async def initiate_payment(
    order_id: int, request: InitiatePaymentRequest, container: Container = Depends(get_container)
) -> Dict[str, Any]:
    initiation = await container.placement.initiate_payment(order_id, request.payment_method)
    return {"order_id": order_id, "payment": initiation.to_dict()}


@router.post("/{order_id}/capture", summary="Capture an approved payment")
async def capture_payment(
    order_id: int, request: CapturePaymentRequest, container: Container = Depends(get_container)
) -> Dict[str, Any]:
    """
    Captura el pago aprobado por el cliente y lo concilia con el pedido.

    Una captura repetida para un pedido ya pagado devuelve ``duplicate``
    sin volver a llamar a la pasarela.
    """
    result = await container.reconciliation.capture_and_reconcile(
        order_id, request.gateway_order_id, request.payment_method
    )
    return result.to_dict()
