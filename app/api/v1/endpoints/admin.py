"""
Administrative endpoints for order management.

Every route requires the ``X-Admin-Token`` header. The optional
``X-Admin-Id`` header is recorded as the actor of status changes.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from app.api.v1.dependencies import get_container, verify_admin_access
from app.api.v1.schemas.order_schemas import StatusUpdateRequest
from app.core.container import Container
from app.domain.enums import OrderStatus, PaymentStatus
from app.services.orders.admin import MAX_PAGE_SIZE

logger = logging.getLogger(__name__)

# Create router
router = APIRouter()


@router.get("/orders", summary="List orders")
async def list_orders(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=MAX_PAGE_SIZE),
    status: Optional[OrderStatus] = Query(default=None),
    payment_status: Optional[PaymentStatus] = Query(default=None),
    search: Optional[str] = Query(default=None, max_length=255),
    container: Container = Depends(get_container),
    _: Optional[str] = Depends(verify_admin_access),
) -> Dict[str, Any]:
    """
    List orders newest first with optional filters.

    ``search`` matches tracking code, customer name or customer email.
    """
    return await container.admin.list_orders(
        page=page, limit=limit, status=status, payment_status=payment_status, search=search
    )


@router.get("/orders/{order_id}", summary="Get order details")
async def get_order_details(
    order_id: int,
    container: Container = Depends(get_container),
    _: Optional[str] = Depends(verify_admin_access),
) -> Dict[str, Any]:
    return await container.admin.get_order_details(order_id)


@router.put("/orders/{order_id}/status", summary="Update order status")
async def update_order_status(
    order_id: int,
    request: StatusUpdateRequest,
    container: Container = Depends(get_container),
    actor_id: Optional[str] = Depends(verify_admin_access),
) -> Dict[str, Any]:
    """
    Move an order along the status graph.

    Illegal transitions are rejected with 409 and leave the order untouched.
    """
    order = await container.admin.update_status(order_id, request.status, note=request.note, actor_id=actor_id)
    return {"success": True, "order": order.to_dict()}


@router.post("/orders/{order_id}/deliver", summary="Deliver a file and complete the order")
async def deliver_order(
    order_id: int,
    file: UploadFile = File(...),
    message: Optional[str] = Form(default=None),
    container: Container = Depends(get_container),
    actor_id: Optional[str] = Depends(verify_admin_access),
) -> Dict[str, Any]:
    """
    Upload the deliverable, complete the order and email the file to the customer.
    """
    data = await file.read()
    order = await container.fulfillment.complete_with_deliverable(
        order_id,
        data,
        file.filename or "",
        content_type=file.content_type,
        message=message,
        actor_id=actor_id,
    )
    return {"success": True, "order": order.to_dict(), "file_name": file.filename, "file_size": len(data)}


@router.post("/orders/{order_id}/refund", summary="Refund a paid order")
async def refund_order(
    order_id: int,
    container: Container = Depends(get_container),
    actor_id: Optional[str] = Depends(verify_admin_access),
) -> Dict[str, Any]:
    result = await container.reconciliation.refund(order_id, actor_id=actor_id)
    return {"success": True, "result": result.to_dict()}


@router.delete("/orders/{order_id}", summary="Delete an order")
async def delete_order(
    order_id: int,
    container: Container = Depends(get_container),
    actor_id: Optional[str] = Depends(verify_admin_access),
) -> Dict[str, Any]:
    """Delete an order with its history, payments and deliverables."""
    removed = await container.admin.delete_order(order_id)
    logger.warning(f"Order {order_id} deleted by {actor_id or 'unknown admin'}")
    return {"success": True, **removed}


@router.delete("/customers/{customer_id}", summary="Delete a customer")
async def delete_customer(
    customer_id: int,
    container: Container = Depends(get_container),
    actor_id: Optional[str] = Depends(verify_admin_access),
) -> Dict[str, Any]:
    """Delete a customer that no order references (409 otherwise)."""
    await container.admin.delete_customer(customer_id)
    logger.warning(f"Customer {customer_id} deleted by {actor_id or 'unknown admin'}")
    return {"success": True, "customer_id": customer_id}
