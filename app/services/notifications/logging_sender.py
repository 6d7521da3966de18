"""Notification sender used when SMTP is disabled."""

import logging
from typing import Any, Optional

from app.domain.enums import OrderStatus
from app.domain.models import CustomerDomain, OrderDomain

logger = logging.getLogger(__name__)


class LoggingNotificationSender:
    """Writes each notification to the log instead of sending it."""

    async def notify_order_created(self, order: OrderDomain, customer: CustomerDomain) -> bool:
        logger.info(f"[notification] order created {order.tracking_code} -> {customer.email}")
        return True

    async def notify_payment_confirmed(self, order: OrderDomain, customer: CustomerDomain) -> bool:
        logger.info(f"[notification] payment confirmed {order.tracking_code} -> {customer.email}")
        return True

    async def notify_status_changed(
        self, order: OrderDomain, customer: CustomerDomain, status: OrderStatus, note: Optional[str]
    ) -> bool:
        logger.info(
            f"[notification] {order.tracking_code} is now {OrderStatus(status).value} -> {customer.email}"
            + (f" ({note})" if note else "")
        )
        return True

    async def notify_fulfilled(
        self, order: OrderDomain, customer: CustomerDomain, message: Optional[str], attachment: Any
    ) -> bool:
        name = getattr(attachment, "original_name", None)
        logger.info(f"[notification] {order.tracking_code} delivered -> {customer.email} (attachment={name})")
        return True
