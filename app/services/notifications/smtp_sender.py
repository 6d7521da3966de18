"""
SMTP notification sender over aiosmtplib.

Every public method is fire-and-forget: delivery failures are logged and
reported as ``False``, never raised into the caller.
"""

import logging
import mimetypes
from email.message import EmailMessage
from email.utils import formataddr, formatdate, make_msgid
from typing import Any, Optional

import aiofiles
import aiosmtplib

from app.domain.enums import OrderStatus
from app.domain.models import CustomerDomain, OrderDomain

logger = logging.getLogger(__name__)

STATUS_MESSAGES = {
    OrderStatus.CONFIRMED: "Your order has been confirmed and is being prepared.",
    OrderStatus.IN_PROGRESS: "Our team is actively working on your project.",
    OrderStatus.COMPLETED: "Your project has been completed. Check your email for deliverables.",
    OrderStatus.CANCELLED: "Your order has been cancelled. If you have any questions, please contact us.",
}


class SmtpNotificationSender:
    """Sends order emails through an SMTP relay."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = True,
        timeout: float = 10.0,
        from_address: str = "orders@example.com",
        from_name: str = "Order Desk",
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout
        self.from_address = from_address
        self.from_name = from_name

    # ------------------------- Notifications -------------------------

    async def notify_order_created(self, order: OrderDomain, customer: CustomerDomain) -> bool:
        body = (
            f"Hi {customer.name},\n\n"
            f"Thank you for your order. Your tracking code is {order.tracking_code}.\n\n"
            f"Service: {order.service_name} ({order.service_tier_name})\n"
            f"Quantity: {order.quantity}\n"
            f"Total: {order.total_amount}\n"
            f"Estimated delivery: {order.delivery_days} days after payment\n"
        )
        return await self._send(customer.email, f"Order Confirmation - {order.tracking_code}", body)

    async def notify_payment_confirmed(self, order: OrderDomain, customer: CustomerDomain) -> bool:
        body = (
            f"Hi {customer.name},\n\n"
            f"We received your payment of {order.total_amount} for order {order.tracking_code}.\n"
            f"{STATUS_MESSAGES[OrderStatus.CONFIRMED]}\n"
        )
        return await self._send(customer.email, f"Payment Received - {order.tracking_code}", body)

    async def notify_status_changed(
        self, order: OrderDomain, customer: CustomerDomain, status: OrderStatus, note: Optional[str]
    ) -> bool:
        status = OrderStatus(status)
        body = f"Hi {customer.name},\n\n{STATUS_MESSAGES.get(status, f'Your order is now {status.value}.')}\n"
        if note:
            body += f"\nNote from our team: {note}\n"
        subject = f"Order Update - {order.tracking_code} - {status.value.replace('_', ' ').upper()}"
        return await self._send(customer.email, subject, body)

    async def notify_fulfilled(
        self, order: OrderDomain, customer: CustomerDomain, message: Optional[str], attachment: Any
    ) -> bool:
        body = f"Hi {customer.name},\n\nYour order {order.tracking_code} ({order.service_name}) has been delivered.\n"
        if message:
            body += f"\n{message}\n"
        return await self._send(
            customer.email, f"Order Delivered - {order.tracking_code} - {order.service_name}", body, attachment
        )

    # ------------------------- Transport -------------------------

    async def build_message(self, to: str, subject: str, body: str, attachment: Any = None) -> EmailMessage:
        message = EmailMessage()
        message["From"] = formataddr((self.from_name, self.from_address))
        message["To"] = to
        message["Subject"] = subject
        message["Date"] = formatdate(localtime=False)
        message["Message-ID"] = make_msgid()
        message.set_content(body)

        if attachment is not None:
            async with aiofiles.open(attachment.path, "rb") as f:
                data = await f.read()
            content_type = getattr(attachment, "content_type", None) or (
                mimetypes.guess_type(attachment.original_name)[0] or "application/octet-stream"
            )
            maintype, _, subtype = content_type.partition("/")
            message.add_attachment(data, maintype=maintype, subtype=subtype, filename=attachment.original_name)

        return message

    async def _send(self, to: str, subject: str, body: str, attachment: Any = None) -> bool:
        try:
            message = await self.build_message(to, subject, body, attachment)
            await aiosmtplib.send(
                message,
                hostname=self.host,
                port=self.port,
                username=self.username,
                password=self.password,
                start_tls=self.use_tls,
                timeout=self.timeout,
            )
            logger.info(f"Email '{subject}' sent to {to}")
            return True
        except Exception as e:
            logger.error(f"Failed to send email '{subject}' to {to}: {e}")
            return False
