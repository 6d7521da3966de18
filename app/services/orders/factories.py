"""
OrderFactory - Factory pattern for creating domain objects (OCP).

This factory encapsulates object creation logic, making it easier
to modify without changing client code.
"""

from app.domain.enums import OrderStatus, PaymentStatus
from app.domain.models import CatalogSnapshot, OrderDomain


class OrderFactory:
    """Factory for creating domain objects with proper defaults."""

    @staticmethod
    def create_order(
        tracking_code: str,
        customer_id: int,
        snapshot: CatalogSnapshot,
        requirements: str,
        quantity: int,
    ) -> OrderDomain:
        """
        Create a new pending OrderDomain from a catalog snapshot.

        The snapshot fields are copied verbatim and the total is fixed
        here as unit price times quantity.

        Args:
            tracking_code: Generated tracking code
            customer_id: Owning customer ID
            snapshot: Catalog data at creation time
            requirements: Free-text requirements
            quantity: Units ordered

        Returns:
            OrderDomain: Unsaved order (id is None)
        """
        return OrderDomain(
            tracking_code=tracking_code,
            customer_id=customer_id,
            service_tier_id=snapshot.tier_id,
            service_name=snapshot.service_name,
            service_tier_name=snapshot.tier_name,
            service_price=snapshot.price,
            delivery_days=snapshot.delivery_days,
            requirements=requirements,
            quantity=quantity,
            total_amount=snapshot.price * quantity,
            status=OrderStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
        )

    @staticmethod
    def to_row(order: OrderDomain) -> dict:
        """Column values for inserting ``order``."""
        return {
            "tracking_code": order.tracking_code,
            "customer_id": order.customer_id,
            "service_tier_id": order.service_tier_id,
            "service_name": order.service_name,
            "service_tier_name": order.service_tier_name,
            "service_price": order.service_price.amount,
            "delivery_days": order.delivery_days,
            "requirements": order.requirements,
            "quantity": order.quantity,
            "total_amount": order.total_amount.amount,
            "currency": order.currency,
            "status": order.status,
            "payment_status": order.payment_status,
            "notes": order.notes,
        }
