"""
Order domain model (Aggregate Root).

Represents an order with its denormalized catalog snapshot, status and
payment status.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from app.domain.enums import OrderStatus, PaymentStatus
from app.domain.value_objects.money import Money


@dataclass
class OrderDomain:
    """
    Domain model representing an order (Aggregate Root).

    Attributes:
        tracking_code: Customer-facing unique code (PREFIX-YYYYMMDD-NNNN)
        customer_id: Owning customer
        service_tier_id: Tier the order was placed for
        service_name: Snapshot of the parent service name
        service_tier_name: Snapshot of the tier name
        service_price: Snapshot of the unit price
        delivery_days: Snapshot of the delivery duration
        requirements: Free-text requirements (keywords, URLs...)
        quantity: Number of units ordered
        total_amount: Unit price times quantity, fixed at creation
        status: Fulfillment status
        payment_status: Payment status
        notes: Free-text notes
        id: Order ID (None for new orders)
    """

    tracking_code: str
    customer_id: int
    service_tier_id: str
    service_name: str
    service_tier_name: str
    service_price: Money
    delivery_days: int
    requirements: str
    quantity: int
    total_amount: Money
    status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    notes: str | None = None
    id: int | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        """Validate order invariants after initialization."""
        self.status = OrderStatus(self.status)
        self.payment_status = PaymentStatus(self.payment_status)

        if self.quantity < 1:
            raise ValueError(f"Quantity must be at least 1: {self.quantity}")

        if self.total_amount.currency != self.service_price.currency:
            raise ValueError("Order total and unit price must share a currency")

        if self.total_amount != self.service_price * self.quantity:
            raise ValueError(
                f"Order total {self.total_amount} does not equal {self.service_price} x {self.quantity}"
            )

    @property
    def currency(self) -> str:
        return self.total_amount.currency

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def payment_description(self) -> str:
        """Short description sent to payment gateways."""
        return f"{self.service_name} - {self.requirements[:50]}..."

    def to_dict(self) -> dict[str, Any]:
        """Convert order to a JSON-friendly dictionary."""
        return {
            "id": self.id,
            "tracking_code": self.tracking_code,
            "customer_id": self.customer_id,
            "service_tier_id": self.service_tier_id,
            "service_name": self.service_name,
            "service_tier_name": self.service_tier_name,
            "service_price": str(self.service_price.amount),
            "delivery_days": self.delivery_days,
            "requirements": self.requirements,
            "quantity": self.quantity,
            "total_amount": str(self.total_amount.amount),
            "currency": self.currency,
            "status": self.status.value,
            "payment_status": self.payment_status.value,
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OrderDomain":
        """Create order from a database row."""
        currency = data.get("currency") or "USD"
        return cls(
            id=data.get("id"),
            tracking_code=data["tracking_code"],
            customer_id=data["customer_id"],
            service_tier_id=str(data["service_tier_id"]),
            service_name=data["service_name"],
            service_tier_name=data["service_tier_name"],
            service_price=Money(amount=Decimal(str(data["service_price"])), currency=currency),
            delivery_days=int(data["delivery_days"]),
            requirements=data.get("requirements") or "",
            quantity=int(data["quantity"]),
            total_amount=Money(amount=Decimal(str(data["total_amount"])), currency=currency),
            status=data["status"],
            payment_status=data["payment_status"],
            notes=data.get("notes"),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )
