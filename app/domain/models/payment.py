"""
Payment domain model.

One order may accumulate several payment attempts; at most one of them
reaches ``paid``.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from app.domain.enums import PaymentMethod, PaymentStatus
from app.domain.value_objects.money import Money


@dataclass
class PaymentDomain:
    """
    Domain model representing a payment attempt.

    Attributes:
        order_id: Owning order
        payment_method: Gateway used
        gateway_reference: External transaction identifier
        amount: Amount reported by the gateway
        status: Attempt status (paid, failed or refunded)
        payer_id: External payer identifier, when the gateway reports one
        gateway_response: Raw gateway payload kept for audit
    """

    order_id: int
    payment_method: PaymentMethod
    gateway_reference: str | None
    amount: Money
    status: PaymentStatus
    payer_id: str | None = None
    gateway_response: dict[str, Any] | None = None
    id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        self.payment_method = PaymentMethod(self.payment_method)
        self.status = PaymentStatus(self.status)

    @property
    def is_paid(self) -> bool:
        return self.status == PaymentStatus.PAID

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "payment_method": self.payment_method.value,
            "gateway_reference": self.gateway_reference,
            "payer_id": self.payer_id,
            "amount": str(self.amount.amount),
            "currency": self.amount.currency,
            "status": self.status.value,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PaymentDomain":
        return cls(
            id=data.get("id"),
            order_id=data["order_id"],
            payment_method=data["payment_method"],
            gateway_reference=data.get("gateway_reference"),
            payer_id=data.get("payer_id"),
            amount=Money(amount=Decimal(str(data["amount"])), currency=data.get("currency") or "USD"),
            status=data["status"],
            gateway_response=data.get("gateway_response"),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )
