"""
Catalog snapshot domain model.

A snapshot is the copy of service tier data that an order keeps at
creation time, so later catalog edits never reach existing orders.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from app.domain.value_objects.money import Money


@dataclass(frozen=True)
class CatalogSnapshot:
    """
    Immutable snapshot of an active service tier.

    Attributes:
        tier_id: Service tier identifier
        service_name: Parent service name
        tier_name: Tier name (e.g., "Basic", "Pro")
        price: Unit price
        delivery_days: Promised delivery duration in days
    """

    tier_id: str
    service_name: str
    tier_name: str
    price: Money
    delivery_days: int

    def __post_init__(self) -> None:
        if self.delivery_days < 0:
            raise ValueError(f"Delivery days cannot be negative: {self.delivery_days}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "tier_id": self.tier_id,
            "service_name": self.service_name,
            "tier_name": self.tier_name,
            "price": str(self.price.amount),
            "currency": self.price.currency,
            "delivery_days": self.delivery_days,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], currency: str = "USD") -> "CatalogSnapshot":
        """Create a snapshot from a joined tier/service row."""
        return cls(
            tier_id=str(data["tier_id"]),
            service_name=data["service_name"],
            tier_name=data["tier_name"],
            price=Money(amount=Decimal(str(data["price"])), currency=currency),
            delivery_days=int(data["delivery_days"]),
        )
