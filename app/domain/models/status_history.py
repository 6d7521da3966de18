"""
Status history entry domain model.

History entries are append-only; the newest entry always carries the
order's current status.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from app.domain.enums import OrderStatus


@dataclass(frozen=True)
class StatusHistoryEntry:
    """
    One step of an order's status trail.

    Attributes:
        order_id: Owning order
        status: Status the order entered
        notes: Optional note
        changed_by: Actor identifier, None when system-generated
    """

    order_id: int
    status: OrderStatus
    notes: str | None = None
    changed_by: str | None = None
    id: int | None = None
    created_at: datetime | None = None

    @property
    def is_system_generated(self) -> bool:
        return self.changed_by is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "status": OrderStatus(self.status).value,
            "notes": self.notes,
            "changed_by": self.changed_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StatusHistoryEntry":
        return cls(
            id=data.get("id"),
            order_id=data["order_id"],
            status=OrderStatus(data["status"]),
            notes=data.get("notes"),
            changed_by=data.get("changed_by"),
            created_at=data.get("created_at"),
        )
