"""
Deliverable domain model: metadata of a file handed over on fulfillment.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class DeliverableDomain:
    order_id: int
    file_name: str
    file_path: str
    file_type: str
    file_size: int
    uploaded_by: str | None = None
    id: int | None = None
    created_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "file_name": self.file_name,
            "file_type": self.file_type,
            "file_size": self.file_size,
            "uploaded_by": self.uploaded_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DeliverableDomain":
        return cls(
            id=data.get("id"),
            order_id=data["order_id"],
            file_name=data["file_name"],
            file_path=data["file_path"],
            file_type=data["file_type"],
            file_size=int(data["file_size"]),
            uploaded_by=data.get("uploaded_by"),
            created_at=data.get("created_at"),
        )
