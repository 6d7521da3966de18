"""
Customer domain model.

Represents a customer identity keyed by normalized email.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any


def normalize_email(email: str) -> str:
    """Trim and case-fold an email address."""
    return (email or "").strip().lower()


@dataclass
class CustomerDomain:
    """
    Domain model representing a customer.

    Attributes:
        name: Customer display name
        email: Normalized email address (unique)
        website: Customer website
        phone: Optional phone number
        id: Customer ID (None for new customers)
    """

    name: str
    email: str
    website: str = ""
    phone: str | None = None
    id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        """Normalize and validate customer data after initialization."""
        self.email = normalize_email(self.email)
        self.name = (self.name or "").strip()
        self.website = (self.website or "").strip()

        if not self.email or "@" not in self.email:
            raise ValueError(f"Invalid email format: {self.email}")

        if not self.name:
            raise ValueError("Customer name is required")

    def to_dict(self) -> dict[str, Any]:
        """Convert customer to dictionary for responses."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "website": self.website,
            "phone": self.phone,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CustomerDomain":
        """Create customer from a database row."""
        return cls(
            id=data.get("id"),
            name=data.get("name", ""),
            email=data.get("email", ""),
            website=data.get("website") or "",
            phone=data.get("phone"),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )
