"""
Tagged result variants exchanged between gateway clients and the
reconciliation engine.

Gateway clients translate provider-specific payloads into these types,
so the engine never inspects raw JSON.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Union

from app.domain.enums import OrderStatus, PaymentMethod, PaymentStatus
from app.domain.value_objects.money import Money


@dataclass(frozen=True)
class PaymentInitiation:
    """
    A payment opened on the gateway, waiting for the customer.

    Attributes:
        gateway_order_id: Gateway-side identifier used later to capture
        approval_handle: PayPal approval URL or Stripe client secret
    """

    method: PaymentMethod
    gateway_order_id: str
    approval_handle: str | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "method": self.method.value,
            "gateway_order_id": self.gateway_order_id,
            "approval_handle": self.approval_handle,
        }


@dataclass(frozen=True)
class CaptureSucceeded:
    """
    Gateway settled the payment.

    ``amount`` is rounded to cents; ``reported_amount`` keeps the value
    exactly as the gateway sent it, when it arrived as text.
    """

    gateway_reference: str
    amount: Money
    payer_id: str | None = None
    raw_payload: dict[str, Any] = field(default_factory=dict)
    reported_amount: Decimal | None = None

    @property
    def exact_amount(self) -> Decimal:
        return self.reported_amount if self.reported_amount is not None else self.amount.amount


@dataclass(frozen=True)
class CaptureFailed:
    """Gateway denied or could not complete the payment."""

    gateway_reference: str | None
    reason: str
    raw_payload: dict[str, Any] = field(default_factory=dict)
    amount: Money | None = None
    payer_id: str | None = None


@dataclass(frozen=True)
class CapturePending:
    """Gateway accepted the payment but has not settled it yet."""

    gateway_reference: str | None
    status: str
    raw_payload: dict[str, Any] = field(default_factory=dict)


CaptureResult = Union[CaptureSucceeded, CaptureFailed, CapturePending]


@dataclass(frozen=True)
class RefundResult:
    gateway_reference: str
    refund_id: str
    status: str
    raw_payload: dict[str, Any] = field(default_factory=dict)


class ReconciliationOutcome(str, Enum):
    """What a reconciliation call did."""

    SETTLED = "settled"
    FAILURE_RECORDED = "failure_recorded"
    DUPLICATE = "duplicate"
    PENDING = "pending"
    REFUNDED = "refunded"


@dataclass(frozen=True)
class ReconciliationResult:
    order_id: int
    tracking_code: str
    outcome: ReconciliationOutcome
    order_status: OrderStatus
    payment_status: PaymentStatus
    payment_id: int | None = None

    @property
    def is_duplicate(self) -> bool:
        return self.outcome == ReconciliationOutcome.DUPLICATE

    def to_dict(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "tracking_code": self.tracking_code,
            "outcome": self.outcome.value,
            "order_status": self.order_status.value,
            "payment_status": self.payment_status.value,
            "payment_id": self.payment_id,
        }
