"""
Base payment gateway client.

Every gateway client exposes the same operations (authenticate, initiate,
capture, refund, webhook signature check) and returns the tagged result
variants from ``app.services.payments.results``. Each remote call is
bounded by ``timeout`` seconds; exceeding it raises
``GatewayTimeoutException``.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Mapping, Optional, TypeVar

from app.domain.enums import PaymentMethod
from app.domain.value_objects.money import Money
from app.services.payments.results import CaptureResult, PaymentInitiation, RefundResult
from app.utils.error_handler import GatewayTimeoutException

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PaymentGatewayClient(ABC):
    """
    Abstract gateway client.

    Subclasses set ``name`` and ``method`` and implement the operations.
    """

    name: str = "gateway"
    method: PaymentMethod

    def __init__(self, timeout: float = 15.0):
        self.timeout = timeout

    async def initialize(self) -> None:
        """Open transport resources. Default: nothing to open."""

    async def close(self) -> None:
        """Release transport resources. Default: nothing to release."""

    async def _bounded(self, awaitable: Awaitable[T], operation: str) -> T:
        """
        Await ``awaitable`` for at most ``timeout`` seconds.

        Raises:
            GatewayTimeoutException: If the gateway did not answer in time
        """
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.warning(f"{self.name} '{operation}' timed out after {self.timeout}s")
            raise GatewayTimeoutException(self.name, operation, self.timeout) from e

    @abstractmethod
    async def authenticate(self) -> str:
        """Return a valid credential for the gateway API."""

    @abstractmethod
    async def initiate_payment(self, amount: Money, reference: str, description: str) -> PaymentInitiation:
        """Open a payment for ``amount`` tagged with the order ``reference``."""

    @abstractmethod
    async def capture_payment(self, gateway_order_id: str) -> CaptureResult:
        """Capture (or read the final state of) a previously initiated payment."""

    @abstractmethod
    async def refund_payment(self, gateway_reference: str, amount: Optional[Money] = None) -> RefundResult:
        """Refund a settled payment, fully when ``amount`` is None."""

    @abstractmethod
    async def verify_webhook_signature(
        self, headers: Mapping[str, str], raw_body: bytes, secret: Optional[str] = None
    ) -> bool:
        """Check that a webhook delivery really comes from the gateway."""
