"""
OrderPlacementService - Main coordinator for order intake (SOLID compliant).

This orchestrator follows:
- SRP: Only coordinates the placement flow
- DIP: Depends on the catalog/customer/ledger abstractions

Flow of one placement, inside a single unit of work:
Catalog Reader -> Customer Registry -> Order Ledger (initial status).
Gateway calls never run inside that unit.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Mapping, Optional, Sequence

from app.db.transaction import TransactionCoordinator, UnitOfWork
from app.domain.enums import OrderStatus, PaymentMethod, PaymentStatus
from app.domain.models import CustomerDomain, OrderDomain
from app.services.orders.interfaces import ICatalogReader, ICustomerRegistry, INotificationSender, IOrderLedger
from app.services.payments.gateways.base import PaymentGatewayClient
from app.services.payments.results import PaymentInitiation
from app.utils.error_handler import (
    AppException,
    ConfigurationException,
    InvalidTransitionException,
    ValidationException,
    create_error_response,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CustomerDetails:
    name: str
    email: str
    website: str = ""
    phone: Optional[str] = None


@dataclass(frozen=True)
class CartItem:
    tier_id: str
    requirements: str = ""
    quantity: int = 1


@dataclass
class CheckoutResult:
    """Orders placed by one checkout plus the payments opened for them."""

    orders: list[OrderDomain]
    customer: CustomerDomain
    payments: list[PaymentInitiation] = field(default_factory=list)
    payment_error: Optional[dict[str, Any]] = None

    def to_dict(self) -> dict[str, Any]:
        total = sum((order.total_amount.amount for order in self.orders), Decimal("0"))
        return {
            "orders": [order.to_dict() for order in self.orders],
            "customer": self.customer.to_dict(),
            "order_count": len(self.orders),
            "total_amount": str(total),
            "payments": [payment.to_dict() for payment in self.payments],
            "payment_error": self.payment_error,
        }


class OrderPlacementService:
    """
    Orchestrates order placement and payment initiation.

    Each service has a single responsibility and is injected via constructor.
    """

    def __init__(
        self,
        coordinator: TransactionCoordinator,
        catalog_reader: ICatalogReader,
        customer_registry: ICustomerRegistry,
        order_ledger: IOrderLedger,
        notifier: INotificationSender,
        gateways: Mapping[PaymentMethod, PaymentGatewayClient],
    ):
        """
        Initialize orchestrator with service dependencies (DIP).

        Args:
            coordinator: Opens the unit of work for each placement
            catalog_reader: Resolves tiers to price snapshots
            customer_registry: Upserts the customer by email
            order_ledger: Creates and loads orders
            notifier: Receives post-commit order notifications
            gateways: Configured gateway clients by payment method
        """
        self.coordinator = coordinator
        self.catalog_reader = catalog_reader
        self.customer_registry = customer_registry
        self.order_ledger = order_ledger
        self.notifier = notifier
        self.gateways = dict(gateways)

    async def place_order(
        self, customer: CustomerDetails, tier_id: str, requirements: str, quantity: int = 1
    ) -> OrderDomain:
        """
        Place a single order.

        Returns:
            OrderDomain: The pending order

        Raises:
            InvalidTierException: If the tier is unknown or inactive (nothing is written)
            InvalidQuantityException: If quantity is out of range (nothing is written)
            ValidationException: If the customer details are invalid
        """
        orders, _ = await self._place(customer, [CartItem(tier_id, requirements, quantity)], "place_order")
        return orders[0]

    async def place_cart(self, customer: CustomerDetails, items: Sequence[CartItem]) -> list[OrderDomain]:
        """Place one order per cart item; all of them or none."""
        orders, _ = await self._place(customer, items, "place_cart")
        return orders

    async def checkout(
        self, customer: CustomerDetails, items: Sequence[CartItem], method: Optional[PaymentMethod] = None
    ) -> CheckoutResult:
        """
        Place the cart and open one gateway payment per order.

        Orders stay committed when payment initiation fails; the error is
        returned so the client can retry the payment for the same orders.
        """
        orders, customer_domain = await self._place(customer, items, "checkout")
        result = CheckoutResult(orders=orders, customer=customer_domain)

        if method is None:
            return result

        try:
            for order in orders:
                result.payments.append(await self.initiate_payment(order.id, method))
        except AppException as e:
            logger.error(f"Payment initiation failed after placing {[o.tracking_code for o in orders]}: {e}")
            result.payment_error = create_error_response(e)

        return result

    async def initiate_payment(self, order_id: int, method: PaymentMethod) -> PaymentInitiation:
        """
        Open a payment on the gateway for a pending, unpaid order.

        The order is read in a short transaction; the gateway call runs
        outside of it.

        Raises:
            OrderNotFoundException: If the order does not exist
            InvalidTransitionException: If the order is already terminal
            ValidationException: If the order is already paid or refunded
            ConfigurationException: If the gateway is not configured
            GatewayException: If the gateway rejects the request
        """
        method = PaymentMethod(method)
        gateway = self.gateways.get(method)
        if gateway is None:
            raise ConfigurationException(f"Payment method {method.value} is not configured", setting="gateways")

        async with self.coordinator.transaction("load_order_for_payment") as uow:
            order = await self.order_ledger.get_order(uow, order_id)

        if order.is_terminal:
            raise InvalidTransitionException(order.id, order.status.value, OrderStatus.CONFIRMED.value)
        if order.payment_status in (PaymentStatus.PAID, PaymentStatus.REFUNDED):
            raise ValidationException(
                message=f"Order {order.tracking_code} is already {order.payment_status.value}",
                field="payment_status",
                invalid_value=order.payment_status.value,
            )

        initiation = await gateway.initiate_payment(order.total_amount, order.tracking_code, order.payment_description)
        logger.info(
            f"Payment opened for {order.tracking_code} via {method.value}: {initiation.gateway_order_id}"
        )
        return initiation

    async def _place(
        self, customer: CustomerDetails, items: Sequence[CartItem], operation: str
    ) -> tuple[list[OrderDomain], CustomerDomain]:
        if not items:
            raise ValidationException(message="At least one item is required", field="items", invalid_value=[])

        async with self.coordinator.transaction(operation) as uow:
            customer_id = await self.customer_registry.upsert_customer(
                uow, customer.name, customer.email, customer.website, customer.phone
            )
            orders = [await self._create_one(uow, customer_id, item) for item in items]
            customer_domain = await self.customer_registry.get_customer(uow, customer_id)

            for order in orders:
                uow.add_post_commit_hook(
                    self._created_hook(order, customer_domain), name=f"notify_order_created:{order.tracking_code}"
                )

        logger.info(
            f"{operation}: {len(orders)} order(s) for {customer_domain.email}: "
            f"{', '.join(order.tracking_code for order in orders)}"
        )
        return orders, customer_domain

    async def _create_one(self, uow: UnitOfWork, customer_id: int, item: CartItem) -> OrderDomain:
        snapshot = await self.catalog_reader.resolve_tier(uow, item.tier_id)
        return await self.order_ledger.create_order(uow, customer_id, snapshot, item.requirements, item.quantity)

    def _created_hook(self, order: OrderDomain, customer: CustomerDomain):
        async def hook():
            await self.notifier.notify_order_created(order, customer)

        return hook


def create_placement_service(
    coordinator: TransactionCoordinator,
    catalog_reader: ICatalogReader,
    customer_registry: ICustomerRegistry,
    order_ledger: IOrderLedger,
    notifier: INotificationSender,
    gateways: Mapping[PaymentMethod, PaymentGatewayClient],
) -> OrderPlacementService:
    """Factory function to create the placement service with its dependencies."""
    return OrderPlacementService(
        coordinator=coordinator,
        catalog_reader=catalog_reader,
        customer_registry=customer_registry,
        order_ledger=order_ledger,
        notifier=notifier,
        gateways=gateways,
    )
