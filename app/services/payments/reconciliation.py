"""
PaymentReconciliationEngine - matches gateway settlements to orders.

Two paths feed the engine: the synchronous capture issued right after the
customer approves a payment, and asynchronous gateway webhooks that may
arrive before, after or repeatedly alongside it. Both end in
``reconcile_capture``, which commits the payment record, the order's
payment status and the ``confirmed`` transition as one unit of work.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

from app.core.logging_config import LogContext
from app.db.repositories import OrderRepository, PaymentRepository
from app.db.transaction import TransactionCoordinator, UnitOfWork
from app.domain.enums import OrderStatus, PaymentMethod, PaymentStatus
from app.domain.models import OrderDomain
from app.domain.value_objects import Money
from app.services.orders.interfaces import (
    ICustomerRegistry,
    INotificationSender,
    IOrderLedger,
    IStatusStateMachine,
)
from app.services.payments.gateways.base import PaymentGatewayClient
from app.services.payments.results import (
    CaptureFailed,
    CapturePending,
    CaptureResult,
    CaptureSucceeded,
    ReconciliationOutcome,
    ReconciliationResult,
)
from app.utils.error_handler import (
    AmountMismatchException,
    AppException,
    ConfigurationException,
    PaymentAlreadySettledException,
    ReconciliationFailedException,
    ValidationException,
)

logger = logging.getLogger(__name__)

PAYMENT_CONFIRMED_NOTE = "Payment received and confirmed"

SETTLED_STATUSES = (PaymentStatus.PAID, PaymentStatus.REFUNDED)


class PaymentReconciliationEngine:
    """
    Reconciles gateway capture results with local orders.

    Every call opens its own transaction and locks the order row first, so
    two deliveries for the same order serialize and the second one takes
    the duplicate branch.
    """

    def __init__(
        self,
        coordinator: TransactionCoordinator,
        order_ledger: IOrderLedger,
        state_machine: IStatusStateMachine,
        customer_registry: ICustomerRegistry,
        payment_repo: PaymentRepository,
        order_repo: OrderRepository,
        notifier: INotificationSender,
        gateways: Mapping[PaymentMethod, PaymentGatewayClient],
        amount_tolerance: Decimal = Decimal("0.01"),
    ):
        """
        Initialize with SOLID dependencies (DIP).

        Args:
            coordinator: Opens one unit of work per reconciliation
            order_ledger: Loads and locks orders
            state_machine: Drives the ``pending -> confirmed`` transition
            customer_registry: Loads the customer for the confirmation email
            payment_repo: Payment records
            order_repo: Order payment status updates
            notifier: Receives the post-commit confirmation
            gateways: Configured gateway clients by payment method
            amount_tolerance: Allowed difference between gateway and order amounts
        """
        self.coordinator = coordinator
        self.order_ledger = order_ledger
        self.state_machine = state_machine
        self.customer_registry = customer_registry
        self.payment_repo = payment_repo
        self.order_repo = order_repo
        self.notifier = notifier
        self.gateways = dict(gateways)
        self.amount_tolerance = amount_tolerance

    async def reconcile(
        self,
        order_id: int,
        gateway_reference: str,
        gateway_amount: Decimal | str,
        gateway_currency: str,
        raw_payload: Dict[str, Any],
        method: PaymentMethod,
        payer_id: Optional[str] = None,
    ) -> ReconciliationResult:
        """
        Reconcile a successful gateway settlement with an order.

        Args:
            order_id: Local order ID
            gateway_reference: Gateway transaction identifier (capture / intent ID)
            gateway_amount: Amount the gateway reports as settled
            gateway_currency: ISO currency of ``gateway_amount``
            raw_payload: Gateway payload kept verbatim on the payment row
            method: Gateway that settled the payment
            payer_id: External payer identifier, if any

        Returns:
            ReconciliationResult: ``SETTLED`` or ``DUPLICATE``

        Raises:
            OrderNotFoundException: If the order does not exist
            AmountMismatchException: If amount or currency differ from the order total
            PaymentAlreadySettledException: If another payment already settled the order
            InvalidTransitionException: If the order was cancelled
            ReconciliationFailedException: For any unexpected failure (rolled back)
        """
        try:
            amount = Money(amount=Decimal(str(gateway_amount)), currency=gateway_currency)
        except (ValueError, ArithmeticError) as e:
            raise ValidationException(
                message=f"Invalid gateway amount: {gateway_amount} {gateway_currency}",
                field="gateway_amount",
                invalid_value=f"{gateway_amount} {gateway_currency}",
            ) from e

        capture = CaptureSucceeded(
            gateway_reference=gateway_reference,
            amount=amount,
            payer_id=payer_id,
            raw_payload=raw_payload or {},
            reported_amount=Decimal(str(gateway_amount)),
        )
        return await self.reconcile_capture(order_id, capture, method)

    async def reconcile_capture(
        self, order_id: int, capture: CaptureResult, method: PaymentMethod
    ) -> ReconciliationResult:
        """
        Apply any tagged capture result to an order in its own transaction.

        Domain errors propagate as they are; anything else is logged in
        full and surfaced as ``ReconciliationFailedException``.
        """
        method = PaymentMethod(method)
        try:
            async with self.coordinator.transaction("reconcile_payment") as uow:
                order = await self.order_ledger.get_order(uow, order_id, for_update=True)
                with LogContext(order_id=order.id, tracking_code=order.tracking_code, operation="reconcile"):
                    return await self._apply(uow, order, capture, method)
        except AppException:
            raise
        except Exception as e:
            logger.error(
                f"Unexpected failure reconciling order {order_id} "
                f"(reference={capture.gateway_reference}, method={method.value}): {e}",
                exc_info=True,
            )
            raise ReconciliationFailedException(order_id, capture.gateway_reference, e) from e

    async def capture_and_reconcile(
        self, order_id: int, gateway_order_id: str, method: PaymentMethod
    ) -> ReconciliationResult:
        """
        Capture an approved gateway payment and reconcile it.

        The order row stays locked while the gateway answers; a gateway
        timeout rolls the transaction back and surfaces as retryable.

        Raises:
            GatewayTimeoutException: If the capture call exceeded its bound
            GatewayException: If the gateway rejected the capture
        """
        method = PaymentMethod(method)
        gateway = self._gateway(method)

        try:
            async with self.coordinator.transaction("capture_payment") as uow:
                order = await self.order_ledger.get_order(uow, order_id, for_update=True)
                with LogContext(order_id=order.id, tracking_code=order.tracking_code, operation="capture"):
                    if order.payment_status in SETTLED_STATUSES:
                        logger.info(f"Order {order.tracking_code} already {order.payment_status.value}, capture skipped")
                        return self._result(order, ReconciliationOutcome.DUPLICATE)

                    capture = await gateway.capture_payment(gateway_order_id)
                    logger.info(
                        f"Capture of {gateway_order_id} for {order.tracking_code} returned {type(capture).__name__}"
                    )
                    return await self._apply(uow, order, capture, method)
        except AppException:
            raise
        except Exception as e:
            logger.error(f"Unexpected failure capturing {gateway_order_id} for order {order_id}: {e}", exc_info=True)
            raise ReconciliationFailedException(order_id, gateway_order_id, e) from e

    async def refund(self, order_id: int, actor_id: Optional[str] = None) -> ReconciliationResult:
        """
        Refund the settled payment of an order.

        Fulfilment status is left as it is; cancelling is a separate
        transition.

        Raises:
            OrderNotFoundException: If the order does not exist
            ValidationException: If the order has no paid payment
            GatewayException: If the gateway rejected the refund
        """
        async with self.coordinator.transaction("refund_payment") as uow:
            order = await self.order_ledger.get_order(uow, order_id, for_update=True)
            payment = await self.payment_repo.find_by_status(uow.session, order.id, PaymentStatus.PAID)
            if order.payment_status != PaymentStatus.PAID or payment is None:
                raise ValidationException(
                    message=f"Order {order.tracking_code} has no paid payment to refund",
                    field="payment_status",
                    invalid_value=order.payment_status.value,
                )

            gateway = self._gateway(PaymentMethod(payment["payment_method"]))
            refund = await gateway.refund_payment(payment["gateway_reference"])

            await self.payment_repo.update_status(uow.session, payment["id"], PaymentStatus.REFUNDED)
            await self.order_repo.update_payment_status(uow.session, order.id, PaymentStatus.REFUNDED)

            logger.info(
                f"Order {order.tracking_code} refunded by {actor_id or 'system'} "
                f"(payment={payment['id']}, refund={refund.refund_id}, status={refund.status})"
            )
            return ReconciliationResult(
                order_id=order.id,
                tracking_code=order.tracking_code,
                outcome=ReconciliationOutcome.REFUNDED,
                order_status=order.status,
                payment_status=PaymentStatus.REFUNDED,
                payment_id=payment["id"],
            )

    # ------------------------- Internals -------------------------

    async def _apply(
        self, uow: UnitOfWork, order: OrderDomain, capture: CaptureResult, method: PaymentMethod
    ) -> ReconciliationResult:
        if isinstance(capture, CaptureSucceeded):
            return await self._settle(uow, order, capture, method)
        if isinstance(capture, CaptureFailed):
            return await self._record_failure(uow, order, capture, method)
        if isinstance(capture, CapturePending):
            logger.info(f"Payment {capture.gateway_reference} for {order.tracking_code} still {capture.status}")
            return self._result(order, ReconciliationOutcome.PENDING)
        raise TypeError(f"Unsupported capture result: {type(capture).__name__}")

    async def _settle(
        self, uow: UnitOfWork, order: OrderDomain, capture: CaptureSucceeded, method: PaymentMethod
    ) -> ReconciliationResult:
        # sub-cent amounts cannot be stored as reported, so they never match
        exact = capture.exact_amount
        if exact != capture.amount.amount or capture.amount.differs_from(order.total_amount, self.amount_tolerance):
            logger.error(
                f"Amount mismatch for {order.tracking_code}: order {order.total_amount}, "
                f"gateway {capture.amount.currency} {exact} (reference={capture.gateway_reference})"
            )
            raise AmountMismatchException(
                order.id,
                order.total_amount.amount,
                order.currency,
                exact,
                capture.amount.currency,
            )

        existing = await self.payment_repo.find_by_reference(uow.session, order.id, capture.gateway_reference)
        if existing and PaymentStatus(existing["status"]) in SETTLED_STATUSES:
            logger.info(f"Duplicate settlement {capture.gateway_reference} for {order.tracking_code} ignored")
            return self._result(order, ReconciliationOutcome.DUPLICATE, existing["id"])

        settled = await self.payment_repo.find_by_status(uow.session, order.id, PaymentStatus.PAID)
        if settled or order.payment_status in SETTLED_STATUSES:
            settled_reference = settled["gateway_reference"] if settled else order.payment_status.value
            logger.critical(
                f"Order {order.tracking_code} already settled by {settled_reference}; "
                f"second settlement {capture.gateway_reference} needs a manual refund"
            )
            raise PaymentAlreadySettledException(order.id, settled_reference, capture.gateway_reference)

        if order.status == OrderStatus.CANCELLED:
            self.state_machine.ensure_legal(order.id, order.status, OrderStatus.CONFIRMED)

        payment_id = await self.payment_repo.insert(
            uow.session,
            order_id=order.id,
            payment_method=method,
            gateway_reference=capture.gateway_reference,
            amount=capture.amount.amount,
            currency=capture.amount.currency,
            status=PaymentStatus.PAID,
            payer_id=capture.payer_id,
            gateway_response=capture.raw_payload,
        )
        await self.order_repo.update_payment_status(uow.session, order.id, PaymentStatus.PAID)
        order.payment_status = PaymentStatus.PAID

        if order.status == OrderStatus.PENDING:
            order = await self.state_machine.apply(uow, order, OrderStatus.CONFIRMED, note=PAYMENT_CONFIRMED_NOTE)
        else:
            logger.info(f"Order {order.tracking_code} is {order.status.value}; payment recorded without transition")

        customer = await self.customer_registry.get_customer(uow, order.customer_id)
        uow.add_post_commit_hook(
            lambda: self.notifier.notify_payment_confirmed(order, customer), name="notify_payment_confirmed"
        )

        logger.info(
            f"Payment {capture.gateway_reference} settled {order.tracking_code} "
            f"({capture.amount}, method={method.value})"
        )
        return self._result(order, ReconciliationOutcome.SETTLED, payment_id)

    async def _record_failure(
        self, uow: UnitOfWork, order: OrderDomain, capture: CaptureFailed, method: PaymentMethod
    ) -> ReconciliationResult:
        if order.payment_status in SETTLED_STATUSES:
            logger.warning(
                f"Failure {capture.gateway_reference} for already {order.payment_status.value} "
                f"order {order.tracking_code} ignored"
            )
            return self._result(order, ReconciliationOutcome.DUPLICATE)

        if capture.gateway_reference:
            existing = await self.payment_repo.find_by_reference(
                uow.session, order.id, capture.gateway_reference, status=PaymentStatus.FAILED
            )
            if existing:
                logger.info(f"Failure {capture.gateway_reference} for {order.tracking_code} already recorded")
                return self._result(order, ReconciliationOutcome.DUPLICATE, existing["id"])

        amount = capture.amount or order.total_amount
        payment_id = await self.payment_repo.insert(
            uow.session,
            order_id=order.id,
            payment_method=method,
            gateway_reference=capture.gateway_reference,
            amount=amount.amount,
            currency=amount.currency,
            status=PaymentStatus.FAILED,
            payer_id=capture.payer_id,
            gateway_response=capture.raw_payload,
        )
        await self.order_repo.update_payment_status(uow.session, order.id, PaymentStatus.FAILED)
        order.payment_status = PaymentStatus.FAILED

        logger.warning(f"Payment failed for {order.tracking_code}: {capture.reason}")
        return self._result(order, ReconciliationOutcome.FAILURE_RECORDED, payment_id)

    @staticmethod
    def _result(
        order: OrderDomain, outcome: ReconciliationOutcome, payment_id: Optional[int] = None
    ) -> ReconciliationResult:
        return ReconciliationResult(
            order_id=order.id,
            tracking_code=order.tracking_code,
            outcome=outcome,
            order_status=order.status,
            payment_status=order.payment_status,
            payment_id=payment_id,
        )

    def _gateway(self, method: PaymentMethod) -> PaymentGatewayClient:
        gateway = self.gateways.get(PaymentMethod(method))
        if gateway is None:
            raise ConfigurationException(
                f"No gateway client configured for {PaymentMethod(method).value}", setting="gateways"
            )
        return gateway
