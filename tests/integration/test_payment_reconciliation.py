"""
Tests de integración de la conciliación de pagos: idempotencia, montos,
concurrencia, captura síncrona, reembolsos y webhooks.
"""

import asyncio
import json
from decimal import Decimal

import pytest
from support import PRO_TIER, count_rows, customer_details, succeeded

from app.db.schema import order_status_history, payments
from app.domain.enums import OrderStatus, PaymentMethod, PaymentStatus
from app.services.payments.reconciliation import PAYMENT_CONFIRMED_NOTE
from app.services.payments.results import CaptureFailed, CapturePending, ReconciliationOutcome
from app.utils.error_handler import (
    AmountMismatchException,
    GatewayTimeoutException,
    InvalidTransitionException,
    OrderNotFoundException,
    PaymentAlreadySettledException,
    ValidationException,
    WebhookSignatureInvalidException,
)

pytestmark = pytest.mark.integration


async def place(container):
    return await container.placement.place_order(customer_details(), PRO_TIER, "example.com")


async def settle(container, order, reference="CAP-1", amount="450.00", currency="USD"):
    return await container.reconciliation.reconcile(
        order.id, reference, Decimal(amount), currency, {"id": reference}, PaymentMethod.PAYPAL
    )


def paypal_event(tracking_code, capture_id="CAP-1", event_type="PAYMENT.CAPTURE.COMPLETED", value="450.00"):
    return json.dumps(
        {
            "id": f"WH-{capture_id}",
            "event_type": event_type,
            "resource": {
                "id": capture_id,
                "status": "COMPLETED" if event_type == "PAYMENT.CAPTURE.COMPLETED" else "DECLINED",
                "custom_id": tracking_code,
                "amount": {"value": value, "currency_code": "USD"},
            },
        }
    ).encode()


class TestSettlement:
    """Conciliación de un pago exitoso."""

    @pytest.mark.asyncio
    async def test_settlement_confirms_order(self, container, database, notifier):
        order = await place(container)

        result = await settle(container, order)

        assert result.outcome == ReconciliationOutcome.SETTLED
        assert result.order_status == OrderStatus.CONFIRMED
        assert result.payment_status == PaymentStatus.PAID

        details = await container.admin.get_order_details(order.id)
        assert details["order"]["status"] == "confirmed"
        assert details["order"]["payment_status"] == "paid"
        assert details["status_history"][0]["notes"] == PAYMENT_CONFIRMED_NOTE
        assert details["status_history"][0]["changed_by"] is None
        assert [(p["gateway_reference"], p["status"], p["amount"]) for p in details["payments"]] == [
            ("CAP-1", "paid", "450.00")
        ]
        notifier.notify_payment_confirmed.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_replay_is_idempotent(self, container, database, notifier):
        """La misma referencia dos veces no duplica pago, historial ni notificación."""
        order = await place(container)
        await settle(container, order)

        replay = await settle(container, order)

        assert replay.outcome == ReconciliationOutcome.DUPLICATE
        assert replay.is_duplicate
        assert await count_rows(database, payments) == 1
        assert await count_rows(database, order_status_history, order_id=order.id) == 2
        notifier.notify_payment_confirmed.assert_awaited_once()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "amount,currency",
        [
            ("449.50", "USD"),
            ("450.00", "EUR"),
            ("900.00", "USD"),
            ("450.014", "USD"),
            ("449.985", "USD"),
            ("450.005", "USD"),
        ],
    )
    async def test_amount_mismatch_rolls_back(self, container, database, notifier, amount, currency):
        """Un monto o moneda distintos no registran pago ni cambian el pedido."""
        order = await place(container)

        with pytest.raises(AmountMismatchException):
            await settle(container, order, amount=amount, currency=currency)

        details = await container.admin.get_order_details(order.id)
        assert details["order"]["status"] == "pending"
        assert details["order"]["payment_status"] == "pending"
        assert await count_rows(database, payments) == 0
        notifier.notify_payment_confirmed.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_one_cent_difference_is_tolerated(self, container):
        order = await place(container)
        result = await settle(container, order, amount="450.01")
        assert result.outcome == ReconciliationOutcome.SETTLED

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", ["450", "450.0", "450.000"])
    async def test_exact_amount_with_other_scale_settles(self, container, database, amount):
        """Ceros de más o de menos en los decimales no cambian el monto."""
        order = await place(container)

        result = await settle(container, order, amount=amount)

        assert result.outcome == ReconciliationOutcome.SETTLED
        details = await container.admin.get_order_details(order.id)
        assert details["payments"][0]["amount"] == "450.00"

    @pytest.mark.asyncio
    async def test_second_reference_is_rejected(self, container, database):
        """Un segundo pago con otra referencia se rechaza para reembolso manual."""
        order = await place(container)
        await settle(container, order, reference="CAP-1")

        with pytest.raises(PaymentAlreadySettledException) as exc_info:
            await settle(container, order, reference="CAP-2")

        assert exc_info.value.details["settled_reference"] == "CAP-1"
        assert await count_rows(database, payments) == 1

    @pytest.mark.asyncio
    async def test_cancelled_order_cannot_be_settled(self, container, database):
        order = await place(container)
        await container.admin.update_status(order.id, OrderStatus.CANCELLED)

        with pytest.raises(InvalidTransitionException):
            await settle(container, order)

        assert await count_rows(database, payments) == 0

    @pytest.mark.asyncio
    async def test_payment_on_confirmed_order_keeps_status(self, container, database):
        """Si el pedido ya avanzó, el pago se registra sin transición."""
        order = await place(container)
        await container.admin.update_status(order.id, OrderStatus.CONFIRMED)
        await container.admin.update_status(order.id, OrderStatus.IN_PROGRESS)

        result = await settle(container, order)

        assert result.outcome == ReconciliationOutcome.SETTLED
        assert result.order_status == OrderStatus.IN_PROGRESS
        assert await count_rows(database, order_status_history, order_id=order.id) == 3

    @pytest.mark.asyncio
    async def test_unknown_order(self, container):
        with pytest.raises(OrderNotFoundException):
            await container.reconciliation.reconcile(404, "CAP-1", "450.00", "USD", {}, PaymentMethod.PAYPAL)


class TestConcurrency:
    """Entregas simultáneas para el mismo pedido."""

    @pytest.mark.asyncio
    async def test_same_reference_settles_once(self, container, database, notifier):
        order = await place(container)

        results = await asyncio.gather(settle(container, order), settle(container, order))

        assert sorted(r.outcome.value for r in results) == ["duplicate", "settled"]
        assert await count_rows(database, payments) == 1
        assert await count_rows(database, order_status_history, order_id=order.id) == 2
        notifier.notify_payment_confirmed.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_different_references_settle_once(self, container, database):
        order = await place(container)

        results = await asyncio.gather(
            settle(container, order, reference="CAP-A"),
            settle(container, order, reference="CAP-B"),
            return_exceptions=True,
        )

        settled = [r for r in results if not isinstance(r, Exception)]
        rejected = [r for r in results if isinstance(r, Exception)]
        assert len(settled) == 1 and settled[0].outcome == ReconciliationOutcome.SETTLED
        assert len(rejected) == 1 and isinstance(rejected[0], PaymentAlreadySettledException)
        assert await count_rows(database, payments) == 1


class TestFailuresAndPending:
    """Resultados fallidos y pendientes."""

    @pytest.mark.asyncio
    async def test_failure_then_successful_retry(self, container, database):
        order = await place(container)

        failed = await container.reconciliation.reconcile_capture(
            order.id, CaptureFailed("CAP-F", "INSTRUMENT_DECLINED"), PaymentMethod.PAYPAL
        )
        assert failed.outcome == ReconciliationOutcome.FAILURE_RECORDED
        assert failed.payment_status == PaymentStatus.FAILED
        assert failed.order_status == OrderStatus.PENDING

        retried = await settle(container, order, reference="CAP-2")
        assert retried.outcome == ReconciliationOutcome.SETTLED

        details = await container.admin.get_order_details(order.id)
        assert sorted(p["status"] for p in details["payments"]) == ["failed", "paid"]
        assert details["order"]["payment_status"] == "paid"

    @pytest.mark.asyncio
    async def test_repeated_failure_is_recorded_once(self, container, database):
        order = await place(container)
        capture = CaptureFailed("CAP-F", "INSTRUMENT_DECLINED")

        await container.reconciliation.reconcile_capture(order.id, capture, PaymentMethod.PAYPAL)
        again = await container.reconciliation.reconcile_capture(order.id, capture, PaymentMethod.PAYPAL)

        assert again.outcome == ReconciliationOutcome.DUPLICATE
        assert await count_rows(database, payments) == 1

    @pytest.mark.asyncio
    async def test_late_failure_does_not_undo_payment(self, container, database):
        """Un fallo que llega después del pago no lo revierte."""
        order = await place(container)
        await settle(container, order)

        late = await container.reconciliation.reconcile_capture(
            order.id, CaptureFailed("CAP-OLD", "DECLINED"), PaymentMethod.PAYPAL
        )

        assert late.outcome == ReconciliationOutcome.DUPLICATE
        assert late.payment_status == PaymentStatus.PAID
        assert await count_rows(database, payments) == 1

    @pytest.mark.asyncio
    async def test_pending_capture_writes_nothing(self, container, database):
        order = await place(container)

        result = await container.reconciliation.reconcile_capture(
            order.id, CapturePending("CAP-P", "PENDING"), PaymentMethod.PAYPAL
        )

        assert result.outcome == ReconciliationOutcome.PENDING
        assert await count_rows(database, payments) == 0


class TestCaptureAndReconcile:
    """Captura síncrona contra la pasarela."""

    @pytest.mark.asyncio
    async def test_capture_settles_order(self, container, gateway):
        order = await place(container)
        gateway.capture_result = succeeded("CAP-9")

        result = await container.reconciliation.capture_and_reconcile(order.id, "GW-1", PaymentMethod.PAYPAL)

        assert result.outcome == ReconciliationOutcome.SETTLED
        assert gateway.captured == ["GW-1"]

    @pytest.mark.asyncio
    async def test_capture_of_paid_order_skips_gateway(self, container, gateway):
        order = await place(container)
        gateway.capture_result = succeeded("CAP-9")
        await container.reconciliation.capture_and_reconcile(order.id, "GW-1", PaymentMethod.PAYPAL)

        again = await container.reconciliation.capture_and_reconcile(order.id, "GW-1", PaymentMethod.PAYPAL)

        assert again.outcome == ReconciliationOutcome.DUPLICATE
        assert gateway.captured == ["GW-1"]

    @pytest.mark.asyncio
    async def test_capture_timeout_rolls_back(self, container, database, gateway):
        """Un timeout de la pasarela no deja rastros y es reintentable."""
        order = await place(container)
        gateway.timeout = 0.05
        gateway.capture_delay = 1.0
        gateway.capture_result = succeeded()

        with pytest.raises(GatewayTimeoutException) as exc_info:
            await container.reconciliation.capture_and_reconcile(order.id, "GW-1", PaymentMethod.PAYPAL)

        assert exc_info.value.is_retryable
        assert await count_rows(database, payments) == 0
        details = await container.admin.get_order_details(order.id)
        assert details["order"]["payment_status"] == "pending"


class TestPaymentInitiation:
    @pytest.mark.asyncio
    async def test_paid_order_cannot_open_payment(self, container):
        order = await place(container)
        await settle(container, order)

        with pytest.raises(ValidationException) as exc_info:
            await container.placement.initiate_payment(order.id, PaymentMethod.PAYPAL)
        assert exc_info.value.field == "payment_status"

    @pytest.mark.asyncio
    async def test_cancelled_order_cannot_open_payment(self, container):
        order = await place(container)
        await container.admin.update_status(order.id, OrderStatus.CANCELLED)

        with pytest.raises(InvalidTransitionException):
            await container.placement.initiate_payment(order.id, PaymentMethod.PAYPAL)

    @pytest.mark.asyncio
    async def test_payment_uses_frozen_total(self, container, gateway):
        order = await container.placement.place_order(customer_details(), PRO_TIER, "", quantity=2)

        initiation = await container.placement.initiate_payment(order.id, PaymentMethod.PAYPAL)

        assert initiation.gateway_order_id == f"GW-{order.tracking_code}"
        assert gateway.initiated == [(order.tracking_code, order.total_amount)]


class TestRefund:
    @pytest.mark.asyncio
    async def test_refund_paid_order(self, container, gateway):
        order = await place(container)
        await settle(container, order)

        result = await container.reconciliation.refund(order.id, actor_id="admin-1")

        assert result.outcome == ReconciliationOutcome.REFUNDED
        assert gateway.refunded == ["CAP-1"]
        details = await container.admin.get_order_details(order.id)
        assert details["order"]["payment_status"] == "refunded"
        assert details["order"]["status"] == "confirmed"
        assert [p["status"] for p in details["payments"]] == ["refunded"]

    @pytest.mark.asyncio
    async def test_replay_after_refund_is_duplicate(self, container):
        order = await place(container)
        await settle(container, order)
        await container.reconciliation.refund(order.id)

        replay = await settle(container, order)
        assert replay.outcome == ReconciliationOutcome.DUPLICATE
        assert replay.payment_status == PaymentStatus.REFUNDED

    @pytest.mark.asyncio
    async def test_refund_unpaid_order(self, container, gateway):
        order = await place(container)
        with pytest.raises(ValidationException):
            await container.reconciliation.refund(order.id)
        assert gateway.refunded == []


class TestWebhooks:
    """Webhooks de PayPal de punta a punta."""

    @pytest.mark.asyncio
    async def test_webhook_settles_and_replay_is_duplicate(self, container, database):
        order = await place(container)
        body = paypal_event(order.tracking_code)

        first = await container.webhooks.handle_paypal({}, body)
        replay = await container.webhooks.handle_paypal({}, body)

        assert first["status"] == "processed"
        assert first["result"]["outcome"] == "settled"
        assert replay["result"]["outcome"] == "duplicate"
        assert await count_rows(database, payments) == 1

    @pytest.mark.asyncio
    async def test_webhook_and_capture_race(self, container, database, gateway):
        """Webhook y captura síncrona de la misma referencia liquidan una sola vez."""
        order = await place(container)
        gateway.capture_result = succeeded("CAP-1")

        results = await asyncio.gather(
            container.webhooks.handle_paypal({}, paypal_event(order.tracking_code, "CAP-1")),
            container.reconciliation.capture_and_reconcile(order.id, "GW-1", PaymentMethod.PAYPAL),
        )

        outcomes = sorted([results[0]["result"]["outcome"], results[1].outcome.value])
        assert outcomes == ["duplicate", "settled"]
        assert await count_rows(database, payments) == 1

    @pytest.mark.asyncio
    async def test_unknown_tracking_code_is_ignored(self, container, database):
        result = await container.webhooks.handle_paypal({}, paypal_event("SEO-20000101-0001"))
        assert result["status"] == "ignored"
        assert await count_rows(database, payments) == 0

    @pytest.mark.asyncio
    async def test_invalid_signature_changes_nothing(self, container, database, gateway):
        order = await place(container)
        gateway.signature_valid = False

        with pytest.raises(WebhookSignatureInvalidException):
            await container.webhooks.handle_paypal({}, paypal_event(order.tracking_code))

        assert await count_rows(database, payments) == 0

    @pytest.mark.asyncio
    async def test_mismatched_webhook_amount_propagates(self, container, database):
        order = await place(container)
        with pytest.raises(AmountMismatchException):
            await container.webhooks.handle_paypal({}, paypal_event(order.tracking_code, value="1.00"))

    @pytest.mark.asyncio
    async def test_sub_cent_webhook_amount_is_a_mismatch(self, container, database):
        """Un monto con fracción de centavo no se redondea hasta coincidir."""
        order = await place(container)

        with pytest.raises(AmountMismatchException) as exc_info:
            await container.webhooks.handle_paypal({}, paypal_event(order.tracking_code, value="450.014"))

        assert exc_info.value.details["gateway_amount"] == "450.014"
        assert await count_rows(database, payments) == 0
        assert await count_rows(database, payments) == 0
