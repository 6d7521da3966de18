"""
Tests de integración del ciclo de vida de pedidos: creación con precio
congelado, códigos de seguimiento, carrito atómico y transiciones de estado.
"""

import asyncio
import re
from datetime import UTC, datetime
from decimal import Decimal

import pytest
import sqlalchemy as sa
from support import BASIC_TIER, ORPHAN_TIER, PRO_TIER, RETIRED_TIER, count_rows, customer_details

from app.db.schema import customers, order_status_history, orders, service_tiers
from app.domain.enums import OrderStatus, PaymentMethod, PaymentStatus
from app.domain.value_objects import business_today
from app.services.orders.managers.order_ledger import ORDER_CREATED_NOTE
from app.services.orders.orchestrator import CartItem
from app.utils.error_handler import (
    InvalidQuantityException,
    InvalidTierException,
    InvalidTransitionException,
    OrderNotFoundException,
    ValidationException,
)

pytestmark = pytest.mark.integration

TRACKING_RE = re.compile(r"^SEO-\d{8}-\d{4}$")


def pin_clock(container, when: datetime) -> None:
    container.placement.order_ledger.clock = lambda: when


class TestPlaceOrder:
    """Creación de un pedido individual."""

    @pytest.mark.asyncio
    async def test_order_snapshots_catalog_price(self, container, database):
        """El pedido copia precio, nombres y duración del tier activo."""
        order = await container.placement.place_order(customer_details(), PRO_TIER, "example.com, 20 keywords")

        assert order.id is not None
        assert order.service_name == "SEO Audit"
        assert order.service_tier_name == "Pro"
        assert order.service_price.amount == Decimal("450.00")
        assert order.total_amount.amount == Decimal("450.00")
        assert order.delivery_days == 7
        assert order.status == OrderStatus.PENDING
        assert order.payment_status == PaymentStatus.PENDING

        details = await container.admin.get_order_details(order.id)
        assert [entry["status"] for entry in details["status_history"]] == ["pending"]
        assert details["status_history"][0]["notes"] == ORDER_CREATED_NOTE
        assert details["status_history"][0]["changed_by"] is None
        assert details["order"]["total_amount"] == "450.00"

    @pytest.mark.asyncio
    async def test_tracking_code_uses_business_date(self, container):
        """El código tiene formato PREFIX-YYYYMMDD-NNNN con la fecha de negocio."""
        order = await container.placement.place_order(customer_details(), PRO_TIER, "")

        assert TRACKING_RE.match(order.tracking_code)
        assert order.tracking_code.startswith(f"SEO-{business_today('UTC'):%Y%m%d}-")

    @pytest.mark.asyncio
    async def test_sequence_is_per_day(self, container):
        """La secuencia sube dentro del día y se reinicia al día siguiente."""
        pin_clock(container, datetime(2025, 1, 31, 12, 0, tzinfo=UTC))
        first = await container.placement.place_order(customer_details(), PRO_TIER, "")
        second = await container.placement.place_order(customer_details(), PRO_TIER, "")

        pin_clock(container, datetime(2025, 2, 1, 0, 5, tzinfo=UTC))
        next_day = await container.placement.place_order(customer_details(), PRO_TIER, "")

        assert first.tracking_code == "SEO-20250131-0001"
        assert second.tracking_code == "SEO-20250131-0002"
        assert next_day.tracking_code == "SEO-20250201-0001"

    @pytest.mark.asyncio
    async def test_concurrent_placements_get_distinct_codes(self, container, database):
        """Pedidos concurrentes nunca comparten código de seguimiento."""
        placed = await asyncio.gather(
            *[container.placement.place_order(customer_details(f"c{i}@example.com"), PRO_TIER, "") for i in range(5)]
        )

        codes = {order.tracking_code for order in placed}
        assert len(codes) == 5
        assert await count_rows(database, orders) == 5

    @pytest.mark.asyncio
    async def test_price_change_does_not_touch_existing_orders(self, container, database):
        """Cambiar el precio del catálogo no altera pedidos existentes."""
        before = await container.placement.place_order(customer_details(), PRO_TIER, "")

        async with database.engine.begin() as conn:
            await conn.execute(
                sa.update(service_tiers).where(service_tiers.c.id == PRO_TIER).values(price=Decimal("500.00"))
            )

        after = await container.placement.place_order(customer_details(), PRO_TIER, "")
        details = await container.admin.get_order_details(before.id)

        assert details["order"]["service_price"] == "450.00"
        assert details["order"]["total_amount"] == "450.00"
        assert after.total_amount.amount == Decimal("500.00")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("tier_id", ["does-not-exist", RETIRED_TIER, ORPHAN_TIER, ""])
    async def test_invalid_tier_writes_nothing(self, container, database, notifier, tier_id):
        """Un tier inexistente o inactivo no deja pedido ni cliente."""
        with pytest.raises(InvalidTierException):
            await container.placement.place_order(customer_details(), tier_id, "")

        assert await count_rows(database, orders) == 0
        assert await count_rows(database, customers) == 0
        assert await count_rows(database, order_status_history) == 0
        notifier.notify_order_created.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("quantity", [0, -1, 101])
    async def test_quantity_out_of_range(self, container, database, quantity):
        with pytest.raises(InvalidQuantityException):
            await container.placement.place_order(customer_details(), PRO_TIER, "", quantity=quantity)
        assert await count_rows(database, orders) == 0

    @pytest.mark.asyncio
    async def test_maximum_quantity(self, container):
        """La cantidad máxima se acepta y el total es precio por cantidad."""
        order = await container.placement.place_order(customer_details(), PRO_TIER, "", quantity=100)
        assert order.total_amount.amount == Decimal("45000.00")

    @pytest.mark.asyncio
    async def test_invalid_email(self, container, database):
        with pytest.raises(ValidationException) as exc_info:
            await container.placement.place_order(customer_details(email="not-an-email"), PRO_TIER, "")
        assert exc_info.value.field == "email"
        assert await count_rows(database, customers) == 0


class TestCustomerUpsert:
    """Resolución de clientes por email normalizado."""

    @pytest.mark.asyncio
    async def test_same_email_reuses_customer(self, container, database):
        """El email se normaliza y el perfil se actualiza con los datos nuevos."""
        first = await container.placement.place_order(customer_details(email="  Ana@Example.COM "), PRO_TIER, "")
        second = await container.placement.place_order(
            customer_details(email="ana@example.com", name="Ana M. Mora"), BASIC_TIER, ""
        )

        assert first.customer_id == second.customer_id
        assert await count_rows(database, customers) == 1

        details = await container.admin.get_order_details(second.id)
        assert details["customer"]["email"] == "ana@example.com"
        assert details["customer"]["name"] == "Ana M. Mora"


class TestCart:
    """Carritos con varios ítems."""

    @pytest.mark.asyncio
    async def test_cart_creates_one_order_per_item(self, container):
        pin_clock(container, datetime(2025, 1, 31, 12, 0, tzinfo=UTC))
        placed = await container.placement.place_cart(
            customer_details(), [CartItem(PRO_TIER, "site A"), CartItem(BASIC_TIER, "site B", quantity=2)]
        )

        assert [order.tracking_code for order in placed] == ["SEO-20250131-0001", "SEO-20250131-0002"]
        assert [order.total_amount.amount for order in placed] == [Decimal("450.00"), Decimal("300.00")]
        assert len({order.customer_id for order in placed}) == 1

    @pytest.mark.asyncio
    async def test_cart_is_all_or_nothing(self, container, database, notifier):
        """Un ítem inválido revierte todo el carrito."""
        with pytest.raises(InvalidTierException):
            await container.placement.place_cart(
                customer_details(), [CartItem(PRO_TIER), CartItem(BASIC_TIER), CartItem(RETIRED_TIER)]
            )

        assert await count_rows(database, orders) == 0
        assert await count_rows(database, customers) == 0
        notifier.notify_order_created.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_cart(self, container):
        with pytest.raises(ValidationException):
            await container.placement.place_cart(customer_details(), [])


class TestCheckout:
    """Checkout: pedidos más apertura de pagos."""

    @pytest.mark.asyncio
    async def test_checkout_opens_one_payment_per_order(self, container, gateway):
        result = await container.placement.checkout(
            customer_details(), [CartItem(PRO_TIER), CartItem(BASIC_TIER)], PaymentMethod.PAYPAL
        )

        assert len(result.payments) == 2
        assert [reference for reference, _ in gateway.initiated] == [order.tracking_code for order in result.orders]
        assert result.payment_error is None
        assert result.to_dict()["total_amount"] == "600.00"

    @pytest.mark.asyncio
    async def test_unconfigured_method_keeps_orders(self, container, database):
        """Si el pago no se puede abrir, los pedidos quedan creados y se informa el error."""
        result = await container.placement.checkout(customer_details(), [CartItem(PRO_TIER)], PaymentMethod.STRIPE)

        assert result.payments == []
        assert result.payment_error["error_code"] == "CONFIGURATION_ERROR"
        assert "traceback" not in result.payment_error
        assert await count_rows(database, orders) == 1

    @pytest.mark.asyncio
    async def test_checkout_without_method(self, container, gateway):
        result = await container.placement.checkout(customer_details(), [CartItem(PRO_TIER)])
        assert result.payments == []
        assert gateway.initiated == []


class TestNotifications:
    """Notificaciones posteriores al commit."""

    @pytest.mark.asyncio
    async def test_order_created_notified_after_commit(self, container, notifier):
        order = await container.placement.place_order(customer_details(), PRO_TIER, "")

        notifier.notify_order_created.assert_awaited_once()
        notified_order, notified_customer = notifier.notify_order_created.await_args.args
        assert notified_order.tracking_code == order.tracking_code
        assert notified_customer.email == "ana@example.com"

    @pytest.mark.asyncio
    async def test_notification_failure_does_not_fail_placement(self, container, database, notifier):
        """Un fallo del notificador no revierte ni propaga."""
        notifier.notify_order_created.side_effect = ConnectionError("smtp unreachable")

        order = await container.placement.place_order(customer_details(), PRO_TIER, "")

        assert order.id is not None
        assert await count_rows(database, orders) == 1


class TestStatusTransitions:
    """Máquina de estados sobre pedidos persistidos."""

    @pytest.mark.asyncio
    async def test_full_lifecycle_appends_history(self, container, notifier):
        order = await container.placement.place_order(customer_details(), PRO_TIER, "")

        for status in (OrderStatus.CONFIRMED, OrderStatus.IN_PROGRESS, OrderStatus.COMPLETED):
            updated = await container.admin.update_status(order.id, status, note=f"to {status.value}", actor_id="admin-1")
            assert updated.status == status

        details = await container.admin.get_order_details(order.id)
        history = details["status_history"]
        assert [entry["status"] for entry in history] == ["completed", "in_progress", "confirmed", "pending"]
        assert history[0]["changed_by"] == "admin-1"
        assert history[0]["notes"] == "to completed"
        assert details["order"]["status"] == history[0]["status"]
        assert notifier.notify_status_changed.await_count == 3

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "path,illegal",
        [
            ([], OrderStatus.COMPLETED),
            ([], OrderStatus.IN_PROGRESS),
            ([], OrderStatus.PENDING),
            ([OrderStatus.CONFIRMED, OrderStatus.IN_PROGRESS], OrderStatus.CANCELLED),
            ([OrderStatus.CANCELLED], OrderStatus.CONFIRMED),
            ([OrderStatus.CONFIRMED, OrderStatus.COMPLETED], OrderStatus.CANCELLED),
        ],
    )
    async def test_illegal_transition_changes_nothing(self, container, database, path, illegal):
        """Una transición ilegal se rechaza sin tocar estado ni historial."""
        order = await container.placement.place_order(customer_details(), PRO_TIER, "")
        for status in path:
            await container.admin.update_status(order.id, status)

        with pytest.raises(InvalidTransitionException) as exc_info:
            await container.admin.update_status(order.id, illegal)

        assert exc_info.value.status_code == 409
        details = await container.admin.get_order_details(order.id)
        expected = path[-1].value if path else "pending"
        assert details["order"]["status"] == expected
        assert len(details["status_history"]) == len(path) + 1

    @pytest.mark.asyncio
    async def test_confirmed_can_complete_directly(self, container):
        order = await container.placement.place_order(customer_details(), PRO_TIER, "")
        await container.admin.update_status(order.id, OrderStatus.CONFIRMED)
        completed = await container.admin.update_status(order.id, OrderStatus.COMPLETED)
        assert completed.status == OrderStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_unknown_order(self, container):
        with pytest.raises(OrderNotFoundException):
            await container.admin.update_status(999, OrderStatus.CONFIRMED)
