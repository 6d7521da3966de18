"""Tests unitarios para el grafo de estados y las invariantes del pedido."""

from decimal import Decimal

import pytest

from app.domain.enums import ALLOWED_TRANSITIONS, OrderStatus
from app.domain.models import CatalogSnapshot, OrderDomain
from app.domain.value_objects import Money
from app.services.orders.factories import OrderFactory
from app.services.orders.managers.status_state_machine import StatusStateMachine
from app.utils.error_handler import InvalidTransitionException

LEGAL = [
    (OrderStatus.PENDING, OrderStatus.CONFIRMED),
    (OrderStatus.PENDING, OrderStatus.CANCELLED),
    (OrderStatus.CONFIRMED, OrderStatus.IN_PROGRESS),
    (OrderStatus.CONFIRMED, OrderStatus.COMPLETED),
    (OrderStatus.CONFIRMED, OrderStatus.CANCELLED),
    (OrderStatus.IN_PROGRESS, OrderStatus.COMPLETED),
]


def _snapshot(price: str = "450.00") -> CatalogSnapshot:
    return CatalogSnapshot(
        tier_id="seo-audit-pro",
        service_name="SEO Audit",
        tier_name="Pro",
        price=Money(Decimal(price)),
        delivery_days=7,
    )


class TestTransitionGraph:
    """Tests para las transiciones permitidas."""

    @pytest.mark.parametrize("current,target", LEGAL)
    def test_legal_transitions(self, current, target):
        """Debe aceptar cada arista del grafo."""
        assert current.can_transition_to(target)
        StatusStateMachine.ensure_legal(1, current, target)

    def test_every_other_pair_is_illegal(self):
        """Cualquier par fuera del grafo debe rechazarse, incluido el mismo estado."""
        for current in OrderStatus:
            for target in OrderStatus:
                if (current, target) in LEGAL:
                    continue
                with pytest.raises(InvalidTransitionException):
                    StatusStateMachine.ensure_legal(1, current, target)

    def test_terminal_statuses_have_no_exits(self):
        """completed y cancelled son terminales."""
        assert OrderStatus.COMPLETED.is_terminal
        assert OrderStatus.CANCELLED.is_terminal
        assert not ALLOWED_TRANSITIONS[OrderStatus.COMPLETED]
        assert not ALLOWED_TRANSITIONS[OrderStatus.CANCELLED]

    def test_in_progress_cannot_be_cancelled(self):
        """Un pedido en progreso solo puede completarse."""
        assert not OrderStatus.IN_PROGRESS.can_transition_to(OrderStatus.CANCELLED)


class TestOrderFactory:
    """Tests para la creación de pedidos desde el snapshot del catálogo."""

    def test_total_is_price_times_quantity(self):
        """El total se fija como precio unitario por cantidad."""
        order = OrderFactory.create_order("SEO-20250131-0001", 1, _snapshot(), "keywords", 3)
        assert order.total_amount.amount == Decimal("1350.00")
        assert order.status == OrderStatus.PENDING
        assert order.service_name == "SEO Audit"

    def test_order_rejects_inconsistent_total(self):
        """El modelo no admite un total distinto de precio por cantidad."""
        with pytest.raises(ValueError):
            OrderDomain(
                tracking_code="SEO-20250131-0001",
                customer_id=1,
                service_tier_id="seo-audit-pro",
                service_name="SEO Audit",
                service_tier_name="Pro",
                service_price=Money(Decimal("450.00")),
                delivery_days=7,
                requirements="",
                quantity=2,
                total_amount=Money(Decimal("450.00")),
            )

    def test_payment_description_truncates_requirements(self):
        """La descripción enviada a la pasarela usa los primeros 50 caracteres."""
        order = OrderFactory.create_order("SEO-20250131-0001", 1, _snapshot(), "x" * 80, 1)
        assert order.payment_description == f"SEO Audit - {'x' * 50}..."
