"""Tests unitarios para el value object Money."""

from decimal import Decimal

import pytest

from app.domain.value_objects import Money


class TestMoneyConstruction:
    """Tests para la creación y normalización de Money."""

    def test_amount_is_quantized_to_cents(self):
        """Debe redondear a dos decimales con ROUND_HALF_UP."""
        assert Money(Decimal("449.995")).amount == Decimal("450.00")
        assert Money(Decimal("10")).amount == Decimal("10.00")

    def test_string_amounts_are_converted(self):
        """Debe aceptar montos no Decimal convirtiéndolos vía str."""
        assert Money("12.5").amount == Decimal("12.50")

    def test_currency_is_upper_cased(self):
        """Debe normalizar la moneda a mayúsculas."""
        assert Money(Decimal("1"), "usd").currency == "USD"

    def test_negative_amount_rejected(self):
        """Debe rechazar montos negativos."""
        with pytest.raises(ValueError):
            Money(Decimal("-0.01"))

    def test_invalid_currency_rejected(self):
        """Debe rechazar códigos de moneda que no tengan tres letras."""
        with pytest.raises(ValueError):
            Money(Decimal("1"), "US")


class TestMoneyArithmetic:
    """Tests para operaciones aritméticas."""

    def test_multiply_by_quantity(self):
        """Debe multiplicar precio unitario por cantidad sin perder precisión."""
        assert (Money(Decimal("450.00")) * 3).amount == Decimal("1350.00")
        assert (Money(Decimal("0.10")) * 3).amount == Decimal("0.30")

    def test_multiply_rejects_float_and_bool(self):
        """No debe permitir multiplicar por float ni bool."""
        with pytest.raises(TypeError):
            Money(Decimal("1")) * 1.5
        with pytest.raises(TypeError):
            Money(Decimal("1")) * True

    def test_add_requires_same_currency(self):
        """Debe rechazar sumas entre monedas distintas."""
        assert (Money(Decimal("1.10")) + Money(Decimal("2.20"))).amount == Decimal("3.30")
        with pytest.raises(ValueError):
            Money(Decimal("1"), "USD") + Money(Decimal("1"), "EUR")

    def test_cents_round_trip(self):
        """Debe convertir a y desde unidades menores."""
        assert Money(Decimal("450.00")).cents == 45000
        assert Money.from_cents(45000).amount == Decimal("450.00")


class TestMoneyComparison:
    """Tests para la comparación con tolerancia."""

    def test_equal_amounts_do_not_differ(self):
        """Montos iguales no deben considerarse distintos."""
        assert not Money(Decimal("450.00")).differs_from(Money(Decimal("450.00")))

    def test_one_cent_is_within_tolerance(self):
        """Una diferencia de un centavo está dentro de la tolerancia por defecto."""
        assert not Money(Decimal("450.01")).differs_from(Money(Decimal("450.00")))

    def test_fifty_cents_differs(self):
        """Debe detectar una diferencia de 0.50."""
        assert Money(Decimal("449.50")).differs_from(Money(Decimal("450.00")))

    def test_currency_mismatch_always_differs(self):
        """Distinta moneda siempre es una discrepancia."""
        assert Money(Decimal("450.00"), "EUR").differs_from(Money(Decimal("450.00"), "USD"))
