"""
Тесты для value object Money

Проверяет:
1. Построение и нормализацию валюты
2. Арифметику с проверкой валюты
3. multiply/divide (граничные множители)
4. Сравнения (строгое is_less_than)
5. Immutability
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from portfolio_ledger.core.domain import DEFAULT_CURRENCY, Money
from portfolio_ledger.core.errors import CurrencyMismatchError, ErrorKind, NotAllowedError


# =============================================================================
# ПОСТРОЕНИЕ
# =============================================================================


class TestMoneyConstruction:
    """Тесты построения Money"""

    def test_create_defaults_to_brl(self):
        money = Money.create(10)
        assert money.amount == Decimal("10")
        assert money.currency == DEFAULT_CURRENCY == "BRL"

    def test_currency_upper_cased(self):
        assert Money.create("1.5", "usd").currency == "USD"

    @pytest.mark.parametrize("currency", ["US", "USDT", "U5D", ""])
    def test_invalid_currency_rejected(self, currency):
        with pytest.raises(ValidationError):
            Money.create(1, currency)

    def test_float_amount_converted_exactly(self):
        assert Money.create(0.1).amount == Decimal("0.1")

    def test_nan_rejected(self):
        with pytest.raises(ValidationError):
            Money.create(float("nan"))

    def test_negative_amount_allowed(self):
        """Отрицательная сумма допустима (PnL)"""
        assert Money.create(-5).is_negative()

    def test_zero(self):
        zero = Money.zero("USD")
        assert zero.is_zero()
        assert zero.currency == "USD"

    def test_immutable(self):
        money = Money.create(10)
        with pytest.raises(ValidationError):
            money.amount = Decimal("20")  # type: ignore[misc]


# =============================================================================
# АРИФМЕТИКА
# =============================================================================


class TestMoneyArithmetic:
    """Тесты арифметики Money"""

    def test_add(self):
        assert Money.create(10).add(Money.create("2.5")).equals(Money.create("12.5"))

    def test_subtract(self):
        assert Money.create(10).subtract(Money.create(15)).equals(Money.create(-5))

    def test_add_currency_mismatch(self):
        with pytest.raises(CurrencyMismatchError) as exc_info:
            Money.create(10, "BRL").add(Money.create(1, "USD"))

        error = exc_info.value
        assert isinstance(error, NotAllowedError)
        assert error.kind == ErrorKind.CURRENCY_MISMATCH
        assert error.message == "Cannot operate with different currencies: BRL and USD."

    def test_subtract_currency_mismatch(self):
        with pytest.raises(CurrencyMismatchError):
            Money.create(10, "BRL").subtract(Money.create(1, "EUR"))

    def test_multiply(self):
        assert Money.create("2.5").multiply(4).equals(Money.create(10))

    def test_multiply_by_zero_allowed(self):
        assert Money.create(10).multiply(0).is_zero()

    def test_multiply_by_negative_rejected(self):
        with pytest.raises(NotAllowedError, match="cannot be negative"):
            Money.create(10).multiply(-1)

    def test_divide(self):
        assert Money.create(10).divide(4).equals(Money.create("2.5"))

    @pytest.mark.parametrize("divisor", [0, -2])
    def test_divide_by_non_positive_rejected(self, divisor):
        with pytest.raises(NotAllowedError) as exc_info:
            Money.create(10).divide(divisor)
        assert exc_info.value.message == "Division by zero or negative number."

    def test_operations_return_new_instance(self):
        original = Money.create(10)
        original.add(Money.create(5))
        assert original.amount == Decimal("10")


# =============================================================================
# СРАВНЕНИЯ
# =============================================================================


class TestMoneyComparison:
    def test_equals_requires_same_currency(self):
        assert Money.create(10, "BRL").equals(Money.create("10.00", "BRL"))
        assert not Money.create(10, "BRL").equals(Money.create(10, "USD"))

    def test_is_greater_than(self):
        assert Money.create(11).is_greater_than(Money.create(10))
        assert not Money.create(10).is_greater_than(Money.create(10))

    def test_is_less_than_is_strict(self):
        assert Money.create(9).is_less_than(Money.create(10))
        assert not Money.create(10).is_less_than(Money.create(10))

    def test_comparison_currency_mismatch(self):
        with pytest.raises(CurrencyMismatchError):
            Money.create(1, "BRL").is_less_than(Money.create(2, "USD"))

    def test_has_currency(self):
        assert Money.create(1, "BRL").has_currency("brl")


class TestMoneyPresentation:
    def test_quantize(self):
        assert Money.create("10.666").quantize().amount == Decimal("10.67")

    def test_str(self):
        assert str(Money.create(10)) == "BRL 10.00"
