"""
Money — Денежная сумма с валютой

Immutable Pydantic модель (frozen=True). Любая арифметика между двумя Money
требует совпадения валют, иначе CurrencyMismatchError.

Правила:
- currency: ровно 3 буквы, приводится к верхнему регистру
- multiply: отрицательный множитель запрещён, ноль разрешён
- divide: делитель <= 0 запрещён
- is_less_than: строгое `<`
"""

from decimal import Decimal
from typing import Final

from pydantic import BaseModel, Field, field_validator

from ..errors import CurrencyMismatchError, NotAllowedError
from ..math.decimal_safeguards import (
    DECIMAL_ZERO,
    MONEY_PLACES_DEFAULT,
    NumberLike,
    quantize,
    to_decimal,
)

DEFAULT_CURRENCY: Final[str] = "BRL"


class Money(BaseModel):
    """
    Денежная сумма.

    Immutable модель (frozen=True): все операции возвращают новый экземпляр.
    """

    amount: Decimal = Field(..., description="Сумма (может быть отрицательной для PnL)")
    currency: str = Field(
        DEFAULT_CURRENCY, min_length=3, max_length=3, description="Код валюты ISO 4217"
    )

    model_config = {"frozen": True}

    @field_validator("amount", mode="before")
    @classmethod
    def normalize_amount(cls, v: NumberLike) -> Decimal:
        """Конверсия в конечный Decimal (NaN/Inf отклоняются)"""
        return to_decimal(v)

    @field_validator("currency", mode="before")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        """Валюта: ровно 3 буквы, верхний регистр"""
        if not isinstance(v, str):
            raise ValueError(f"currency must be a string, got {type(v).__name__}")
        code = v.strip().upper()
        if len(code) != 3 or not code.isalpha():
            raise ValueError(f"Currency must be a 3-letter code, got {v!r}")
        return code

    # -------------------------------------------------------------------------
    # Фабрики
    # -------------------------------------------------------------------------

    @classmethod
    def create(cls, amount: NumberLike, currency: str = DEFAULT_CURRENCY) -> "Money":
        return cls(amount=amount, currency=currency)

    @classmethod
    def zero(cls, currency: str = DEFAULT_CURRENCY) -> "Money":
        return cls(amount=DECIMAL_ZERO, currency=currency)

    # -------------------------------------------------------------------------
    # Арифметика
    # -------------------------------------------------------------------------

    def add(self, other: "Money") -> "Money":
        self.ensure_same_currency(other)
        return Money(amount=self.amount + other.amount, currency=self.currency)

    def subtract(self, other: "Money") -> "Money":
        self.ensure_same_currency(other)
        return Money(amount=self.amount - other.amount, currency=self.currency)

    def multiply(self, factor: NumberLike) -> "Money":
        """
        Умножение на скаляр.

        Raises:
            NotAllowedError: Если factor < 0
        """
        factor_dec = to_decimal(factor)
        if factor_dec < 0:
            raise NotAllowedError("Multiplication factor cannot be negative.")
        return Money(amount=self.amount * factor_dec, currency=self.currency)

    def divide(self, divisor: NumberLike) -> "Money":
        """
        Деление на положительный скаляр.

        Raises:
            NotAllowedError: Если divisor <= 0
        """
        divisor_dec = to_decimal(divisor)
        if divisor_dec <= 0:
            raise NotAllowedError("Division by zero or negative number.")
        return Money(amount=self.amount / divisor_dec, currency=self.currency)

    # -------------------------------------------------------------------------
    # Сравнения
    # -------------------------------------------------------------------------

    def equals(self, other: "Money") -> bool:
        return self.amount == other.amount and self.currency == other.currency

    def is_greater_than(self, other: "Money") -> bool:
        self.ensure_same_currency(other)
        return self.amount > other.amount

    def is_less_than(self, other: "Money") -> bool:
        self.ensure_same_currency(other)
        return self.amount < other.amount

    def is_zero(self) -> bool:
        return self.amount == 0

    def is_negative(self) -> bool:
        return self.amount < 0

    def has_currency(self, currency: str) -> bool:
        return self.currency == currency.upper()

    # -------------------------------------------------------------------------
    # Представление
    # -------------------------------------------------------------------------

    def quantize(self, places: int = MONEY_PLACES_DEFAULT) -> "Money":
        """Округление суммы до `places` знаков (ROUND_HALF_EVEN)"""
        return Money(amount=quantize(self.amount, places), currency=self.currency)

    def __str__(self) -> str:
        return f"{self.currency} {quantize(self.amount)}"

    def ensure_same_currency(self, other: "Money") -> None:
        if self.currency != other.currency:
            raise CurrencyMismatchError(self.currency, other.currency)
