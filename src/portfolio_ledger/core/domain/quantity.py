"""
Quantity — Количество единиц актива

Immutable Pydantic модель. Значение всегда >= 0: отрицательное количество
не конструируется (ValidationError), вычитание ниже нуля падает с
InsufficientQuantityError, молча к нулю не приводится.
"""

from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from ..errors import InsufficientQuantityError, NotAllowedError
from ..math.decimal_safeguards import DECIMAL_ZERO, NumberLike, to_decimal


class Quantity(BaseModel):
    """Количество единиц (неотрицательное)"""

    value: Decimal = Field(..., ge=0, description="Количество единиц (>= 0)")

    model_config = {"frozen": True}

    @field_validator("value", mode="before")
    @classmethod
    def normalize_value(cls, v: NumberLike) -> Decimal:
        return to_decimal(v)

    @classmethod
    def create(cls, value: NumberLike) -> "Quantity":
        return cls(value=value)

    @classmethod
    def zero(cls) -> "Quantity":
        return cls(value=DECIMAL_ZERO)

    def add(self, other: "Quantity") -> "Quantity":
        return Quantity(value=self.value + other.value)

    def subtract(self, other: "Quantity") -> "Quantity":
        """
        Вычитание количества.

        Raises:
            InsufficientQuantityError: Если other > self
        """
        if other.value > self.value:
            raise InsufficientQuantityError(requested=other.value, available=self.value)
        return Quantity(value=self.value - other.value)

    def multiply(self, factor: NumberLike) -> "Quantity":
        factor_dec = to_decimal(factor)
        if factor_dec < 0:
            raise NotAllowedError("Multiplication factor cannot be negative.")
        return Quantity(value=self.value * factor_dec)

    def equals(self, other: "Quantity") -> bool:
        return self.value == other.value

    def is_zero(self) -> bool:
        return self.value == 0

    def is_greater_than(self, other: "Quantity") -> bool:
        return self.value > other.value

    def is_less_than(self, other: "Quantity") -> bool:
        return self.value < other.value

    def __str__(self) -> str:
        return str(self.value)
