"""
Decimal Safeguards — Безопасные примитивы для денежной арифметики

Модуль обеспечивает детерминированную Decimal-арифметику для ledger:
- Нормализация входных значений (int/float/str/Decimal → Decimal)
- NaN/Inf никогда не попадают в value objects
- Безопасное деление с явным fallback
- Квантование денежных сумм (banker's rounding)

КРИТИЧЕСКИЕ ИНВАРИАНТЫ:
1. float конвертируется через repr, а не через двоичное представление
2. bool не принимается как число
3. NaN/Inf отклоняются на входе (ValueError)
4. Все операции детерминированы и воспроизводимы
"""

from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation
import math
from typing import Final, Union

NumberLike = Union[int, float, str, Decimal]

# =============================================================================
# КОНСТАНТЫ
# =============================================================================

DECIMAL_ZERO: Final[Decimal] = Decimal("0")
DECIMAL_ONE: Final[Decimal] = Decimal("1")
DECIMAL_HUNDRED: Final[Decimal] = Decimal("100")

# Количество знаков после запятой для денежных snapshot'ов
MONEY_PLACES_DEFAULT: Final[int] = 2


# =============================================================================
# НОРМАЛИЗАЦИЯ
# =============================================================================


def to_decimal(value: NumberLike) -> Decimal:
    """
    Конверсия числового значения в конечный Decimal.

    Args:
        value: int, float, str или Decimal

    Returns:
        Конечный Decimal

    Raises:
        ValueError: Если значение не число, NaN или Inf

    Examples:
        >>> to_decimal(0.1)
        Decimal('0.1')
        >>> to_decimal("10.50")
        Decimal('10.50')
    """
    if isinstance(value, bool):
        raise ValueError(f"Boolean is not a valid number: {value!r}")

    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"Value must be finite, got {value!r}")
        # repr даёт кратчайшее представление: 0.1 → "0.1"
        result = Decimal(repr(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation as e:
            raise ValueError(f"Not a decimal number: {value!r}") from e
    else:
        raise ValueError(f"Unsupported numeric type: {type(value).__name__}")

    if not result.is_finite():
        raise ValueError(f"Value must be finite, got {value!r}")

    return result


def is_valid_decimal(value: object) -> bool:
    """Проверка без exception: можно ли сконвертировать в конечный Decimal."""
    try:
        to_decimal(value)  # type: ignore[arg-type]
    except ValueError:
        return False
    return True


# =============================================================================
# БЕЗОПАСНОЕ ДЕЛЕНИЕ
# =============================================================================


def safe_divide(
    numerator: Decimal,
    denominator: Decimal,
    fallback: Decimal = DECIMAL_ZERO,
) -> Decimal:
    """
    Деление с fallback при нулевом делителе.

    Используется для производных величин (средняя цена, доходность),
    где нулевой делитель является штатной ситуацией (позиция полностью продана).

    Args:
        numerator: Числитель
        denominator: Знаменатель
        fallback: Результат при denominator == 0

    Returns:
        numerator / denominator или fallback
    """
    if denominator == 0:
        return fallback
    return numerator / denominator


# =============================================================================
# КВАНТОВАНИЕ
# =============================================================================


def quantize(value: Decimal, places: int = MONEY_PLACES_DEFAULT) -> Decimal:
    """
    Округление до `places` знаков (ROUND_HALF_EVEN).

    Raises:
        ValueError: Если places отрицательный
    """
    if places < 0:
        raise ValueError(f"places cannot be negative, got {places}")

    exponent = Decimal(1).scaleb(-places)
    return value.quantize(exponent, rounding=ROUND_HALF_EVEN)


def to_percentage(fraction: Decimal) -> Decimal:
    """Доля → проценты (0.25 → 25)."""
    return fraction * DECIMAL_HUNDRED
