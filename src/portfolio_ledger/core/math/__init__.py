"""
Core math modules для portfolio-ledger

Decimal-примитивы с гарантией детерминированности.
"""

from .decimal_safeguards import (
    # Constants
    DECIMAL_HUNDRED,
    DECIMAL_ONE,
    DECIMAL_ZERO,
    MONEY_PLACES_DEFAULT,
    NumberLike,
    # Normalization
    is_valid_decimal,
    to_decimal,
    # Safe division
    safe_divide,
    # Utilities
    quantize,
    to_percentage,
)

__all__ = [
    "DECIMAL_HUNDRED",
    "DECIMAL_ONE",
    "DECIMAL_ZERO",
    "MONEY_PLACES_DEFAULT",
    "NumberLike",
    "is_valid_decimal",
    "to_decimal",
    "safe_divide",
    "quantize",
    "to_percentage",
]
