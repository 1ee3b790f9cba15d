"""
Errors — Таксономия ошибок ledger

Три базовых вида ошибок:
- VALIDATION: некорректное построение value object (валюта, отрицательное количество)
- NOT_FOUND: отсутствующий investor/transaction/asset (только на уровне Coordinator)
- NOT_ALLOWED: операция запрещена правилами домена

NOT_ALLOWED имеет два подвида с собственным kind:
- CURRENCY_MISMATCH: арифметика Money с разными валютами
- INSUFFICIENT_QUANTITY: продажа больше, чем удерживается в позиции

Value objects бросают эти исключения. Engine их перехватывает и
возвращает результат (success/failure), Coordinator транслирует kind наружу.
"""

from enum import Enum


# =============================================================================
# ENUMS
# =============================================================================


class ErrorKind(str, Enum):
    """Вид ошибки (для трансляции Coordinator → caller)"""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    NOT_ALLOWED = "not_allowed"
    CURRENCY_MISMATCH = "currency_mismatch"
    INSUFFICIENT_QUANTITY = "insufficient_quantity"


# =============================================================================
# EXCEPTIONS
# =============================================================================


class LedgerError(Exception):
    """Базовая ошибка ledger."""

    kind: ErrorKind = ErrorKind.NOT_ALLOWED
    default_message: str = "Ledger error."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LedgerError):
            return NotImplemented
        return type(self) is type(other) and self.message == other.message

    def __hash__(self) -> int:
        return hash((type(self), self.message))


class DomainValidationError(LedgerError):
    """Некорректные входные данные для value object или entity."""

    kind = ErrorKind.VALIDATION
    default_message = "Invalid value."


class NotFoundError(LedgerError):
    """Ресурс не найден (investor, transaction, asset)."""

    kind = ErrorKind.NOT_FOUND
    default_message = "Resource not found."


class NotAllowedError(LedgerError):
    """Операция запрещена правилами домена."""

    kind = ErrorKind.NOT_ALLOWED
    default_message = "Not allowed."


class CurrencyMismatchError(NotAllowedError):
    """Арифметика Money с разными валютами."""

    kind = ErrorKind.CURRENCY_MISMATCH

    def __init__(self, left_currency: str, right_currency: str):
        self.left_currency = left_currency
        self.right_currency = right_currency
        super().__init__(
            f"Cannot operate with different currencies: {left_currency} and {right_currency}."
        )


class InsufficientQuantityError(NotAllowedError):
    """Запрошено больше единиц, чем удерживается."""

    kind = ErrorKind.INSUFFICIENT_QUANTITY

    def __init__(self, requested, available):
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient quantity: requested {requested}, available {available}."
        )
