"""
Transaction — Событие BUY / SELL / DIVIDEND

Immutable Pydantic модель одной транзакции по паре (portfolio, asset).
Создаётся внешним сервисом записи транзакций; engine только читает её.

Правила построения:
- BUY/SELL: quantity > 0, income отсутствует, fees по умолчанию ноль
- DIVIDEND: income обязателен, quantity и fees отсутствуют
- price, fees, income в одной валюте
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from .money import Money
from .quantity import Quantity


# =============================================================================
# ENUMS
# =============================================================================


class TransactionType(str, Enum):
    """Тип транзакции"""

    BUY = "Buy"
    SELL = "Sell"
    DIVIDEND = "Dividend"
    SPLIT = "Split"  # Записывается, но engine не поддерживает


# =============================================================================
# TRANSACTION MODEL
# =============================================================================


class Transaction(BaseModel):
    """
    Модель транзакции.

    Immutable модель (frozen=True). `executed_at` определяет порядок
    применения при полном пересчёте, `created_at` разрешает равные `executed_at`.
    """

    # Идентификация
    id: str = Field(..., min_length=1, description="Идентификатор транзакции")
    portfolio_id: str = Field(..., min_length=1, description="Идентификатор портфеля")
    asset_id: str = Field(..., min_length=1, description="Идентификатор актива")
    type: TransactionType = Field(..., description="Тип транзакции")

    # Параметры
    quantity: Optional[Quantity] = Field(None, description="Количество (нет для DIVIDEND)")
    price: Money = Field(..., description="Цена единицы актива")
    fees: Optional[Money] = Field(None, description="Комиссии (только BUY/SELL)")
    income: Optional[Money] = Field(None, description="Доход (только DIVIDEND)")

    # Время
    executed_at: datetime = Field(..., description="Время исполнения")
    created_at: datetime = Field(..., description="Время записи в ledger")

    model_config = {"frozen": True}

    @model_validator(mode="before")
    @classmethod
    def default_fees(cls, data):
        """BUY/SELL без fees получают нулевые fees в валюте цены"""
        if not isinstance(data, dict):
            return data
        if data.get("fees") is not None or data.get("type") is None:
            return data

        tx_type = TransactionType(data["type"])
        if tx_type in (TransactionType.BUY, TransactionType.SELL):
            price = data.get("price")
            if isinstance(price, Money):
                currency = price.currency
            elif isinstance(price, dict):
                currency = price.get("currency", Money.zero().currency)
            else:
                return data
            data = {**data, "fees": Money.zero(currency)}
        return data

    @model_validator(mode="after")
    def validate_shape(self) -> "Transaction":
        """Согласованность полей с типом транзакции"""
        if self.type == TransactionType.DIVIDEND:
            if self.income is None:
                raise ValueError("Dividend transaction requires income")
            if self.quantity is not None:
                raise ValueError("Dividend transaction cannot carry quantity")
            if self.fees is not None:
                raise ValueError("Dividend transaction cannot carry fees")
        elif self.type in (TransactionType.BUY, TransactionType.SELL):
            if self.quantity is None or self.quantity.is_zero():
                raise ValueError(f"{self.type.value} transaction requires quantity > 0")
            if self.income is not None:
                raise ValueError(f"{self.type.value} transaction cannot carry income")

        if self.price.amount <= 0:
            raise ValueError(f"price must be positive, got {self.price.amount}")
        if self.fees is not None and self.fees.is_negative():
            raise ValueError(f"fees cannot be negative, got {self.fees.amount}")
        if self.income is not None and self.income.is_negative():
            raise ValueError(f"income cannot be negative, got {self.income.amount}")

        for name in ("fees", "income"):
            money = getattr(self, name)
            if money is not None and money.currency != self.price.currency:
                raise ValueError(
                    f"{name} currency {money.currency} differs from price currency "
                    f"{self.price.currency}"
                )
        return self

    # -------------------------------------------------------------------------
    # Тип
    # -------------------------------------------------------------------------

    def is_buy_transaction(self) -> bool:
        return self.type == TransactionType.BUY

    def is_sell_transaction(self) -> bool:
        return self.type == TransactionType.SELL

    def is_dividend_transaction(self) -> bool:
        return self.type == TransactionType.DIVIDEND

    # -------------------------------------------------------------------------
    # Суммы
    # -------------------------------------------------------------------------

    @property
    def currency(self) -> str:
        return self.price.currency

    @property
    def key(self) -> tuple[str, str]:
        """Ключ позиции (portfolio_id, asset_id)"""
        return (self.portfolio_id, self.asset_id)

    def gross_amount(self) -> Money:
        """
        quantity * price.

        Для DIVIDEND (без quantity) возвращает ноль.
        """
        if self.quantity is None:
            return Money.zero(self.currency)
        return self.price.multiply(self.quantity.value)

    def cost_amount(self) -> Money:
        """Капитал, вложенный покупкой: quantity * price + fees"""
        fees = self.fees or Money.zero(self.currency)
        return self.gross_amount().add(fees)
