"""
Position — Позиция (investment) по паре (portfolio, asset)

Immutable Pydantic модель. Каждое изменение позиции (BUY, SELL, DIVIDEND,
обновление цены) возвращает новый экземпляр с явным `updated_at`.

Учёт по средневзвешенной стоимости:
- BUY:  quantity += q, total_invested += q * price + fees
- SELL: total_invested = total_invested * (quantity - s) / quantity, quantity -= s
        (цена продажи на cost basis не влияет)
- DIVIDEND: quantity и total_invested не меняются, доход пишется в yields

Средняя цена всегда производная: total_invested / quantity (0 при quantity = 0).

ИНВАРИАНТЫ:
1. quantity >= 0
2. total_invested >= 0
3. Все Money-поля в одной валюте
4. Каждый transaction_id / yield_id применён не более одного раза

При прямом создании (и model_validate) инварианты проверяются по всей истории.
Методы изменения проверяют только добавляемое событие: остальная история уже
проверена.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, Field, PrivateAttr, model_validator

from ..errors import DomainValidationError, InsufficientQuantityError, NotAllowedError
from ..math.decimal_safeguards import (
    MONEY_PLACES_DEFAULT,
    quantize,
    safe_divide,
    to_percentage,
)
from .money import Money
from .quantity import Quantity
from .transaction import TransactionType


# =============================================================================
# NESTED MODELS
# =============================================================================


class PositionTransaction(BaseModel):
    """Запись применённой BUY/SELL транзакции"""

    transaction_id: str = Field(..., min_length=1)
    side: TransactionType = Field(..., description="BUY или SELL")
    quantity: Quantity
    price: Money
    date: datetime

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_side(self) -> "PositionTransaction":
        if self.side not in (TransactionType.BUY, TransactionType.SELL):
            raise ValueError(f"side must be Buy or Sell, got {self.side.value}")
        return self


class PositionYield(BaseModel):
    """Запись начисленного дохода (дивиденда)"""

    yield_id: str = Field(..., min_length=1)
    income_value: Money
    date: datetime

    model_config = {"frozen": True}


# =============================================================================
# POSITION MODEL
# =============================================================================


class Position(BaseModel):
    """
    Модель позиции.

    Immutable модель (frozen=True). Создаётся только первой BUY транзакцией
    (см. `open`), дальнейшие события применяются методами, возвращающими
    новую позицию.
    """

    # Идентификация
    id: str = Field(..., min_length=1, description="Идентификатор позиции")
    portfolio_id: str = Field(..., min_length=1)
    asset_id: str = Field(..., min_length=1)

    # Состояние
    quantity: Quantity = Field(..., description="Удерживаемое количество")
    total_invested: Money = Field(..., description="Cost basis удерживаемых единиц")
    current_price: Money = Field(..., description="Последняя известная цена (mark-to-market)")

    # История
    transactions: tuple[PositionTransaction, ...] = Field(default_factory=tuple)
    yields: tuple[PositionYield, ...] = Field(default_factory=tuple)

    # Время
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {"frozen": True}

    # id применённых транзакций и доходов
    _event_ids: frozenset[str] = PrivateAttr(default_factory=frozenset)

    @model_validator(mode="after")
    def validate_invariants(self) -> "Position":
        if self.total_invested.is_negative():
            raise ValueError(
                f"total_invested cannot be negative, got {self.total_invested.amount}"
            )

        currency = self.total_invested.currency
        currencies = {self.current_price.currency}
        currencies.update(entry.price.currency for entry in self.transactions)
        currencies.update(entry.income_value.currency for entry in self.yields)
        mismatched = currencies - {currency}
        if mismatched:
            raise ValueError(
                f"All money fields must share currency {currency}, found {sorted(mismatched)}"
            )

        applied = [entry.transaction_id for entry in self.transactions]
        applied.extend(entry.yield_id for entry in self.yields)
        if len(applied) != len(set(applied)):
            raise ValueError("Position history contains duplicate event ids")
        return self

    def model_post_init(self, __context: Any) -> None:
        ids = {entry.transaction_id for entry in self.transactions}
        ids.update(entry.yield_id for entry in self.yields)
        self._event_ids = frozenset(ids)

    # -------------------------------------------------------------------------
    # Фабрика
    # -------------------------------------------------------------------------

    @classmethod
    def open(
        cls,
        position_id: str,
        portfolio_id: str,
        asset_id: str,
        entry: PositionTransaction,
        fees: Money,
        opened_at: datetime,
        created_at: Optional[datetime] = None,
    ) -> "Position":
        """
        Открытие позиции первой покупкой.

        created_at по умолчанию совпадает с opened_at; при пересчёте
        существующей позиции передаётся её исходный created_at.

        Raises:
            NotAllowedError: Если entry не BUY
        """
        if entry.side != TransactionType.BUY:
            raise NotAllowedError("Only buy transactions are allowed for this operation.")

        empty = cls(
            id=position_id,
            portfolio_id=portfolio_id,
            asset_id=asset_id,
            quantity=Quantity.zero(),
            total_invested=Money.zero(entry.price.currency),
            current_price=entry.price,
            created_at=created_at or opened_at,
        )
        return empty.add_quantity(entry, fees, applied_at=opened_at)

    # -------------------------------------------------------------------------
    # Изменения (возвращают новую позицию)
    # -------------------------------------------------------------------------

    def add_quantity(
        self, entry: PositionTransaction, fees: Money, applied_at: datetime
    ) -> "Position":
        """
        Применение покупки.

        Raises:
            CurrencyMismatchError: Если валюта цены/fees не совпадает с позицией
        """
        cost = entry.price.multiply(entry.quantity.value).add(fees)
        return self._evolve(
            quantity=self.quantity.add(entry.quantity),
            total_invested=self.total_invested.add(cost),
            current_price=entry.price,
            transactions=self.transactions + (entry,),
            updated_at=applied_at,
            new_ids=(entry.transaction_id,),
        )

    def reduce_quantity(self, entry: PositionTransaction, applied_at: datetime) -> "Position":
        """
        Применение продажи с пропорциональным уменьшением cost basis.

        I' = I * (Q - s) / Q, Q' = Q - s

        Raises:
            InsufficientQuantityError: Если s > Q
            CurrencyMismatchError: Если валюта цены не совпадает с позицией
        """
        sold = entry.quantity
        if sold.is_greater_than(self.quantity):
            raise InsufficientQuantityError(requested=sold.value, available=self.quantity.value)

        # Проверка валюты до изменения состояния
        self.total_invested.ensure_same_currency(entry.price)

        if sold.is_zero():
            invested = self.total_invested
        else:
            held = self.quantity.value
            invested = self.total_invested.multiply(held - sold.value).divide(held)

        return self._evolve(
            quantity=self.quantity.subtract(sold),
            total_invested=invested,
            current_price=entry.price,
            transactions=self.transactions + (entry,),
            updated_at=applied_at,
            new_ids=(entry.transaction_id,),
        )

    def include_yield(
        self, entry: PositionYield, current_price: Money, applied_at: datetime
    ) -> "Position":
        """Начисление дохода: quantity и total_invested не меняются"""
        self.total_invested.ensure_same_currency(entry.income_value)
        self.total_invested.ensure_same_currency(current_price)
        return self._evolve(
            current_price=current_price,
            yields=self.yields + (entry,),
            updated_at=applied_at,
            new_ids=(entry.yield_id,),
        )

    def update_current_price(self, new_price: Money, applied_at: datetime) -> "Position":
        self.total_invested.ensure_same_currency(new_price)
        return self._evolve(current_price=new_price, updated_at=applied_at)

    def _evolve(self, new_ids: tuple[str, ...] = (), **changes: Any) -> "Position":
        # Проверка только изменяемой части, история уже валидна
        for event_id in new_ids:
            if event_id in self._event_ids:
                raise DomainValidationError(
                    f"Position history contains duplicate event ids: {event_id}"
                )
        invested = changes.get("total_invested")
        if invested is not None and invested.is_negative():
            raise DomainValidationError(
                f"total_invested cannot be negative, got {invested.amount}"
            )

        evolved = self.model_copy(update=changes)
        evolved._event_ids = self._event_ids | frozenset(new_ids)
        return evolved

    # -------------------------------------------------------------------------
    # Производные величины
    # -------------------------------------------------------------------------

    @property
    def currency(self) -> str:
        return self.total_invested.currency

    @property
    def key(self) -> tuple[str, str]:
        return (self.portfolio_id, self.asset_id)

    @property
    def version(self) -> int:
        """Количество применённых событий (транзакции + доходы)"""
        return len(self.transactions) + len(self.yields)

    @property
    def average_price(self) -> Money:
        """Средневзвешенная стоимость: total_invested / quantity (0 при quantity = 0)"""
        amount = safe_divide(self.total_invested.amount, self.quantity.value)
        return Money(amount=amount, currency=self.currency)

    def applied_event_ids(self) -> frozenset[str]:
        return self._event_ids

    def has_applied(self, transaction_id: str) -> bool:
        return transaction_id in self._event_ids

    def has_quantity(self) -> bool:
        return not self.quantity.is_zero()

    def belongs_to_portfolio(self, portfolio_id: str) -> bool:
        return self.portfolio_id == portfolio_id

    def get_current_value(self) -> Money:
        return self.current_price.multiply(self.quantity.value)

    def get_profit_loss(self) -> Money:
        return self.get_current_value().subtract(self.total_invested)

    def get_profit_loss_percentage(self) -> Decimal:
        """PnL в процентах от total_invested (0 если ничего не вложено)"""
        fraction = safe_divide(self.get_profit_loss().amount, self.total_invested.amount)
        return to_percentage(fraction)

    def get_total_yield(self) -> Money:
        total = Money.zero(self.currency)
        for entry in self.yields:
            total = total.add(entry.income_value)
        return total

    def is_in_profit(self) -> bool:
        return self.get_profit_loss().amount > 0

    def is_in_loss(self) -> bool:
        return self.get_profit_loss().amount < 0

    # -------------------------------------------------------------------------
    # Snapshot
    # -------------------------------------------------------------------------

    def to_snapshot(self, places: int = MONEY_PLACES_DEFAULT) -> dict[str, Any]:
        """
        JSON-совместимый snapshot позиции с производными величинами.

        Денежные суммы округляются до `places` знаков, история передаётся
        без округления. Формат: contracts/schema/position_snapshot.json
        """
        snapshot = self.model_dump(mode="json")
        snapshot["version"] = self.version
        snapshot["average_price"] = {
            "amount": str(quantize(self.average_price.amount, places)),
            "currency": self.currency,
        }
        snapshot["total_invested"]["amount"] = str(
            quantize(self.total_invested.amount, places)
        )
        snapshot["total_yield"] = {
            "amount": str(quantize(self.get_total_yield().amount, places)),
            "currency": self.currency,
        }
        snapshot["profit_loss"] = {
            "amount": str(quantize(self.get_profit_loss().amount, places)),
            "currency": self.currency,
        }
        return snapshot


