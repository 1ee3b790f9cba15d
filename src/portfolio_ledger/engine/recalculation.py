"""Recalculation Engine — пересчёт позиции по транзакциям.

Две стратегии:
- INCREMENTAL: применение одной новой транзакции к сохранённой позиции, O(1).
  Корректна только при применении каждой транзакции ровно один раз, в порядке
  поступления, к snapshot'у, прочитанному непосредственно перед записью.
- FULL_RECOMPUTE: свёртка всей истории (executed_at по возрастанию) от пустой
  позиции, O(n). Источник истины.

Обе стратегии replay-safe: транзакция, id которой уже применён, не меняет
позицию (incremental проверяет историю позиции, fold отбрасывает дубликаты).

Engine не бросает исключений для доменных ошибок: результат всегда
RecalculationResult (success или failure).
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
import logging
from typing import Callable, Dict, Iterable, List, Optional, Sequence
import uuid

from pydantic import ValidationError

from ..core.domain.money import Money
from ..core.domain.position import Position, PositionTransaction, PositionYield
from ..core.domain.transaction import Transaction, TransactionType
from ..core.errors import DomainValidationError, LedgerError, NotAllowedError

logger = logging.getLogger(__name__)

ONLY_BUY_MESSAGE = "Only buy transactions are allowed for this operation."
UNSUPPORTED_TYPE_MESSAGE = "Unsupported transaction type."
EMPTY_HISTORY_MESSAGE = "No transactions to recalculate."
MIXED_KEYS_MESSAGE = "Transactions belong to different portfolio/asset pairs."
FOREIGN_TRANSACTION_MESSAGE = "Transaction does not belong to this position."

# Namespace для детерминированных id позиций (uuid5 от ключа)
POSITION_ID_NAMESPACE = uuid.UUID("6f1c9a52-3d4e-5b8f-9a0c-7e2d1b4f6a83")


class RecalculationStrategy(str, Enum):
    """Стратегия пересчёта позиции"""

    INCREMENTAL = "incremental"
    FULL_RECOMPUTE = "full_recompute"


@dataclass(frozen=True)
class RecalculationResult:
    """Результат пересчёта позиции."""

    position: Optional[Position]
    error: Optional[LedgerError]

    # Диагностика
    created: bool = False  # Позиция открыта этой транзакцией
    replayed: bool = False  # Транзакция уже была применена, позиция не изменилась
    details: str = ""

    @property
    def is_success(self) -> bool:
        return self.error is None

    @property
    def is_failure(self) -> bool:
        return self.error is not None

    def unwrap(self) -> Position:
        """
        Позиция успешного результата.

        Raises:
            LedgerError: Ошибка failure-результата
        """
        if self.error is not None:
            raise self.error
        if self.position is None:
            raise RuntimeError("Success result without position")
        return self.position

    @classmethod
    def success(
        cls,
        position: Position,
        *,
        created: bool = False,
        replayed: bool = False,
        details: str = "",
    ) -> "RecalculationResult":
        return cls(
            position=position, error=None, created=created, replayed=replayed, details=details
        )

    @classmethod
    def failure(cls, error: LedgerError, details: str = "") -> "RecalculationResult":
        return cls(position=None, error=error, details=details or error.message)


# =============================================================================
# HELPERS
# =============================================================================


def position_id_for(portfolio_id: str, asset_id: str) -> str:
    """Детерминированный id позиции для пары (portfolio, asset)"""
    return str(uuid.uuid5(POSITION_ID_NAMESPACE, f"{portfolio_id}/{asset_id}"))


def order_history(transactions: Iterable[Transaction]) -> List[Transaction]:
    """
    Порядок применения: executed_at, затем created_at, затем id.

    Повторы одного id отбрасываются (остаётся первый по порядку).
    """
    ordered = sorted(transactions, key=lambda tx: (tx.executed_at, tx.created_at, tx.id))
    seen: set[str] = set()
    unique: List[Transaction] = []
    for tx in ordered:
        if tx.id in seen:
            continue
        seen.add(tx.id)
        unique.append(tx)
    return unique


def _entry_for(transaction: Transaction) -> PositionTransaction:
    if transaction.quantity is None:
        raise DomainValidationError(f"{transaction.type.value} transaction requires quantity")
    return PositionTransaction(
        transaction_id=transaction.id,
        side=transaction.type,
        quantity=transaction.quantity,
        price=transaction.price,
        date=transaction.executed_at,
    )


def _fees_of(transaction: Transaction) -> Money:
    return transaction.fees or Money.zero(transaction.currency)


# =============================================================================
# HANDLERS
# =============================================================================


def _apply_buy(position: Position, transaction: Transaction, applied_at: datetime) -> Position:
    return position.add_quantity(_entry_for(transaction), _fees_of(transaction), applied_at)


def _apply_sell(position: Position, transaction: Transaction, applied_at: datetime) -> Position:
    return position.reduce_quantity(_entry_for(transaction), applied_at)


def _apply_dividend(
    position: Position, transaction: Transaction, applied_at: datetime
) -> Position:
    if transaction.income is None:
        raise DomainValidationError("Dividend transaction requires income")
    entry = PositionYield(
        yield_id=transaction.id,
        income_value=transaction.income,
        date=transaction.executed_at,
    )
    return position.include_yield(entry, transaction.price, applied_at)


_HANDLERS: Dict[TransactionType, Callable[[Position, Transaction, datetime], Position]] = {
    TransactionType.BUY: _apply_buy,
    TransactionType.SELL: _apply_sell,
    TransactionType.DIVIDEND: _apply_dividend,
}


# =============================================================================
# INCREMENTAL
# =============================================================================


def apply_transaction(
    position: Optional[Position],
    transaction: Transaction,
    *,
    applied_at: Optional[datetime] = None,
    position_id: Optional[str] = None,
    created_at: Optional[datetime] = None,
) -> RecalculationResult:
    """Применение одной транзакции к позиции (или к её отсутствию).

    Args:
        position: текущая позиция или None
        transaction: новая транзакция
        applied_at: время изменения (default: transaction.executed_at)
        position_id: id новой позиции (default: position_id_for(key))
        created_at: created_at новой позиции (default: applied_at)

    Returns:
        RecalculationResult с новой позицией или ошибкой
    """
    applied_at = applied_at or transaction.executed_at

    if position is not None:
        if position.key != transaction.key:
            return RecalculationResult.failure(NotAllowedError(FOREIGN_TRANSACTION_MESSAGE))
        if position.has_applied(transaction.id):
            logger.debug("Transaction %s already applied to %s", transaction.id, position.id)
            return RecalculationResult.success(
                position, replayed=True, details=f"transaction {transaction.id} already applied"
            )

    handler = _HANDLERS.get(transaction.type)
    if handler is None:
        return RecalculationResult.failure(NotAllowedError(UNSUPPORTED_TYPE_MESSAGE))

    try:
        if position is None:
            if not transaction.is_buy_transaction():
                return RecalculationResult.failure(NotAllowedError(ONLY_BUY_MESSAGE))

            opened = Position.open(
                position_id=position_id or position_id_for(*transaction.key),
                portfolio_id=transaction.portfolio_id,
                asset_id=transaction.asset_id,
                entry=_entry_for(transaction),
                fees=_fees_of(transaction),
                opened_at=applied_at,
                created_at=created_at,
            )
            return RecalculationResult.success(
                opened, created=True, details=f"opened by {transaction.id}"
            )

        updated = handler(position, transaction, applied_at)
    except LedgerError as e:
        return RecalculationResult.failure(e)
    except ValidationError as e:
        return RecalculationResult.failure(DomainValidationError(str(e)))

    return RecalculationResult.success(
        updated, details=f"{transaction.type.value} {transaction.id} applied"
    )


# =============================================================================
# FULL RECOMPUTE
# =============================================================================


def fold_transactions(
    transactions: Sequence[Transaction],
    *,
    position_id: Optional[str] = None,
    created_at: Optional[datetime] = None,
) -> RecalculationResult:
    """Свёртка полной истории пары (portfolio, asset) от пустой позиции.

    Args:
        transactions: все транзакции пары в любом порядке (возможны дубликаты)
        position_id: id позиции (default: position_id_for(key)); передаётся
            при пересчёте уже сохранённой позиции
        created_at: исходный created_at сохранённой позиции

    Returns:
        RecalculationResult с позицией или первой встреченной ошибкой
    """
    if not transactions:
        return RecalculationResult.failure(NotAllowedError(EMPTY_HISTORY_MESSAGE))

    keys = {tx.key for tx in transactions}
    if len(keys) > 1:
        return RecalculationResult.failure(NotAllowedError(MIXED_KEYS_MESSAGE))

    ordered = order_history(transactions)
    position: Optional[Position] = None

    for tx in ordered:
        result = apply_transaction(
            position, tx, position_id=position_id, created_at=created_at
        )
        if result.error is not None:
            logger.debug("Fold stopped at transaction %s: %s", tx.id, result.error.message)
            return RecalculationResult.failure(
                result.error, details=f"transaction {tx.id}: {result.error.message}"
            )
        position = result.position

    if position is None:
        return RecalculationResult.failure(NotAllowedError(EMPTY_HISTORY_MESSAGE))
    dropped = len(transactions) - len(ordered)
    return RecalculationResult.success(
        position,
        details=f"folded {len(ordered)} transactions ({dropped} duplicates dropped)",
    )
