"""Ledger Coordinator — применение транзакций к сохранённым позициям.

Coordinator: единственная точка с побочными эффектами: читает investor,
transaction, asset и текущую позицию, передаёт их engine и сохраняет
результат. Engine остаётся чистым.

Обновления одной пары (portfolio, asset) сериализуются KeyedLockRegistry;
запись транзакции и позиции выполняется в одном UnitOfWork.transaction().

Стратегия (LedgerConfig.strategy):
- FULL_RECOMPUTE: свёртка полной истории пары; при включённом
  PositionCache неизменённая история обходится incremental apply
- INCREMENTAL: одна транзакция поверх сохранённой позиции
"""

from dataclasses import dataclass
import logging
from typing import Any, Dict, List, Optional, Sequence

from ..config import LedgerConfig
from ..core.domain.position import Position
from ..core.domain.transaction import Transaction
from ..core.errors import ErrorKind, LedgerError, NotAllowedError, NotFoundError
from ..engine.position_cache import PositionCache
from ..engine.recalculation import (
    EMPTY_HISTORY_MESSAGE,
    RecalculationResult,
    RecalculationStrategy,
    apply_transaction,
    fold_transactions,
)
from ..logging_config import ledger_context
from .locks import KeyedLockRegistry
from .repositories import (
    AssetRepository,
    InvestmentRepository,
    InvestorRepository,
    TransactionRepository,
    UnitOfWork,
)

logger = logging.getLogger(__name__)

INVESTOR_NOT_FOUND_MESSAGE = "Investor not found."
TRANSACTION_NOT_FOUND_MESSAGE = "Transaction not found."
ASSET_NOT_FOUND_MESSAGE = "Asset not found."
UPDATED_MESSAGE = "Investment updated after transaction."
REPLAYED_MESSAGE = "Transaction already applied to investment."
RECALCULATED_MESSAGE = "Investment recalculated from transaction history."


# =============================================================================
# RESULT
# =============================================================================


@dataclass(frozen=True)
class LedgerUpdateResult:
    """Результат операции Coordinator."""

    position: Optional[Position]
    error: Optional[LedgerError]

    created: bool = False
    replayed: bool = False
    message: str = ""

    @property
    def is_success(self) -> bool:
        return self.error is None

    @property
    def is_failure(self) -> bool:
        return self.error is not None

    @property
    def kind(self) -> Optional[ErrorKind]:
        """Вид ошибки (None при успехе)"""
        return self.error.kind if self.error is not None else None

    @classmethod
    def success(
        cls,
        position: Position,
        *,
        created: bool = False,
        replayed: bool = False,
        message: str = UPDATED_MESSAGE,
    ) -> "LedgerUpdateResult":
        return cls(
            position=position, error=None, created=created, replayed=replayed, message=message
        )

    @classmethod
    def failure(cls, error: LedgerError) -> "LedgerUpdateResult":
        return cls(position=None, error=error, message=error.message)


# =============================================================================
# COORDINATOR
# =============================================================================


class LedgerCoordinator:
    """Координатор обновления позиций после транзакций."""

    def __init__(
        self,
        investor_repository: InvestorRepository,
        investment_repository: InvestmentRepository,
        transaction_repository: TransactionRepository,
        asset_repository: AssetRepository,
        unit_of_work: UnitOfWork,
        config: Optional[LedgerConfig] = None,
        locks: Optional[KeyedLockRegistry] = None,
        cache: Optional[PositionCache] = None,
    ):
        self.investor_repository = investor_repository
        self.investment_repository = investment_repository
        self.transaction_repository = transaction_repository
        self.asset_repository = asset_repository
        self.unit_of_work = unit_of_work
        self.config = config or LedgerConfig()
        self.locks = locks or KeyedLockRegistry()

        if cache is None and self.config.use_position_cache:
            cache = PositionCache()
        self.cache = cache

    # -------------------------------------------------------------------------
    # Операции
    # -------------------------------------------------------------------------

    def update_investment_after_transaction(
        self, investor_id: str, transaction_id: str
    ) -> LedgerUpdateResult:
        """
        Применение сохранённой транзакции к позиции её пары.

        Args:
            investor_id: инициатор обновления
            transaction_id: транзакция, уже записанная в TransactionRepository

        Returns:
            LedgerUpdateResult (NOT_FOUND для отсутствующих investor/transaction/asset)
        """
        if self.investor_repository.find_by_id(investor_id) is None:
            return LedgerUpdateResult.failure(NotFoundError(INVESTOR_NOT_FOUND_MESSAGE))

        transaction = self.transaction_repository.find_by_id(transaction_id)
        if transaction is None:
            return LedgerUpdateResult.failure(NotFoundError(TRANSACTION_NOT_FOUND_MESSAGE))

        if self.asset_repository.find_by_id(transaction.asset_id) is None:
            return LedgerUpdateResult.failure(NotFoundError(ASSET_NOT_FOUND_MESSAGE))

        with self.locks.hold(transaction.key):
            existing = self.investment_repository.find_by_portfolio_id_and_asset_id(
                transaction.portfolio_id, transaction.asset_id
            )
            if existing is not None and existing.has_applied(transaction.id):
                return self._replayed(existing, transaction)

            result = self._calculate(existing, transaction)
            if result.error is not None:
                return self._failed(transaction, result.error, result.details)

            position = result.unwrap()
            self._commit(existing, position)

        return self._applied(existing, position, transaction)

    def record_transaction(self, investor_id: str, transaction: Transaction) -> LedgerUpdateResult:
        """
        Запись новой транзакции и обновление позиции атомарно.

        Транзакция, которую engine отклоняет, не записывается. Повторная
        запись уже применённой транзакции ничего не меняет.
        """
        if self.investor_repository.find_by_id(investor_id) is None:
            return LedgerUpdateResult.failure(NotFoundError(INVESTOR_NOT_FOUND_MESSAGE))

        if self.asset_repository.find_by_id(transaction.asset_id) is None:
            return LedgerUpdateResult.failure(NotFoundError(ASSET_NOT_FOUND_MESSAGE))

        with self.locks.hold(transaction.key):
            existing = self.investment_repository.find_by_portfolio_id_and_asset_id(
                transaction.portfolio_id, transaction.asset_id
            )
            if existing is not None and existing.has_applied(transaction.id):
                return self._replayed(existing, transaction)

            is_new = self.transaction_repository.find_by_id(transaction.id) is None
            pending = transaction if is_new else None
            result = self._calculate(existing, transaction, pending=pending)
            if result.error is not None:
                return self._failed(transaction, result.error, result.details)

            position = result.unwrap()
            self._commit(existing, position, pending=pending)

        return self._applied(existing, position, transaction)

    def recalculate_investment(self, portfolio_id: str, asset_id: str) -> LedgerUpdateResult:
        """
        Полный пересчёт позиции пары по сохранённой истории.

        Используется после правки или удаления транзакции; кэш пары
        сбрасывается до пересчёта.
        """
        key = (portfolio_id, asset_id)
        with self.locks.hold(key):
            if self.cache is not None:
                self.cache.invalidate(key)

            existing = self.investment_repository.find_by_portfolio_id_and_asset_id(
                portfolio_id, asset_id
            )
            history = self.transaction_repository.find_many_by_portfolio_and_asset(
                portfolio_id, asset_id
            )
            if not history:
                return LedgerUpdateResult.failure(NotAllowedError(EMPTY_HISTORY_MESSAGE))

            result = self._fold(history, existing)
            if result.error is not None:
                logger.warning(
                    "Recalculation failed: %s",
                    result.details,
                    extra=ledger_context(
                        portfolio_id=portfolio_id,
                        asset_id=asset_id,
                        kind=result.error.kind.value,
                    ),
                )
                return LedgerUpdateResult.failure(result.error)

            position = result.unwrap()
            self._commit(existing, position)

        logger.info(
            "Investment recalculated from %d transactions",
            len(history),
            extra=ledger_context(
                portfolio_id=portfolio_id, asset_id=asset_id, position_id=position.id
            ),
        )
        return LedgerUpdateResult.success(
            position, created=existing is None, message=RECALCULATED_MESSAGE
        )

    def fetch_investments(self, portfolio_id: str) -> List[Position]:
        """Позиции портфеля"""
        return self.investment_repository.find_many_by_portfolio_id(portfolio_id)

    def fetch_investment_snapshots(self, portfolio_id: str) -> List[Dict[str, Any]]:
        """Snapshot'ы позиций портфеля (округление: config.money_places)"""
        return [
            position.to_snapshot(places=self.config.money_places)
            for position in self.fetch_investments(portfolio_id)
        ]

    # -------------------------------------------------------------------------
    # Вычисление
    # -------------------------------------------------------------------------

    def _calculate(
        self,
        existing: Optional[Position],
        transaction: Transaction,
        pending: Optional[Transaction] = None,
    ) -> RecalculationResult:
        if self.config.strategy == RecalculationStrategy.INCREMENTAL:
            return apply_transaction(existing, transaction)

        history: List[Transaction] = list(
            self.transaction_repository.find_many_by_portfolio_and_asset(
                transaction.portfolio_id, transaction.asset_id
            )
        )
        if pending is not None:
            history.append(pending)
        return self._fold(history, existing)

    def _fold(
        self, history: Sequence[Transaction], existing: Optional[Position]
    ) -> RecalculationResult:
        if self.cache is not None:
            return self.cache.resolve(history, existing)
        return fold_transactions(
            history,
            position_id=existing.id if existing is not None else None,
            created_at=existing.created_at if existing is not None else None,
        )

    def _commit(
        self,
        existing: Optional[Position],
        position: Position,
        pending: Optional[Transaction] = None,
    ) -> None:
        """Запись в одном UnitOfWork; кэш обновляется только после фиксации."""
        with self.unit_of_work.transaction():
            if pending is not None:
                self.transaction_repository.create(pending)
            if existing is None:
                self.investment_repository.create(position)
            else:
                self.investment_repository.update(position)

        if self.cache is not None:
            self.cache.put(position)

    # -------------------------------------------------------------------------
    # Результаты
    # -------------------------------------------------------------------------

    def _replayed(self, position: Position, transaction: Transaction) -> LedgerUpdateResult:
        logger.info(
            "Transaction already applied",
            extra=_context(transaction, position_id=position.id),
        )
        return LedgerUpdateResult.success(position, replayed=True, message=REPLAYED_MESSAGE)

    def _failed(
        self, transaction: Transaction, error: LedgerError, details: str
    ) -> LedgerUpdateResult:
        logger.warning(
            "Transaction rejected: %s",
            details,
            extra=_context(transaction, kind=error.kind.value),
        )
        return LedgerUpdateResult.failure(error)

    def _applied(
        self, existing: Optional[Position], position: Position, transaction: Transaction
    ) -> LedgerUpdateResult:
        logger.info(
            "Investment updated by %s (version %d)",
            transaction.type.value,
            position.version,
            extra=_context(transaction, position_id=position.id),
        )
        return LedgerUpdateResult.success(position, created=existing is None)


def _context(transaction: Transaction, **fields: str):
    return ledger_context(
        portfolio_id=transaction.portfolio_id,
        asset_id=transaction.asset_id,
        transaction_id=transaction.id,
        **fields,
    )
