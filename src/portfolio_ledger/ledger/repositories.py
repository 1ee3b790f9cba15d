"""Typed interfaces of the storage the ledger coordinator depends on.

Coordinator проверяет investor и asset только на существование, поэтому
их записи минимальны. Реализации для тестов и локального запуска: memory.py.
"""

from dataclasses import dataclass
from typing import ContextManager, List, Optional, Protocol, Sequence

from ..core.domain.position import Position
from ..core.domain.transaction import Transaction


@dataclass(frozen=True)
class InvestorRecord:
    """Investor, как его видит ledger."""

    id: str


@dataclass(frozen=True)
class AssetRecord:
    """Asset, как его видит ledger."""

    id: str
    symbol: str = ""


class InvestorRepository(Protocol):
    def find_by_id(self, investor_id: str) -> Optional[InvestorRecord]:
        """Return the investor or None."""


class AssetRepository(Protocol):
    def find_by_id(self, asset_id: str) -> Optional[AssetRecord]:
        """Return the asset or None."""


class TransactionRepository(Protocol):
    """Append-only хранилище транзакций."""

    def find_by_id(self, transaction_id: str) -> Optional[Transaction]:
        """Return the transaction or None."""

    def find_many_by_portfolio_and_asset(
        self, portfolio_id: str, asset_id: str
    ) -> Sequence[Transaction]:
        """Return every stored transaction of the pair, in any order."""

    def create(self, transaction: Transaction) -> None:
        """Append a transaction.

        Raises:
            ValueError: Raised when a transaction with the same id exists.
        """


class InvestmentRepository(Protocol):
    """Хранилище позиций, одна позиция на пару (portfolio, asset)."""

    def find_by_portfolio_id_and_asset_id(
        self, portfolio_id: str, asset_id: str
    ) -> Optional[Position]:
        """Return the position of the pair or None."""

    def find_many_by_portfolio_id(self, portfolio_id: str) -> List[Position]:
        """Return all positions of a portfolio."""

    def create(self, position: Position) -> None:
        """Store a new position.

        Raises:
            ValueError: Raised when the pair already has a position.
        """

    def update(self, position: Position) -> None:
        """Replace the stored position of the pair.

        Raises:
            KeyError: Raised when the pair has no stored position.
        """


class UnitOfWork(Protocol):
    """Граница атомарной записи: транзакция и позиция фиксируются вместе."""

    def transaction(self) -> ContextManager[None]:
        """Context manager; an exception inside rolls back every write made in it."""
