"""Ledger — координация engine с хранилищами."""

from .coordinator import LedgerCoordinator, LedgerUpdateResult
from .locks import KeyedLockRegistry
from .memory import (
    InMemoryAssetRepository,
    InMemoryInvestmentRepository,
    InMemoryInvestorRepository,
    InMemoryTransactionRepository,
    InMemoryUnitOfWork,
)
from .repositories import (
    AssetRecord,
    AssetRepository,
    InvestmentRepository,
    InvestorRecord,
    InvestorRepository,
    TransactionRepository,
    UnitOfWork,
)

__all__ = [
    # Coordinator
    "LedgerCoordinator",
    "LedgerUpdateResult",
    "KeyedLockRegistry",
    # Interfaces
    "AssetRecord",
    "AssetRepository",
    "InvestmentRepository",
    "InvestorRecord",
    "InvestorRepository",
    "TransactionRepository",
    "UnitOfWork",
    # In-memory
    "InMemoryAssetRepository",
    "InMemoryInvestmentRepository",
    "InMemoryInvestorRepository",
    "InMemoryTransactionRepository",
    "InMemoryUnitOfWork",
]
