"""In-memory реализации репозиториев и UnitOfWork.

Каждое хранилище ведёт журнал отмены для текущего потока: внутри
`InMemoryUnitOfWork.transaction()` запись запоминает предыдущее значение
ключа, и при исключении восстанавливаются только ключи, записанные этим
потоком. Записи других потоков (другие пары) откатом не затрагиваются.
"""

from contextlib import contextmanager
import threading
from typing import Any, Dict, Hashable, Iterable, Iterator, List, Optional, Sequence, Tuple

from ..core.domain.position import Position
from ..core.domain.transaction import Transaction
from .repositories import AssetRecord, InvestorRecord

_MISSING = object()


class _JournaledStore:
    """Словарь с потоковым журналом отмены."""

    def __init__(self):
        self._items: Dict[Hashable, Any] = {}
        self._lock = threading.RLock()
        self._local = threading.local()

    def begin(self) -> None:
        self._local.journal = []

    def commit(self) -> None:
        self._local.journal = None

    def rollback(self) -> None:
        journal: Optional[List[Tuple[Hashable, Any]]] = getattr(self._local, "journal", None)
        self._local.journal = None
        if not journal:
            return
        with self._lock:
            for key, previous in reversed(journal):
                if previous is _MISSING:
                    self._items.pop(key, None)
                else:
                    self._items[key] = previous

    def _get(self, key: Hashable) -> Any:
        with self._lock:
            return self._items.get(key)

    def _values(self) -> List[Any]:
        with self._lock:
            return list(self._items.values())

    def _set(self, key: Hashable, value: Any) -> None:
        with self._lock:
            journal = getattr(self._local, "journal", None)
            if journal is not None:
                journal.append((key, self._items.get(key, _MISSING)))
            self._items[key] = value

    def _contains(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class InMemoryInvestorRepository(_JournaledStore):
    def __init__(self, investors: Iterable[InvestorRecord] = ()):
        super().__init__()
        for investor in investors:
            self.add(investor)

    def add(self, investor: InvestorRecord) -> None:
        self._set(investor.id, investor)

    def find_by_id(self, investor_id: str) -> Optional[InvestorRecord]:
        return self._get(investor_id)


class InMemoryAssetRepository(_JournaledStore):
    def __init__(self, assets: Iterable[AssetRecord] = ()):
        super().__init__()
        for asset in assets:
            self.add(asset)

    def add(self, asset: AssetRecord) -> None:
        self._set(asset.id, asset)

    def find_by_id(self, asset_id: str) -> Optional[AssetRecord]:
        return self._get(asset_id)


class InMemoryTransactionRepository(_JournaledStore):
    """Append-only: create, плюс replace/delete для правок истории."""

    def find_by_id(self, transaction_id: str) -> Optional[Transaction]:
        return self._get(transaction_id)

    def find_many_by_portfolio_and_asset(
        self, portfolio_id: str, asset_id: str
    ) -> Sequence[Transaction]:
        key = (portfolio_id, asset_id)
        return [tx for tx in self._values() if tx.key == key]

    def create(self, transaction: Transaction) -> None:
        with self._lock:
            if self._contains(transaction.id):
                raise ValueError(f"Transaction {transaction.id} already exists")
            self._set(transaction.id, transaction)

    def replace(self, transaction: Transaction) -> None:
        """Правка сохранённой транзакции (после неё нужен recalculate_investment)."""
        with self._lock:
            if not self._contains(transaction.id):
                raise KeyError(transaction.id)
            self._set(transaction.id, transaction)

    def delete(self, transaction_id: str) -> None:
        with self._lock:
            if not self._contains(transaction_id):
                raise KeyError(transaction_id)
            journal = getattr(self._local, "journal", None)
            if journal is not None:
                journal.append((transaction_id, self._items[transaction_id]))
            del self._items[transaction_id]


class InMemoryInvestmentRepository(_JournaledStore):
    def find_by_portfolio_id_and_asset_id(
        self, portfolio_id: str, asset_id: str
    ) -> Optional[Position]:
        return self._get((portfolio_id, asset_id))

    def find_many_by_portfolio_id(self, portfolio_id: str) -> List[Position]:
        positions = [p for p in self._values() if p.belongs_to_portfolio(portfolio_id)]
        return sorted(positions, key=lambda p: p.asset_id)

    def create(self, position: Position) -> None:
        with self._lock:
            if self._contains(position.key):
                raise ValueError(f"Position for {position.key} already exists")
            self._set(position.key, position)

    def update(self, position: Position) -> None:
        with self._lock:
            if not self._contains(position.key):
                raise KeyError(position.key)
            self._set(position.key, position)


class InMemoryUnitOfWork:
    """UnitOfWork поверх набора in-memory хранилищ."""

    def __init__(self, *stores: _JournaledStore):
        self._stores = stores

    @contextmanager
    def transaction(self) -> Iterator[None]:
        for store in self._stores:
            store.begin()
        try:
            yield
        except BaseException:
            for store in self._stores:
                store.rollback()
            raise
        else:
            for store in self._stores:
                store.commit()
