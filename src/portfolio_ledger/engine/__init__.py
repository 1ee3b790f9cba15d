"""Engine — пересчёт позиций по потоку транзакций.

- recalculation: чистые функции apply_transaction / fold_transactions
- position_cache: incremental-кэш, инвалидируемый по версии истории
"""

from .position_cache import CacheStats, PositionCache
from .recalculation import (
    RecalculationResult,
    RecalculationStrategy,
    apply_transaction,
    fold_transactions,
    order_history,
    position_id_for,
)

__all__ = [
    "RecalculationResult",
    "RecalculationStrategy",
    "apply_transaction",
    "fold_transactions",
    "order_history",
    "position_id_for",
    "PositionCache",
    "CacheStats",
]
