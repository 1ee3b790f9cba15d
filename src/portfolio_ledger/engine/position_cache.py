"""Position Cache — incremental пересчёт как оптимизация поверх full recompute.

Кэш хранит последнюю сохранённую позицию для ключа (portfolio_id, asset_id).
Версия позиции — число применённых событий (Position.version). При каждом
запросе кэш сверяется с упорядоченной историей:

- версия == len(history) и применены те же id → позиция из кэша
- версия == len(history) - 1, применены все id, кроме последнего по порядку
  → incremental apply одной транзакции
- иначе (правка/удаление/вставка в середину истории) → full recompute

Результат incremental и full recompute совпадает, поэтому кэш никогда не
является источником истины.

`resolve` только читает кэш. Позицию кладёт вызывающий (`put`) после того,
как она сохранена: незафиксированная запись в кэш не попадает.
"""

from dataclasses import dataclass
import logging
import threading
from typing import Dict, Optional, Sequence, Tuple

from ..core.domain.position import Position
from ..core.domain.transaction import Transaction
from .recalculation import (
    RecalculationResult,
    apply_transaction,
    fold_transactions,
    order_history,
)

logger = logging.getLogger(__name__)

PositionKey = Tuple[str, str]


@dataclass
class CacheStats:
    """Счётчики использования кэша."""

    hits: int = 0
    incremental: int = 0
    recomputes: int = 0
    invalidations: int = 0


class PositionCache:
    """Кэш позиций с инвалидацией по версии истории.

    Потокобезопасен на уровне словаря; сериализация записи по ключу:
    ответственность вызывающего (KeyedLockRegistry в Coordinator).
    """

    def __init__(self):
        self._entries: Dict[PositionKey, Position] = {}
        self._lock = threading.Lock()
        self.stats = CacheStats()

    def get(self, key: PositionKey) -> Optional[Position]:
        with self._lock:
            return self._entries.get(key)

    def put(self, position: Position) -> None:
        with self._lock:
            self._entries[position.key] = position

    def invalidate(self, key: PositionKey) -> None:
        with self._lock:
            if self._entries.pop(key, None) is not None:
                self.stats.invalidations += 1

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def resolve(
        self,
        history: Sequence[Transaction],
        existing: Optional[Position] = None,
    ) -> RecalculationResult:
        """Позиция для полной истории пары, по возможности без полного пересчёта.

        Args:
            history: все транзакции пары (любой порядок, возможны дубликаты)
            existing: сохранённая позиция (её id и created_at сохраняются
                при полном пересчёте)

        Returns:
            RecalculationResult (failure сбрасывает запись ключа)
        """
        ordered = order_history(history)
        if not ordered:
            return fold_transactions(ordered)

        key = ordered[0].key
        cached = self.get(key)

        if cached is not None:
            applied = cached.applied_event_ids()
            version = len(ordered)

            if cached.version == version and applied == {tx.id for tx in ordered}:
                self.stats.hits += 1
                return RecalculationResult.success(cached, details="cache hit")

            last = ordered[-1]
            if (
                cached.version == version - 1
                and last.id not in applied
                and applied == {tx.id for tx in ordered[:-1]}
            ):
                result = apply_transaction(cached, last)
                if result.is_success:
                    self.stats.incremental += 1
                else:
                    self.invalidate(key)
                return result

            self.invalidate(key)

        self.stats.recomputes += 1
        result = fold_transactions(
            ordered,
            position_id=existing.id if existing is not None else None,
            created_at=existing.created_at if existing is not None else None,
        )
        if result.is_failure:
            logger.debug("Recompute failed for %s: %s", key, result.details)
        return result
