"""
Тесты для PositionCache

Кэш только оптимизация: результат всегда совпадает с fold_transactions.
resolve кэш не заполняет, позицию кладёт вызывающий после сохранения.
"""

from decimal import Decimal

import pytest

from portfolio_ledger.core.domain import TransactionType
from portfolio_ledger.engine import PositionCache, fold_transactions


@pytest.fixture
def cache() -> PositionCache:
    return PositionCache()


def _resolve_and_put(cache, history):
    position = cache.resolve(history).unwrap()
    cache.put(position)
    return position


class TestPositionCache:
    """Тесты resolve"""

    def test_first_resolve_recomputes(self, cache, end_to_end_history):
        result = cache.resolve(end_to_end_history)

        assert result.unwrap() == fold_transactions(end_to_end_history).unwrap()
        assert cache.stats.recomputes == 1

    def test_resolve_does_not_store(self, cache, end_to_end_history):
        cache.resolve(end_to_end_history)
        cache.resolve(end_to_end_history)

        assert len(cache) == 0
        assert cache.stats.recomputes == 2
        assert cache.stats.hits == 0

    def test_same_history_is_hit(self, cache, end_to_end_history):
        first = _resolve_and_put(cache, end_to_end_history)
        second = cache.resolve(list(reversed(end_to_end_history))).unwrap()

        assert second == first
        assert cache.stats.hits == 1
        assert cache.stats.recomputes == 1
        assert len(cache) == 1

    def test_appended_transaction_is_incremental(self, cache, end_to_end_history, make_tx):
        _resolve_and_put(cache, end_to_end_history)
        extended = end_to_end_history + [
            make_tx("tx-4", TransactionType.BUY, quantity=10, price=20, day=3)
        ]

        position = cache.resolve(extended).unwrap()

        assert cache.stats.incremental == 1
        assert cache.stats.recomputes == 1
        assert position == fold_transactions(extended).unwrap()
        assert position.total_invested.amount == Decimal("1160")
        # Кэш по-прежнему держит сохранённую позицию
        assert cache.get(position.key).version == 3

    def test_unsaved_result_is_not_reused(self, cache, end_to_end_history, make_tx):
        """Отброшенный результат не влияет на следующий resolve того же id"""
        _resolve_and_put(cache, end_to_end_history)
        small = end_to_end_history + [
            make_tx("tx-4", TransactionType.BUY, quantity=10, price=20, day=3)
        ]
        large = end_to_end_history + [
            make_tx("tx-4", TransactionType.BUY, quantity=40, price=20, day=3)
        ]

        cache.resolve(small)
        position = cache.resolve(large).unwrap()

        assert position.quantity.value == Decimal("130")
        assert position == fold_transactions(large).unwrap()

    def test_backdated_transaction_forces_recompute(self, cache, end_to_end_history, make_tx):
        _resolve_and_put(cache, end_to_end_history)
        backdated = end_to_end_history + [
            make_tx("tx-0", TransactionType.BUY, quantity=10, price=1, day=-1)
        ]

        position = cache.resolve(backdated).unwrap()

        assert cache.stats.incremental == 0
        assert cache.stats.invalidations == 1
        assert cache.stats.recomputes == 2
        assert position == fold_transactions(backdated).unwrap()

    def test_removed_transaction_forces_recompute(self, cache, end_to_end_history):
        _resolve_and_put(cache, end_to_end_history)
        shortened = end_to_end_history[:2]

        position = cache.resolve(shortened).unwrap()

        assert cache.stats.recomputes == 2
        assert cache.stats.invalidations == 1
        assert position.quantity.value == Decimal("150")

    def test_failed_incremental_drops_entry(self, cache, end_to_end_history, make_tx):
        _resolve_and_put(cache, end_to_end_history)
        oversell = end_to_end_history + [
            make_tx("tx-4", TransactionType.SELL, quantity=1000, price=20, day=3)
        ]

        result = cache.resolve(oversell)

        assert result.is_failure
        assert len(cache) == 0

    def test_failed_recompute_is_not_cached(self, cache, make_tx):
        result = cache.resolve([make_tx("tx-1", TransactionType.SELL, quantity=1)])
        assert result.is_failure
        assert len(cache) == 0

    def test_existing_identity_kept_on_recompute(self, cache, end_to_end_history):
        stored = fold_transactions(end_to_end_history, position_id="stored-id").unwrap()
        position = cache.resolve(end_to_end_history, existing=stored).unwrap()
        assert position.id == "stored-id"

    def test_invalidate_and_clear(self, cache, end_to_end_history):
        _resolve_and_put(cache, end_to_end_history)
        key = end_to_end_history[0].key

        cache.invalidate(key)
        assert cache.get(key) is None
        assert cache.stats.invalidations == 1

        _resolve_and_put(cache, end_to_end_history)
        cache.clear()
        assert len(cache) == 0
