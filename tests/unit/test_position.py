"""
Тесты для модели Position

Проверяет:
1. Открытие позиции только покупкой
2. add_quantity / reduce_quantity / include_yield
3. Инварианты модели (валюта, неотрицательность, уникальность событий)
4. Производные величины (средняя цена, PnL, доход)
5. Snapshot
6. Линейное время применения событий
"""

from datetime import timedelta
from decimal import Decimal
import time

import pytest
from pydantic import ValidationError

from portfolio_ledger.core.domain import (
    Money,
    Position,
    PositionTransaction,
    PositionYield,
    Quantity,
    TransactionType,
)
from portfolio_ledger.core.errors import (
    CurrencyMismatchError,
    DomainValidationError,
    InsufficientQuantityError,
    NotAllowedError,
)


def _entry(tx_id, side, quantity, price, date, currency="BRL"):
    return PositionTransaction(
        transaction_id=tx_id,
        side=side,
        quantity=Quantity.create(quantity),
        price=Money.create(price, currency),
        date=date,
    )


@pytest.fixture
def opened(t0) -> Position:
    """Позиция после BUY 100@10 с fees 5"""
    return Position.open(
        position_id="position-1",
        portfolio_id="portfolio-1",
        asset_id="asset-1",
        entry=_entry("tx-1", TransactionType.BUY, 100, 10, t0),
        fees=Money.create(5),
        opened_at=t0,
    )


# =============================================================================
# ОТКРЫТИЕ
# =============================================================================


class TestPositionOpen:
    """Тесты Position.open"""

    def test_open_from_buy(self, opened, t0):
        assert opened.quantity.value == Decimal("100")
        assert opened.total_invested.amount == Decimal("1005")
        assert opened.current_price.amount == Decimal("10")
        assert opened.created_at == t0
        assert opened.updated_at == t0
        assert [e.transaction_id for e in opened.transactions] == ["tx-1"]
        assert opened.version == 1

    def test_open_keeps_explicit_created_at(self, t0):
        created = t0 - timedelta(days=30)
        position = Position.open(
            position_id="position-1",
            portfolio_id="portfolio-1",
            asset_id="asset-1",
            entry=_entry("tx-1", TransactionType.BUY, 1, 10, t0),
            fees=Money.zero(),
            opened_at=t0,
            created_at=created,
        )
        assert position.created_at == created
        assert position.updated_at == t0

    def test_open_from_sell_rejected(self, t0):
        with pytest.raises(NotAllowedError, match="Only buy transactions"):
            Position.open(
                position_id="position-1",
                portfolio_id="portfolio-1",
                asset_id="asset-1",
                entry=_entry("tx-1", TransactionType.SELL, 1, 10, t0),
                fees=Money.zero(),
                opened_at=t0,
            )

    def test_entry_side_must_be_buy_or_sell(self, t0):
        with pytest.raises(ValidationError, match="side must be Buy or Sell"):
            _entry("tx-1", TransactionType.DIVIDEND, 1, 10, t0)


# =============================================================================
# ИЗМЕНЕНИЯ
# =============================================================================


class TestPositionChanges:
    """Тесты BUY / SELL / DIVIDEND на уровне модели"""

    def test_add_quantity(self, opened, t0):
        later = t0 + timedelta(days=1)
        updated = opened.add_quantity(
            _entry("tx-2", TransactionType.BUY, 50, 12, later), Money.zero(), later
        )
        assert updated.quantity.value == Decimal("150")
        assert updated.total_invested.amount == Decimal("1605")
        assert updated.current_price.amount == Decimal("12")
        assert updated.updated_at == later
        # Исходная позиция не изменилась
        assert opened.quantity.value == Decimal("100")

    def test_reduce_quantity_is_proportional(self, opened, t0):
        later = t0 + timedelta(days=1)
        updated = opened.reduce_quantity(_entry("tx-2", TransactionType.SELL, 25, 99, later), later)

        assert updated.quantity.value == Decimal("75")
        assert updated.total_invested.amount == Decimal("1005") * Decimal("0.75")
        # Цена продажи на cost basis не влияет, но обновляет current_price
        assert updated.current_price.amount == Decimal("99")

    def test_reduce_multiplies_before_dividing(self, t0):
        """I * (Q - s) / Q: 30 * 2 / 3 ровно 20"""
        position = Position.open(
            position_id="position-1",
            portfolio_id="portfolio-1",
            asset_id="asset-1",
            entry=_entry("tx-1", TransactionType.BUY, 3, 10, t0),
            fees=Money.zero(),
            opened_at=t0,
        )
        updated = position.reduce_quantity(_entry("tx-2", TransactionType.SELL, 1, 10, t0), t0)

        assert updated.total_invested.amount == Decimal("20")
        assert updated.average_price.amount == Decimal("10")

    def test_reduce_all(self, opened, t0):
        updated = opened.reduce_quantity(_entry("tx-2", TransactionType.SELL, 100, 11, t0), t0)
        assert updated.quantity.is_zero()
        assert updated.total_invested.is_zero()
        assert updated.average_price.is_zero()
        assert not updated.has_quantity()

    def test_reduce_more_than_held(self, opened, t0):
        with pytest.raises(InsufficientQuantityError):
            opened.reduce_quantity(_entry("tx-2", TransactionType.SELL, 101, 10, t0), t0)

    def test_reduce_currency_mismatch(self, opened, t0):
        with pytest.raises(CurrencyMismatchError):
            opened.reduce_quantity(
                _entry("tx-2", TransactionType.SELL, 1, 10, t0, currency="USD"), t0
            )

    def test_include_yield(self, opened, t0):
        entry = PositionYield(yield_id="tx-9", income_value=Money.create(30), date=t0)
        updated = opened.include_yield(entry, Money.create(11), t0)

        assert updated.quantity == opened.quantity
        assert updated.total_invested == opened.total_invested
        assert updated.current_price.amount == Decimal("11")
        assert updated.get_total_yield().amount == Decimal("30")
        assert updated.has_applied("tx-9")

    def test_update_current_price(self, opened, t0):
        updated = opened.update_current_price(Money.create(20), t0)
        assert updated.current_price.amount == Decimal("20")
        assert updated.version == opened.version

    def test_update_current_price_currency_mismatch(self, opened, t0):
        with pytest.raises(CurrencyMismatchError):
            opened.update_current_price(Money.create(20, "USD"), t0)


# =============================================================================
# ИНВАРИАНТЫ
# =============================================================================


class TestPositionInvariants:
    def test_negative_total_invested_rejected(self, t0):
        with pytest.raises(ValidationError, match="total_invested cannot be negative"):
            Position(
                id="position-1",
                portfolio_id="portfolio-1",
                asset_id="asset-1",
                quantity=Quantity.zero(),
                total_invested=Money.create(-1),
                current_price=Money.create(1),
                created_at=t0,
            )

    def test_mixed_currency_rejected(self, t0):
        with pytest.raises(ValidationError, match="share currency"):
            Position(
                id="position-1",
                portfolio_id="portfolio-1",
                asset_id="asset-1",
                quantity=Quantity.zero(),
                total_invested=Money.zero("BRL"),
                current_price=Money.create(1, "USD"),
                created_at=t0,
            )

    def test_duplicate_event_ids_rejected(self, opened, t0):
        with pytest.raises(DomainValidationError, match="duplicate event ids"):
            opened.add_quantity(_entry("tx-1", TransactionType.BUY, 1, 10, t0), Money.zero(), t0)

    def test_duplicate_yield_id_rejected(self, opened, t0):
        entry = PositionYield(yield_id="tx-1", income_value=Money.create(1), date=t0)
        with pytest.raises(DomainValidationError, match="duplicate event ids"):
            opened.include_yield(entry, Money.create(10), t0)

    def test_duplicate_event_ids_rejected_on_construction(self, opened, t0):
        data = opened.model_dump()
        data["transactions"] = [data["transactions"][0], data["transactions"][0]]
        with pytest.raises(ValidationError, match="duplicate event ids"):
            Position.model_validate(data)

    def test_evolved_equals_constructed(self, opened, t0):
        """Позиция после изменений равна позиции, собранной из тех же полей"""
        later = t0 + timedelta(days=1)
        updated = opened.reduce_quantity(_entry("tx-2", TransactionType.SELL, 40, 11, later), later)
        rebuilt = Position.model_validate(updated.model_dump())

        assert rebuilt == updated
        assert rebuilt.applied_event_ids() == frozenset({"tx-1", "tx-2"})

    def test_immutable(self, opened):
        with pytest.raises(ValidationError):
            opened.quantity = Quantity.zero()  # type: ignore[misc]


# =============================================================================
# ПРОИЗВОДНЫЕ ВЕЛИЧИНЫ
# =============================================================================


class TestPositionDerived:
    def test_average_price(self, opened):
        assert opened.average_price.amount == Decimal("10.05")

    def test_profit_loss(self, opened, t0):
        marked = opened.update_current_price(Money.create(12), t0)
        assert marked.get_current_value().amount == Decimal("1200")
        assert marked.get_profit_loss().amount == Decimal("195")
        assert marked.is_in_profit()
        assert not marked.is_in_loss()

    def test_loss(self, opened, t0):
        marked = opened.update_current_price(Money.create(9), t0)
        assert marked.is_in_loss()
        assert marked.get_profit_loss_percentage() < 0

    def test_profit_loss_percentage(self, t0):
        position = Position.open(
            position_id="position-1",
            portfolio_id="portfolio-1",
            asset_id="asset-1",
            entry=_entry("tx-1", TransactionType.BUY, 10, 10, t0),
            fees=Money.zero(),
            opened_at=t0,
        ).update_current_price(Money.create("12.5"), t0)
        assert position.get_profit_loss_percentage() == Decimal("25")

    def test_belongs_to_portfolio(self, opened):
        assert opened.belongs_to_portfolio("portfolio-1")
        assert not opened.belongs_to_portfolio("portfolio-2")

    def test_applied_event_ids(self, opened):
        assert opened.applied_event_ids() == frozenset({"tx-1"})


class TestPositionSnapshot:
    def test_snapshot_fields(self, opened):
        snapshot = opened.to_snapshot()

        assert snapshot["id"] == "position-1"
        assert snapshot["version"] == 1
        assert snapshot["quantity"] == {"value": "100"}
        assert snapshot["total_invested"] == {"amount": "1005.00", "currency": "BRL"}
        assert snapshot["average_price"] == {"amount": "10.05", "currency": "BRL"}
        assert snapshot["total_yield"] == {"amount": "0.00", "currency": "BRL"}
        assert snapshot["profit_loss"] == {"amount": "-5.00", "currency": "BRL"}
        assert snapshot["transactions"][0]["side"] == "Buy"


# =============================================================================
# МАСШТАБИРУЕМОСТЬ
# =============================================================================


def _apply_buys(opened: Position, count: int, t0) -> Position:
    position = opened
    for i in range(count):
        entry = _entry(f"tx-{i + 2}", TransactionType.BUY, 1, 10, t0)
        position = position.add_quantity(entry, Money.zero(), t0)
    return position


def _best_of(runs: int, fn) -> float:
    timings = []
    for _ in range(runs):
        started = time.perf_counter()
        fn()
        timings.append(time.perf_counter() - started)
    return min(timings)


class TestPositionScaling:
    """Применение события не перепроверяет всю историю"""

    def test_history_grows_by_one_event(self, opened, t0):
        position = _apply_buys(opened, 50, t0)
        assert position.version == 51
        assert position.has_applied("tx-51")
        assert not position.has_applied("tx-52")
        assert position.quantity.value == Decimal("150")

    def test_apply_time_is_linear(self, opened, t0):
        small = _best_of(3, lambda: _apply_buys(opened, 400, t0))
        large = _best_of(3, lambda: _apply_buys(opened, 1600, t0))

        # Квадратичный рост дал бы отношение около 16
        assert large / small < 10
