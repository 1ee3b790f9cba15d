"""Общие fixtures: фабрика транзакций и базовое время."""

from datetime import datetime, timedelta, timezone

import pytest

from portfolio_ledger.core.domain import Money, Quantity, Transaction, TransactionType

T0 = datetime(2024, 1, 2, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def t0() -> datetime:
    return T0


@pytest.fixture
def make_tx():
    """Фабрика Transaction; `day` сдвигает executed_at/created_at от T0."""

    def _make(
        tx_id: str,
        tx_type: TransactionType,
        quantity=None,
        price="10",
        fees=None,
        income=None,
        day: int = 0,
        currency: str = "BRL",
        portfolio_id: str = "portfolio-1",
        asset_id: str = "asset-1",
    ) -> Transaction:
        executed_at = T0 + timedelta(days=day)
        data = {
            "id": tx_id,
            "portfolio_id": portfolio_id,
            "asset_id": asset_id,
            "type": tx_type,
            "price": Money.create(price, currency),
            "executed_at": executed_at,
            "created_at": executed_at,
        }
        if quantity is not None:
            data["quantity"] = Quantity.create(quantity)
        if fees is not None:
            data["fees"] = Money.create(fees, currency)
        if income is not None:
            data["income"] = Money.create(income, currency)
        return Transaction(**data)

    return _make


@pytest.fixture
def end_to_end_history(make_tx):
    """BUY 100@10 → BUY 50@12 → SELL 60@15"""
    return [
        make_tx("tx-1", TransactionType.BUY, quantity=100, price=10, day=0),
        make_tx("tx-2", TransactionType.BUY, quantity=50, price=12, day=1),
        make_tx("tx-3", TransactionType.SELL, quantity=60, price=15, day=2),
    ]
