"""
Domain models and value objects.

Contains fundamental domain entities like Money, Quantity, Transaction, Position.
"""

from .money import DEFAULT_CURRENCY, Money
from .position import Position, PositionTransaction, PositionYield
from .quantity import Quantity
from .transaction import Transaction, TransactionType

__all__ = [
    # Value objects
    "DEFAULT_CURRENCY",
    "Money",
    "Quantity",
    # Transaction model
    "Transaction",
    "TransactionType",
    # Position model
    "Position",
    "PositionTransaction",
    "PositionYield",
]
