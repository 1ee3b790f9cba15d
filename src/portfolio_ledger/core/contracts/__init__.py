"""
Contract Validation Module

Модуль для валидации JSON контрактов ledger.
"""

from .validators import (
    ContractValidator,
    PositionSnapshotValidator,
    SchemaLoader,
    TransactionEventValidator,
    parse_transaction_event,
    validate_position_snapshot,
    validate_transaction_event,
)

__all__ = [
    # Classes
    "SchemaLoader",
    "ContractValidator",
    "TransactionEventValidator",
    "PositionSnapshotValidator",
    # Functions
    "validate_transaction_event",
    "validate_position_snapshot",
    "parse_transaction_event",
]
