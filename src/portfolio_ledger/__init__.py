"""
portfolio-ledger — учёт позиций (portfolio, asset) по потоку транзакций.

Слои:
- core: value objects (Money, Quantity), Transaction, Position, ошибки, контракты
- engine: пересчёт позиции (incremental / full recompute)
- ledger: Coordinator, репозитории, блокировки по ключу

Приложение подключает вывод логов ledger через `configure_logging()`.
"""

from .logging_config import configure_logging, ledger_context

__version__ = "0.1.0"

__all__ = ["configure_logging", "ledger_context", "__version__"]
