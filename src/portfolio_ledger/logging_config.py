"""
Logging для ledger.

Пакет пишет в логгеры `portfolio_ledger.*`; `configure_logging` навешивает
обработчик только на логгер пакета, корневой логгер приложения не трогает.

Контекст события передаётся через `extra=ledger_context(...)`: поля
portfolio_id, asset_id, transaction_id, position_id, kind попадают в
текстовую строку как `key=value` и в JSON как отдельные ключи.

Переменные окружения:
- LEDGER_LOG_LEVEL (default INFO)
- LEDGER_LOG_JSON: 1/true/yes, однострочный JSON
"""

import json
import logging
import os
import sys
from typing import Dict, Mapping, Optional

PACKAGE_LOGGER = "portfolio_ledger"
CONTEXT_FIELDS = ("portfolio_id", "asset_id", "transaction_id", "position_id", "kind")

_TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s%(context)s"


def ledger_context(
    portfolio_id: Optional[str] = None,
    asset_id: Optional[str] = None,
    transaction_id: Optional[str] = None,
    position_id: Optional[str] = None,
    kind: Optional[str] = None,
) -> Dict[str, Optional[str]]:
    """`extra` для записи лога; все поля контекста присутствуют всегда."""
    return {
        "portfolio_id": portfolio_id,
        "asset_id": asset_id,
        "transaction_id": transaction_id,
        "position_id": position_id,
        "kind": kind,
    }


def _context_of(record: logging.LogRecord) -> Dict[str, str]:
    context = {}
    for name in CONTEXT_FIELDS:
        value = getattr(record, name, None)
        if value is not None:
            context[name] = str(value)
    return context


class TextFormatter(logging.Formatter):
    """Текстовый формат с хвостом ` key=value` из контекста."""

    def __init__(self):
        super().__init__(_TEXT_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        context = _context_of(record)
        record.context = "".join(f" {k}={v}" for k, v in context.items())
        return super().format(record)


class JsonFormatter(logging.Formatter):
    """Однострочный JSON: ts, level, logger, message и непустой контекст."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S") + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_context_of(record))
        if record.exc_info and record.exc_info[0]:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def configure_logging(environ: Optional[Mapping[str, str]] = None) -> logging.Logger:
    """
    Настройка логгера пакета по LEDGER_LOG_LEVEL / LEDGER_LOG_JSON.

    Повторный вызов заменяет обработчик, а не добавляет второй.

    Returns:
        Логгер `portfolio_ledger`
    """
    env = os.environ if environ is None else environ

    level = logging.getLevelName((env.get("LEDGER_LOG_LEVEL") or "INFO").upper())
    if not isinstance(level, int):
        level = logging.INFO

    use_json = env.get("LEDGER_LOG_JSON", "").lower() in ("1", "true", "yes")

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter() if use_json else TextFormatter())
    logger.addHandler(handler)
    # Записи не дублируются обработчиками корневого логгера
    logger.propagate = False
    return logger
