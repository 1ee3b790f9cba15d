"""Конфигурация ledger.

Значения по умолчанию покрывают штатную работу; `from_env` позволяет
переопределить их переменными окружения:

- LEDGER_STRATEGY: incremental | full_recompute (full_recompute)
- LEDGER_POSITION_CACHE: 1/0, incremental-кэш поверх full recompute (1)
- LEDGER_MONEY_PLACES: знаков после запятой в snapshot'ах (2)
"""

from dataclasses import dataclass
import os
from typing import Mapping, Optional

from .core.math.decimal_safeguards import MONEY_PLACES_DEFAULT
from .engine.recalculation import RecalculationStrategy

_TRUTHY = ("1", "true", "yes", "on")
_FALSY = ("0", "false", "no", "off")


@dataclass(frozen=True)
class LedgerConfig:
    """Конфигурация Coordinator.

    strategy:
    - FULL_RECOMPUTE: свёртка полной истории (источник истины)
    - INCREMENTAL: применение одной транзакции к сохранённой позиции
    """

    strategy: RecalculationStrategy = RecalculationStrategy.FULL_RECOMPUTE
    use_position_cache: bool = True
    money_places: int = MONEY_PLACES_DEFAULT

    def __post_init__(self):
        if self.money_places < 0:
            raise ValueError(f"money_places cannot be negative, got {self.money_places}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "LedgerConfig":
        """
        Конфигурация из переменных окружения.

        Raises:
            ValueError: Некорректное значение переменной
        """
        env = os.environ if environ is None else environ

        strategy_raw = env.get("LEDGER_STRATEGY", RecalculationStrategy.FULL_RECOMPUTE.value)
        try:
            strategy = RecalculationStrategy(strategy_raw.strip().lower())
        except ValueError as e:
            raise ValueError(f"Unknown LEDGER_STRATEGY: {strategy_raw!r}") from e

        cache_raw = env.get("LEDGER_POSITION_CACHE", "1").strip().lower()
        if cache_raw in _TRUTHY:
            use_cache = True
        elif cache_raw in _FALSY:
            use_cache = False
        else:
            raise ValueError(f"LEDGER_POSITION_CACHE must be a boolean flag, got {cache_raw!r}")

        places_raw = env.get("LEDGER_MONEY_PLACES", str(MONEY_PLACES_DEFAULT))
        try:
            places = int(places_raw)
        except ValueError as e:
            raise ValueError(f"LEDGER_MONEY_PLACES must be an integer, got {places_raw!r}") from e

        return cls(strategy=strategy, use_position_cache=use_cache, money_places=places)
