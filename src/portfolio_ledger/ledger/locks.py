"""Per-key serialization of position updates.

Один threading.Lock на ключ (portfolio_id, asset_id). Запись удаляется,
когда её больше никто не держит и не ждёт, поэтому реестр не растёт
с числом когда-либо обработанных пар.
"""

from contextlib import contextmanager
from dataclasses import dataclass, field
import threading
from typing import Dict, Hashable, Iterator


@dataclass
class _Entry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    holders: int = 0  # держат или ждут


class KeyedLockRegistry:
    """Реестр блокировок по ключу. Разные ключи не конкурируют."""

    def __init__(self):
        self._guard = threading.Lock()
        self._entries: Dict[Hashable, _Entry] = {}

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = _Entry()
                self._entries[key] = entry
            entry.holders += 1

        entry.lock.acquire()
        try:
            yield
        finally:
            entry.lock.release()
            with self._guard:
                entry.holders -= 1
                if entry.holders == 0:
                    del self._entries[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)

    def is_held(self, key: Hashable) -> bool:
        with self._guard:
            return key in self._entries
