"""
Хранилища значений для скриптов источников.

VariableStore хранит постоянную переменную источника
(source.getVariable/setVariable), BoundedCache обслуживает
cache.get/put/remove.
"""

from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Dict, Optional
import logging
import threading

logger = logging.getLogger(__name__)


class VariableStore(ABC):
    """Интерфейс хранилища переменных источников."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def put(self, key: str, value: str) -> None:
        pass


class InMemoryVariableStore(VariableStore):
    """Хранилище переменных в памяти (последняя запись побеждает)."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._values: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def put(self, key: str, value: str) -> None:
        self._values[key] = value


class BoundedCache:
    """Небольшой кэш ключ-значение с вытеснением самых старых записей."""

    def __init__(self, max_entries: int = 256):
        self.max_entries = max_entries
        self._data: "OrderedDict[str, str]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            value = self._data.get(key)
            if value is not None:
                self._data.move_to_end(key)
            return value

    def put(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value
            self._data.move_to_end(key)
            while len(self._data) > self.max_entries:
                evicted, _ = self._data.popitem(last=False)
                logger.debug(f"Кэш переполнен, вытеснен ключ {evicted}")

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def __len__(self) -> int:
        return len(self._data)
