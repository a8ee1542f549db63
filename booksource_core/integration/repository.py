"""
Репозиторий описаний книжных источников.

Движок только читает источники; хранение и редактирование
остаются на стороне вызывающего кода.
"""

from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional
import logging

from ..config.base import SourceDefinition

logger = logging.getLogger(__name__)


class SourceRepository(ABC):
    """Интерфейс доступа к источникам."""

    @abstractmethod
    def get_source(self, source_id: str) -> Optional[SourceDefinition]:
        """
        Получить источник по идентификатору.

        Args:
            source_id: Идентификатор источника

        Returns:
            SourceDefinition или None, если источник не найден
        """
        pass


class InMemorySourceRepository(SourceRepository):
    """Репозиторий источников в памяти."""

    def __init__(self, sources: Iterable[SourceDefinition] = ()):
        self._sources: Dict[str, SourceDefinition] = {}
        for source in sources:
            self.add(source)

    def add(self, source: SourceDefinition) -> None:
        if source.id in self._sources:
            logger.warning(f"Источник {source.id} переопределен")
        self._sources[source.id] = source

    def get_source(self, source_id: str) -> Optional[SourceDefinition]:
        return self._sources.get(source_id)

    def list_sources(self, enabled_only: bool = False) -> List[SourceDefinition]:
        return [s for s in self._sources.values() if s.enabled or not enabled_only]

    def __len__(self) -> int:
        return len(self._sources)
