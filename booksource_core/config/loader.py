"""
Загрузчик конфигурации движка.

Обеспечивает загрузку конфигурации окружения и описаний книжных
источников из JSON-файлов с проверкой по JSON-схемам.
"""

import json
from typing import Any, Dict, List, Optional
from pathlib import Path
import logging

import jsonschema
from pydantic import ValidationError

from .base import EngineConfig, SourceDefinition
from .schemas import SCHEMA_ENGINE_CONFIG, SCHEMA_SOURCE
from ..errors import ConfigurationError
from ..integration.repository import InMemorySourceRepository

logger = logging.getLogger(__name__)


class ConfigLoader:
    """Загрузчик и валидатор конфигурации движка и источников."""

    def __init__(self, config_dir: str = "config"):
        """
        Инициализация загрузчика конфигурации.

        Args:
            config_dir: Директория с конфигурационными файлами
        """
        self.config_dir = Path(config_dir)

        # Кэшированные конфигурации
        self._engine_config: Optional[EngineConfig] = None
        self._sources: Dict[str, SourceDefinition] = {}

    def load_engine_config(self, config_path: Optional[str] = None) -> EngineConfig:
        """
        Загрузить конфигурацию окружения движка.

        Args:
            config_path: Путь к JSON-файлу конфигурации.
                        Если None, используется config/engine_config.json

        Returns:
            EngineConfig: Загруженная конфигурация (по умолчанию, если файла нет)
        """
        if config_path is None:
            path = self.config_dir / "engine_config.json"
        else:
            path = Path(config_path)

        if not path.exists():
            logger.warning(f"Файл конфигурации не найден: {path}")
            logger.info("Используется конфигурация по умолчанию")
            self._engine_config = EngineConfig()
            return self._engine_config

        config_data = self._read_json(path)
        try:
            jsonschema.validate(config_data, SCHEMA_ENGINE_CONFIG)
            self._engine_config = EngineConfig(**config_data)
        except (jsonschema.ValidationError, ValidationError) as e:
            logger.error(f"Некорректная конфигурация в {path}: {e}")
            raise ConfigurationError(f"Некорректная конфигурация {path}: {e}") from e

        logger.info(f"Конфигурация окружения загружена из {path}")
        return self._engine_config

    def load_sources(self, sources_path: str) -> Dict[str, SourceDefinition]:
        """
        Загрузить описания источников.

        Файл содержит либо список источников, либо объект {"sources": [...]}.
        Некорректный источник пропускается с ошибкой в логе.

        Args:
            sources_path: Путь к JSON-файлу источников

        Returns:
            Dict[str, SourceDefinition]: Источники по ID
        """
        path = Path(sources_path)
        if not path.exists():
            raise ConfigurationError(f"Файл источников не найден: {path}")

        data = self._read_json(path)
        entries = data.get("sources") if isinstance(data, dict) else data
        if not isinstance(entries, list):
            raise ConfigurationError(
                f"Файл {path} должен содержать список источников или ключ 'sources'"
            )

        self._sources = {}
        for index, entry in enumerate(entries):
            try:
                source = self.parse_source(entry)
            except ConfigurationError as e:
                logger.error(f"Источник #{index} в {path} пропущен: {e}")
                continue
            self._sources[source.id] = source

        logger.info(f"Источники загружены из {path}")
        logger.info(f"Загружено источников: {len(self._sources)}")
        return self._sources

    @staticmethod
    def parse_source(entry: Any) -> SourceDefinition:
        """
        Проверить и разобрать одно описание источника.

        Args:
            entry: Словарь описания источника

        Returns:
            SourceDefinition: Источник с классифицированными правилами
        """
        try:
            jsonschema.validate(entry, SCHEMA_SOURCE)
            return SourceDefinition(**entry)
        except (jsonschema.ValidationError, ValidationError) as e:
            message = e.message if isinstance(e, jsonschema.ValidationError) else str(e)
            raise ConfigurationError(f"Некорректное описание источника: {message}") from e

    def get_source(self, source_id: str) -> Optional[SourceDefinition]:
        """
        Получить загруженный источник по ID.

        Args:
            source_id: Идентификатор источника

        Returns:
            SourceDefinition или None, если источник не найден
        """
        return self._sources.get(source_id)

    def get_enabled_sources(self) -> List[SourceDefinition]:
        return [s for s in self._sources.values() if s.enabled]

    def build_repository(
        self, sources_path: Optional[str] = None
    ) -> InMemorySourceRepository:
        """
        Построить репозиторий источников.

        Args:
            sources_path: Путь к файлу источников. Если None, используются
                        уже загруженные источники

        Returns:
            InMemorySourceRepository: Репозиторий источников
        """
        if sources_path is not None:
            self.load_sources(sources_path)
        return InMemorySourceRepository(self._sources.values())

    @staticmethod
    def _read_json(path: Path) -> Any:
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Ошибка парсинга JSON в {path}: {e}")
            raise ConfigurationError(f"Ошибка парсинга JSON в {path}: {e}") from e
