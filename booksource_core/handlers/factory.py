"""
Фабрика обработчиков запросов.

Создает обработчик по виду запроса: book_info, toc, content,
book_list, explore.
"""

from typing import Dict, List, Type
import logging

from ..config.base import SourceDefinition
from ..errors import ConfigurationError
from .base import EndpointHandler

logger = logging.getLogger(__name__)


class EndpointHandlerFactory:
    """Фабрика обработчиков запросов."""

    # Регистр обработчиков по виду запроса
    _handler_registry: Dict[str, Type[EndpointHandler]] = {}

    @classmethod
    def register_handler(cls, kind: str, handler_class: Type[EndpointHandler]):
        """
        Регистрация обработчика для вида запроса.

        Args:
            kind: Вид запроса (book_info, toc, content, book_list, explore)
            handler_class: Класс обработчика
        """
        cls._handler_registry[kind] = handler_class
        logger.debug(f"Зарегистрирован обработчик для вида запроса: {kind}")

    @classmethod
    def create_handler(cls, kind: str, source: SourceDefinition, **deps) -> EndpointHandler:
        """
        Создание обработчика.

        Args:
            kind: Вид запроса
            source: Источник
            **deps: fetcher, resolver, config, auth_store, sanitizer

        Returns:
            EndpointHandler: Обработчик запроса

        Raises:
            ConfigurationError: Неизвестный вид запроса
        """
        handler_class = cls._handler_registry.get(kind)
        if handler_class is None:
            raise ConfigurationError(f"Не найден обработчик для вида запроса: {kind}")

        handler = handler_class(source, **deps)
        logger.debug(f"Создан обработчик {kind} для источника: {source.id}")
        return handler

    @classmethod
    def get_available_kinds(cls) -> List[str]:
        return list(cls._handler_registry.keys())


# Регистрируем обработчики
from .book_info_handler import BookInfoHandler  # noqa: E402
from .book_list_handler import BookListHandler, CategoryHandler  # noqa: E402
from .content_handler import ContentHandler  # noqa: E402
from .toc_handler import TocHandler  # noqa: E402

EndpointHandlerFactory.register_handler("book_info", BookInfoHandler)
EndpointHandlerFactory.register_handler("toc", TocHandler)
EndpointHandlerFactory.register_handler("content", ContentHandler)
EndpointHandlerFactory.register_handler("book_list", BookListHandler)
EndpointHandlerFactory.register_handler("explore", CategoryHandler)
