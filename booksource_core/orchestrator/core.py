"""
Оркестратор движка книжных источников.

Выдает операции: информация о книге, оглавление, текст главы,
список книг каталога и разделы каталога.
Каждая возвращает PipelineResult и не пробрасывает ошибки движка.
"""

import logging
from typing import Optional

from ..config.base import EngineConfig, SourceDefinition
from ..errors import BookSourceError, ConfigurationError, ErrorCategory, classify_error
from ..handlers.factory import EndpointHandlerFactory
from ..integration.auth import AuthStore
from ..integration.repository import SourceRepository
from ..integration.storage import BoundedCache, VariableStore
from ..models import PipelineResult
from ..parsers.resolver import RuleResolver
from ..parsers.sanitizer import ContentSanitizer
from ..parsers.selector import SelectorClient
from ..sandbox.host import ScriptHost
from .fetcher import HttpFetcher

logger = logging.getLogger(__name__)


class BookSourceOrchestrator:
    """Оркестратор запросов к источникам."""

    def __init__(
        self,
        repository: SourceRepository,
        config: Optional[EngineConfig] = None,
        auth_store: Optional[AuthStore] = None,
        variable_store: Optional[VariableStore] = None,
        fetcher: Optional[HttpFetcher] = None,
    ):
        """
        Инициализация оркестратора.

        Args:
            repository: Репозиторий источников
            config: Конфигурация движка
            auth_store: Хранилище cookie
            variable_store: Хранилище переменных источников
            fetcher: HTTP-клиент (по умолчанию с таймаутом из конфигурации)
        """
        self.repository = repository
        self.config = config or EngineConfig()
        self.auth_store = auth_store
        self.variable_store = variable_store
        self.fetcher = fetcher or HttpFetcher(timeout=self.config.request_timeout)

        self.cache = BoundedCache()
        self.script_host = ScriptHost(
            config=self.config,
            auth_store=auth_store,
            variable_store=variable_store,
            cache=self.cache,
        )
        self.resolver = RuleResolver(self.script_host, SelectorClient())
        self.sanitizer = ContentSanitizer(self.config.sanitize)
        self.handler_factory = EndpointHandlerFactory()

        logger.info(
            f"Оркестратор инициализирован, обработчики: "
            f"{', '.join(self.handler_factory.get_available_kinds())}"
        )

    async def fetch_book_info(self, source_id: str, url: str) -> PipelineResult:
        """
        Информация о книге (с оглавлением, если оно доступно).

        Args:
            source_id: Идентификатор источника
            url: URL страницы книги

        Returns:
            PipelineResult: data - BookInfo
        """
        return await self._run("book_info", source_id, url)

    async def fetch_chapter_list(self, source_id: str, url: str) -> PipelineResult:
        """Оглавление по URL; data - список Chapter."""
        return await self._run("toc", source_id, url)

    async def fetch_chapter_content(self, source_id: str, url: str) -> PipelineResult:
        """Текст главы по URL; data - ChapterContent."""
        return await self._run("content", source_id, url)

    async def fetch_book_list(
        self, source_id: str, url: str = "", page: int = 1, key: str = ""
    ) -> PipelineResult:
        """
        Список книг раздела каталога или выдачи поиска.

        Args:
            source_id: Идентификатор источника
            url: URL раздела (по умолчанию find.url источника)
            page: Номер страницы для {{page}}
            key: Поисковый запрос для {{key}}

        Returns:
            PipelineResult: data - список BookListItem
        """
        return await self._run("book_list", source_id, url, page=page, key=key)

    async def fetch_categories(self, source_id: str) -> PipelineResult:
        """Разделы каталога из exploreUrl; data - список Category."""
        return await self._run("explore", source_id, "")

    def get_source(self, source_id: str) -> SourceDefinition:
        """
        Найти включенный источник.

        Raises:
            ConfigurationError: Источник не найден или отключен
        """
        source = self.repository.get_source(source_id)
        if source is None:
            raise ConfigurationError(f"Источник не найден: {source_id}")
        if not source.enabled:
            raise ConfigurationError(f"Источник отключен: {source_id}")
        return source

    async def _run(self, kind: str, source_id: str, url: str, **options) -> PipelineResult:
        logger.info(f"[{source_id}] запрос {kind}: {url}")
        try:
            source = self.get_source(source_id)
            handler = self.handler_factory.create_handler(
                kind,
                source,
                fetcher=self.fetcher,
                resolver=self.resolver,
                config=self.config,
                auth_store=self.auth_store,
                sanitizer=self.sanitizer,
            )
            data = await handler.process(url, **options)
        except BookSourceError as e:
            logger.error(f"[{source_id}] {kind} завершился ошибкой ({e.category.value}): {e}")
            return PipelineResult.failure(e.category, str(e))
        except Exception as e:
            category = classify_error(e)
            if category == ErrorCategory.UNKNOWN:
                logger.exception(f"[{source_id}] непредвиденная ошибка {kind}: {e}")
            else:
                logger.error(f"[{source_id}] {kind} завершился ошибкой ({category.value}): {e}")
            return PipelineResult.failure(category, str(e))

        logger.info(f"[{source_id}] запрос {kind} выполнен")
        return PipelineResult.ok(data)
