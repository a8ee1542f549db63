"""
Booksource Core - движок извлечения книг по декларативным источникам.

Основные компоненты:
- config: Описание источников и конфигурация движка (SourceDefinition, EngineConfig)
- parsers: Вычисление правил (селекторы, JSON-пути), списки, очистка текста
- sandbox: Изолированное выполнение скриптов источников
- handlers: Обработчики запросов (книга, оглавление, текст главы, каталог)
- orchestrator: HTTP-клиент и оркестратор запросов
- integration: Хранилища cookie и переменных, прокси, репозиторий источников

Версия: 1.0.0
"""

__version__ = "1.0.0"

from .config.base import (
    EngineConfig,
    SanitizeConfig,
    SourceDefinition,
    Rule,
    RuleKind,
)
from .config.loader import ConfigLoader
from .errors import (
    BookSourceError,
    ConfigurationError,
    ErrorCategory,
    NetworkError,
    ParseError,
    ScriptError,
    ScriptTimeoutError,
)
from .models import BookInfo, BookListItem, Category, Chapter, ChapterContent, PipelineResult
from .orchestrator.core import BookSourceOrchestrator
from .orchestrator.fetcher import HttpFetcher

__all__ = [
    "EngineConfig",
    "SanitizeConfig",
    "SourceDefinition",
    "Rule",
    "RuleKind",
    "ConfigLoader",
    "BookSourceError",
    "ConfigurationError",
    "ErrorCategory",
    "NetworkError",
    "ParseError",
    "ScriptError",
    "ScriptTimeoutError",
    "BookInfo",
    "BookListItem",
    "Category",
    "Chapter",
    "ChapterContent",
    "PipelineResult",
    "BookSourceOrchestrator",
    "HttpFetcher",
]
