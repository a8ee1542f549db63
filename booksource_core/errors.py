"""
Таксономия ошибок движка книжных источников.

Каждая ошибка несет категорию (ErrorCategory), по которой конвейер
решает, прерывать ли запрос (конфигурация, сеть) или подставлять
значение по умолчанию для отдельного поля (скрипт, парсинг).
"""

import asyncio
import json
from enum import Enum
from typing import Optional

import aiohttp
import quickjs


class ErrorCategory(Enum):
    """Категории ошибок движка."""

    CONFIGURATION = "configuration"  # Нет правил, нет хоста, источник отключен
    NETWORK = "network"  # Неуспешный ответ, таймаут, транспорт
    SCRIPT = "script"  # Исключение или таймаут в песочнице
    PARSING = "parsing"  # Тело ответа не JSON и не разметка
    UNKNOWN = "unknown"


class BookSourceError(Exception):
    """Базовая ошибка движка."""

    category = ErrorCategory.UNKNOWN
    fatal = True

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(BookSourceError):
    """Ошибка конфигурации источника. Фатальна, не повторяется."""

    category = ErrorCategory.CONFIGURATION


class NetworkError(BookSourceError):
    """Ошибка сети. Фатальна для попытки, повтор остается на вызывающей стороне."""

    category = ErrorCategory.NETWORK

    def __init__(self, message: str, status: Optional[int] = None, url: str = ""):
        super().__init__(message)
        self.status = status
        self.url = url


class ScriptError(BookSourceError):
    """Ошибка выполнения скрипта. Восстанавливается на уровне поля."""

    category = ErrorCategory.SCRIPT
    fatal = False


class ScriptTimeoutError(ScriptError):
    """Скрипт превысил лимит времени."""


class ParseError(BookSourceError):
    """Тело ответа нельзя разобрать. Конвейер трактует его как пустой контейнер."""

    category = ErrorCategory.PARSING
    fatal = False


def classify_error(error: Exception) -> ErrorCategory:
    """
    Классификация произвольного исключения.

    Args:
        error: Исключение для классификации

    Returns:
        ErrorCategory: Категория ошибки
    """
    if isinstance(error, BookSourceError):
        return error.category

    if isinstance(error, (asyncio.TimeoutError, ConnectionError)):
        return ErrorCategory.NETWORK

    if isinstance(error, aiohttp.ClientError):
        return ErrorCategory.NETWORK

    if isinstance(error, quickjs.JSException):
        return ErrorCategory.SCRIPT

    if isinstance(error, (json.JSONDecodeError, UnicodeDecodeError)):
        return ErrorCategory.PARSING

    return ErrorCategory.UNKNOWN
