"""
Парсеры для извлечения данных.

Модули:
- selector: Селекторы по разметке (BeautifulSoup + lxml)
- json_path: Обход JSON-контейнеров
- request: Разбор URL с опциями запроса и псевдо-URL data:
- resolver: Вычисление правил (импортируется напрямую, зависит от sandbox)
- list_extractor: Извлечение списков
- sanitizer: Очистка текста главы и описания
"""

from .context import EvaluationContext
from .json_path import as_json_container, to_text, walk
from .request import RequestDescriptor, parse_request, resolve_relative
from .selector import SelectorClient

__all__ = [
    "EvaluationContext",
    "as_json_container",
    "to_text",
    "walk",
    "RequestDescriptor",
    "parse_request",
    "resolve_relative",
    "SelectorClient",
]
