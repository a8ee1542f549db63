"""
Извлечение упорядоченного списка сущностей (глав, книг).

Правило списка дает подконтейнеры, правила полей вычисляются над
каждым из них. Порядок документа сохраняется, дубликаты по url
отбрасываются (остается первый).
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional
import logging

from ..config.base import EngineConfig, SourceDefinition
from ..errors import ScriptError
from .context import EvaluationContext
from .json_path import as_json_container
from .resolver import LIST_KEYS, RuleLike, RuleResolver, resolve_fields

logger = logging.getLogger(__name__)

Entry = Dict[str, str]
REQUIRED_FIELDS = ("url", "title")


class ListExtractor:
    """Извлекатель списков."""

    def __init__(self, resolver: RuleResolver, config: Optional[EngineConfig] = None):
        """
        Инициализация извлекателя.

        Args:
            resolver: Вычислитель правил
            config: Конфигурация движка (list_workers)
        """
        self.resolver = resolver
        self.config = config or EngineConfig()
        self.logger = logging.getLogger(f"{__name__}.ListExtractor")

    def extract_list(
        self,
        container: Any,
        list_rule: RuleLike,
        field_rules: Dict[str, RuleLike],
        base_url: str,
        source: SourceDefinition,
        ctx: Optional[EvaluationContext] = None,
        transform: Optional[Callable[[Entry], Entry]] = None,
    ) -> List[Entry]:
        """
        Построить список сущностей.

        Если правило списка ничего не дало, а контейнер - JSON с массивом
        верхнего уровня (или под data/list/...), массив используется как
        список, и вычисляются только правила url и title.

        Args:
            container: Тело ответа (разметка или JSON)
            list_rule: Правило списка
            field_rules: Правила полей по именам
            base_url: База для относительных ссылок
            source: Источник
            ctx: Контекст вычисления (создается, если не передан)
            transform: Обработка записи до фильтрации

        Returns:
            List[Entry]: Записи с непустыми url и title, без дубликатов
        """
        if ctx is None:
            ctx = EvaluationContext(source=source, base_url=base_url)
        elif base_url and ctx.base_url != base_url:
            ctx = ctx.with_base_url(base_url)

        items: List[Any] = []
        if list_rule:
            try:
                items = self.resolver.resolve_list(list_rule, container, ctx)
            except ScriptError as e:
                self.logger.warning(f"Правило списка источника {source.id}: {e}")

        rules = {name: rule for name, rule in field_rules.items() if rule}
        if not items:
            items = self.fallback_items(container)
            if items:
                self.logger.info(
                    f"Правило списка пустое, используется JSON-массив ({len(items)} элементов)"
                )
                rules = {name: rule for name, rule in rules.items() if name in REQUIRED_FIELDS}

        entries = self._resolve_entries(items, rules, ctx)
        if transform is not None:
            entries = [transform(entry) for entry in entries]

        result = self.filter_and_dedupe(entries)
        self.logger.debug(
            f"Список: {len(items)} элементов, {len(result)} после фильтрации"
        )
        return result

    def _resolve_entries(
        self, items: List[Any], rules: Dict[str, RuleLike], ctx: EvaluationContext
    ) -> List[Entry]:
        def resolve(item: Any) -> Entry:
            return resolve_fields(self.resolver, rules, item, ctx)

        workers = self.config.list_workers
        if workers > 1 and len(items) > 1:
            # map возвращает результаты в порядке документа
            with ThreadPoolExecutor(max_workers=workers) as executor:
                return list(executor.map(resolve, items))
        return [resolve(item) for item in items]

    @staticmethod
    def fallback_items(container: Any) -> List[Any]:
        """Найти JSON-массив верхнего уровня или под data/list/items/chapterlist/chapters."""
        data = as_json_container(container)
        if isinstance(data, list):
            return data
        if not isinstance(data, dict):
            return []
        for key in LIST_KEYS:
            value = data.get(key)
            if isinstance(value, list):
                return value
            if isinstance(value, dict):
                for inner in LIST_KEYS:
                    if isinstance(value.get(inner), list):
                        return value[inner]
        return []

    @staticmethod
    def filter_and_dedupe(entries: List[Entry]) -> List[Entry]:
        """
        Отбросить записи без url или title и дубликаты по url.

        Порядок сохраняется, из дубликатов остается первый.
        """
        seen = set()
        result = []
        for entry in entries:
            url = (entry.get("url") or "").strip()
            title = (entry.get("title") or "").strip()
            if not url or not title or url in seen:
                continue
            seen.add(url)
            result.append(entry)
        return result
