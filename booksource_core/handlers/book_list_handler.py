"""
Обработчики каталога источника.

BookListHandler строит список книг по правилам find (раздел каталога,
выдача поиска). CategoryHandler разбирает exploreUrl в список разделов:
строки "название::url", JSON-массив {title, url} или URL, ответ
которого содержит такой массив.
"""

from typing import Any, List, Optional
import logging
import re

from ..config.base import Rule, RuleKind
from ..errors import ConfigurationError
from ..models import BookListItem, Category
from ..parsers.context import EvaluationContext
from ..parsers.json_path import as_json_container, to_text
from ..parsers.list_extractor import ListExtractor
from ..parsers.sanitizer import sanitize_intro_html
from .base import EndpointHandler, FetchedDocument, PipelineStage

logger = logging.getLogger(__name__)

_CATEGORY_SEPARATOR = re.compile(r"\n|&&")


class BookListHandler(EndpointHandler):
    """Обработчик списка книг."""

    kind = "book_list"

    def check_rules(self) -> None:
        rules = self.source.rules.find
        missing = []
        if rules is None:
            missing = ["bookList", "name", "bookUrl"]
        else:
            if rules.name is None:
                missing.append("name")
            if rules.book_url is None:
                missing.append("bookUrl")
        if missing:
            raise ConfigurationError(
                f"У источника {self.source.name} нет правил списка книг: {', '.join(missing)}"
            )

    async def process(self, url: str = "", page: int = 1, key: Optional[str] = None) -> Any:
        """
        Загрузить страницу списка книг.

        Args:
            url: URL раздела (по умолчанию find.url источника)
            page: Номер страницы для {{page}}
            key: Значение {{key}} (поисковый запрос)

        Returns:
            List[BookListItem]: Книги в порядке документа
        """
        self.check_rules()
        target = (url or self.source.rules.find.url).strip()
        if not target:
            raise ConfigurationError(f"У источника {self.source.name} не задан URL списка книг")
        return await super().process(target, page=page, key=key if key is not None else "")

    async def extract(
        self, document: FetchedDocument, ctx: EvaluationContext
    ) -> List[BookListItem]:
        books = await self.offload(self.build_books, document, ctx)
        self.logger.info(f"[{self.source.id}] список книг: {len(books)}")
        return books

    def build_books(self, document: FetchedDocument, ctx: EvaluationContext) -> List[BookListItem]:
        rules = self.source.rules.find
        entries = self.extractor.extract_list(
            document.container,
            rules.book_list,
            {
                "title": rules.name,
                "url": rules.book_url,
                "author": rules.author,
                "kind": rules.kind,
                "last_chapter": rules.last_chapter,
                "word_count": rules.word_count,
                "intro": rules.intro,
                "cover": rules.cover_url,
            },
            ctx.base_url,
            self.source,
            ctx=ctx,
            transform=lambda entry: {
                **entry,
                "url": self.follow_url((entry.get("url") or "").strip(), ctx),
            },
        )

        return [
            BookListItem(
                name=entry["title"].strip(),
                detail_url=entry["url"],
                author=entry.get("author", ""),
                cover=self.decode_cover(entry.get("cover", ""), ctx),
                intro=sanitize_intro_html(entry.get("intro", "")),
                kind=entry.get("kind", ""),
                last_chapter=entry.get("last_chapter", ""),
                word_count=entry.get("word_count", ""),
            )
            for entry in entries
        ]


class CategoryHandler(EndpointHandler):
    """Обработчик разделов каталога (exploreUrl)."""

    kind = "explore"

    def check_rules(self) -> None:
        if not (self.source.explore_url or "").strip():
            raise ConfigurationError(f"У источника {self.source.name} не задан exploreUrl")

    async def process(self, url: str = "", page: int = 1, key: Optional[str] = None) -> Any:
        """
        Получить разделы каталога.

        exploreUrl в виде скрипта вычисляется; URL загружается обычным
        конвейером, иначе текст разбирается как есть.
        """
        self.check_rules()
        target = (url or self.source.explore_url).strip()
        ctx = self.new_context(target, page=page, key=key if key is not None else "")

        self.enter(PipelineStage.RESOLVE_URL)
        value = await self.offload(self.explore_value, target, ctx)

        if isinstance(value, str) and self.is_remote(value):
            document = await self.load(value, ctx)
            self.enter(PipelineStage.EXTRACT_FIELDS)
            categories = await self.extract(document, ctx)
        else:
            self.enter(PipelineStage.EXTRACT_FIELDS)
            data = as_json_container(value)
            categories = self.parse_categories(value if data is None else data)

        self.enter(PipelineStage.DONE)
        self.logger.info(f"[{self.source.id}] разделов каталога: {len(categories)}")
        return categories

    async def extract(self, document: FetchedDocument, ctx: EvaluationContext) -> List[Category]:
        return self.parse_categories(document.container)

    def explore_value(self, text: str, ctx: EvaluationContext) -> Any:
        """Текст exploreUrl или результат его скрипта (строка или JSON)."""
        rule = Rule.parse(text)
        if rule.kind != RuleKind.SCRIPT:
            return text
        value = self.resolver.run_script_rule(rule, None, ctx)
        if isinstance(value, (dict, list)):
            return value
        return to_text(value).strip()

    @staticmethod
    def is_remote(text: str) -> bool:
        first_line = text.strip().split("\n", 1)[0]
        return first_line.lower().startswith(("http://", "https://")) and "::" not in first_line

    @staticmethod
    def parse_categories(data: Any) -> List[Category]:
        """
        Разобрать разделы.

        JSON: массив объектов {title, url} (url может быть пустым у
        заголовков групп). Текст: записи "название::url", разделенные
        переводом строки или &&.
        """
        if isinstance(data, dict):
            data = ListExtractor.fallback_items(data)

        categories = []
        if isinstance(data, list):
            for item in data:
                if not isinstance(item, dict):
                    continue
                title = to_text(item.get("title")).strip()
                if title:
                    categories.append(Category(title=title, url=to_text(item.get("url")).strip()))
            return categories

        for line in _CATEGORY_SEPARATOR.split(to_text(data)):
            title, _, url = line.partition("::")
            if title.strip() and url.strip():
                categories.append(Category(title=title.strip(), url=url.strip()))
        return categories
