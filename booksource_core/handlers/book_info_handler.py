"""
Обработчик страницы книги.

Извлекает поля книги и, если задан tocUrl, загружает оглавление.
"""

from dataclasses import replace
from typing import Any, Dict
import logging

from ..config.base import RuleKind
from ..errors import BookSourceError, ConfigurationError, ScriptError
from ..models import BookInfo
from ..parsers.context import EvaluationContext
from ..parsers.json_path import as_json_container, to_text, walk
from ..parsers.sanitizer import sanitize_intro_html, title_from_html, title_from_url
from .base import EndpointHandler, FetchedDocument
from .toc_handler import TocHandler

logger = logging.getLogger(__name__)


class BookInfoHandler(EndpointHandler):
    """Обработчик информации о книге."""

    kind = "book_info"

    def check_rules(self) -> None:
        if self.source.rules.book_info is None:
            raise ConfigurationError(
                f"У источника {self.source.name} нет правил bookInfo"
            )

    async def extract(self, document: FetchedDocument, ctx: EvaluationContext) -> BookInfo:
        """
        Извлечь информацию о книге.

        Args:
            document: Загруженная страница книги
            ctx: Контекст вычисления

        Returns:
            BookInfo: Информация о книге (с главами, если оглавление доступно)
        """
        info = await self.offload(self.read_book, document, ctx)
        self.logger.info(f"[{self.source.id}] книга: {info.name!r}, автор: {info.author!r}")
        await self.attach_chapters(info, document, ctx)
        return info

    def read_book(self, document: FetchedDocument, ctx: EvaluationContext) -> BookInfo:
        """Поля книги без оглавления."""
        rules = self.source.rules.book_info
        detail_url = ctx.key
        container = self.narrow(document, ctx)

        info = BookInfo(detail_url=detail_url)
        info.name = (
            self.field(rules.name, container, ctx, "name")
            or self.first_json_field(container, self.config.book_title_fields)
            or title_from_html(document.body if not document.is_json else "", self.config)
            or title_from_url(detail_url)
        )
        info.author = self.field(rules.author, container, ctx, "author")
        info.kind = self.field(rules.kind, container, ctx, "kind")
        info.last_chapter = self.field(rules.last_chapter, container, ctx, "lastChapter")
        info.word_count = self.field(rules.word_count, container, ctx, "wordCount")

        intro = self.field(rules.intro, container, ctx, "intro") or self.first_json_field(
            container, self.config.description_fields
        )
        info.intro = sanitize_intro_html(intro)

        info.cover = self.decode_cover(
            self.field(rules.cover_url, container, ctx, "coverUrl"), ctx
        )
        info.extra_info = self.extra_info(container)
        info.toc_url = self.toc_url(container, ctx)
        return info

    def narrow(self, document: FetchedDocument, ctx: EvaluationContext) -> Any:
        """
        Сузить контейнер правилом init.

        Пустой результат оставляет исходный контейнер.
        """
        rule = self.source.rules.book_info.init
        container = document.container
        if rule is None:
            return container

        try:
            if rule.is_script or document.is_json:
                value = self.resolver.resolve_value(rule, container, ctx)
                parsed = as_json_container(value)
                value = parsed if parsed is not None else value
            else:
                items = self.resolver.resolve_list(rule, container, ctx)
                value = items[0] if items else None
        except ScriptError as e:
            self.logger.warning(f"[{self.source.id}] правило init: {e}")
            return container

        if value in (None, "", [], {}):
            self.logger.warning(
                f"[{self.source.id}] правило init дало пустой результат, используется весь ответ"
            )
            return container
        return value

    def extra_info(self, container: Any) -> Dict[str, str]:
        if not isinstance(container, (dict, list)):
            return {}
        extra = {}
        for path in self.config.extra_info_fields:
            value = walk(container, path)
            if value not in (None, "", []):
                extra[path] = to_text(value)
        return extra

    def toc_url(self, container: Any, ctx: EvaluationContext) -> str:
        """
        URL оглавления.

        Скрипт получает URL книги как key; @get:/{{}} раскрываются.
        """
        rule = self.source.rules.book_info.toc_url
        if rule is None:
            return ""

        if rule.kind == RuleKind.SCRIPT:
            try:
                value = to_text(self.resolver.run_script_rule(rule, container, ctx)).strip()
            except ScriptError as e:
                self.logger.warning(f"[{self.source.id}] правило tocUrl: {e}")
                return ""
        else:
            value = self.field(rule, container, ctx, "tocUrl")

        if "@get:" in value or "{{" in value:
            value = self.resolver.expand_templates(value, container, ctx)
        return self.follow_url(value.strip(), ctx)

    async def attach_chapters(
        self, info: BookInfo, document: FetchedDocument, ctx: EvaluationContext
    ) -> None:
        """
        Загрузить оглавление.

        Отдельный tocUrl загружается вторым запросом; его ошибка
        записывается в toc_error и не прерывает получение книги.
        """
        if self.source.rules.toc is None:
            return

        toc = TocHandler(
            self.source,
            self.fetcher,
            self.resolver,
            config=self.config,
            auth_store=self.auth_store,
            sanitizer=self.sanitizer,
        )

        try:
            if info.toc_url and info.toc_url != info.detail_url:
                toc_ctx = replace(ctx, key=info.toc_url, base_url=self.source.url)
                toc_document = await toc.load(info.toc_url, toc_ctx)
                info.chapters = await toc.extract(toc_document, toc_ctx)
            else:
                info.chapters = await toc.extract(document, ctx)
        except BookSourceError as e:
            self.logger.warning(f"[{self.source.id}] оглавление не получено: {e}")
            info.toc_error = str(e)
            info.chapters = []
