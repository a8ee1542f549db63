"""
Обработчик оглавления.
"""

from dataclasses import asdict, replace
from typing import Any, Dict, List
import logging

from ..errors import ConfigurationError, ScriptError
from ..models import Chapter
from ..parsers.context import EvaluationContext
from ..parsers.json_path import as_json_container, to_text
from ..config.base import Rule
from .base import EndpointHandler, FetchedDocument

logger = logging.getLogger(__name__)


class TocHandler(EndpointHandler):
    """Обработчик списка глав."""

    kind = "toc"

    def check_rules(self) -> None:
        rules = self.source.rules.toc
        missing = []
        if rules is None:
            missing = ["chapterList", "chapterName", "chapterUrl"]
        else:
            if rules.chapter_name is None:
                missing.append("chapterName")
            if rules.chapter_url is None:
                missing.append("chapterUrl")
        if missing:
            raise ConfigurationError(
                f"У источника {self.source.name} нет правил оглавления: {', '.join(missing)}"
            )

    async def extract(self, document: FetchedDocument, ctx: EvaluationContext) -> List[Chapter]:
        """
        Построить список глав в порядке документа.

        Args:
            document: Загруженная страница оглавления
            ctx: Контекст вычисления

        Returns:
            List[Chapter]: Главы без дубликатов по url
        """
        self.check_rules()
        chapters = await self.offload(self.build_chapters, document, ctx)
        self.logger.info(f"[{self.source.id}] оглавление: {len(chapters)} глав")
        return chapters

    def build_chapters(self, document: FetchedDocument, ctx: EvaluationContext) -> List[Chapter]:
        rules = self.source.rules.toc
        container = self.pre_update(document.container, ctx)

        entries = self.extractor.extract_list(
            container,
            rules.chapter_list,
            {
                "title": rules.chapter_name,
                "url": rules.chapter_url,
                "intro": rules.chapter_intro,
            },
            ctx.base_url,
            self.source,
            ctx=ctx,
            transform=lambda entry: self.resolve_chapter_url(entry, ctx),
        )

        chapters = [
            Chapter(title=e["title"], url=e["url"], intro=e.get("intro", "")) for e in entries
        ]
        return self.format_chapters(chapters, ctx)

    def pre_update(self, container: Any, ctx: EvaluationContext) -> Any:
        """preUpdateJs: скрипт может заменить тело ответа перед разбором."""
        rule = self.source.rules.toc.pre_update_js
        if rule is None:
            return container
        try:
            value = self.resolver.run_script_rule(rule, container, ctx)
        except ScriptError as e:
            self.logger.warning(f"[{self.source.id}] preUpdateJs: {e}")
            return container
        if value in (None, ""):
            return container
        parsed = as_json_container(value)
        return parsed if parsed is not None else value

    def resolve_chapter_url(self, entry: Dict[str, str], ctx: EvaluationContext) -> Dict[str, str]:
        """URL главы в виде скрипта вычисляется с записью главы как result."""
        url = entry.get("url", "")
        rule = Rule.parse(url) if url else None
        if rule is None or not rule.is_script:
            return entry

        chapter_ctx = replace(ctx, key=entry.get("title", ""))
        try:
            value = self.script_host.run(rule.script, chapter_ctx, result=dict(entry))
        except ScriptError as e:
            self.logger.warning(f"[{self.source.id}] URL главы {entry.get('title')!r}: {e}")
            value = ""
        return {**entry, "url": to_text(value).strip()}

    def format_chapters(self, chapters: List[Chapter], ctx: EvaluationContext) -> List[Chapter]:
        """formatJs: скрипт получает главы как result и может вернуть новый список."""
        rule = self.source.rules.toc.format_js
        if rule is None or not chapters:
            return chapters
        try:
            value = self.resolver.run_script_rule(
                rule, [asdict(chapter) for chapter in chapters], ctx
            )
        except ScriptError as e:
            self.logger.warning(f"[{self.source.id}] formatJs: {e}")
            return chapters

        value = as_json_container(value)
        if not isinstance(value, list):
            return chapters

        formatted = []
        for item in value:
            if not isinstance(item, dict):
                continue
            title = to_text(item.get("title")).strip()
            url = to_text(item.get("url")).strip()
            if title and url:
                formatted.append(Chapter(title=title, url=url, intro=to_text(item.get("intro"))))
        return formatted or chapters
