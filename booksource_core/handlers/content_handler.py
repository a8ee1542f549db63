"""
Обработчик текста главы.

Текст ищется правилом content, затем в JSON-полях ответа; результат
проходит стадию SANITIZE. Если псевдо-URL data: дал пустой текст или
сообщение о необходимости входа, текст запрашивается повторно через
адрес get_review из JSON-контекста псевдо-URL.
"""

import logging
import re

from ..errors import BookSourceError, ConfigurationError, ScriptError
from ..models import ChapterContent
from ..parsers.context import EvaluationContext
from ..parsers.json_path import as_json_container, to_text
from ..parsers.request import parse_request
from ..parsers.sanitizer import title_from_html, title_from_url
from .base import EndpointHandler, FetchedDocument, PipelineStage

logger = logging.getLogger(__name__)

REVIEW_CONTENT_FIELDS = ("content", "data.content")


class ContentHandler(EndpointHandler):
    """Обработчик текста главы."""

    kind = "content"

    def check_rules(self) -> None:
        if self.source.rules.content is None:
            raise ConfigurationError(
                f"У источника {self.source.name} нет правил текста главы"
            )

    async def extract(self, document: FetchedDocument, ctx: EvaluationContext) -> ChapterContent:
        rules = self.source.rules.content

        raw = await self.offload(self.raw_content, document, ctx)
        if self.needs_review(raw, document):
            raw = await self.fetch_review(raw, ctx)

        title = await self.offload(self.chapter_title, document, ctx)

        next_url = ""
        if rules.next_content_url is not None:
            value = await self.offload(
                self.field, rules.next_content_url, document.container, ctx, "nextContentUrl"
            )
            next_url = self.follow_url(value, ctx)

        self.enter(PipelineStage.SANITIZE)
        content = await self.offload(
            self.sanitizer.sanitize,
            raw,
            source_regex=rules.source_regex,
            replace_regex=rules.replace_regex,
            script_runner=lambda snippet, text: self.run_replace_script(snippet, text, ctx),
        )
        if not content:
            self.logger.warning(f"[{self.source.id}] пустой текст главы {ctx.key}")
        return ChapterContent(title=title, content=content, next_url=next_url)

    def raw_content(self, document: FetchedDocument, ctx: EvaluationContext) -> str:
        """
        Текст главы до очистки.

        Скрипт над псевдо-URL data: получает декодированное содержимое
        строкой. Если правило ничего не дало, берутся JSON-поля ответа.
        JSON-строка с полем content разворачивается.
        """
        rule = self.source.rules.content.content
        container = document.container
        if rule is not None and rule.is_script and document.request.is_pseudo:
            container = document.body

        text = self.field(rule, container, ctx, "content")
        if not text.strip():
            text = self.first_json_field(document.container, self.config.content_fields)

        unwrapped = as_json_container(text)
        if isinstance(unwrapped, dict) and unwrapped.get("content"):
            text = to_text(unwrapped["content"])
        return text

    def needs_review(self, text: str, document: FetchedDocument) -> bool:
        """Пустой текст или требование входа для псевдо-URL data:."""
        if not document.request.is_pseudo:
            return False
        if not text.strip():
            return True
        return re.search(self.config.login_error_pattern, text) is not None

    def review_url(self, ctx: EvaluationContext) -> str:
        """Адрес get_review из поля js JSON-контекста псевдо-URL."""
        script = to_text((ctx.extra or {}).get("js"))
        match = re.search(self.config.review_url_pattern, script)
        return match.group(1) if match else ""

    async def fetch_review(self, text: str, ctx: EvaluationContext) -> str:
        """
        Повторно запросить текст главы через get_review.

        Запрос идет с заголовками и cookie источника. Ошибка запроса или
        ответ без текста оставляют исходное значение.

        Args:
            text: Текст, полученный правилом content
            ctx: Контекст вычисления с JSON-контекстом псевдо-URL

        Returns:
            str: Текст из ответа get_review или исходный текст
        """
        url = self.review_url(ctx)
        if not url:
            return text

        self.logger.info(f"[{self.source.id}] текст главы запрашивается через {url}")
        request = parse_request(url)
        try:
            headers = await self.offload(self.merge_headers, request, ctx)
            body = await self.fetcher.fetch(
                request.with_headers(headers),
                proxy_base=self.source.proxy_base,
                timeout=self.config.request_timeout,
            )
        except BookSourceError as e:
            self.logger.warning(f"[{self.source.id}] get_review: {e}")
            return text

        data = as_json_container(body)
        if data is not None:
            return self.first_json_field(data, REVIEW_CONTENT_FIELDS) or text
        return body if body.strip() else text

    def chapter_title(self, document: FetchedDocument, ctx: EvaluationContext) -> str:
        """Заголовок: JSON-поля, правило chapterName, <title>, URL."""
        rules = self.source.rules.content
        title = self.first_json_field(document.container, self.config.chapter_title_fields)
        if not title and rules.chapter_name is not None:
            title = self.field(rules.chapter_name, document.container, ctx, "chapterName")
        if not title and not document.is_json:
            title = title_from_html(document.body, self.config)
        return title or title_from_url(ctx.key)

    def run_replace_script(self, snippet: str, text: str, ctx: EvaluationContext) -> str:
        """replaceRegex вида @js: - скрипт получает текст как result."""
        try:
            return to_text(self.script_host.run(snippet, ctx, result=text, expand=False))
        except ScriptError as e:
            self.logger.warning(f"[{self.source.id}] replaceRegex: {e}")
            return ""
