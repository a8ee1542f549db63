"""
Базовый класс обработчика запросов к источнику.

Определяет конвейер стадий, общий для книги, оглавления и текста главы:
RESOLVE_URL -> MERGE_AUTH -> FETCH -> PARSE_SHAPE -> EXTRACT_FIELDS ->
SANITIZE -> DONE. Стадии выполняются строго последовательно.

Синхронная работа (скрипты песочницы, разбор ответа, вычисление полей)
выполняется в пуле потоков, чтобы не блокировать цикл событий.
"""

from abc import ABC, abstractmethod
import asyncio
import functools
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple
from urllib.parse import urljoin
import logging

from ..config.base import EngineConfig, Rule, RuleKind, SourceDefinition
from ..errors import BookSourceError, ConfigurationError, NetworkError, ParseError, ScriptError
from ..integration.auth import AuthStore
from ..orchestrator.fetcher import HttpFetcher
from ..parsers.context import EvaluationContext
from ..parsers.json_path import as_json_container, to_text, walk
from ..parsers.list_extractor import ListExtractor
from ..parsers.request import RequestDescriptor, is_absolute, parse_request, resolve_relative
from ..parsers.resolver import RuleLike, RuleResolver
from ..parsers.sanitizer import ContentSanitizer
from ..sandbox.endpoints import extract_host_list

logger = logging.getLogger(__name__)


class PipelineStage(Enum):
    """Стадии конвейера запроса."""

    RESOLVE_URL = "resolve_url"
    MERGE_AUTH = "merge_auth"
    FETCH = "fetch"
    PARSE_SHAPE = "parse_shape"
    EXTRACT_FIELDS = "extract_fields"
    SANITIZE = "sanitize"
    DONE = "done"


@dataclass
class FetchedDocument:
    """Загруженный и разобранный ответ."""

    request: RequestDescriptor
    body: str
    # dict/list для JSON, строка для разметки
    container: Any
    is_json: bool


class EndpointHandler(ABC):
    """Базовый обработчик одного вида запроса."""

    kind = ""

    def __init__(
        self,
        source: SourceDefinition,
        fetcher: HttpFetcher,
        resolver: RuleResolver,
        config: Optional[EngineConfig] = None,
        auth_store: Optional[AuthStore] = None,
        sanitizer: Optional[ContentSanitizer] = None,
    ):
        """
        Инициализация обработчика.

        Args:
            source: Описание источника
            fetcher: HTTP-клиент
            resolver: Вычислитель правил
            config: Конфигурация движка
            auth_store: Хранилище cookie
            sanitizer: Очистка текста
        """
        self.source = source
        self.fetcher = fetcher
        self.resolver = resolver
        self.config = config or EngineConfig()
        self.auth_store = auth_store
        self.sanitizer = sanitizer or ContentSanitizer(self.config.sanitize)
        self.extractor = ListExtractor(resolver, self.config)
        self.hosts = extract_host_list(source.auxiliary_script)
        self.stage = PipelineStage.RESOLVE_URL
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @property
    def script_host(self):
        return self.resolver.script_host

    @abstractmethod
    def check_rules(self) -> None:
        """Проверить наличие нужных правил (ConfigurationError, если их нет)."""
        pass

    @abstractmethod
    async def extract(self, document: FetchedDocument, ctx: EvaluationContext) -> Any:
        """
        Извлечь результат из загруженного ответа.

        Args:
            document: Загруженный ответ
            ctx: Контекст вычисления

        Returns:
            Any: Результирующая сущность
        """
        pass

    async def process(self, url: str, page: int = 1, key: Optional[str] = None) -> Any:
        """
        Полный конвейер обработки запроса.

        Args:
            url: URL запроса (абсолютный, относительный, с опциями или data:)
            page: Номер страницы для шаблона {{page}}
            key: Значение {{key}} (по умолчанию сам URL)

        Returns:
            Any: Результирующая сущность
        """
        self.check_rules()
        ctx = self.new_context(url, page=page, key=key)
        document = await self.load(url, ctx)

        self.enter(PipelineStage.EXTRACT_FIELDS)
        data = await self.extract(document, ctx)

        self.enter(PipelineStage.DONE)
        return data

    def new_context(self, url: str, page: int = 1, key: Optional[str] = None) -> EvaluationContext:
        return EvaluationContext(
            source=self.source,
            base_url=self.source.url,
            key=url if key is None else key,
            page=page,
            hosts=self.hosts,
        )

    def enter(self, stage: PipelineStage) -> None:
        self.stage = stage
        self.logger.debug(f"[{self.source.id}] {self.kind}: стадия {stage.value}")

    async def offload(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Выполнить синхронную функцию в пуле потоков."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))

    async def load(self, raw_url: str, ctx: EvaluationContext) -> FetchedDocument:
        """
        Стадии RESOLVE_URL, MERGE_AUTH, FETCH, PARSE_SHAPE.

        Псевдо-URL data: не загружается: его содержимое становится телом
        ответа, а JSON-контекст - ctx.extra.
        """
        self.enter(PipelineStage.RESOLVE_URL)
        request = await self.offload(self.resolve_request, raw_url, ctx)

        if request.is_pseudo:
            ctx.extra = request.context
            body = request.payload or ""
        else:
            self.enter(PipelineStage.MERGE_AUTH)
            headers = await self.offload(self.merge_headers, request, ctx)
            request = request.with_headers(headers)

            self.enter(PipelineStage.FETCH)
            body = await self.fetcher.fetch(
                request,
                proxy_base=self.source.proxy_base,
                timeout=self.config.request_timeout,
            )
            ctx.base_url = request.url

        self.enter(PipelineStage.PARSE_SHAPE)
        container, is_json = await self.offload(self.parse_shape, body)
        return FetchedDocument(request=request, body=body, container=container, is_json=is_json)

    def resolve_request(self, raw_url: str, ctx: EvaluationContext) -> RequestDescriptor:
        """
        Вычислить URL-скрипт, раскрыть шаблоны {{...}}, дополнить
        относительный путь и разобрать опции.
        """
        text = raw_url.strip()
        rule = Rule.parse(text)
        if rule.kind == RuleKind.SCRIPT:
            text = to_text(self.resolver.run_script_rule(rule, None, ctx)).strip()
            self.logger.debug(f"URL вычислен скриптом: {text[:200]}")

        if not text:
            raise ConfigurationError(f"Пустой URL запроса источника {self.source.id}")
        if text.lower().startswith("data:"):
            return parse_request(text)
        if "{{" in text:
            text = self.resolver.expand_templates(text, None, ctx).strip()
        return parse_request(resolve_relative(text, self.hosts))

    def follow_url(self, url: str, ctx: EvaluationContext) -> str:
        """
        URL следующего запроса из ответа.

        Относительный путь без списка хостов разрешается от текущего URL.
        """
        if url and not is_absolute(url) and not self.hosts and is_absolute(ctx.base_url):
            return urljoin(ctx.base_url, url)
        return url

    def base_headers(self, ctx: EvaluationContext) -> Dict[str, str]:
        """Заголовки источника: JSON-объект или результат скрипта."""
        header = (self.source.header or "").strip()
        if not header:
            return {}

        rule = Rule.parse(header)
        if rule.kind == RuleKind.SCRIPT:
            try:
                value = self.resolver.run_script_rule(rule, None, ctx)
            except ScriptError as e:
                self.logger.warning(f"Скрипт заголовков источника {self.source.id}: {e}")
                return {}
        else:
            value = header

        data = value if isinstance(value, dict) else as_json_container(value)
        if not isinstance(data, dict):
            self.logger.warning(f"Заголовки источника {self.source.id} не являются JSON-объектом")
            return {}
        return {str(k): to_text(v) for k, v in data.items()}

    def merge_headers(self, request: RequestDescriptor, ctx: EvaluationContext) -> Dict[str, str]:
        """
        Слияние заголовков.

        Приоритет: заголовки по умолчанию < заголовки источника <
        заголовки из опций URL < cookie из хранилища авторизации.
        """
        merged: Dict[str, str] = {"User-Agent": self.config.user_agent}
        merged.update(self.config.default_headers)
        merged.update(self.base_headers(ctx))
        merged.update(request.headers)

        if self.auth_store is not None:
            cookie = self.auth_store.get_cookie_for_url(self.source.id, request.url)
            if cookie:
                for name in [k for k in merged if k.lower() == "cookie"]:
                    del merged[name]
                merged["Cookie"] = cookie

        return merged

    def parse_shape(self, body: str) -> Tuple[Any, bool]:
        """
        Определить форму ответа: JSON или разметка.

        Непригодное тело (ParseError) становится пустым контейнером.

        Raises:
            NetworkError: JSON-ответ с кодом ошибки API
        """
        try:
            self.check_body(body)
        except ParseError as e:
            self.logger.warning(f"[{self.source.id}] {e}, используется пустой контейнер")
            return "", False

        data = as_json_container(body)
        if data is None:
            return body, False

        self.check_api_code(data)
        return data, True

    def check_body(self, body: str) -> None:
        """
        Проверить, что тело ответа пригодно для разбора.

        Raises:
            ParseError: Пустое или двоичное тело
        """
        if not body or not body.strip():
            raise ParseError(f"Пустой ответ источника {self.source.id}")
        if "\x00" in body:
            raise ParseError(f"Двоичный ответ источника {self.source.id}")

    def check_api_code(self, data: Any) -> None:
        if not isinstance(data, dict) or "code" not in data:
            return
        allowed = {str(code) for code in self.config.api_success_codes}
        if str(data["code"]) in allowed:
            return
        message = data.get("msg") or data.get("message") or "неизвестная ошибка"
        raise NetworkError(f"API источника {self.source.id} вернуло ошибку: {message}")

    def field(self, rule: RuleLike, container: Any, ctx: EvaluationContext, name: str = "") -> str:
        """
        Вычислить поле.

        Нефатальная ошибка (скрипт, разбор) дает пустое значение для
        подстановки, фатальная прерывает запрос.
        """
        if not rule:
            return ""
        try:
            return self.resolver.resolve(rule, container, ctx)
        except BookSourceError as e:
            if e.fatal:
                raise
            self.logger.warning(f"[{self.source.id}] поле {name or rule}: {e}")
            return ""

    def decode_cover(self, cover: str, ctx: EvaluationContext) -> str:
        """Пропустить URL обложки через coverDecodeJs источника."""
        snippet = (self.source.cover_decode_js or "").strip()
        if not cover or not snippet:
            return cover
        if snippet.lower().startswith("@js:"):
            snippet = snippet[4:]
        try:
            decoded = self.script_host.run_transformer(snippet, cover, ctx).strip()
        except ScriptError as e:
            self.logger.warning(f"[{self.source.id}] coverDecodeJs: {e}")
            return cover
        return decoded or cover

    @staticmethod
    def first_json_field(container: Any, fields) -> str:
        """Первое непустое значение из списка JSON-полей."""
        if not isinstance(container, (dict, list)):
            return ""
        for path in fields:
            value = to_text(walk(container, path)).strip()
            if value:
                return value
        return ""
