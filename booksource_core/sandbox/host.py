"""
Изолированное выполнение скриптов источников.

Каждый запуск получает новый контекст QuickJS с лимитами времени и
памяти и явно построенной поверхностью возможностей. Исключение или
превышение лимита превращается в ScriptError.
"""

import json
import re
from typing import Any, Callable, Optional
import logging

import quickjs
from bs4 import Tag

from ..config.base import EngineConfig
from ..errors import ScriptError, ScriptTimeoutError
from ..integration.auth import AuthStore
from ..integration.storage import BoundedCache, VariableStore
from ..parsers.context import EvaluationContext
from ..parsers.json_path import to_text
from .capabilities import DEFAULT_HELPERS, ScriptCapabilities
from .endpoints import extract_host_list

logger = logging.getLogger(__name__)

# Оператор вида "name = value" (не сравнение и не стрелочная функция)
_ASSIGNMENT = re.compile(r"(?:var\s+|let\s+|const\s+)?(\w+)\s*=(?![=>])")
_TEMPLATE = re.compile(r"\{\{([\s\S]+?)\}\}")
_PAGE_OFFSET = re.compile(r"page\s*([+-])\s*(\d+)")
_SOURCE_FIELD = re.compile(r"source\.(\w+)")


class ScriptHost:
    """Хост изолированных скриптов."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        auth_store: Optional[AuthStore] = None,
        variable_store: Optional[VariableStore] = None,
        cache: Optional[BoundedCache] = None,
    ):
        """
        Инициализация хоста скриптов.

        Args:
            config: Конфигурация движка (лимиты песочницы)
            auth_store: Хранилище cookie для cookie.getCookie
            variable_store: Хранилище переменных источников
            cache: Кэш для cache.get/put
        """
        self.config = config or EngineConfig()
        self.auth_store = auth_store
        self.variable_store = variable_store
        self.cache = cache if cache is not None else BoundedCache()
        self.logger = logging.getLogger(f"{__name__}.ScriptHost")

    def hosts_for(self, ctx: EvaluationContext):
        """Список хостов источника (из контекста или из вспомогательного текста)."""
        return ctx.hosts or extract_host_list(ctx.source.auxiliary_script)

    def run(
        self,
        script: str,
        ctx: EvaluationContext,
        result: Any = None,
        timeout_ms: Optional[int] = None,
        rule_reader: Optional[Callable[[str], str]] = None,
        expand: bool = True,
    ) -> Any:
        """
        Выполнить тело скрипта.

        Args:
            script: Тело скрипта (без <js>)
            ctx: Контекст вычисления
            result: Значение, доступное скрипту как result
            timeout_ms: Лимит времени (по умолчанию из конфигурации)
            rule_reader: Обработчик java.getString(rule)
            expand: Раскрывать шаблоны {{...}} в строковом результате

        Returns:
            Any: Значение последнего выражения (строка, число, dict, list, None)

        Raises:
            ScriptTimeoutError: Превышен лимит времени
            ScriptError: Исключение в скрипте
        """
        timeout = (timeout_ms or self.config.script_timeout_ms) / 1000.0
        context = self._create_context(ctx, result, timeout, rule_reader)
        body = self.prepare_body(script)

        try:
            value = context.eval(body)
        except quickjs.JSException as e:
            raise self._script_error(e, ctx) from e
        except MemoryError as e:
            raise ScriptError(f"Скрипт источника {ctx.source.id} превысил лимит памяти") from e

        value = self._to_python(value)
        if expand and isinstance(value, str) and "{{" in value:
            value = self.expand_templates(value, ctx)
        return value

    def run_transformer(self, snippet: str, value: Any, ctx: EvaluationContext) -> str:
        """
        Выполнить фрагмент-преобразователь.

        Фрагмент получает value как result и может его переприсвоить;
        возвращается String(result).
        """
        wrapped = f"{snippet}\n;String(result)"
        return to_text(self.run(wrapped, ctx, result=value, expand=False))

    def evaluate_expression(self, expression: str, ctx: EvaluationContext) -> Any:
        return self.run(expression, ctx, result=None, expand=False)

    def expand_templates(
        self,
        text: str,
        ctx: EvaluationContext,
        lookup: Optional[Callable[[str], Optional[str]]] = None,
    ) -> str:
        """
        Раскрыть шаблоны {{...}} в строке.

        Поддерживаются key, page, page±N, baseUrl, source, source.<поле>;
        lookup может разрешить выражение сам (например, JSON-путь);
        остальное вычисляется как JS-выражение в песочнице. Выражение с
        ошибкой остается в тексте как есть.
        """

        def replace(match):
            expression = match.group(1).strip()
            if expression == "key":
                return ctx.key
            if expression == "page":
                return str(ctx.page)
            if expression == "baseUrl":
                return ctx.base_url
            if expression == "source":
                return ctx.source.name

            offset = _PAGE_OFFSET.fullmatch(expression)
            if offset:
                delta = int(offset.group(2))
                return str(ctx.page + delta if offset.group(1) == "+" else ctx.page - delta)

            field = _SOURCE_FIELD.fullmatch(expression)
            if field:
                return to_text(self._source_field(ctx, field.group(1)))

            if lookup is not None:
                resolved = lookup(expression)
                if resolved is not None:
                    return resolved

            try:
                return to_text(self.evaluate_expression(expression, ctx))
            except ScriptError as e:
                self.logger.warning(f"Не удалось вычислить шаблон {{{{{expression}}}}}: {e}")
                return match.group(0)

        return _TEMPLATE.sub(replace, text)

    @staticmethod
    def prepare_body(script: str) -> str:
        """
        Подготовить тело скрипта.

        Если последний оператор - присваивание, а явного return нет,
        значение переменной становится результатом скрипта.
        """
        body = script.strip()
        if not body or "return " in body:
            return body

        last_line = body.splitlines()[-1]
        statements = [part.strip() for part in last_line.split(";") if part.strip()]
        if not statements:
            return body

        match = _ASSIGNMENT.match(statements[-1])
        if match:
            body = f"{body}\n;{match.group(1)}"
        return body

    def _create_context(
        self,
        ctx: EvaluationContext,
        result: Any,
        timeout: float,
        rule_reader: Optional[Callable[[str], str]],
    ) -> quickjs.Context:
        context = quickjs.Context()
        context.set_time_limit(timeout)
        context.set_memory_limit(self.config.script_memory_limit)

        capabilities = ScriptCapabilities(
            source=ctx.source,
            hosts=self.hosts_for(ctx),
            shared_variables=ctx.shared_variables,
            auth_store=self.auth_store,
            variable_store=self.variable_store,
            cache=self.cache,
            rule_reader=rule_reader,
        )
        try:
            capabilities.install(context)
            context.eval(self._bindings(ctx, result))
        except quickjs.JSException as e:
            raise self._script_error(e, ctx) from e

        if self.config.load_js_lib and ctx.source.js_lib.strip():
            try:
                context.eval(ctx.source.js_lib)
            except quickjs.JSException as e:
                if "interrupted" in str(e):
                    raise self._script_error(e, ctx) from e
                self.logger.warning(f"jsLib источника {ctx.source.id} не загружен: {e}")

        context.eval(DEFAULT_HELPERS)
        return context

    @staticmethod
    def _bindings(ctx: EvaluationContext, result: Any) -> str:
        values = {
            "result": _jsonable(result),
            "baseUrl": ctx.base_url or ctx.source.url,
            "key": ctx.key,
            "page": ctx.page,
            "sharedVariables": ctx.shared_variables,
            "context": ctx.extra or {},
        }
        return "\n".join(
            f"var {name} = {json.dumps(value, default=str)};"
            for name, value in values.items()
        )

    @staticmethod
    def _to_python(value: Any) -> Any:
        if isinstance(value, quickjs.Object):
            raw = value.json()
            if raw is None:
                return None
            try:
                return json.loads(raw)
            except (TypeError, ValueError):
                return str(raw)
        return value

    @staticmethod
    def _source_field(ctx: EvaluationContext, name: str) -> Any:
        snake = re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()
        return getattr(ctx.source, name, None) or getattr(ctx.source, snake, None) or ""

    @staticmethod
    def _script_error(error: Exception, ctx: EvaluationContext) -> ScriptError:
        message = str(error)
        if "interrupted" in message:
            return ScriptTimeoutError(
                f"Скрипт источника {ctx.source.id} превысил лимит времени"
            )
        return ScriptError(f"Ошибка скрипта источника {ctx.source.id}: {message}")


def _jsonable(value: Any) -> Any:
    if isinstance(value, Tag):
        return str(value)
    if isinstance(value, bytes):
        return value.decode("utf-8", "replace")
    return value
