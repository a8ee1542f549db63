"""
Вычисление значения правила над контейнером данных.

Диспетчеризация по виду правила (первое совпадение):
1. script  - скрипт в песочнице, контейнер доступен как result
2. hybrid  - левая часть правила, затем скрипт над промежуточным значением
3. json_path - обход JSON-контейнера
4. selector - селектор по разметке (или путь свойств для JSON)

Любая ошибка вычисления дает пустое значение, кроме ScriptError,
которая передается вызывающему коду для политики подстановки.
"""

import re
from typing import Any, Dict, List, Optional, Tuple, Union
import logging

from bs4 import Tag

from ..config.base import Rule, RuleKind
from ..errors import ScriptError
from ..sandbox.host import ScriptHost
from .context import EvaluationContext
from .json_path import as_json_container, to_text, walk
from .selector import SelectorClient

logger = logging.getLogger(__name__)

RuleLike = Union[Rule, str, None]

_PUT = re.compile(r"@put:\{([^}]+)\}")
_GET = re.compile(r"@get:\{([^}]+)\}")
_TEMPLATE_RULE_PREFIXES = ("$.", "$[", "@json:", "@css:", "@@")
# Ключи, под которыми ищется массив в JSON-результате списка
LIST_KEYS = ("data", "list", "items", "chapterlist", "chapters")


class RuleResolver:
    """Вычислитель правил."""

    def __init__(
        self,
        script_host: Optional[ScriptHost] = None,
        selector_client: Optional[SelectorClient] = None,
    ):
        """
        Инициализация вычислителя.

        Args:
            script_host: Хост скриптов
            selector_client: Клиент селекторов
        """
        self.script_host = script_host or ScriptHost()
        self.selector_client = selector_client or SelectorClient()
        self.logger = logging.getLogger(f"{__name__}.RuleResolver")

    def resolve(self, rule: RuleLike, container: Any, ctx: EvaluationContext) -> str:
        """
        Вычислить правило поля.

        Args:
            rule: Правило (или строка правила)
            container: Разметка, JSON (dict/list/текст) или элемент
            ctx: Контекст вычисления

        Returns:
            str: Значение или пустая строка

        Raises:
            ScriptError: Ошибка скрипта правила
        """
        return to_text(self.resolve_value(rule, container, ctx)).strip()

    def resolve_value(self, rule: RuleLike, container: Any, ctx: EvaluationContext) -> Any:
        """Вычислить правило, сохраняя структуру JSON-значений."""
        parsed = self._coerce(rule)
        if parsed is None:
            return ""
        try:
            return self._evaluate(parsed, container, ctx, as_list=False)
        except ScriptError:
            raise
        except Exception as e:
            self.logger.debug(f"Правило {parsed.raw!r} не вычислено: {e}")
            return ""

    def resolve_list(self, rule: RuleLike, container: Any, ctx: EvaluationContext) -> List[Any]:
        """
        Вычислить правило списка.

        Returns:
            List: Подконтейнеры (элементы разметки или JSON-значения)
        """
        parsed = self._coerce(rule)
        if parsed is None:
            return []
        try:
            items = self._evaluate(parsed, container, ctx, as_list=True)
        except ScriptError:
            raise
        except Exception as e:
            self.logger.debug(f"Правило списка {parsed.raw!r} не вычислено: {e}")
            return []
        return items if isinstance(items, list) else []

    def run_script_rule(
        self, rule: RuleLike, container: Any, ctx: EvaluationContext
    ) -> Any:
        """Выполнить правило-скрипт и вернуть сырой результат."""
        parsed = self._coerce(rule)
        if parsed is None:
            return None
        return self._run_script(parsed, container, ctx)

    def expand_templates(self, text: str, container: Any, ctx: EvaluationContext) -> str:
        """
        Раскрыть @get:{...}, @put:{...} и {{...}} в строке (URL, заголовки).
        """
        text = self._apply_put(text, container, ctx)
        text = self._apply_get(text, container, ctx)
        if "{{" in text:
            text = self.script_host.expand_templates(
                text, ctx, lookup=lambda expr: self._template_lookup(expr, container, ctx)
            )
        return text

    @staticmethod
    def _coerce(rule: RuleLike) -> Optional[Rule]:
        if rule is None:
            return None
        if isinstance(rule, Rule):
            return rule
        if not str(rule).strip():
            return None
        return Rule.parse(str(rule))

    def _evaluate(self, rule: Rule, container: Any, ctx: EvaluationContext, as_list: bool):
        if rule.kind == RuleKind.SCRIPT:
            if rule.trailing:
                output = self._run_script(rule, container, ctx, skip_trailing=True)
                return self._evaluate(Rule.parse(rule.trailing), output, ctx, as_list)
            output = self._run_script(rule, container, ctx)
            return self._as_list(output) if as_list else output

        if rule.kind == RuleKind.HYBRID:
            output = self._run_script(rule, container, ctx)
            return self._as_list(output) if as_list else output

        return self._evaluate_text(rule.selector, container, ctx, as_list)

    def _run_script(
        self, rule: Rule, container: Any, ctx: EvaluationContext, skip_trailing: bool = False
    ) -> Any:
        if rule.kind == RuleKind.HYBRID:
            left = rule.selector
            intermediate = (
                self.resolve_value(left, container, ctx) if left else container
            )
        elif rule.leading:
            intermediate = self.resolve_value(rule.leading, container, ctx)
        else:
            intermediate = container

        output = self.script_host.run(
            rule.script,
            ctx,
            result=intermediate,
            rule_reader=lambda text: self.resolve(text, container, ctx),
        )

        if rule.trailing and not skip_trailing:
            return self._evaluate(Rule.parse(rule.trailing), output, ctx, as_list=False)
        return output

    def _evaluate_text(self, text: str, container: Any, ctx: EvaluationContext, as_list: bool):
        text = self._apply_put(text, container, ctx)
        text = self._apply_get(text, container, ctx)
        if not text.strip():
            return [] if as_list else ""

        if "{{" in text and not as_list:
            return self.expand_templates(text, container, ctx)

        for alternative in text.split("||"):
            parts = [p for p in alternative.split("&&") if p.strip()]
            if not parts:
                continue
            if len(parts) == 1:
                value = self._evaluate_single(parts[0].strip(), container, ctx, as_list)
            elif as_list:
                value = []
                for part in parts:
                    value.extend(self._evaluate_single(part.strip(), container, ctx, True))
            else:
                value = "".join(
                    to_text(self._evaluate_single(part.strip(), container, ctx, False))
                    for part in parts
                )
            if _non_empty(value):
                return value

        return [] if as_list else ""

    def _evaluate_single(self, text: str, container: Any, ctx: EvaluationContext, as_list: bool):
        shape, data = self._shape(container)

        if shape == "json":
            path, regex = self.selector_client.split_regex(text)
            value = walk(data, path)
            if as_list:
                return self._as_list(value)
            if value is None:
                return ""
            if regex:
                return self.selector_client.apply_regex(to_text(value), regex)
            return value

        if text.lower().startswith(("$.", "$[", "@json:")):
            return [] if as_list else ""

        if as_list:
            return self.selector_client.select(data, text)
        return self.selector_client.extract(data, text, ctx.base_url)

    @staticmethod
    def _shape(container: Any) -> Tuple[str, Any]:
        if isinstance(container, (dict, list)):
            return "json", container
        if isinstance(container, Tag):
            return "markup", container
        if container is None:
            return "markup", ""
        parsed = as_json_container(container)
        if parsed is not None:
            return "json", parsed
        return "markup", to_text(container) if not isinstance(container, (str, bytes)) else container

    @staticmethod
    def _as_list(value: Any) -> List[Any]:
        """Привести результат к списку (массив, объект с массивом под data/list/...)."""
        data = as_json_container(value) if not isinstance(value, (dict, list)) else value
        if isinstance(data, list):
            return data
        if isinstance(data, dict):
            for key in LIST_KEYS:
                nested = data.get(key)
                if isinstance(nested, list):
                    return nested
                if isinstance(nested, dict):
                    for inner in LIST_KEYS:
                        if isinstance(nested.get(inner), list):
                            return nested[inner]
            return [data]
        return []

    def _apply_put(self, text: str, container: Any, ctx: EvaluationContext) -> str:
        if "@put:" not in text:
            return text

        def store(match):
            name, _, rule = match.group(1).partition(":")
            if name.strip() and rule.strip():
                ctx.shared_variables[name.strip()] = self.resolve(rule.strip(), container, ctx)
            return ""

        return _PUT.sub(store, text)

    def _apply_get(self, text: str, container: Any, ctx: EvaluationContext) -> str:
        if "@get:" not in text:
            return text

        def read(match):
            name = match.group(1).strip()
            if name in ctx.shared_variables:
                return to_text(ctx.shared_variables[name])
            shape, data = self._shape(container)
            if shape == "json":
                return to_text(walk(data, name))
            return ""

        return _GET.sub(read, text)

    def _template_lookup(
        self, expression: str, container: Any, ctx: EvaluationContext
    ) -> Optional[str]:
        if expression.lower().startswith(_TEMPLATE_RULE_PREFIXES):
            rule = expression[2:] if expression.startswith("@@") else expression
            return self.resolve(rule, container, ctx)
        return None


def _non_empty(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (list, dict, str)):
        return len(value) > 0
    return True


def resolve_fields(
    resolver: RuleResolver,
    rules: Dict[str, RuleLike],
    container: Any,
    ctx: EvaluationContext,
) -> Dict[str, str]:
    """
    Вычислить набор правил полей над одним контейнером.

    ScriptError в поле записывается в лог, поле остается пустым.
    """
    values = {}
    for name, rule in rules.items():
        try:
            values[name] = resolver.resolve(rule, container, ctx)
        except ScriptError as e:
            logger.warning(f"Поле {name}: {e}")
            values[name] = ""
    return values
