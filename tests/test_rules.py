"""
Тесты классификации правил и моделей описания источника.
"""

import pytest
from pydantic import ValidationError

from booksource_core.config.base import (
    EngineConfig,
    Rule,
    RuleKind,
    SanitizeConfig,
    SourceDefinition,
)


class TestRuleParse:
    """Тесты Rule.parse."""

    def test_selector(self):
        """Обычное правило - селектор."""
        rule = Rule.parse("class.title@text")
        assert rule.kind == RuleKind.SELECTOR
        assert rule.selector == "class.title@text"
        assert rule.is_script is False

    def test_json_path(self):
        """$. и $[ - JSON-путь."""
        assert Rule.parse("$.data.name").kind == RuleKind.JSON_PATH
        assert Rule.parse("$[0].name").kind == RuleKind.JSON_PATH

    def test_json_prefix_stripped(self):
        """Префикс @json: отбрасывается."""
        rule = Rule.parse("@json:$.book.title")
        assert rule.kind == RuleKind.JSON_PATH
        assert rule.selector == "$.book.title"

    def test_script_block(self):
        """Блок <js> - скрипт, регистр тега не важен."""
        rule = Rule.parse("<JS>result + 1</JS>")
        assert rule.kind == RuleKind.SCRIPT
        assert rule.script == "result + 1"
        assert rule.is_script is True

    def test_script_with_leading_and_trailing(self):
        """Текст до и после блока сохраняется."""
        rule = Rule.parse("$.data<js>result.toUpperCase()</js>$.name")
        assert rule.kind == RuleKind.SCRIPT
        assert rule.leading == "$.data"
        assert rule.trailing == "$.name"

    def test_unclosed_script(self):
        """Незакрытый <js> - тело до конца строки."""
        rule = Rule.parse("<js>1 + 2")
        assert rule.script == "1 + 2"
        assert rule.trailing == ""

    def test_inline_script(self):
        """@js: в начале - скрипт."""
        rule = Rule.parse("@js:result.trim()")
        assert rule.kind == RuleKind.SCRIPT
        assert rule.script == "result.trim()"

    def test_hybrid(self):
        """Селектор с суффиксом @js: - гибрид."""
        rule = Rule.parse("class.name@text@js:result.replace('x', '')")
        assert rule.kind == RuleKind.HYBRID
        assert rule.selector == "class.name@text"
        assert rule.script == "result.replace('x', '')"

    def test_rule_is_immutable(self):
        """Правило неизменяемо."""
        rule = Rule.parse("$.a")
        with pytest.raises((ValidationError, TypeError, AttributeError)):
            rule.selector = "$.b"


class TestSourceDefinition:
    """Тесты SourceDefinition."""

    def test_camel_case_aliases(self):
        """Поддерживаются имена полей сообщества (camelCase)."""
        source = SourceDefinition(
            id="s",
            name="Источник",
            jsLib="function f() {}",
            proxyBase="https://proxy.example.com",
            rules={"bookInfo": {"tocUrl": "$.toc", "wordCount": "$.words"}},
        )
        assert source.js_lib == "function f() {}"
        assert source.proxy_base == "https://proxy.example.com"
        assert source.rules.book_info.toc_url.kind == RuleKind.JSON_PATH
        assert source.rules.book_info.word_count.selector == "$.words"

    def test_empty_rules_become_none(self):
        """Пустая строка правила - отсутствие правила."""
        source = SourceDefinition(
            id="s", name="n", rules={"content": {"content": "  ", "chapterName": ""}}
        )
        assert source.rules.content.content is None
        assert source.rules.content.chapter_name is None

    def test_header_dict_serialized(self):
        """Заголовки-объект сохраняются как JSON-текст."""
        source = SourceDefinition(id="s", name="n", header={"Referer": "https://a"})
        assert source.header == '{"Referer": "https://a"}'

    def test_default_chapter_intro(self):
        """chapterIntro по умолчанию читает типовые JSON-поля."""
        source = SourceDefinition(id="s", name="n", rules={"toc": {"chapterName": "$.t"}})
        assert source.rules.toc.chapter_intro.selector == "$.chapterintro||$.intro||$.desc"

    def test_storage_key(self):
        """Ключ хранилища - variableKey или id."""
        assert SourceDefinition(id="s", name="n").storage_key == "s"
        assert SourceDefinition(id="s", name="n", variableKey="k").storage_key == "k"

    def test_auxiliary_script(self):
        """Вспомогательный текст объединяет comment, jsLib и loginUrl."""
        source = SourceDefinition(id="s", name="n", comment="a", jsLib="b", loginUrl="c")
        assert source.auxiliary_script == "a\nb\nc"


class TestEngineConfig:
    """Тесты EngineConfig."""

    def test_defaults(self):
        """Значения по умолчанию."""
        config = EngineConfig()
        assert config.script_timeout_ms == 5000
        assert config.script_timeout == 5.0
        assert config.list_workers == 1
        assert "content" in config.content_fields
        assert 0 in config.api_success_codes

    def test_log_level_validation(self):
        """Уровень логирования нормализуется и проверяется."""
        assert EngineConfig(log_level="debug").log_level == "DEBUG"
        with pytest.raises(ValidationError):
            EngineConfig(log_level="LOUD")

    def test_list_workers_range(self):
        """list_workers ограничен диапазоном 1..32."""
        with pytest.raises(ValidationError):
            EngineConfig(list_workers=0)

    def test_invalid_sanitize_pattern(self):
        """Некорректное регулярное выражение очистки отклоняется."""
        with pytest.raises(ValidationError):
            SanitizeConfig(boilerplate_patterns=["(unclosed"])
