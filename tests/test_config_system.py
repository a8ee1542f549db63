"""
Тесты для системы конфигурации движка.

Проверяет работу загрузчика конфигурации, валидацию JSON-схем
и классификацию правил источников.
"""

import pytest
import json
import tempfile
import shutil
from pathlib import Path

import jsonschema
from pydantic import ValidationError

from booksource_core.config.base import EngineConfig, RuleKind, SourceDefinition
from booksource_core.config.loader import ConfigLoader
from booksource_core.config.schemas import (
    SCHEMA_ENGINE_CONFIG,
    SCHEMA_SOURCE,
    SCHEMA_SOURCES_FILE,
)
from booksource_core.errors import ConfigurationError


class TestEngineConfig:
    """Тесты для конфигурации окружения движка."""

    def test_default_config(self):
        """Проверка создания конфигурации по умолчанию."""
        config = EngineConfig()

        assert config.request_timeout == 30.0
        assert config.script_timeout_ms == 5000
        assert config.script_timeout == 5.0
        assert config.list_workers == 1
        assert config.api_success_codes == [0, 200]
        assert "content" in config.content_fields

    def test_config_validation(self):
        """Проверка валидации значений конфигурации."""
        config = EngineConfig(list_workers=4, log_level="debug")
        assert config.list_workers == 4
        assert config.log_level == "DEBUG"

        with pytest.raises(ValidationError):
            EngineConfig(list_workers=0)

        with pytest.raises(ValidationError):
            EngineConfig(log_level="LOUD")

    def test_invalid_sanitize_pattern(self):
        """Некорректное регулярное выражение в эвристиках очистки."""
        with pytest.raises(ValidationError):
            EngineConfig(sanitize={"boilerplate_patterns": ["("]})

    def test_review_patterns(self):
        """Шаблоны повторного запроса текста главы проверяются при загрузке."""
        config = EngineConfig()
        assert config.login_error_pattern == r"账号存在错误|请重新登录"
        assert "get_review" in config.review_url_pattern

        with pytest.raises(ValidationError):
            EngineConfig(review_url_pattern="(")


class TestConfigLoader:
    """Тесты для загрузчика конфигурации."""

    @pytest.fixture
    def temp_config_dir(self):
        """Создание временной директории для тестов."""
        temp_dir = tempfile.mkdtemp()
        yield temp_dir
        shutil.rmtree(temp_dir)

    @pytest.fixture
    def sample_config_files(self, temp_config_dir):
        """Создание тестовых конфигурационных файлов."""
        config_dir = Path(temp_config_dir)

        engine_config = {
            "request_timeout": 10,
            "list_workers": 2,
            "api_success_codes": [0, "ok"],
        }
        with open(config_dir / "engine_config.json", "w", encoding="utf-8") as f:
            json.dump(engine_config, f)

        sources = {
            "sources": [
                {
                    "id": "test1",
                    "name": "Test Source 1",
                    "url": "https://test1.com",
                    "rules": {
                        "bookInfo": {"name": "tag.h1@text"},
                        "toc": {
                            "chapterList": "$.list",
                            "chapterName": "$.name",
                            "chapterUrl": "<js>'/c/' + result.id</js>",
                        },
                    },
                },
                {
                    "id": "test2",
                    "name": "Test Source 2",
                    "enabled": False,
                },
                {"name": "Без идентификатора"},
                {"id": "bad-rules", "name": "Bad", "rules": {"toc": {"chapterName": 5}}},
            ]
        }
        with open(config_dir / "sources.json", "w", encoding="utf-8") as f:
            json.dump(sources, f, ensure_ascii=False)

        return config_dir

    def test_load_engine_config(self, sample_config_files):
        """Проверка загрузки конфигурации окружения."""
        loader = ConfigLoader(str(sample_config_files))
        config = loader.load_engine_config()

        assert isinstance(config, EngineConfig)
        assert config.request_timeout == 10
        assert config.list_workers == 2
        assert config.api_success_codes == [0, "ok"]

    def test_missing_engine_config(self, temp_config_dir):
        """Нет файла - конфигурация по умолчанию."""
        loader = ConfigLoader(temp_config_dir)
        config = loader.load_engine_config()
        assert config == EngineConfig()

    def test_invalid_engine_config(self, temp_config_dir):
        """Значение вне схемы - ConfigurationError."""
        path = Path(temp_config_dir) / "engine_config.json"
        path.write_text(json.dumps({"list_workers": 100}), encoding="utf-8")

        with pytest.raises(ConfigurationError):
            ConfigLoader(temp_config_dir).load_engine_config()

    def test_broken_json(self, temp_config_dir):
        """Синтаксическая ошибка JSON - ConfigurationError."""
        path = Path(temp_config_dir) / "engine_config.json"
        path.write_text("{broken", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            ConfigLoader(temp_config_dir).load_engine_config(str(path))

    def test_load_sources(self, sample_config_files):
        """Проверка загрузки источников: некорректные пропускаются."""
        loader = ConfigLoader(str(sample_config_files))
        sources = loader.load_sources(str(sample_config_files / "sources.json"))

        assert set(sources) == {"test1", "test2"}

        source = sources["test1"]
        assert source.url == "https://test1.com"
        assert source.rules.book_info.name.kind == RuleKind.SELECTOR
        assert source.rules.toc.chapter_list.kind == RuleKind.JSON_PATH
        assert source.rules.toc.chapter_url.kind == RuleKind.SCRIPT
        assert source.rules.content is None

    def test_sources_as_list(self, temp_config_dir):
        """Файл может быть просто списком источников."""
        path = Path(temp_config_dir) / "list.json"
        path.write_text(json.dumps([{"id": "a", "name": "A"}]), encoding="utf-8")

        sources = ConfigLoader(temp_config_dir).load_sources(str(path))
        assert list(sources) == ["a"]

    def test_sources_file_missing(self, temp_config_dir):
        with pytest.raises(ConfigurationError):
            ConfigLoader(temp_config_dir).load_sources(str(Path(temp_config_dir) / "none.json"))

    def test_sources_wrong_shape(self, temp_config_dir):
        """Объект без ключа sources - ConfigurationError."""
        path = Path(temp_config_dir) / "wrong.json"
        path.write_text(json.dumps({"items": []}), encoding="utf-8")

        with pytest.raises(ConfigurationError):
            ConfigLoader(temp_config_dir).load_sources(str(path))

    def test_get_enabled_sources(self, sample_config_files):
        """Проверка получения включенных источников."""
        loader = ConfigLoader(str(sample_config_files))
        loader.load_sources(str(sample_config_files / "sources.json"))

        enabled = loader.get_enabled_sources()
        assert [s.id for s in enabled] == ["test1"]
        assert loader.get_source("test2").enabled is False
        assert loader.get_source("missing") is None

    def test_build_repository(self, sample_config_files):
        """Репозиторий строится из загруженных источников."""
        loader = ConfigLoader(str(sample_config_files))
        repository = loader.build_repository(str(sample_config_files / "sources.json"))

        assert len(repository) == 2
        assert repository.get_source("test1").name == "Test Source 1"
        assert [s.id for s in repository.list_sources(enabled_only=True)] == ["test1"]


class TestSchemas:
    """Тесты JSON-схем."""

    def test_engine_config_schema(self):
        """Проверка схемы конфигурации окружения."""
        jsonschema.validate({"request_timeout": 5, "log_level": "INFO"}, SCHEMA_ENGINE_CONFIG)

        with pytest.raises(jsonschema.ValidationError):
            jsonschema.validate({"request_timeout": 0}, SCHEMA_ENGINE_CONFIG)

        with pytest.raises(jsonschema.ValidationError):
            jsonschema.validate({"sanitize": {"unknown": []}}, SCHEMA_ENGINE_CONFIG)

    def test_source_schema(self):
        """Проверка схемы описания источника."""
        jsonschema.validate(
            {"id": "x", "name": "X", "header": {"A": "b"}, "rules": {"content": {"content": None}}},
            SCHEMA_SOURCE,
        )
        jsonschema.validate(
            {
                "id": "x",
                "name": "X",
                "exploreUrl": None,
                "rules": {"find": {"url": "/r", "name": "$.t"}},
            },
            SCHEMA_SOURCE,
        )

        with pytest.raises(jsonschema.ValidationError):
            jsonschema.validate({"name": "X"}, SCHEMA_SOURCE)

        with pytest.raises(jsonschema.ValidationError):
            jsonschema.validate({"id": "", "name": "X"}, SCHEMA_SOURCE)

    def test_sources_file_schema(self):
        """Проверка схемы файла источников."""
        jsonschema.validate({"sources": [{"id": "x", "name": "X"}]}, SCHEMA_SOURCES_FILE)

        with pytest.raises(jsonschema.ValidationError):
            jsonschema.validate({"sources": [], "extra": 1}, SCHEMA_SOURCES_FILE)


class TestSourceDefinition:
    """Тесты модели источника."""

    def test_parse_source(self):
        """parse_source: схема и модель."""
        source = ConfigLoader.parse_source(
            {"id": "s", "name": "S", "jsLib": None, "header": {"X": "1"}}
        )
        assert isinstance(source, SourceDefinition)
        assert source.js_lib == ""
        assert json.loads(source.header) == {"X": "1"}

    def test_parse_source_invalid(self):
        with pytest.raises(ConfigurationError):
            ConfigLoader.parse_source({"id": "s"})

    def test_empty_rule_is_none(self):
        """Пустая строка правила не классифицируется."""
        source = SourceDefinition(id="s", name="S", rules={"toc": {"chapterName": "  "}})
        assert source.rules.toc.chapter_name is None

    def test_find_rules(self):
        """Правила списка книг классифицируются, url остается строкой."""
        source = SourceDefinition(
            id="s",
            name="S",
            exploreUrl="玄幻::/c/1",
            rules={
                "find": {
                    "url": "/rank?page={{page}}",
                    "bookList": "$.list",
                    "name": "$.title",
                    "bookUrl": "<js>result.id</js>",
                    "coverUrl": "tag.img@src",
                }
            },
        )
        find = source.rules.find
        assert find.url == "/rank?page={{page}}"
        assert find.book_list.kind == RuleKind.JSON_PATH
        assert find.book_url.kind == RuleKind.SCRIPT
        assert find.cover_url.kind == RuleKind.SELECTOR
        assert find.author is None
        assert source.explore_url == "玄幻::/c/1"

    def test_storage_key(self):
        """Ключ переменной: variableKey или id."""
        assert SourceDefinition(id="s", name="S").storage_key == "s"
        assert SourceDefinition(id="s", name="S", variableKey="k").storage_key == "k"
