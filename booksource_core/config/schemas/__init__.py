"""
JSON-схемы для валидации конфигурационных файлов.

Содержит схемы в формате JSON Schema для валидации
engine_config.json и файлов с описаниями книжных источников.
"""

SCHEMA_ENGINE_CONFIG = {
    "$schema": "http://json-schema.org/draft-2020-12/schema#",
    "title": "Engine Configuration",
    "description": "Конфигурация окружения движка",
    "type": "object",
    "properties": {
        "request_timeout": {
            "type": "number",
            "exclusiveMinimum": 0,
            "default": 30.0,
            "description": "Таймаут сетевого запроса (секунды)",
        },
        "script_timeout_ms": {
            "type": "integer",
            "minimum": 10,
            "default": 5000,
            "description": "Лимит времени скрипта (миллисекунды)",
        },
        "script_memory_limit": {
            "type": "integer",
            "minimum": 1048576,
            "description": "Лимит памяти песочницы (байты)",
        },
        "load_js_lib": {
            "type": "boolean",
            "default": True,
            "description": "Загружать jsLib в песочницу",
        },
        "list_workers": {
            "type": "integer",
            "minimum": 1,
            "maximum": 32,
            "default": 1,
            "description": "Количество потоков для полей списка",
        },
        "user_agent": {
            "type": "string",
            "description": "User-Agent запросов",
        },
        "default_headers": {
            "type": "object",
            "additionalProperties": {"type": "string"},
            "description": "Заголовки по умолчанию",
        },
        "api_success_codes": {
            "type": "array",
            "items": {"type": ["integer", "string"]},
            "description": "Коды успешного ответа API",
        },
        "book_title_fields": {"$ref": "#/$defs/field_list"},
        "chapter_title_fields": {"$ref": "#/$defs/field_list"},
        "description_fields": {"$ref": "#/$defs/field_list"},
        "content_fields": {"$ref": "#/$defs/field_list"},
        "extra_info_fields": {"$ref": "#/$defs/field_list"},
        "title_separator_pattern": {"type": "string"},
        "title_noise_pattern": {"type": "string"},
        "login_error_pattern": {
            "type": "string",
            "description": "Признак ответа, требующего входа (регулярное выражение)",
        },
        "review_url_pattern": {
            "type": "string",
            "description": "Поиск URL get_review в контексте псевдо-URL",
        },
        "log_level": {
            "type": "string",
            "enum": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            "default": "INFO",
            "description": "Уровень логирования",
        },
        "verbose": {
            "type": "boolean",
            "default": False,
            "description": "Подробный вывод",
        },
        "sanitize": {
            "type": "object",
            "properties": {
                "leak_markers": {"$ref": "#/$defs/field_list"},
                "leak_block_patterns": {"$ref": "#/$defs/field_list"},
                "leak_line_patterns": {"$ref": "#/$defs/field_list"},
                "boilerplate_patterns": {"$ref": "#/$defs/field_list"},
            },
            "additionalProperties": False,
            "description": "Эвристики очистки текста главы",
        },
    },
    "$defs": {
        "field_list": {"type": "array", "items": {"type": "string"}},
    },
    "additionalProperties": True,
}

_RULE = {"type": ["string", "null"], "description": "Правило извлечения"}

SCHEMA_SOURCE = {
    "$schema": "http://json-schema.org/draft-2020-12/schema#",
    "title": "Book Source",
    "description": "Описание книжного источника",
    "type": "object",
    "properties": {
        "id": {"type": "string", "minLength": 1, "description": "Идентификатор"},
        "name": {"type": "string", "description": "Название источника"},
        "url": {"type": "string", "description": "Базовый URL сайта"},
        "enabled": {"type": "boolean", "default": True},
        "group": {"type": ["string", "null"]},
        "header": {
            "type": ["string", "object", "null"],
            "description": "Заголовки: JSON-объект или блок <js>",
        },
        "proxyBase": {"type": ["string", "null"]},
        "comment": {"type": ["string", "null"]},
        "jsLib": {"type": ["string", "null"]},
        "loginUrl": {"type": ["string", "null"]},
        "loginUi": {"type": ["string", "null"]},
        "coverDecodeJs": {"type": ["string", "null"]},
        "exploreUrl": {"type": ["string", "null"], "description": "Категории каталога"},
        "variable": {"type": ["string", "null"]},
        "variableKey": {"type": ["string", "null"]},
        "rules": {
            "type": "object",
            "properties": {
                "bookInfo": {
                    "type": ["object", "null"],
                    "additionalProperties": _RULE,
                },
                "toc": {
                    "type": ["object", "null"],
                    "additionalProperties": _RULE,
                },
                "content": {
                    "type": ["object", "null"],
                    "additionalProperties": _RULE,
                },
                "find": {
                    "type": ["object", "null"],
                    "additionalProperties": _RULE,
                },
            },
            "description": "Наборы правил по видам запросов",
        },
    },
    "required": ["id", "name"],
    "additionalProperties": True,
}

SCHEMA_SOURCES_FILE = {
    "$schema": "http://json-schema.org/draft-2020-12/schema#",
    "title": "Book Sources File",
    "description": "Файл с описаниями книжных источников",
    "type": "object",
    "properties": {
        "sources": {
            "type": "array",
            "items": {"$ref": "#/$defs/source"},
            "description": "Список источников",
        }
    },
    "$defs": {"source": SCHEMA_SOURCE},
    "required": ["sources"],
    "additionalProperties": False,
}

# Экспортируемые схемы
__all__ = [
    "SCHEMA_ENGINE_CONFIG",
    "SCHEMA_SOURCE",
    "SCHEMA_SOURCES_FILE",
]
